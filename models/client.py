from datetime import datetime
from models.db import db

class Client(db.Model):
    """A tenant company. Owns professionals, services, customers and appointments."""
    __tablename__ = "clients"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    phone = db.Column(db.String(20), nullable=True)
    service_type = db.Column(db.String(100), nullable=True)  # e.g. clinic, salon, as chosen at sign-up

    plan = db.Column(db.String(50), nullable=False, default="basic")  # basic, pro, enterprise
    timezone = db.Column(db.String(50), nullable=False, default="America/Sao_Paulo")

    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
