from datetime import datetime
from models.db import db

class AuditLog(db.Model):
    __tablename__ = "audit_logs"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, nullable=True)  # NULL for webhook / CLI events
    client_id = db.Column(db.Integer, nullable=True, index=True)

    action = db.Column(db.String(80), nullable=False, index=True)  # e.g. APPOINTMENT_CANCEL
    entity = db.Column(db.String(80), nullable=True)   # e.g. appointment, availability
    entity_id = db.Column(db.String(80), nullable=True)

    ip = db.Column(db.String(64), nullable=True)
    metadata_json = db.Column(db.Text, nullable=True)

    timestamp = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
