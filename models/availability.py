from datetime import datetime
from models.db import db

class ProfessionalAvailability(db.Model):
    """
    One bookable window for a professional.

    date set      -> concrete slot, bookable
    date is NULL  -> weekly template, expanded by services.recurrence
    is_active     -> True = free, False = held by an appointment or disabled
    """
    __tablename__ = "professional_availability"

    id = db.Column(db.Integer, primary_key=True)

    professional_id = db.Column(db.Integer, db.ForeignKey("professionals.id"), nullable=False, index=True)
    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=True, index=True)

    date = db.Column(db.Date, nullable=True, index=True)
    day_of_week = db.Column(db.Integer, nullable=True)  # 0-6, Sunday=0
    start_time = db.Column(db.Time, nullable=False)
    end_time = db.Column(db.Time, nullable=False)

    is_active = db.Column(db.Boolean, default=True, nullable=False)

    # optional per-service override
    service_id = db.Column(db.Integer, db.ForeignKey("services.id"), nullable=True)
    custom_price = db.Column(db.Integer, nullable=True)
    custom_duration = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        # Prevent duplicate concrete slots (NULL dates never collide, so templates are unaffected)
        db.UniqueConstraint("professional_id", "date", "start_time", "end_time", name="uq_professional_dated_slot"),
    )

    @property
    def is_template(self) -> bool:
        return self.date is None and self.day_of_week is not None

    def to_dict(self):
        return {
            "id": self.id,
            "professional_id": self.professional_id,
            "client_id": self.client_id,
            "date": self.date.isoformat() if self.date else None,
            "day_of_week": self.day_of_week,
            "start_time": self.start_time.strftime("%H:%M"),
            "end_time": self.end_time.strftime("%H:%M"),
            "is_active": self.is_active,
            "service_id": self.service_id,
            "custom_price": self.custom_price,
            "custom_duration": self.custom_duration,
        }
