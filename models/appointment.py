from datetime import datetime
from models.db import db

class Appointment(db.Model):
    __tablename__ = "appointments"

    id = db.Column(db.Integer, primary_key=True)

    client_id = db.Column(db.Integer, db.ForeignKey("clients.id"), nullable=False, index=True)
    professional_id = db.Column(db.Integer, db.ForeignKey("professionals.id"), nullable=False, index=True)
    service_id = db.Column(db.Integer, db.ForeignKey("services.id"), nullable=False)
    availability_id = db.Column(db.Integer, db.ForeignKey("professional_availability.id"), nullable=False)

    # nullable: bookings taken by phone/WhatsApp may have no customer record
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    customer_name = db.Column(db.String(255), nullable=True)
    customer_phone = db.Column(db.String(30), nullable=True)

    scheduled_at = db.Column(db.DateTime, nullable=False, index=True)
    status = db.Column(db.String(20), nullable=False, default="PENDING")
    # status values: see services.booking.AppointmentStatus
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        # Hard business-rule: one live appointment per slot (prevents double booking)
        db.UniqueConstraint("availability_id", name="uq_appointment_slot_once"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "client_id": self.client_id,
            "professional_id": self.professional_id,
            "service_id": self.service_id,
            "availability_id": self.availability_id,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "scheduled_at": self.scheduled_at.isoformat(),
            "status": self.status,
            "notes": self.notes,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
