"""
Appointment booking and cancellation.

A dated availability row is FREE while ``is_active`` is true and HELD while an
appointment references it. Booking claims the row with a conditional UPDATE
(only one concurrent caller can flip it), cancelling releases the row and
hard-deletes the appointment in the same transaction.
"""
from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from models import db
from models.appointment import Appointment
from models.availability import ProfessionalAvailability
from models.customer import Customer
from models.professional import Professional
from models.service import Service
from utils.errors import (
    AppointmentNotFound,
    ConflictError,
    MissingRequiredField,
    NotFoundError,
    PhoneMismatch,
    SlotAlreadyBooked,
    UpstreamError,
    ValidationError,
)

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("client_id", "professional_id", "service_id", "availability_id")


class AppointmentStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"

    @classmethod
    def parse(cls, value: Any) -> "AppointmentStatus":
        if isinstance(value, cls):
            return value
        key = str(value or "").strip().lower()
        status = _STATUS_ALIASES.get(key)
        if status is None:
            raise ValidationError(
                f"Unknown appointment status '{value}'",
                details={"allowed": [s.value for s in cls]},
            )
        return status


_STATUS_ALIASES = {
    "pending": AppointmentStatus.PENDING,
    "pendente": AppointmentStatus.PENDING,
    "scheduled": AppointmentStatus.PENDING,
    "agendado": AppointmentStatus.PENDING,
    "confirmed": AppointmentStatus.CONFIRMED,
    "confirmado": AppointmentStatus.CONFIRMED,
    "completed": AppointmentStatus.COMPLETED,
    "concluido": AppointmentStatus.COMPLETED,
    "concluído": AppointmentStatus.COMPLETED,
    "cancelled": AppointmentStatus.CANCELLED,
    "canceled": AppointmentStatus.CANCELLED,
    "cancelado": AppointmentStatus.CANCELLED,
}

# statuses that count as earned revenue
REVENUE_STATUSES = (AppointmentStatus.CONFIRMED.value, AppointmentStatus.COMPLETED.value)


def normalize_phone(value: Optional[str]) -> str:
    return "".join(ch for ch in str(value or "") if ch.isdigit())


def _as_id(value: Any, field: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer id", details={"field": field}) from None


def _claim_slot(availability_id: int) -> bool:
    result = db.session.execute(
        update(ProfessionalAvailability)
        .where(
            ProfessionalAvailability.id == availability_id,
            ProfessionalAvailability.is_active.is_(True),
        )
        .values(is_active=False, updated_at=datetime.utcnow())
    )
    return result.rowcount == 1


def _release_slot(availability_id: int) -> bool:
    result = db.session.execute(
        update(ProfessionalAvailability)
        .where(ProfessionalAvailability.id == availability_id)
        .values(is_active=True, updated_at=datetime.utcnow())
    )
    return result.rowcount == 1


def book_appointment(data: Dict[str, Any]) -> Appointment:
    for field in REQUIRED_FIELDS:
        if not data.get(field):
            raise MissingRequiredField(field)

    client_id = _as_id(data["client_id"], "client_id")
    professional_id = _as_id(data["professional_id"], "professional_id")
    service_id = _as_id(data["service_id"], "service_id")
    availability_id = _as_id(data["availability_id"], "availability_id")
    customer_id = _as_id(data["customer_id"], "customer_id") if data.get("customer_id") else None
    status = AppointmentStatus.parse(data.get("status") or AppointmentStatus.PENDING)

    professional = db.session.get(Professional, professional_id)
    if not professional or professional.client_id != client_id:
        raise NotFoundError("Professional not found")

    service = db.session.get(Service, service_id)
    if not service or service.client_id != client_id:
        raise NotFoundError("Service not found")

    if customer_id is not None:
        customer = db.session.get(Customer, customer_id)
        if not customer or customer.client_id != client_id:
            raise NotFoundError("Customer not found")

    slot = db.session.get(ProfessionalAvailability, availability_id)
    if not slot:
        raise NotFoundError("Availability not found")
    if slot.professional_id != professional_id:
        raise ValidationError("Availability does not belong to this professional")
    if slot.date is None:
        raise ValidationError("Weekly templates cannot be booked; choose a dated slot")

    if not _claim_slot(availability_id):
        db.session.rollback()
        raise SlotAlreadyBooked()

    appointment = Appointment(
        client_id=client_id,
        professional_id=professional_id,
        service_id=service_id,
        availability_id=availability_id,
        customer_id=customer_id,
        customer_name=(data.get("customer_name") or "").strip() or None,
        customer_phone=(data.get("customer_phone") or "").strip() or None,
        scheduled_at=datetime.combine(slot.date, slot.start_time),
        status=status.value,
        notes=(data.get("notes") or "").strip() or None,
    )
    db.session.add(appointment)
    try:
        db.session.commit()
    except IntegrityError:
        # Unique constraint uq_appointment_slot_once triggers here
        db.session.rollback()
        raise SlotAlreadyBooked()

    logger.info("Appointment %s booked on availability %s", appointment.id, availability_id)
    return appointment


def _release_and_delete(appointment: Appointment, availability_id: Optional[int] = None) -> Dict[str, Any]:
    appointment_id = appointment.id
    own_slot = appointment.availability_id
    target = availability_id or own_slot

    # Step 1: release. Any failure here aborts before the appointment is touched.
    try:
        released = _release_slot(target)
        if released and own_slot and own_slot != target:
            _release_slot(own_slot)
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error("Failed to release availability %s for appointment %s: %s", target, appointment_id, exc)
        raise UpstreamError("Could not release the professional's slot") from exc
    if not released:
        db.session.rollback()
        raise NotFoundError("Availability not found")

    # Step 2: delete, committed together with the release.
    try:
        db.session.delete(appointment)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error("Failed to delete appointment %s: %s", appointment_id, exc)
        raise UpstreamError("Could not remove the appointment") from exc

    logger.info("Appointment %s cancelled, availability %s released", appointment_id, target)
    return {"appointment_id": appointment_id, "availability_id": target}


def get_appointment(appointment_id: Any) -> Optional[Appointment]:
    try:
        return db.session.get(Appointment, int(appointment_id))
    except (TypeError, ValueError):
        return None


def _check_override_slot(appointment: Appointment, availability_id: int) -> None:
    """An explicit slot to free must be the same professional's and not held by another appointment."""
    slot = db.session.get(ProfessionalAvailability, availability_id)
    if slot is None or slot.professional_id != appointment.professional_id:
        raise NotFoundError("Availability not found")
    holder = (
        db.session.query(Appointment.id)
        .filter(Appointment.availability_id == availability_id, Appointment.id != appointment.id)
        .first()
    )
    if holder is not None:
        raise ConflictError("Availability is held by another appointment")


def cancel_appointment(appointment_id: Any, availability_id: Any = None) -> Dict[str, Any]:
    """Release the appointment's slot (or ``availability_id`` if given) and delete it."""
    appointment = get_appointment(appointment_id)
    if appointment is None:
        raise AppointmentNotFound()
    target = _as_id(availability_id, "availability_id") if availability_id else None
    if target is not None and target != appointment.availability_id:
        _check_override_slot(appointment, target)
    return _release_and_delete(appointment, target)


def cancel_by_phone(session_id: Any, appointment_id: Any) -> Dict[str, Any]:
    """Cancellation requested by the customer's own phone (WhatsApp session)."""
    if not appointment_id:
        raise MissingRequiredField("agendamento_id")
    if not session_id:
        raise MissingRequiredField("sessionid")

    appointment = get_appointment(appointment_id)
    if appointment is None:
        raise AppointmentNotFound()

    caller = normalize_phone(session_id)
    if not caller or caller != normalize_phone(appointment.customer_phone):
        logger.warning("Phone mismatch cancelling appointment %s", appointment.id)
        raise PhoneMismatch()

    customer_name = appointment.customer_name
    result = _release_and_delete(appointment)
    result["customer_name"] = customer_name
    return result
