from datetime import date, datetime, timedelta

from flask import Blueprint, request, jsonify, g

from models import db
from models.appointment import Appointment
from services.booking import AppointmentStatus, book_appointment, cancel_appointment, get_appointment
from utils.audit import log_event
from utils.auth_context import login_required
from utils.errors import AppointmentNotFound, ValidationError
from utils.payload import field, has_field, normalize
from utils.tenant import can_access_client, scoped_client_id

appointments_bp = Blueprint("appointments", __name__, url_prefix="/api/appointments")

BOOKING_FIELDS = (
    "client_id",
    "professional_id",
    "service_id",
    "availability_id",
    "customer_id",
    "customer_name",
    "customer_phone",
    "status",
    "notes",
)


def _get_owned_appointment(appointment_id) -> Appointment:
    appointment = get_appointment(appointment_id)
    if not appointment or not can_access_client(appointment.client_id):
        raise AppointmentNotFound()
    return appointment


@appointments_bp.get("")
@login_required
def list_appointments():
    q = Appointment.query

    client_id = scoped_client_id()
    if client_id:
        q = q.filter(Appointment.client_id == client_id)

    professional_id = request.args.get("professional_id") or request.args.get("professionalId")
    if professional_id:
        q = q.filter(Appointment.professional_id == professional_id)

    status = request.args.get("status")
    if status:
        q = q.filter(Appointment.status == AppointmentStatus.parse(status).value)

    date_str = request.args.get("date")  # YYYY-MM-DD
    if date_str:
        try:
            day = date.fromisoformat(date_str)
        except ValueError:
            return jsonify(error="Invalid date. Use YYYY-MM-DD"), 400
        start = datetime(day.year, day.month, day.day)
        q = q.filter(Appointment.scheduled_at >= start, Appointment.scheduled_at < start + timedelta(days=1))

    rows = q.order_by(Appointment.scheduled_at.asc()).limit(500).all()
    return jsonify([a.to_dict() for a in rows]), 200


@appointments_bp.get("/<int:appointment_id>")
@login_required
def get_appointment_detail(appointment_id: int):
    return jsonify(_get_owned_appointment(appointment_id).to_dict()), 200


@appointments_bp.post("")
@login_required
def create_appointment():
    data = normalize(request.get_json(silent=True) or {}, BOOKING_FIELDS)

    # company admins always book inside their own tenant
    if not g.user.is_super_admin:
        data["client_id"] = g.user.client_id

    appointment = book_appointment(data)

    log_event(
        "APPOINTMENT_CREATE",
        user_id=g.user.id,
        client_id=appointment.client_id,
        entity="appointment",
        entity_id=appointment.id,
        metadata={"availability_id": appointment.availability_id},
    )
    return jsonify(appointment.to_dict()), 201


@appointments_bp.patch("/<int:appointment_id>")
@login_required
def update_appointment(appointment_id: int):
    data = request.get_json(silent=True) or {}
    appointment = _get_owned_appointment(appointment_id)

    status = AppointmentStatus.parse(field(data, "status")) if has_field(data, "status") else None
    if status is AppointmentStatus.CANCELLED:
        # cancelling always goes through release-then-delete
        result = cancel_appointment(appointment.id)
        log_event("APPOINTMENT_CANCEL", user_id=g.user.id, entity="appointment", entity_id=appointment_id, metadata=result)
        return jsonify(message="Appointment cancelled", **result), 200

    if status is not None:
        appointment.status = status.value
    if has_field(data, "notes"):
        appointment.notes = (field(data, "notes") or "").strip() or None
    db.session.commit()

    log_event("APPOINTMENT_UPDATE", user_id=g.user.id, entity="appointment", entity_id=appointment.id)
    return jsonify(appointment.to_dict()), 200


@appointments_bp.post("/cancel")
@login_required
def cancel():
    data = request.get_json(silent=True) or {}
    appointment_id = field(data, "appointment_id")
    if not appointment_id:
        return jsonify(error="appointmentId is required"), 400

    appointment = _get_owned_appointment(appointment_id)
    availability_id = field(data, "availability_id")
    if availability_id is not None and not str(availability_id).isdigit():
        raise ValidationError("availabilityId must be an integer id")

    result = cancel_appointment(appointment.id, availability_id)

    log_event(
        "APPOINTMENT_CANCEL",
        user_id=g.user.id,
        entity="appointment",
        entity_id=result["appointment_id"],
        metadata={"availability_id": result["availability_id"]},
    )
    return jsonify(message="Appointment cancelled", **result), 200
