from datetime import date

from flask import Blueprint, request, jsonify, current_app, g
from sqlalchemy.exc import IntegrityError

from models import db
from models.appointment import Appointment
from models.availability import ProfessionalAvailability
from models.professional import Professional
from services.recurrence import day_of_week_for, materialize_month, materialize_next_month
from services.slot_generator import generate_slots, parse_time
from utils.audit import log_event
from utils.auth_context import login_required
from utils.errors import NotFoundError, ValidationError
from utils.payload import field, has_field, normalize
from utils.tenant import can_access_client, get_owned_professional, scoped_client_id

availability_bp = Blueprint("availability", __name__, url_prefix="/api/professional-availability")

BOOKED_LOCKED_FIELDS = ("is_active", "date", "day_of_week", "start_time", "end_time")


def _parse_date(value):
    if value in (None, ""):
        return None
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise ValidationError("Invalid date. Use YYYY-MM-DD") from None


def _parse_int(value, name, minimum=None, maximum=None):
    if value in (None, ""):
        return None
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be an integer") from None
    if (minimum is not None and number < minimum) or (maximum is not None and number > maximum):
        raise ValidationError(f"{name} must be between {minimum} and {maximum}")
    return number


def _parse_placement(data):
    """Resolve (date, day_of_week) from a payload; one of them is required."""
    day = _parse_date(field(data, "date"))
    day_of_week = _parse_int(field(data, "day_of_week"), "day_of_week", 0, 6)
    if day is None and day_of_week is None:
        raise ValidationError("date or day_of_week is required")
    if day is not None and day_of_week is not None and day_of_week_for(day) != day_of_week:
        raise ValidationError("day_of_week does not match date")
    return day, day_of_week


def _find_existing(professional_id, day, day_of_week, start, end):
    q = ProfessionalAvailability.query.filter_by(
        professional_id=professional_id, date=day, start_time=start, end_time=end,
    )
    if day is None:
        q = q.filter_by(day_of_week=day_of_week)
    return q.first()


def _get_owned_slot(slot_id: int) -> ProfessionalAvailability:
    slot = db.session.get(ProfessionalAvailability, slot_id)
    if not slot:
        raise NotFoundError("Availability not found")
    professional = db.session.get(Professional, slot.professional_id)
    if not professional or not can_access_client(professional.client_id):
        raise NotFoundError("Availability not found")
    return slot


@availability_bp.get("")
@login_required
def list_availability():
    q = ProfessionalAvailability.query.join(
        Professional, Professional.id == ProfessionalAvailability.professional_id
    )

    client_id = scoped_client_id()
    if client_id:
        q = q.filter(Professional.client_id == client_id)

    professional_id = request.args.get("professional_id") or request.args.get("professionalId")
    if professional_id:
        q = q.filter(ProfessionalAvailability.professional_id == _parse_int(professional_id, "professional_id"))

    day = _parse_date(request.args.get("date"))
    if day:
        q = q.filter(ProfessionalAvailability.date == day)

    only_active = (request.args.get("active") or "").lower() == "true"
    if only_active:
        q = q.filter(ProfessionalAvailability.is_active.is_(True))

    rows = q.order_by(
        ProfessionalAvailability.date.asc(),
        ProfessionalAvailability.day_of_week.asc(),
        ProfessionalAvailability.start_time.asc(),
    ).all()
    return jsonify([r.to_dict() for r in rows]), 200


@availability_bp.get("/<int:slot_id>")
@login_required
def get_availability(slot_id: int):
    return jsonify(_get_owned_slot(slot_id).to_dict()), 200


@availability_bp.post("")
@login_required
def create_availability():
    data = request.get_json(silent=True) or {}
    if not field(data, "professional_id") or not field(data, "start_time") or not field(data, "end_time"):
        return jsonify(error="professional_id, start_time, end_time are required"), 400

    professional = get_owned_professional(field(data, "professional_id"))
    day, day_of_week = _parse_placement(data)
    start = parse_time(field(data, "start_time"))
    end = parse_time(field(data, "end_time"))
    if end <= start:
        return jsonify(error="end_time must be after start_time"), 400

    slot = ProfessionalAvailability(
        professional_id=professional.id,
        client_id=professional.client_id,
        date=day,
        day_of_week=day_of_week,
        start_time=start,
        end_time=end,
        is_active=bool(field(data, "is_active", True)),
        service_id=_parse_int(field(data, "service_id"), "service_id"),
        custom_price=_parse_int(field(data, "custom_price"), "custom_price", 0),
        custom_duration=_parse_int(field(data, "custom_duration"), "custom_duration", 1),
    )
    db.session.add(slot)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify(error="Availability already exists for that professional and time"), 409

    log_event("AVAILABILITY_CREATE", user_id=g.user.id, entity="availability", entity_id=slot.id)
    return jsonify(slot.to_dict()), 201


@availability_bp.post("/batch")
@login_required
def create_availability_batch():
    """Cut [start_time, end_time) into fixed-length slots and store each one."""
    data = request.get_json(silent=True) or {}
    if not field(data, "professional_id") or not field(data, "start_time") or not field(data, "end_time"):
        return jsonify(error="professional_id, start_time, end_time are required"), 400

    professional = get_owned_professional(field(data, "professional_id"))
    day, day_of_week = _parse_placement(data)
    duration = _parse_int(field(data, "slot_duration"), "slot_duration")
    if duration is None:
        duration = current_app.config.get("DEFAULT_SLOT_DURATION", 60)

    slots = generate_slots(field(data, "start_time"), field(data, "end_time"), duration)

    created, skipped = [], 0
    for s in slots:
        if _find_existing(professional.id, day, day_of_week, s.start_time, s.end_time):
            skipped += 1
            continue
        row = ProfessionalAvailability(
            professional_id=professional.id,
            client_id=professional.client_id,
            date=day,
            day_of_week=day_of_week,
            start_time=s.start_time,
            end_time=s.end_time,
            is_active=True,
            service_id=_parse_int(field(data, "service_id"), "service_id"),
        )
        db.session.add(row)
        created.append(row)
    db.session.commit()

    log_event(
        "AVAILABILITY_BATCH_CREATE",
        user_id=g.user.id,
        entity="professional",
        entity_id=professional.id,
        metadata={"created": len(created), "skipped": skipped, "slot_duration": duration},
    )
    return jsonify(
        created=len(created),
        skipped=skipped,
        slots=[r.to_dict() for r in created],
    ), 201


def _monthly_scope(data):
    professional_id = field(data, "professional_id")
    if professional_id:
        return get_owned_professional(professional_id).id, None
    # without a professional, company admins only expand their own templates
    return None, None if g.user.is_super_admin else g.user.client_id


@availability_bp.post("/generate-next-month")
@login_required
def generate_next_month():
    data = request.get_json(silent=True) or {}
    professional_id, client_id = _monthly_scope(data)

    result = materialize_next_month(professional_id=professional_id, client_id=client_id)

    log_event(
        "AVAILABILITY_NEXT_MONTH_GENERATE",
        user_id=g.user.id,
        entity="professional",
        entity_id=professional_id,
        metadata=result,
    )
    return jsonify(result), 200


@availability_bp.post("/update-monthly")
@login_required
def update_monthly():
    data = request.get_json(silent=True) or {}
    professional_id, client_id = _monthly_scope(data)
    month = _parse_int(field(data, "month"), "month", 1, 12)
    year = _parse_int(field(data, "year"), "year", 1970, 9999)

    result = materialize_month(professional_id=professional_id, month=month, year=year, client_id=client_id)

    log_event(
        "AVAILABILITY_MONTHLY_GENERATE",
        user_id=g.user.id,
        entity="professional",
        entity_id=professional_id,
        metadata=result,
    )
    return jsonify(result), 200


@availability_bp.patch("/<int:slot_id>")
@login_required
def update_availability(slot_id: int):
    data = request.get_json(silent=True) or {}
    slot = _get_owned_slot(slot_id)

    # a held slot keeps its placement and stays inactive until the appointment is cancelled
    if any(has_field(data, name) for name in BOOKED_LOCKED_FIELDS) and \
            Appointment.query.filter_by(availability_id=slot.id).first():
        return jsonify(error="Availability is booked; cancel the appointment first"), 409

    if has_field(data, "date") or has_field(data, "day_of_week"):
        merged = {"date": slot.date.isoformat() if slot.date else None, "day_of_week": slot.day_of_week}
        merged.update(normalize(data, ("date", "day_of_week")))
        slot.date, slot.day_of_week = _parse_placement(merged)
    if has_field(data, "start_time"):
        slot.start_time = parse_time(field(data, "start_time"))
    if has_field(data, "end_time"):
        slot.end_time = parse_time(field(data, "end_time"))
    if slot.end_time <= slot.start_time:
        db.session.rollback()
        return jsonify(error="end_time must be after start_time"), 400

    if has_field(data, "is_active"):
        slot.is_active = bool(field(data, "is_active"))
    if has_field(data, "service_id"):
        slot.service_id = _parse_int(field(data, "service_id"), "service_id")
    if has_field(data, "custom_price"):
        slot.custom_price = _parse_int(field(data, "custom_price"), "custom_price", 0)
    if has_field(data, "custom_duration"):
        slot.custom_duration = _parse_int(field(data, "custom_duration"), "custom_duration", 1)

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify(error="Availability already exists for that professional and time"), 409

    log_event("AVAILABILITY_UPDATE", user_id=g.user.id, entity="availability", entity_id=slot.id)
    return jsonify(slot.to_dict()), 200


@availability_bp.delete("/<int:slot_id>")
@login_required
def delete_availability(slot_id: int):
    slot = _get_owned_slot(slot_id)

    if Appointment.query.filter_by(availability_id=slot.id).first():
        return jsonify(error="Availability is booked; cancel the appointment first"), 409

    db.session.delete(slot)
    db.session.commit()

    log_event("AVAILABILITY_DELETE", user_id=g.user.id, entity="availability", entity_id=slot_id)
    return jsonify(message="Availability deleted"), 200
