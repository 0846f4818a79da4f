from flask import Blueprint, request, jsonify, g

from models import db
from models.service import Service
from models.specialty import Specialty
from utils.audit import log_event
from utils.auth_context import login_required
from utils.payload import field, has_field
from utils.tenant import get_owned, scoped_client_id, target_client_id

service_catalog_bp = Blueprint("service_catalog", __name__, url_prefix="/api/services")


def _service_payload(s: Service):
    return {
        "id": s.id,
        "client_id": s.client_id,
        "specialty_id": s.specialty_id,
        "name": s.name,
        "category": s.category,
        "description": s.description,
        "duration": s.duration,
        "price": s.price,
        "is_active": s.is_active,
    }


def _positive_int(value, name, allow_zero=False):
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None, f"{name} must be an integer"
    if number < 0 or (number == 0 and not allow_zero):
        return None, f"{name} must be {'zero or more' if allow_zero else 'positive'}"
    return number, None


@service_catalog_bp.get("")
@login_required
def list_services():
    q = Service.query
    client_id = scoped_client_id()
    if client_id:
        q = q.filter(Service.client_id == client_id)
    if (request.args.get("active") or "").lower() == "true":
        q = q.filter(Service.is_active.is_(True))
    return jsonify([_service_payload(s) for s in q.order_by(Service.name.asc()).all()]), 200


@service_catalog_bp.post("")
@login_required
def create_service():
    data = request.get_json(silent=True) or {}
    name = (data.get("name") or "").strip()
    client_id = target_client_id(data)
    if not name or not client_id:
        return jsonify(error="name and client_id are required"), 400

    duration, error = _positive_int(data.get("duration", 60), "duration")
    if error:
        return jsonify(error=error), 400
    price, error = _positive_int(data.get("price", 0), "price", allow_zero=True)
    if error:
        return jsonify(error=error), 400

    specialty_id = field(data, "specialty_id")
    if specialty_id:
        specialty_id = get_owned(Specialty, specialty_id, "Specialty not found").id

    service = Service(
        client_id=client_id,
        specialty_id=specialty_id or None,
        name=name,
        category=(data.get("category") or "").strip() or None,
        description=(data.get("description") or "").strip() or None,
        duration=duration,
        price=price,
    )
    db.session.add(service)
    db.session.commit()

    log_event("SERVICE_CREATE", user_id=g.user.id, entity="service", entity_id=service.id)
    return jsonify(_service_payload(service)), 201


@service_catalog_bp.patch("/<int:service_id>")
@login_required
def update_service(service_id: int):
    data = request.get_json(silent=True) or {}
    service = get_owned(Service, service_id, "Service not found")

    if "name" in data:
        name = (data.get("name") or "").strip()
        if not name:
            return jsonify(error="name cannot be empty"), 400
        service.name = name
    for text_field in ("category", "description"):
        if text_field in data:
            setattr(service, text_field, (data.get(text_field) or "").strip() or None)
    if "duration" in data:
        service.duration, error = _positive_int(data["duration"], "duration")
        if error:
            db.session.rollback()
            return jsonify(error=error), 400
    if "price" in data:
        service.price, error = _positive_int(data["price"], "price", allow_zero=True)
        if error:
            db.session.rollback()
            return jsonify(error=error), 400
    if has_field(data, "specialty_id"):
        specialty_id = field(data, "specialty_id")
        service.specialty_id = get_owned(Specialty, specialty_id, "Specialty not found").id if specialty_id else None
    if "is_active" in data:
        service.is_active = bool(data.get("is_active"))
    db.session.commit()

    log_event("SERVICE_UPDATE", user_id=g.user.id, entity="service", entity_id=service.id)
    return jsonify(_service_payload(service)), 200


@service_catalog_bp.delete("/<int:service_id>")
@login_required
def deactivate_service(service_id: int):
    service = get_owned(Service, service_id, "Service not found")
    service.is_active = False
    db.session.commit()

    log_event("SERVICE_DEACTIVATE", user_id=g.user.id, entity="service", entity_id=service_id)
    return jsonify(message="Service deactivated"), 200
