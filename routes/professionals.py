from flask import Blueprint, request, jsonify, g
from sqlalchemy.exc import IntegrityError

from models import db
from models.professional import Professional
from models.specialty import Specialty
from utils.audit import log_event
from utils.auth_context import login_required
from utils.payload import field, has_field
from utils.tenant import get_owned, get_owned_professional, scoped_client_id, target_client_id

professionals_bp = Blueprint("professionals", __name__, url_prefix="/api/professionals")


def _professional_payload(p: Professional):
    return {
        "id": p.id,
        "client_id": p.client_id,
        "specialty_id": p.specialty_id,
        "name": p.name,
        "email": p.email,
        "phone": p.phone,
        "is_active": p.is_active,
        "created_at": p.created_at.isoformat(),
    }


@professionals_bp.get("")
@login_required
def list_professionals():
    q = Professional.query
    client_id = scoped_client_id()
    if client_id:
        q = q.filter(Professional.client_id == client_id)
    rows = q.order_by(Professional.name.asc()).all()
    return jsonify([_professional_payload(p) for p in rows]), 200


@professionals_bp.post("")
@login_required
def create_professional():
    data = request.get_json(silent=True) or {}
    name = (field(data, "name") or "").strip()
    email = (field(data, "email") or "").strip().lower()
    client_id = target_client_id(data)
    if not name or not email or not client_id:
        return jsonify(error="name, email and client_id are required"), 400

    specialty_id = field(data, "specialty_id")
    if specialty_id:
        specialty_id = get_owned(Specialty, specialty_id, "Specialty not found").id

    professional = Professional(
        client_id=client_id,
        specialty_id=specialty_id or None,
        name=name,
        email=email,
        phone=(field(data, "phone") or "").strip() or None,
    )
    db.session.add(professional)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify(error="Professional email already exists"), 409

    log_event("PROFESSIONAL_CREATE", user_id=g.user.id, entity="professional", entity_id=professional.id)
    return jsonify(_professional_payload(professional)), 201


@professionals_bp.get("/<int:professional_id>")
@login_required
def get_professional(professional_id: int):
    return jsonify(_professional_payload(get_owned_professional(professional_id))), 200


@professionals_bp.patch("/<int:professional_id>")
@login_required
def update_professional(professional_id: int):
    data = request.get_json(silent=True) or {}
    professional = get_owned_professional(professional_id)

    if has_field(data, "name"):
        name = (field(data, "name") or "").strip()
        if not name:
            return jsonify(error="name cannot be empty"), 400
        professional.name = name
    if has_field(data, "phone"):
        professional.phone = (field(data, "phone") or "").strip() or None
    if has_field(data, "specialty_id"):
        specialty_id = field(data, "specialty_id")
        if specialty_id:
            specialty_id = get_owned(Specialty, specialty_id, "Specialty not found").id
        professional.specialty_id = specialty_id or None
    if has_field(data, "is_active"):
        professional.is_active = bool(field(data, "is_active"))
    db.session.commit()

    log_event("PROFESSIONAL_UPDATE", user_id=g.user.id, entity="professional", entity_id=professional.id)
    return jsonify(_professional_payload(professional)), 200


@professionals_bp.delete("/<int:professional_id>")
@login_required
def deactivate_professional(professional_id: int):
    professional = get_owned_professional(professional_id)
    professional.is_active = False
    db.session.commit()

    log_event("PROFESSIONAL_DEACTIVATE", user_id=g.user.id, entity="professional", entity_id=professional_id)
    return jsonify(message="Professional deactivated"), 200
