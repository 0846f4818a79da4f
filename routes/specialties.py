import re

from flask import Blueprint, request, jsonify, g

from models import db
from models.specialty import Specialty
from utils.audit import log_event
from utils.auth_context import login_required
from utils.tenant import get_owned, scoped_client_id, target_client_id

specialties_bp = Blueprint("specialties", __name__, url_prefix="/api/specialties")

_COLOR_RE = re.compile(r"^#[0-9A-Fa-f]{6}$")


def _specialty_payload(s: Specialty):
    return {
        "id": s.id,
        "client_id": s.client_id,
        "name": s.name,
        "description": s.description,
        "color": s.color,
        "is_active": s.is_active,
    }


@specialties_bp.get("")
@login_required
def list_specialties():
    q = Specialty.query
    client_id = scoped_client_id()
    if client_id:
        q = q.filter(Specialty.client_id == client_id)
    return jsonify([_specialty_payload(s) for s in q.order_by(Specialty.name.asc()).all()]), 200


@specialties_bp.post("")
@login_required
def create_specialty():
    data = request.get_json(silent=True) or {}
    name = (data.get("name") or "").strip()
    client_id = target_client_id(data)
    color = (data.get("color") or "#3B82F6").strip()
    if not name or not client_id:
        return jsonify(error="name and client_id are required"), 400
    if not _COLOR_RE.match(color):
        return jsonify(error="color must be a hex value like #3B82F6"), 400

    specialty = Specialty(
        client_id=client_id,
        name=name,
        description=(data.get("description") or "").strip() or None,
        color=color,
    )
    db.session.add(specialty)
    db.session.commit()

    log_event("SPECIALTY_CREATE", user_id=g.user.id, entity="specialty", entity_id=specialty.id)
    return jsonify(_specialty_payload(specialty)), 201


@specialties_bp.patch("/<int:specialty_id>")
@login_required
def update_specialty(specialty_id: int):
    data = request.get_json(silent=True) or {}
    specialty = get_owned(Specialty, specialty_id, "Specialty not found")

    if "name" in data:
        name = (data.get("name") or "").strip()
        if not name:
            return jsonify(error="name cannot be empty"), 400
        specialty.name = name
    if "description" in data:
        specialty.description = (data.get("description") or "").strip() or None
    if "color" in data:
        if not _COLOR_RE.match(data.get("color") or ""):
            return jsonify(error="color must be a hex value like #3B82F6"), 400
        specialty.color = data["color"]
    if "is_active" in data:
        specialty.is_active = bool(data.get("is_active"))
    db.session.commit()

    log_event("SPECIALTY_UPDATE", user_id=g.user.id, entity="specialty", entity_id=specialty.id)
    return jsonify(_specialty_payload(specialty)), 200


@specialties_bp.delete("/<int:specialty_id>")
@login_required
def deactivate_specialty(specialty_id: int):
    specialty = get_owned(Specialty, specialty_id, "Specialty not found")
    specialty.is_active = False
    db.session.commit()

    log_event("SPECIALTY_DEACTIVATE", user_id=g.user.id, entity="specialty", entity_id=specialty_id)
    return jsonify(message="Specialty deactivated"), 200
