import csv
import io
from datetime import date

from flask import Blueprint, Response, request, jsonify, current_app, g
from sqlalchemy.exc import IntegrityError

from models import db
from models.client import Client
from security.rbac import require_roles
from services.metrics import REPORT_COLUMNS, client_report, client_usage
from utils.audit import log_event
from utils.auth_context import login_required
from utils.errors import NotFoundError, ValidationError
from utils.tenant import can_access_client, get_owned_professional

clients_bp = Blueprint("clients", __name__, url_prefix="/api/clients")

PLANS = ("basic", "pro", "enterprise")


def _client_payload(c: Client):
    return {
        "id": c.id,
        "name": c.name,
        "email": c.email,
        "phone": c.phone,
        "service_type": c.service_type,
        "plan": c.plan,
        "timezone": c.timezone,
        "is_active": c.is_active,
        "created_at": c.created_at.isoformat(),
    }


@clients_bp.get("")
@require_roles("SUPER_ADMIN")
def list_clients():
    rows = Client.query.order_by(Client.created_at.desc()).all()
    return jsonify([_client_payload(c) for c in rows]), 200


@clients_bp.post("")
@require_roles("SUPER_ADMIN")
def create_client():
    data = request.get_json(silent=True) or {}
    name = (data.get("name") or "").strip()
    email = (data.get("email") or "").strip().lower()
    plan = (data.get("plan") or "basic").strip().lower()
    if not name or not email:
        return jsonify(error="name and email are required"), 400
    if plan not in PLANS:
        return jsonify(error=f"plan must be one of {', '.join(PLANS)}"), 400

    client = Client(
        name=name,
        email=email,
        phone=(data.get("phone") or "").strip() or None,
        plan=plan,
        timezone=(data.get("timezone") or "America/Sao_Paulo").strip(),
    )
    db.session.add(client)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify(error="Client email already exists"), 409

    log_event("CLIENT_CREATE", user_id=g.user.id, entity="client", entity_id=client.id)
    return jsonify(_client_payload(client)), 201


@clients_bp.patch("/<int:client_id>")
@require_roles("SUPER_ADMIN")
def update_client(client_id: int):
    data = request.get_json(silent=True) or {}
    client = db.session.get(Client, client_id)
    if not client:
        return jsonify(error="Client not found"), 404

    for name in ("name", "phone", "timezone"):
        if name in data:
            setattr(client, name, (data.get(name) or "").strip() or None)
    if "plan" in data:
        plan = (data.get("plan") or "").strip().lower()
        if plan not in PLANS:
            return jsonify(error=f"plan must be one of {', '.join(PLANS)}"), 400
        client.plan = plan
    if "is_active" in data:
        client.is_active = bool(data.get("is_active"))
    if not client.name:
        db.session.rollback()
        return jsonify(error="name is required"), 400
    db.session.commit()

    log_event("CLIENT_UPDATE", user_id=g.user.id, entity="client", entity_id=client.id)
    return jsonify(_client_payload(client)), 200


@clients_bp.delete("/<int:client_id>")
@require_roles("SUPER_ADMIN")
def deactivate_client(client_id: int):
    # tenants own historical appointments, so they are deactivated rather than deleted
    client = db.session.get(Client, client_id)
    if not client:
        return jsonify(error="Client not found"), 404

    client.is_active = False
    db.session.commit()

    log_event("CLIENT_DEACTIVATE", user_id=g.user.id, entity="client", entity_id=client_id)
    return jsonify(message="Client deactivated", id=client.id, is_active=client.is_active), 200


def _usage_scope(client_id: int):
    """Client plus the optional professional filter for usage/report, tenant checked."""
    client = db.session.get(Client, client_id)
    if not client or not can_access_client(client.id):
        raise NotFoundError("Client not found")

    professional = None
    professional_id = request.args.get("professional_id") or request.args.get("professionalId")
    if professional_id and professional_id != "all":
        professional = get_owned_professional(professional_id)
        if professional.client_id != client.id:
            raise NotFoundError("Professional not found")

    def _day(name, camel):
        value = request.args.get(name) or request.args.get(camel)
        if not value:
            return None
        try:
            return date.fromisoformat(value)
        except ValueError:
            raise ValidationError(f"Invalid {name}. Use YYYY-MM-DD") from None

    return client, professional, request.args.get("period"), _day("start_date", "startDate"), _day("end_date", "endDate")


@clients_bp.get("/<int:client_id>/usage")
@login_required
def client_usage_view(client_id: int):
    client, professional, period, start, end = _usage_scope(client_id)
    rate = current_app.config.get("PLATFORM_COMMISSION_RATE", 0.10)
    return jsonify(client_usage(client, rate, period, start, end, professional)), 200


@clients_bp.get("/<int:client_id>/report")
@login_required
def client_report_view(client_id: int):
    client, professional, period, start, end = _usage_scope(client_id)
    fmt = (request.args.get("format") or "csv").lower()
    if fmt not in ("csv", "json"):
        return jsonify(error="format must be csv or json"), 400

    report = client_report(client, period, start, end, professional)
    log_event(
        "CLIENT_REPORT_DOWNLOAD",
        user_id=g.user.id,
        client_id=client.id,
        entity="client",
        entity_id=client.id,
        metadata={"format": fmt, "period": report["period"]},
    )
    if fmt == "json":
        return jsonify(report), 200

    out = io.StringIO()
    writer = csv.DictWriter(out, fieldnames=REPORT_COLUMNS)
    writer.writeheader()
    writer.writerows(report["appointments"])
    filename = f"report-{client.id}-{report['period']['start_date']}-{report['period']['end_date']}.csv"
    return Response(
        out.getvalue(),
        mimetype="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )
