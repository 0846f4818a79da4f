from flask import Blueprint, request, jsonify, g

from models import db
from models.appointment import Appointment
from models.customer import Customer
from utils.audit import log_event
from utils.auth_context import login_required
from utils.tenant import get_owned, scoped_client_id, target_client_id

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


def _customer_payload(c: Customer):
    return {
        "id": c.id,
        "client_id": c.client_id,
        "name": c.name,
        "email": c.email,
        "phone": c.phone,
        "notes": c.notes,
        "created_at": c.created_at.isoformat(),
    }


@customers_bp.get("")
@login_required
def list_customers():
    q = Customer.query
    client_id = scoped_client_id()
    if client_id:
        q = q.filter(Customer.client_id == client_id)

    search = (request.args.get("q") or "").strip()
    if search:
        like = f"%{search}%"
        q = q.filter(Customer.name.ilike(like) | Customer.phone.ilike(like))

    rows = q.order_by(Customer.name.asc()).limit(200).all()
    return jsonify([_customer_payload(c) for c in rows]), 200


@customers_bp.post("")
@login_required
def create_customer():
    data = request.get_json(silent=True) or {}
    name = (data.get("name") or "").strip()
    client_id = target_client_id(data)
    if not name or not client_id:
        return jsonify(error="name and client_id are required"), 400

    customer = Customer(
        client_id=client_id,
        name=name,
        email=(data.get("email") or "").strip().lower() or None,
        phone=(data.get("phone") or "").strip() or None,
        notes=(data.get("notes") or "").strip() or None,
    )
    db.session.add(customer)
    db.session.commit()

    log_event("CUSTOMER_CREATE", user_id=g.user.id, entity="customer", entity_id=customer.id)
    return jsonify(_customer_payload(customer)), 201


@customers_bp.patch("/<int:customer_id>")
@login_required
def update_customer(customer_id: int):
    data = request.get_json(silent=True) or {}
    customer = get_owned(Customer, customer_id, "Customer not found")

    if "name" in data:
        name = (data.get("name") or "").strip()
        if not name:
            return jsonify(error="name cannot be empty"), 400
        customer.name = name
    for text_field in ("email", "phone", "notes"):
        if text_field in data:
            setattr(customer, text_field, (data.get(text_field) or "").strip() or None)
    db.session.commit()

    log_event("CUSTOMER_UPDATE", user_id=g.user.id, entity="customer", entity_id=customer.id)
    return jsonify(_customer_payload(customer)), 200


@customers_bp.delete("/<int:customer_id>")
@login_required
def delete_customer(customer_id: int):
    customer = get_owned(Customer, customer_id, "Customer not found")
    if Appointment.query.filter_by(customer_id=customer.id).first():
        return jsonify(error="Customer has appointments"), 409

    db.session.delete(customer)
    db.session.commit()

    log_event("CUSTOMER_DELETE", user_id=g.user.id, entity="customer", entity_id=customer_id)
    return jsonify(message="Customer deleted"), 200
