import re

from flask import Blueprint, request, jsonify, current_app, g
from sqlalchemy.exc import IntegrityError

from models import db
from models.client import Client
from models.user import Role, User
from security.password import hash_password, verify_password
from security.session import create_session, revoke_session
from utils.audit import log_event
from utils.auth_context import login_required
from utils.errors import ValidationError
from utils.payload import field, has_field
from services.booking import normalize_phone


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _user_payload(user: User):
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "client_id": user.client_id,
        "roles": user.role_names,
    }


@auth_bp.post("/login")
def login():
    data = request.get_json(silent=True) or {}
    email = (data.get("email") or "").strip().lower()
    password = data.get("password") or ""
    if not email or not password:
        return jsonify(error="email and password are required"), 400

    user = User.query.filter_by(email=email).first()
    if not user or not verify_password(password, user.password_hash):
        log_event("LOGIN_FAIL", user_id=user.id if user else None, metadata={"email": email})
        return jsonify(error="Invalid credentials"), 401

    if user.client_id is not None:
        client = db.session.get(Client, user.client_id)
        if client is None or not client.is_active:
            log_event("LOGIN_BLOCKED", user_id=user.id, client_id=user.client_id)
            return jsonify(error="Company account is inactive"), 403

    raw_token = create_session(user.id)
    cookie_name = current_app.config.get("AUTH_COOKIE_NAME", "scheduling_session")

    resp = jsonify(message="Login OK", user=_user_payload(user))
    resp.set_cookie(
        cookie_name,
        raw_token,
        httponly=True,
        secure=current_app.config.get("SESSION_COOKIE_SECURE", False),
        samesite=current_app.config.get("SESSION_COOKIE_SAMESITE", "Lax"),
        max_age=current_app.config.get("SESSION_LIFETIME_SECONDS", 8 * 60 * 60),
        path="/",
    )

    log_event("LOGIN_SUCCESS", user_id=user.id, client_id=user.client_id)
    return resp, 200


_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
OTHER_SERVICE_TYPES = ("other", "outro")


def _registration_errors(data):
    errors = {}
    if len((field(data, "name") or "").strip()) < 2:
        errors["name"] = "name must have at least 2 characters"
    if not _EMAIL_RE.match((field(data, "email") or "").strip()):
        errors["email"] = "invalid email"
    if len(normalize_phone(field(data, "phone"))) < 10:
        errors["phone"] = "phone must have at least 10 digits"
    service_type = (field(data, "service_type") or "").strip()
    if not service_type:
        errors["service_type"] = "service_type is required"
    elif service_type.lower() in OTHER_SERVICE_TYPES and not (field(data, "custom_service_type") or "").strip():
        errors["custom_service_type"] = "custom_service_type is required when service_type is other"
    password = field(data, "password") or ""
    if len(password) < 6:
        errors["password"] = "password must have at least 6 characters"
    elif has_field(data, "confirm_password") and password != field(data, "confirm_password"):
        errors["confirm_password"] = "passwords do not match"
    return errors


@auth_bp.post("/register")
def register():
    """Company sign-up: creates the tenant and its first COMPANY_ADMIN login together."""
    data = request.get_json(silent=True) or {}
    errors = _registration_errors(data)
    if errors:
        raise ValidationError("Invalid registration data", details=errors)

    email = field(data, "email").strip().lower()
    if Client.query.filter_by(email=email).first() or User.query.filter_by(email=email).first():
        return jsonify(error="Email already registered"), 409

    service_type = field(data, "service_type").strip()
    if service_type.lower() in OTHER_SERVICE_TYPES:
        service_type = field(data, "custom_service_type").strip()

    name = field(data, "name").strip()
    client = Client(
        name=name,
        email=email,
        phone=str(field(data, "phone")).strip(),
        service_type=service_type,
        is_active=True,
    )
    role = Role.query.filter_by(name="COMPANY_ADMIN").first()
    user = User(
        email=email,
        password_hash=hash_password(field(data, "password")),
        name=name,
        roles=[role],
    )
    try:
        db.session.add(client)
        db.session.flush()
        user.client_id = client.id
        db.session.add(user)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify(error="Email already registered"), 409

    log_event("REGISTER", user_id=user.id, client_id=client.id, entity="client", entity_id=client.id)
    return jsonify(
        message="Company registered, you can log in now",
        client={"id": client.id, "name": client.name, "email": client.email, "service_type": client.service_type},
    ), 201


@auth_bp.get("/user")
@login_required
def me():
    return jsonify(_user_payload(g.user)), 200


@auth_bp.post("/logout")
@login_required
def logout():
    cookie_name = current_app.config.get("AUTH_COOKIE_NAME", "scheduling_session")
    revoke_session(request.cookies.get(cookie_name))
    log_event("LOGOUT", user_id=g.user.id)

    resp = jsonify(message="Logged out")
    resp.delete_cookie(cookie_name, path="/")
    return resp, 200
