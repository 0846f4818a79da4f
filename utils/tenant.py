"""Tenant scoping: company admins see their own client, super admins see all."""
from flask import g, request

from models import db
from models.professional import Professional
from utils.errors import NotFoundError
from utils.payload import field


def _as_int(value):
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def scoped_client_id():
    """
    The client_id a query must be restricted to, or None for unrestricted.

    Company admins are pinned to their tenant. Super admins may narrow the
    view with ?client_id= / ?clientId=.
    """
    user = g.user
    if not user.is_super_admin:
        return user.client_id
    return _as_int(request.args.get("client_id") or request.args.get("clientId"))


def target_client_id(data):
    """Tenant a new row is created in: the body's client_id for super admins, own tenant otherwise."""
    if g.user.is_super_admin:
        return _as_int(field(data, "client_id"))
    return g.user.client_id


def can_access_client(client_id) -> bool:
    user = g.user
    return user.is_super_admin or (client_id is not None and client_id == user.client_id)


def get_owned(model, object_id, message="Not found"):
    """Load a tenant-owned row, answering not-found for other tenants' rows."""
    object_id = _as_int(object_id)
    row = db.session.get(model, object_id) if object_id is not None else None
    if not row or not can_access_client(row.client_id):
        raise NotFoundError(message)
    return row


def get_owned_professional(professional_id):
    return get_owned(Professional, professional_id, "Professional not found")
