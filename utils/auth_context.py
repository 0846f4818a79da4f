from functools import wraps
from flask import g, jsonify
from models import db
from models.client import Client
from models.user import User
from security.session import get_session_from_request


def _tenant_is_active(user: User) -> bool:
    if user.client_id is None:
        return True
    client = db.session.get(Client, user.client_id)
    return client is not None and client.is_active


def load_current_user():
    """Resolve g.user / g.client_id from the session cookie.

    Company admins of a deactivated tenant are treated as logged out.
    """
    g.user = None
    g.session = None
    g.client_id = None

    sess = get_session_from_request()
    if not sess:
        return
    user = db.session.get(User, sess.user_id)
    if user is None or not _tenant_is_active(user):
        return

    g.session = sess
    g.user = user
    g.client_id = user.client_id


def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if getattr(g, "user", None) is None:
            return jsonify(error="Authentication required"), 401
        return fn(*args, **kwargs)
    return wrapper
