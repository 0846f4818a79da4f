import json
from flask import g, has_request_context, request
from models import db
from models.audit_log import AuditLog

def log_event(action: str, user_id=None, entity=None, entity_id=None, metadata=None, client_id=None):
    ip = None
    if has_request_context():
        ip = request.headers.get("X-Forwarded-For", request.remote_addr)
        if client_id is None:
            user = getattr(g, "user", None)
            client_id = getattr(user, "client_id", None)

    row = AuditLog(
        user_id=user_id,
        client_id=client_id,
        action=action,
        entity=entity,
        entity_id=str(entity_id)[:80] if entity_id is not None else None,
        ip=ip,
        metadata_json=json.dumps(metadata, default=str) if metadata else None
    )
    db.session.add(row)
    db.session.commit()
