from flask import Blueprint, jsonify

from .auth import auth_bp
from .clients import clients_bp
from .professionals import professionals_bp
from .specialties import specialties_bp
from .service_catalog import service_catalog_bp
from .customers import customers_bp
from .availability import availability_bp
from .appointments import appointments_bp
from .webhooks import webhooks_bp
from .metrics import metrics_bp
from .audit_logs import audit_bp

health_bp = Blueprint("health", __name__)


@health_bp.get("/health")
def health():
    return jsonify(status="ok"), 200


ALL_BLUEPRINTS = (
    health_bp,
    auth_bp,
    clients_bp,
    professionals_bp,
    specialties_bp,
    service_catalog_bp,
    customers_bp,
    availability_bp,
    appointments_bp,
    webhooks_bp,
    metrics_bp,
    audit_bp,
)
