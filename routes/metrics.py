from flask import Blueprint, jsonify, current_app, g

from security.rbac import require_roles
from services.metrics import company_metrics, dashboard
from utils.audit import log_event
from utils.auth_context import login_required
from utils.tenant import scoped_client_id

metrics_bp = Blueprint("metrics", __name__, url_prefix="/api")


@metrics_bp.get("/companies/metrics")
@require_roles("SUPER_ADMIN")
def companies_metrics():
    rate = current_app.config.get("PLATFORM_COMMISSION_RATE", 0.10)
    result = company_metrics(commission_rate=rate)

    log_event("SUPER_ADMIN_METRICS_VIEW", user_id=g.user.id)
    return jsonify(result), 200


@metrics_bp.get("/dashboard")
@login_required
def dashboard_view():
    return jsonify(dashboard(client_id=scoped_client_id())), 200
