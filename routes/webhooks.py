from flask import Blueprint, request, jsonify

from services.booking import cancel_by_phone
from utils.audit import log_event
from utils.errors import NotFoundError

webhooks_bp = Blueprint("webhooks", __name__, url_prefix="/webhook")


@webhooks_bp.post("/cancel-appointment")
def cancel_appointment_webhook():
    """
    Cancellation from the WhatsApp agent. No session: the caller's phone
    (``sessionid``) must match the phone stored on the appointment.
    """
    data = request.get_json(silent=True) or {}
    session_id = (str(data.get("sessionid") or "")).strip()
    appointment_id = data.get("agendamento_id")

    try:
        result = cancel_by_phone(session_id, appointment_id)
    except NotFoundError:
        log_event(
            "WEBHOOK_CANCEL_REJECTED",
            entity="appointment",
            entity_id=appointment_id,
            metadata={"sessionid": session_id},
        )
        raise

    log_event(
        "WEBHOOK_CANCEL",
        entity="appointment",
        entity_id=result["appointment_id"],
        metadata={"sessionid": session_id, "availability_id": result["availability_id"]},
    )
    return jsonify(
        message="Appointment cancelled",
        agendamento_id=result["appointment_id"],
        sessionid=session_id,
        customer_name=result["customer_name"],
    ), 200
