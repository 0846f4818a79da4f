import pytest

from models import db
from models.appointment import Appointment
from models.audit_log import AuditLog
from models.availability import ProfessionalAvailability
from services.booking import book_appointment, normalize_phone

URL = "/webhook/cancel-appointment"


@pytest.fixture
def booked(app, tenant, slot_id):
    with app.app_context():
        appointment = book_appointment({
            "client_id": tenant.client_id,
            "professional_id": tenant.professional_id,
            "service_id": tenant.service_id,
            "availability_id": slot_id,
            "customer_name": "Maria Silva",
            "customer_phone": "+55 (11) 98888-7777",
        })
        return appointment.id


def _state(app, appointment_id, slot_id):
    with app.app_context():
        appointment = db.session.get(Appointment, appointment_id)
        slot = db.session.get(ProfessionalAvailability, slot_id)
        return appointment is not None, slot.is_active


def test_normalize_phone_keeps_digits_only():
    assert normalize_phone("+55 (11) 98888-7777") == "5511988887777"
    assert normalize_phone(None) == ""


def test_matching_phone_cancels(app, booked, slot_id):
    resp = app.test_client().post(URL, json={"sessionid": "5511988887777", "agendamento_id": booked})

    assert resp.status_code == 200
    body = resp.get_json()
    assert body["agendamento_id"] == booked
    assert body["customer_name"] == "Maria Silva"
    assert _state(app, booked, slot_id) == (False, True)


def test_phone_mismatch_looks_like_not_found(app, booked, slot_id):
    client = app.test_client()

    mismatch = client.post(URL, json={"sessionid": "5511900000000", "agendamento_id": booked})
    missing = client.post(URL, json={"sessionid": "5511988887777", "agendamento_id": 9999})

    assert mismatch.status_code == missing.status_code == 404
    assert mismatch.get_json() == missing.get_json()
    assert _state(app, booked, slot_id) == (True, False)


def test_rejection_is_audited(app, booked):
    app.test_client().post(URL, json={"sessionid": "5511900000000", "agendamento_id": booked})

    with app.app_context():
        row = AuditLog.query.filter_by(action="WEBHOOK_CANCEL_REJECTED").one()
        assert row.entity_id == str(booked)


@pytest.mark.parametrize("body, field", [
    ({"sessionid": "5511988887777"}, "agendamento_id"),
    ({"agendamento_id": 1}, "sessionid"),
    ({}, "agendamento_id"),
])
def test_missing_fields(app, tenant, body, field):
    resp = app.test_client().post(URL, json=body)

    assert resp.status_code == 400
    assert resp.get_json()["error"] == f"{field} is required"


def test_oversized_id_is_rejected_and_audited(app, tenant):
    resp = app.test_client().post(URL, json={"sessionid": "5511988887777", "agendamento_id": list(range(100))})

    assert resp.status_code == 404
    with app.app_context():
        row = AuditLog.query.filter_by(action="WEBHOOK_CANCEL_REJECTED").one()
        assert len(row.entity_id) == 80
