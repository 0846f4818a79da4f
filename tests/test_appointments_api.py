from datetime import date, time

from models import db
from models.appointment import Appointment
from models.availability import ProfessionalAvailability
from tests.conftest import make_slot

URL = "/api/appointments"


def _book(client, tenant, slot_id, **extra):
    body = {
        "professionalId": tenant.professional_id,
        "serviceId": tenant.service_id,
        "availabilityId": slot_id,
        "customerId": tenant.customer_id,
        "customerName": "Maria Silva",
        "customerPhone": "+55 11 98888-7777",
    }
    body.update(extra)
    return client.post(URL, json=body)


def _slot_active(app, slot_id):
    with app.app_context():
        return db.session.get(ProfessionalAvailability, slot_id).is_active


def test_company_admin_books_in_own_tenant(app, admin_client, tenant, slot_id):
    # a foreign client_id in the body is ignored for company admins
    resp = _book(admin_client, tenant, slot_id, clientId=tenant.other_client_id)

    assert resp.status_code == 201
    data = resp.get_json()
    assert data["client_id"] == tenant.client_id
    assert data["status"] == "PENDING"
    assert data["scheduled_at"] == "2025-03-10T09:00:00"
    assert _slot_active(app, slot_id) is False


def test_second_booking_conflicts(admin_client, tenant, slot_id):
    _book(admin_client, tenant, slot_id)

    resp = _book(admin_client, tenant, slot_id, customerName="Joao")

    assert resp.status_code == 409
    assert resp.get_json() == {"error": "Slot already booked", "kind": "SLOT_ALREADY_BOOKED"}


def test_missing_availability(admin_client, tenant):
    resp = admin_client.post(URL, json={"professionalId": tenant.professional_id, "serviceId": tenant.service_id})

    assert resp.status_code == 400
    assert resp.get_json()["error"] == "availability_id is required"


def test_super_admin_must_name_the_tenant(super_client, tenant, slot_id):
    assert _book(super_client, tenant, slot_id).status_code == 400
    assert _book(super_client, tenant, slot_id, clientId=tenant.client_id).status_code == 201


def test_cancel_endpoint_releases_slot(app, admin_client, tenant, slot_id):
    appointment_id = _book(admin_client, tenant, slot_id).get_json()["id"]

    resp = admin_client.post(f"{URL}/cancel", json={"appointmentId": appointment_id})

    assert resp.status_code == 200
    assert resp.get_json() == {
        "message": "Appointment cancelled",
        "appointment_id": appointment_id,
        "availability_id": slot_id,
    }
    assert _slot_active(app, slot_id) is True
    assert admin_client.get(f"{URL}/{appointment_id}").status_code == 404


def test_cancel_requires_appointment_id(admin_client, tenant):
    resp = admin_client.post(f"{URL}/cancel", json={"availabilityId": 1})

    assert resp.status_code == 400
    assert resp.get_json()["error"] == "appointmentId is required"


def test_cancel_unknown_appointment(admin_client, tenant):
    assert admin_client.post(f"{URL}/cancel", json={"appointmentId": 9999}).status_code == 404


def test_other_tenant_cannot_cancel(app, admin_client, other_admin_client, tenant, slot_id):
    appointment_id = _book(admin_client, tenant, slot_id).get_json()["id"]

    resp = other_admin_client.post(f"{URL}/cancel", json={"appointmentId": appointment_id})

    assert resp.status_code == 404
    assert _slot_active(app, slot_id) is False


def test_patch_status(admin_client, tenant, slot_id):
    appointment_id = _book(admin_client, tenant, slot_id).get_json()["id"]

    resp = admin_client.patch(f"{URL}/{appointment_id}", json={"status": "confirmed", "notes": " first visit "})

    assert resp.status_code == 200
    assert resp.get_json()["status"] == "CONFIRMED"
    assert resp.get_json()["notes"] == "first visit"
    assert admin_client.patch(f"{URL}/{appointment_id}", json={"status": "no-show"}).status_code == 400


def test_patch_to_cancelled_deletes(app, admin_client, tenant, slot_id):
    appointment_id = _book(admin_client, tenant, slot_id).get_json()["id"]

    resp = admin_client.patch(f"{URL}/{appointment_id}", json={"status": "cancelado"})

    assert resp.status_code == 200
    with app.app_context():
        assert db.session.get(Appointment, appointment_id) is None
    assert _slot_active(app, slot_id) is True


def test_list_filters_and_scope(admin_client, other_admin_client, tenant, slot_id):
    _book(admin_client, tenant, slot_id, status="CONFIRMED")

    assert len(admin_client.get(URL).get_json()) == 1
    assert len(admin_client.get(URL, query_string={"status": "confirmado"}).get_json()) == 1
    assert admin_client.get(URL, query_string={"status": "PENDING"}).get_json() == []
    assert len(admin_client.get(URL, query_string={"date": "2025-03-10"}).get_json()) == 1
    assert other_admin_client.get(URL).get_json() == []


def test_cancel_cannot_free_another_tenants_slot(app, admin_client, other_admin_client, tenant):
    with app.app_context():
        mine = make_slot(tenant.professional_id, date(2025, 3, 10), client_id=tenant.client_id)
        theirs = make_slot(tenant.other_professional_id, date(2025, 3, 10), client_id=tenant.other_client_id)
    my_appointment = _book(admin_client, tenant, mine).get_json()["id"]
    their_appointment = other_admin_client.post(URL, json={
        "professionalId": tenant.other_professional_id,
        "serviceId": tenant.other_service_id,
        "availabilityId": theirs,
    }).get_json()["id"]

    resp = admin_client.post(f"{URL}/cancel", json={"appointmentId": my_appointment, "availabilityId": theirs})

    assert resp.status_code == 404
    assert _slot_active(app, theirs) is False
    assert _slot_active(app, mine) is False
    with app.app_context():
        assert db.session.get(Appointment, their_appointment) is not None
        assert db.session.get(Appointment, my_appointment) is not None


def test_cancel_cannot_free_a_slot_held_by_another_booking(app, admin_client, tenant, slot_id):
    with app.app_context():
        other_slot = make_slot(tenant.professional_id, date(2025, 3, 10), start=time(10, 0), end=time(11, 0))
    first = _book(admin_client, tenant, slot_id).get_json()["id"]
    _book(admin_client, tenant, other_slot)

    resp = admin_client.post(f"{URL}/cancel", json={"appointmentId": first, "availabilityId": other_slot})

    assert resp.status_code == 409
    assert _slot_active(app, other_slot) is False
    assert _slot_active(app, slot_id) is False
