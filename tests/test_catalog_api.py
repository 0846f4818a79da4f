def test_professional_crud_in_own_tenant(admin_client, other_admin_client, tenant):
    created = admin_client.post("/api/professionals", json={"name": "Dr. Carla", "email": "Carla@Acme.test"})
    assert created.status_code == 201
    professional = created.get_json()
    assert professional["client_id"] == tenant.client_id
    assert professional["email"] == "carla@acme.test"

    dup = admin_client.post("/api/professionals", json={"name": "Carla 2", "email": "carla@acme.test"})
    assert dup.status_code == 409

    assert other_admin_client.get(f"/api/professionals/{professional['id']}").status_code == 404
    names = [p["name"] for p in admin_client.get("/api/professionals").get_json()]
    assert names == ["Dr. Ana", "Dr. Carla"]

    assert admin_client.delete(f"/api/professionals/{professional['id']}").status_code == 200
    assert admin_client.get(f"/api/professionals/{professional['id']}").get_json()["is_active"] is False


def test_specialty_links_to_professional(admin_client, tenant):
    specialty = admin_client.post("/api/specialties", json={"name": "Dermatology", "color": "#FF0000"}).get_json()

    resp = admin_client.patch(f"/api/professionals/{tenant.professional_id}", json={"specialtyId": specialty["id"]})

    assert resp.status_code == 200
    assert resp.get_json()["specialty_id"] == specialty["id"]


def test_service_validation(admin_client, tenant):
    assert admin_client.post("/api/services", json={"name": "Massage", "duration": 0}).status_code == 400
    assert admin_client.post("/api/services", json={"name": "Massage", "price": -1}).status_code == 400

    created = admin_client.post("/api/services", json={"name": "Massage", "duration": 45, "price": 8000})
    assert created.status_code == 201
    assert created.get_json()["client_id"] == tenant.client_id

    active = admin_client.get("/api/services", query_string={"active": "true"}).get_json()
    assert sorted(s["name"] for s in active) == ["Consultation", "Massage"]


def test_customer_with_appointments_cannot_be_deleted(admin_client, tenant, slot_id):
    admin_client.post("/api/appointments", json={
        "professionalId": tenant.professional_id,
        "serviceId": tenant.service_id,
        "availabilityId": slot_id,
        "customerId": tenant.customer_id,
    })

    assert admin_client.delete(f"/api/customers/{tenant.customer_id}").status_code == 409

    found = admin_client.get("/api/customers", query_string={"q": "maria"}).get_json()
    assert [c["id"] for c in found] == [tenant.customer_id]
