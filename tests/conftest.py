from datetime import date, time
from types import SimpleNamespace

import pytest

from app import create_app
from models import db
from models.availability import ProfessionalAvailability
from models.client import Client
from models.customer import Customer
from models.professional import Professional
from models.service import Service
from models.user import Role, User
from security.password import hash_password

PASSWORD = "correct-horse-battery"


@pytest.fixture
def app():
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": "sqlite://",
        "CREATE_TABLES": True,
        "LOG_LEVEL": "WARNING",
    })
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def ctx(app):
    """Push an app context for tests that call services directly."""
    with app.app_context():
        yield app


def _add_user(email, role_name, client_id=None):
    role = Role.query.filter_by(name=role_name).first()
    user = User(
        email=email,
        password_hash=hash_password(PASSWORD, rounds=4),
        client_id=client_id,
        roles=[role],
    )
    db.session.add(user)
    return user


@pytest.fixture
def tenant(app):
    """Two tenants, each with a professional, a service and a customer, plus admins."""
    with app.app_context():
        acme = Client(name="Acme Clinic", email="contact@acme.test")
        other = Client(name="Other Clinic", email="contact@other.test")
        db.session.add_all([acme, other])
        db.session.flush()

        professional = Professional(client_id=acme.id, name="Dr. Ana", email="ana@acme.test")
        other_professional = Professional(client_id=other.id, name="Dr. Bruno", email="bruno@other.test")
        service = Service(client_id=acme.id, name="Consultation", duration=60, price=10000)
        other_service = Service(client_id=other.id, name="Checkup", duration=30, price=5000)
        customer = Customer(client_id=acme.id, name="Maria Silva", phone="+55 11 98888-7777")
        db.session.add_all([professional, other_professional, service, other_service, customer])

        _add_user("root@platform.test", "SUPER_ADMIN")
        _add_user("admin@acme.test", "COMPANY_ADMIN", client_id=acme.id)
        _add_user("admin@other.test", "COMPANY_ADMIN", client_id=other.id)
        db.session.commit()

        return SimpleNamespace(
            client_id=acme.id,
            other_client_id=other.id,
            professional_id=professional.id,
            other_professional_id=other_professional.id,
            service_id=service.id,
            other_service_id=other_service.id,
            customer_id=customer.id,
        )


def make_slot(professional_id, day=None, start=time(9, 0), end=time(10, 0), day_of_week=None,
              is_active=True, client_id=None, custom_price=None):
    """Insert one availability row; needs an app context. Returns its id."""
    row = ProfessionalAvailability(
        professional_id=professional_id,
        client_id=client_id,
        date=day,
        day_of_week=day_of_week,
        start_time=start,
        end_time=end,
        is_active=is_active,
        custom_price=custom_price,
    )
    db.session.add(row)
    db.session.commit()
    return row.id


@pytest.fixture
def slot_id(app, tenant):
    with app.app_context():
        return make_slot(tenant.professional_id, date(2025, 3, 10), client_id=tenant.client_id)


def _login(app, email):
    client = app.test_client()
    resp = client.post("/api/auth/login", json={"email": email, "password": PASSWORD})
    assert resp.status_code == 200, resp.get_json()
    return client


@pytest.fixture
def admin_client(app, tenant):
    return _login(app, "admin@acme.test")


@pytest.fixture
def other_admin_client(app, tenant):
    return _login(app, "admin@other.test")


@pytest.fixture
def super_client(app, tenant):
    return _login(app, "root@platform.test")
