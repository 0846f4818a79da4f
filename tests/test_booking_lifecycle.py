"""Booking claims a dated slot; cancelling releases it and deletes the appointment."""
from datetime import date, datetime, time

import pytest
from sqlalchemy.exc import OperationalError

from models import db
from models.appointment import Appointment
from models.availability import ProfessionalAvailability
from services import booking
from services.booking import AppointmentStatus, book_appointment, cancel_appointment
from tests.conftest import make_slot
from utils.errors import (
    MissingRequiredField,
    NotFoundError,
    SlotAlreadyBooked,
    UpstreamError,
    ValidationError,
)


def _payload(tenant, availability_id, **extra):
    data = {
        "client_id": tenant.client_id,
        "professional_id": tenant.professional_id,
        "service_id": tenant.service_id,
        "availability_id": availability_id,
        "customer_name": "Maria Silva",
        "customer_phone": "+55 11 98888-7777",
    }
    data.update(extra)
    return data


def _slot(availability_id):
    return db.session.get(ProfessionalAvailability, availability_id)


class TestBook:
    def test_books_free_slot(self, ctx, tenant, slot_id):
        appointment = book_appointment(_payload(tenant, slot_id))

        assert appointment.id is not None
        assert appointment.status == "PENDING"
        assert appointment.scheduled_at == datetime(2025, 3, 10, 9, 0)

    def test_booking_marks_slot_unavailable(self, ctx, tenant, slot_id):
        """A held slot is is_active=False; the same flag is used for disabled slots."""
        book_appointment(_payload(tenant, slot_id))

        assert _slot(slot_id).is_active is False

    def test_double_booking_is_rejected(self, ctx, tenant, slot_id):
        book_appointment(_payload(tenant, slot_id))

        with pytest.raises(SlotAlreadyBooked):
            book_appointment(_payload(tenant, slot_id, customer_name="Joao"))
        assert Appointment.query.filter_by(availability_id=slot_id).count() == 1

    @pytest.mark.parametrize("missing", ["client_id", "professional_id", "service_id", "availability_id"])
    def test_missing_required_field(self, ctx, tenant, slot_id, missing):
        data = _payload(tenant, slot_id)
        del data[missing]

        with pytest.raises(MissingRequiredField) as exc:
            book_appointment(data)
        assert exc.value.field == missing
        assert Appointment.query.count() == 0

    def test_professional_of_another_tenant(self, ctx, tenant, slot_id):
        with pytest.raises(NotFoundError):
            book_appointment(_payload(tenant, slot_id, professional_id=tenant.other_professional_id))

    def test_slot_of_another_professional(self, ctx, tenant):
        other_slot = make_slot(tenant.other_professional_id, date(2025, 3, 10))

        with pytest.raises(ValidationError):
            book_appointment(_payload(tenant, other_slot))

    def test_weekly_template_cannot_be_booked(self, ctx, tenant):
        template = make_slot(tenant.professional_id, day_of_week=1)

        with pytest.raises(ValidationError):
            book_appointment(_payload(tenant, template))
        assert _slot(template).is_active is True

    def test_status_aliases(self, ctx, tenant, slot_id):
        appointment = book_appointment(_payload(tenant, slot_id, status="confirmado"))

        assert appointment.status == AppointmentStatus.CONFIRMED.value


class TestCancel:
    def test_round_trip_frees_the_slot(self, ctx, tenant, slot_id):
        appointment = book_appointment(_payload(tenant, slot_id))
        appointment_id = appointment.id

        result = cancel_appointment(appointment_id)

        assert result == {"appointment_id": appointment_id, "availability_id": slot_id}
        assert db.session.get(Appointment, appointment_id) is None
        assert _slot(slot_id).is_active is True

    def test_slot_can_be_booked_again(self, ctx, tenant, slot_id):
        first = book_appointment(_payload(tenant, slot_id))
        cancel_appointment(first.id)

        second = book_appointment(_payload(tenant, slot_id))

        assert second.availability_id == slot_id

    def test_unknown_appointment(self, ctx, tenant):
        with pytest.raises(NotFoundError):
            cancel_appointment(9999)

    def test_explicit_availability_is_released(self, ctx, tenant, slot_id):
        appointment = book_appointment(_payload(tenant, slot_id))
        extra = make_slot(tenant.professional_id, date(2025, 3, 10), start=time(10, 0), end=time(11, 0),
                          is_active=False)

        result = cancel_appointment(appointment.id, extra)

        assert result["availability_id"] == extra
        assert _slot(extra).is_active is True
        assert _slot(slot_id).is_active is True

    def test_missing_availability_keeps_appointment(self, ctx, tenant, slot_id):
        appointment = book_appointment(_payload(tenant, slot_id))
        appointment_id = appointment.id

        with pytest.raises(NotFoundError):
            cancel_appointment(appointment_id, 424242)

        assert db.session.get(Appointment, appointment_id) is not None
        assert _slot(slot_id).is_active is False

    def test_release_failure_leaves_appointment_untouched(self, ctx, tenant, slot_id, monkeypatch):
        appointment = book_appointment(_payload(tenant, slot_id))
        appointment_id = appointment.id

        def broken_release(availability_id):
            raise OperationalError("UPDATE professional_availability", {}, Exception("connection reset"))

        monkeypatch.setattr(booking, "_release_slot", broken_release)

        with pytest.raises(UpstreamError):
            cancel_appointment(appointment_id)

        assert db.session.get(Appointment, appointment_id) is not None
        assert _slot(slot_id).is_active is False

    def test_delete_failure_rolls_back_the_release(self, ctx, tenant, slot_id, monkeypatch):
        appointment = book_appointment(_payload(tenant, slot_id))
        appointment_id = appointment.id

        def broken_delete(instance):
            raise OperationalError("DELETE FROM appointments", {}, Exception("deadlock detected"))

        monkeypatch.setattr(db.session, "delete", broken_delete)

        with pytest.raises(UpstreamError):
            cancel_appointment(appointment_id)

        monkeypatch.undo()
        db.session.expire_all()
        assert db.session.get(Appointment, appointment_id) is not None
        assert _slot(slot_id).is_active is False


class TestStatusParse:
    @pytest.mark.parametrize("raw, expected", [
        ("PENDING", AppointmentStatus.PENDING),
        ("agendado", AppointmentStatus.PENDING),
        ("Confirmed", AppointmentStatus.CONFIRMED),
        ("concluído", AppointmentStatus.COMPLETED),
        (" canceled ", AppointmentStatus.CANCELLED),
    ])
    def test_known_values(self, raw, expected):
        assert AppointmentStatus.parse(raw) is expected

    def test_unknown_value(self):
        with pytest.raises(ValidationError):
            AppointmentStatus.parse("no-show")
