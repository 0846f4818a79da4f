from datetime import date, time

import pytest
from sqlalchemy.exc import OperationalError

from models.availability import ProfessionalAvailability
from services import recurrence
from services.recurrence import (
    dates_for_weekday,
    day_of_week_for,
    materialize_month,
    materialize_next_month,
    next_month_of,
)
from tests.conftest import make_slot
from utils.errors import UpstreamError, ValidationError

MONDAY = 1


def _dated_rows(professional_id):
    return (
        ProfessionalAvailability.query
        .filter(
            ProfessionalAvailability.professional_id == professional_id,
            ProfessionalAvailability.date.isnot(None),
        )
        .order_by(ProfessionalAvailability.date.asc())
        .all()
    )


class TestCalendarHelpers:
    def test_sunday_is_zero(self):
        assert day_of_week_for(date(2025, 3, 2)) == 0  # Sunday
        assert day_of_week_for(date(2025, 3, 3)) == 1  # Monday
        assert day_of_week_for(date(2025, 3, 8)) == 6  # Saturday

    def test_mondays_of_march_2025(self):
        assert dates_for_weekday(2025, 3, MONDAY) == [
            date(2025, 3, 3), date(2025, 3, 10), date(2025, 3, 17),
            date(2025, 3, 24), date(2025, 3, 31),
        ]

    def test_leap_february(self):
        thursdays = dates_for_weekday(2024, 2, 4)
        assert thursdays[-1] == date(2024, 2, 29)
        assert len(thursdays) == 5

    def test_rejects_bad_weekday(self):
        with pytest.raises(ValidationError):
            dates_for_weekday(2025, 3, 7)

    def test_next_month_wraps_year(self):
        assert next_month_of(date(2025, 12, 15)) == (1, 2026)
        assert next_month_of(date(2025, 3, 31)) == (4, 2025)


class TestMaterializeMonth:
    def test_expands_weekly_template(self, ctx, tenant):
        make_slot(tenant.professional_id, day_of_week=MONDAY, client_id=tenant.client_id)

        result = materialize_month(tenant.professional_id, month=3, year=2025)

        assert result == {"created": 5, "month": 3, "year": 2025}
        rows = _dated_rows(tenant.professional_id)
        assert [r.date.day for r in rows] == [3, 10, 17, 24, 31]
        assert all(r.is_active for r in rows)
        assert all(r.day_of_week is None for r in rows)
        assert all(r.start_time == time(9, 0) and r.end_time == time(10, 0) for r in rows)

    def test_second_run_creates_nothing(self, ctx, tenant):
        make_slot(tenant.professional_id, day_of_week=MONDAY, client_id=tenant.client_id)

        materialize_month(tenant.professional_id, month=3, year=2025)
        again = materialize_month(tenant.professional_id, month=3, year=2025)

        assert again["created"] == 0
        assert len(_dated_rows(tenant.professional_id)) == 5

    def test_existing_dated_slot_is_kept(self, ctx, tenant):
        make_slot(tenant.professional_id, day_of_week=MONDAY, client_id=tenant.client_id)
        # already booked by hand, must not be recreated or reactivated
        make_slot(tenant.professional_id, day=date(2025, 3, 10), is_active=False, client_id=tenant.client_id)

        result = materialize_month(tenant.professional_id, month=3, year=2025)

        assert result["created"] == 4
        held = [r for r in _dated_rows(tenant.professional_id) if r.date == date(2025, 3, 10)]
        assert len(held) == 1 and held[0].is_active is False

    def test_inactive_templates_are_ignored(self, ctx, tenant):
        make_slot(tenant.professional_id, day_of_week=MONDAY, is_active=False, client_id=tenant.client_id)

        assert materialize_month(tenant.professional_id, month=3, year=2025)["created"] == 0

    def test_only_requested_professional(self, ctx, tenant):
        make_slot(tenant.professional_id, day_of_week=MONDAY, client_id=tenant.client_id)
        make_slot(tenant.other_professional_id, day_of_week=MONDAY, client_id=tenant.other_client_id)

        materialize_month(tenant.professional_id, month=3, year=2025)

        assert _dated_rows(tenant.other_professional_id) == []

    def test_client_scope_without_professional(self, ctx, tenant):
        make_slot(tenant.professional_id, day_of_week=MONDAY, client_id=tenant.client_id)
        make_slot(tenant.other_professional_id, day_of_week=MONDAY, client_id=tenant.other_client_id)

        result = materialize_month(month=3, year=2025, client_id=tenant.client_id)

        assert result["created"] == 5
        assert _dated_rows(tenant.other_professional_id) == []

    def test_defaults_to_current_month(self, ctx, tenant):
        make_slot(tenant.professional_id, day_of_week=MONDAY, client_id=tenant.client_id)

        result = materialize_month(tenant.professional_id, today=date(2025, 3, 20))

        assert (result["month"], result["year"], result["created"]) == (3, 2025, 5)

    def test_failed_date_does_not_stop_the_month(self, ctx, tenant, monkeypatch):
        make_slot(tenant.professional_id, day_of_week=MONDAY, client_id=tenant.client_id)
        original = recurrence._insert_concrete

        def flaky_insert(template, day):
            if day == date(2025, 3, 17):
                raise OperationalError("INSERT", {}, Exception("disk I/O error"))
            return original(template, day)

        monkeypatch.setattr(recurrence, "_insert_concrete", flaky_insert)

        result = materialize_month(tenant.professional_id, month=3, year=2025)

        assert result["created"] == 4
        assert date(2025, 3, 17) not in [r.date for r in _dated_rows(tenant.professional_id)]

    def test_template_load_failure_is_upstream_error(self, ctx, tenant, monkeypatch):
        make_slot(tenant.professional_id, day_of_week=MONDAY, client_id=tenant.client_id)

        def broken_load(professional_id, client_id=None):
            raise OperationalError("SELECT professional_availability", {}, Exception("connection refused"))

        monkeypatch.setattr(recurrence, "_load_templates", broken_load)

        with pytest.raises(UpstreamError):
            materialize_month(tenant.professional_id, month=3, year=2025)

        assert _dated_rows(tenant.professional_id) == []


def test_next_month_crosses_year_boundary(ctx, tenant):
    make_slot(tenant.professional_id, day_of_week=MONDAY, client_id=tenant.client_id)

    result = materialize_next_month(tenant.professional_id, today=date(2025, 12, 15))

    assert (result["month"], result["year"]) == (1, 2026)
    assert [r.date for r in _dated_rows(tenant.professional_id)] == [
        date(2026, 1, 5), date(2026, 1, 12), date(2026, 1, 19), date(2026, 1, 26),
    ]
