"""Expand weekly availability templates into dated slots for a month."""
from __future__ import annotations

import calendar
import logging
from datetime import date, timedelta
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError

from models import db
from models.availability import ProfessionalAvailability
from utils.errors import UpstreamError, ValidationError

logger = logging.getLogger(__name__)


def day_of_week_for(day: date) -> int:
    """Sunday=0 ... Saturday=6."""
    return (day.weekday() + 1) % 7


def dates_for_weekday(year: int, month: int, day_of_week: int) -> List[date]:
    if not 0 <= day_of_week <= 6:
        raise ValidationError("day_of_week must be between 0 (Sunday) and 6 (Saturday)")
    if not 1 <= month <= 12:
        raise ValidationError("month must be between 1 and 12")

    last_day = date(year, month, calendar.monthrange(year, month)[1])
    cursor = date(year, month, 1)
    while day_of_week_for(cursor) != day_of_week:
        cursor += timedelta(days=1)

    out = []
    while cursor <= last_day:
        out.append(cursor)
        cursor += timedelta(days=7)
    return out


def next_month_of(today: date) -> Tuple[int, int]:
    if today.month == 12:
        return 1, today.year + 1
    return today.month + 1, today.year


def _load_templates(professional_id: Optional[int], client_id: Optional[int] = None) -> List[Dict[str, Any]]:
    q = ProfessionalAvailability.query.filter(
        ProfessionalAvailability.date.is_(None),
        ProfessionalAvailability.day_of_week.isnot(None),
        ProfessionalAvailability.is_active.is_(True),
    )
    if professional_id:
        q = q.filter(ProfessionalAvailability.professional_id == professional_id)
    if client_id:
        q = q.filter(ProfessionalAvailability.client_id == client_id)

    # plain dicts: a rollback inside the insert loop expires ORM instances
    return [
        {
            "professional_id": t.professional_id,
            "client_id": t.client_id,
            "day_of_week": t.day_of_week,
            "start_time": t.start_time,
            "end_time": t.end_time,
            "service_id": t.service_id,
            "custom_price": t.custom_price,
            "custom_duration": t.custom_duration,
        }
        for t in q.order_by(ProfessionalAvailability.id.asc()).all()
    ]


def _exists(template: Dict[str, Any], day: date) -> bool:
    return (
        db.session.query(ProfessionalAvailability.id)
        .filter_by(
            professional_id=template["professional_id"],
            date=day,
            start_time=template["start_time"],
            end_time=template["end_time"],
        )
        .first()
        is not None
    )


def _insert_concrete(template: Dict[str, Any], day: date) -> ProfessionalAvailability:
    row = ProfessionalAvailability(
        professional_id=template["professional_id"],
        client_id=template["client_id"],
        date=day,
        day_of_week=None,
        start_time=template["start_time"],
        end_time=template["end_time"],
        service_id=template["service_id"],
        custom_price=template["custom_price"],
        custom_duration=template["custom_duration"],
        is_active=True,
    )
    db.session.add(row)
    db.session.commit()
    return row


def materialize_month(
    professional_id: Optional[int] = None,
    month: Optional[int] = None,
    year: Optional[int] = None,
    today: Optional[date] = None,
    client_id: Optional[int] = None,
) -> Dict[str, int]:
    """
    Create the dated slots a month needs from every active weekly template.

    Rows that already exist for (professional, date, start, end) are left
    alone, so calling this twice for the same month creates nothing the
    second time. Each insert is committed on its own: one failing date is
    logged and skipped, the rest of the month is still generated.
    """
    today = today or date.today()
    target_month = month or today.month
    target_year = year or today.year
    if not 1 <= target_month <= 12:
        raise ValidationError("month must be between 1 and 12")

    try:
        templates = _load_templates(professional_id, client_id)
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception("Failed to load weekly templates (professional=%s)", professional_id)
        raise UpstreamError("Could not load weekly availability") from exc

    logger.info(
        "Materializing %d weekly template(s) for %02d/%d (professional=%s)",
        len(templates), target_month, target_year, professional_id,
    )

    created = 0
    for template in templates:
        for day in dates_for_weekday(target_year, target_month, template["day_of_week"]):
            if _exists(template, day):
                continue
            try:
                _insert_concrete(template, day)
            except SQLAlchemyError as exc:
                db.session.rollback()
                logger.warning(
                    "Could not create availability for professional %s on %s %s-%s: %s",
                    template["professional_id"], day.isoformat(),
                    template["start_time"], template["end_time"], exc,
                )
                continue
            created += 1

    return {"created": created, "month": target_month, "year": target_year}


def materialize_next_month(
    professional_id: Optional[int] = None,
    today: Optional[date] = None,
    client_id: Optional[int] = None,
) -> Dict[str, int]:
    month, year = next_month_of(today or date.today())
    return materialize_month(professional_id, month, year, today=today, client_id=client_id)
