"""Revenue and usage figures. Amounts are integer cents.

``completed_appointments`` counts COMPLETED only; revenue is earned by
CONFIRMED and COMPLETED appointments (``REVENUE_STATUSES``) and the average
ticket divides it by that same billed set.
"""
from __future__ import annotations

from collections import defaultdict
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func

from models import db
from models.appointment import Appointment
from models.availability import ProfessionalAvailability
from models.client import Client
from models.customer import Customer
from models.professional import Professional
from models.service import Service
from models.specialty import Specialty
from services.booking import REVENUE_STATUSES, AppointmentStatus
from utils.errors import ValidationError

PERIODS = ("week", "month", "custom")


def _count_by_client(model) -> Dict[int, int]:
    rows = db.session.query(model.client_id, func.count(model.id)).group_by(model.client_id).all()
    return {client_id: count for client_id, count in rows}


def _price_column():
    # slot-level custom price wins over the catalogue price
    return func.coalesce(ProfessionalAvailability.custom_price, Service.price, 0).label("price")


def _priced_appointments(client_id: Optional[int] = None):
    q = (
        db.session.query(Appointment.client_id, Appointment.status, Appointment.scheduled_at, _price_column())
        .join(Service, Service.id == Appointment.service_id)
        .outerjoin(ProfessionalAvailability, ProfessionalAvailability.id == Appointment.availability_id)
    )
    if client_id:
        q = q.filter(Appointment.client_id == client_id)
    return q.all()


def _empty_metrics() -> Dict[str, Any]:
    return {
        "total_appointments": 0,
        "completed_appointments": 0,
        "revenue_appointments": 0,
        "gross_revenue": 0,
    }


def _add(m: Dict[str, Any], status: str, price: int) -> None:
    m["total_appointments"] += 1
    if status == AppointmentStatus.COMPLETED.value:
        m["completed_appointments"] += 1
    if status in REVENUE_STATUSES:
        m["revenue_appointments"] += 1
        m["gross_revenue"] += price


def _derive(m: Dict[str, Any], commission_rate: float) -> Dict[str, Any]:
    total = m["total_appointments"]
    billed = m["revenue_appointments"]
    commission = round(m["gross_revenue"] * commission_rate)
    m.update(
        platform_commission=commission,
        net_revenue=m["gross_revenue"] - commission,
        conversion_rate=round(m["completed_appointments"] / total * 100, 2) if total else 0.0,
        average_ticket=round(m["gross_revenue"] / billed) if billed else 0,
    )
    return m


def company_metrics(commission_rate: float, today: Optional[date] = None) -> Dict[str, Any]:
    """Cross-tenant revenue view for the platform operator."""
    today = today or date.today()

    per_client = defaultdict(_empty_metrics)
    monthly = defaultdict(lambda: {"monthly_revenue": 0, "monthly_appointments": 0})
    for client_id, status, scheduled_at, price in _priced_appointments():
        _add(per_client[client_id], status, price)
        if scheduled_at.year == today.year and scheduled_at.month == today.month:
            monthly[client_id]["monthly_appointments"] += 1
            if status in REVENUE_STATUSES:
                monthly[client_id]["monthly_revenue"] += price

    professionals = _count_by_client(Professional)
    customers = _count_by_client(Customer)
    services = _count_by_client(Service)

    companies: List[Dict[str, Any]] = []
    for client in Client.query.order_by(Client.created_at.desc()).all():
        m = _derive(dict(per_client[client.id]), commission_rate)
        m.update(monthly[client.id])
        m.update(
            total_professionals=professionals.get(client.id, 0),
            total_customers=customers.get(client.id, 0),
            total_services=services.get(client.id, 0),
        )
        companies.append({
            "company": {
                "id": client.id,
                "name": client.name,
                "email": client.email,
                "created_at": client.created_at.isoformat(),
            },
            "metrics": m,
        })

    return {
        "companies": companies,
        "summary": {
            "total_companies": len(companies),
            "total_revenue": sum(c["metrics"]["gross_revenue"] for c in companies),
            "total_commission": sum(c["metrics"]["platform_commission"] for c in companies),
            "total_appointments": sum(c["metrics"]["total_appointments"] for c in companies),
        },
    }


def resolve_period(
    period: Optional[str] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
    today: Optional[date] = None,
) -> Tuple[str, date, date]:
    """Inclusive (first, last) day of a reporting window.

    ``week`` is Sunday..Saturday of the current week, ``month`` the current
    calendar month. ``custom`` needs both dates. No period means the month.
    """
    today = today or date.today()
    period = (period or "").strip().lower() or ("custom" if start and end else "month")
    if period not in PERIODS:
        raise ValidationError(f"period must be one of {', '.join(PERIODS)}")

    if period == "week":
        first = today - timedelta(days=(today.weekday() + 1) % 7)
        return period, first, first + timedelta(days=6)
    if period == "month":
        first = today.replace(day=1)
        next_first = (first + timedelta(days=32)).replace(day=1)
        return period, first, next_first - timedelta(days=1)

    if not start or not end:
        raise ValidationError("start_date and end_date are required for a custom period")
    if end < start:
        raise ValidationError("end_date must not be before start_date")
    return period, start, end


def _appointments_in_period(client_id: int, first: date, last: date, professional_id: Optional[int] = None):
    q = (
        db.session.query(
            Appointment.id,
            Appointment.professional_id,
            Appointment.status,
            Appointment.scheduled_at,
            Appointment.customer_name,
            Appointment.customer_phone,
            Professional.name.label("professional_name"),
            Service.name.label("service_name"),
            Customer.name.label("customer_record_name"),
            Customer.phone.label("customer_record_phone"),
            Customer.email.label("customer_email"),
            _price_column(),
        )
        .join(Service, Service.id == Appointment.service_id)
        .join(Professional, Professional.id == Appointment.professional_id)
        .outerjoin(Customer, Customer.id == Appointment.customer_id)
        .outerjoin(ProfessionalAvailability, ProfessionalAvailability.id == Appointment.availability_id)
        .filter(
            Appointment.client_id == client_id,
            Appointment.scheduled_at >= datetime.combine(first, time.min),
            Appointment.scheduled_at < datetime.combine(last + timedelta(days=1), time.min),
        )
    )
    if professional_id:
        q = q.filter(Appointment.professional_id == professional_id)
    return q.order_by(Appointment.scheduled_at.asc()).all()


def client_usage(
    client: Client,
    commission_rate: float,
    period: Optional[str] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
    professional: Optional[Professional] = None,
    today: Optional[date] = None,
) -> Dict[str, Any]:
    """One tenant's figures over a week, month or custom window, with a per-professional breakdown."""
    period, first, last = resolve_period(period, start, end, today)
    rows = _appointments_in_period(client.id, first, last, professional.id if professional else None)

    totals = _empty_metrics()
    by_professional = defaultdict(_empty_metrics)
    for row in rows:
        _add(totals, row.status, row.price)
        _add(by_professional[row.professional_id], row.status, row.price)

    professionals = Professional.query.filter_by(client_id=client.id).order_by(Professional.name.asc()).all()
    if professional:
        professionals = [p for p in professionals if p.id == professional.id]

    metrics = _derive(totals, commission_rate)
    metrics.update(
        total_professionals=len(professionals),
        total_customers=Customer.query.filter_by(client_id=client.id).count(),
        total_services=Service.query.filter_by(client_id=client.id).count(),
    )

    return {
        "client": {"id": client.id, "name": client.name},
        "period": {"type": period, "start_date": first.isoformat(), "end_date": last.isoformat()},
        "filter": {
            "professional_id": professional.id if professional else None,
            "professional_name": professional.name if professional else None,
        },
        "metrics": metrics,
        "professionals": [
            {"id": p.id, "name": p.name, **_derive(dict(by_professional[p.id]), commission_rate)}
            for p in professionals
        ],
    }


REPORT_COLUMNS = ("date", "time", "professional", "customer", "service", "price", "status", "phone", "email")


def client_report(
    client: Client,
    period: Optional[str] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
    professional: Optional[Professional] = None,
    today: Optional[date] = None,
) -> Dict[str, Any]:
    """Appointment-level listing behind the downloadable report."""
    period, first, last = resolve_period(period, start, end, today)
    rows = _appointments_in_period(client.id, first, last, professional.id if professional else None)

    totals = _empty_metrics()
    lines = []
    for row in rows:
        _add(totals, row.status, row.price)
        lines.append({
            "date": row.scheduled_at.date().isoformat(),
            "time": row.scheduled_at.strftime("%H:%M"),
            "professional": row.professional_name,
            "customer": row.customer_record_name or row.customer_name,
            "service": row.service_name,
            "price": row.price,
            "status": row.status,
            "phone": row.customer_record_phone or row.customer_phone,
            "email": row.customer_email,
        })

    return {
        "client": {"id": client.id, "name": client.name},
        "professional": {"id": professional.id, "name": professional.name} if professional else None,
        "period": {"type": period, "start_date": first.isoformat(), "end_date": last.isoformat()},
        "summary": {
            "total_appointments": totals["total_appointments"],
            "completed_appointments": totals["completed_appointments"],
            "gross_revenue": totals["gross_revenue"],
            "average_ticket": _derive(totals, 0)["average_ticket"],
        },
        "appointments": lines,
    }


def dashboard(client_id: Optional[int] = None, today: Optional[date] = None) -> Dict[str, Any]:
    """Counts for the admin landing page, scoped to one tenant when client_id is given."""
    today = today or date.today()

    def scoped(model):
        q = model.query
        return q.filter(model.client_id == client_id) if client_id else q

    rows = _priced_appointments(client_id)
    revenue_rows = [r for r in rows if r.status in REVENUE_STATUSES]
    monthly = [
        r for r in revenue_rows
        if r.scheduled_at.year == today.year and r.scheduled_at.month == today.month
    ]

    by_specialty_q = (
        db.session.query(func.coalesce(Specialty.name, "Undefined"), func.count(Appointment.id))
        .select_from(Appointment)
        .join(Professional, Professional.id == Appointment.professional_id)
        .outerjoin(Specialty, Specialty.id == Professional.specialty_id)
    )
    if client_id:
        by_specialty_q = by_specialty_q.filter(Appointment.client_id == client_id)
    by_specialty = {name: count for name, count in by_specialty_q.group_by(Specialty.name).all()}

    recent = scoped(Appointment).order_by(Appointment.created_at.desc()).limit(5).all()

    return {
        "metrics": {
            "total_revenue": sum(r.price for r in revenue_rows),
            "monthly_revenue": sum(r.price for r in monthly),
            "total_appointments": len(rows),
            "total_clients": 1 if client_id else Client.query.count(),
            "total_professionals": scoped(Professional).count(),
            "total_customers": scoped(Customer).count(),
        },
        "appointments_by_specialty": by_specialty,
        "recent_appointments": [a.to_dict() for a in recent],
    }
