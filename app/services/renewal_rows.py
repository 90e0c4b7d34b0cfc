from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime

from app.services.renewal_dates import STATUS_RENEWED, days_until_expiry, parse_date, utcnow
from app.services.renewal_policy import effective_status

STATUS_FILTER_ALL = "all"


@dataclass(frozen=True)
class RenewalRow:
    customer_id: int
    customer_name: str
    service: str
    expiry_date: date | None
    amount: float
    status: str
    renewal_id: int | None
    base_date: date | None
    days_left: int | None


def build_renewal_rows(customers, renewals, now: datetime | date | None = None) -> list[RenewalRow]:
    """Join every customer with its renewal record, if any."""

    now = now or utcnow()
    by_customer = {}
    for renewal in renewals:
        by_customer.setdefault(renewal.customer_id, renewal)

    rows: list[RenewalRow] = []
    for customer in customers:
        renewal = by_customer.get(customer.id)
        service = (renewal.service if renewal else None) or customer.recurring_service or ""
        expiry = parse_date(renewal.expiry_date if renewal else None) or parse_date(customer.next_renewal_date)
        if renewal is not None and renewal.amount is not None:
            amount = float(renewal.amount)
        elif customer.recurring_amount is not None:
            amount = float(customer.recurring_amount)
        else:
            amount = 0.0
        base = parse_date(renewal.base_date if renewal else None) or parse_date(customer.created_at)
        rows.append(
            RenewalRow(
                customer_id=customer.id,
                customer_name=customer.name,
                service=service,
                expiry_date=expiry,
                amount=amount,
                status=effective_status(renewal.status if renewal else None, expiry, now),
                renewal_id=renewal.id if renewal else None,
                base_date=base,
                days_left=days_until_expiry(expiry, now),
            )
        )
    return rows


def filter_rows(rows: list[RenewalRow], search: str = "", status: str = STATUS_FILTER_ALL) -> list[RenewalRow]:
    term = (search or "").strip().lower()
    wanted = (status or STATUS_FILTER_ALL).lower()
    result = []
    for row in rows:
        if term and term not in row.customer_name.lower() and term not in row.service.lower():
            continue
        if wanted != STATUS_FILTER_ALL and row.status.lower() != wanted:
            continue
        result.append(row)
    return result


def renewal_stats(rows: list[RenewalRow], renewals, now: datetime | date | None = None) -> dict[str, int]:
    now = now or utcnow()
    today = parse_date(now)
    upcoming = sum(1 for row in rows if row.days_left is not None and 0 < row.days_left <= 30)
    expired = sum(1 for row in rows if row.days_left is not None and row.days_left <= 0)

    renewed_this_month = 0
    for renewal in renewals:
        if renewal.status != STATUS_RENEWED:
            continue
        stamp = parse_date(getattr(renewal, "updated_at", None)) or parse_date(renewal.expiry_date)
        if stamp and stamp.year == today.year and stamp.month == today.month:
            renewed_this_month += 1

    return {
        "total": len(rows),
        "upcoming": upcoming,
        "expired": expired,
        "renewed_this_month": renewed_this_month,
    }
