from __future__ import annotations

from datetime import date, datetime

from app.config import get_settings
from app.services.renewal_dates import days_until_expiry, parse_date

KIND_REMINDER = "reminder"
KIND_URGENT = "urgent"
KIND_EXPIRED = "expired"


class _KeepMissing(dict):
    def __missing__(self, key: str) -> str:
        return "{" + key + "}"


def render_template(template: str, **values) -> str:
    """Fill ``{placeholder}`` fields, leaving unknown ones untouched."""

    text = template.replace("\\n", "\n")
    return text.format_map(_KeepMissing(values))


def pick_template_kind(days_left: int) -> str:
    settings = get_settings()
    if days_left < 0:
        return KIND_EXPIRED
    if days_left <= settings.urgent_reminder_days:
        return KIND_URGENT
    return KIND_REMINDER


def format_amount(amount) -> str:
    settings = get_settings()
    value = float(amount or 0)
    if value.is_integer():
        return f"{settings.currency_symbol}{int(value)}"
    return f"{settings.currency_symbol}{value:.2f}"


def format_date(value) -> str:
    settings = get_settings()
    parsed = parse_date(value)
    if parsed is None:
        return settings.text_date_none
    return parsed.strftime(settings.date_format)


def format_days_left(days: int | None) -> str:
    settings = get_settings()
    if days is None:
        return settings.text_date_none
    if days > 0:
        return settings.text_days_remaining.format(days=days)
    if days == 0:
        return settings.text_expires_today
    return settings.text_expired_days_ago.format(days=abs(days))


def render_reminder(
    renewal,
    customer,
    now: datetime | date | None = None,
    kind: str | None = None,
) -> str:
    settings = get_settings()
    days_left = days_until_expiry(renewal.expiry_date, now)
    if kind is None:
        kind = pick_template_kind(days_left if days_left is not None else 0)
    return render_template(
        settings.template_for(kind),
        customer_name=customer.name,
        service_name=renewal.service or customer.recurring_service or "",
        expiry_date=format_date(renewal.expiry_date),
        amount=format_amount(renewal.amount),
        business_name=settings.business_name,
        days_left=abs(days_left) if days_left is not None else "",
        phone_number=settings.business_phone,
        renewal_url=settings.renewal_url,
    )
