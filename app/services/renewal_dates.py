"""Date arithmetic and status classification for service renewals."""

from __future__ import annotations

import calendar
import logging
import math
from datetime import date, datetime, timezone

STATUS_ACTIVE = "active"
STATUS_EXPIRING = "expiring"
STATUS_EXPIRED = "expired"
STATUS_RENEWED = "renewed"

RENEWAL_STATUSES = (STATUS_ACTIVE, STATUS_EXPIRING, STATUS_EXPIRED, STATUS_RENEWED)

# Classifier window, independent of a renewal's reminder_days.
EXPIRING_WINDOW_DAYS = 30

_SECONDS_PER_DAY = 86400


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def parse_date(value) -> date | None:
    """Normalise any loose date input to a ``date``.

    Returns ``None`` for missing or unparseable input instead of raising.
    """

    if value is None:
        return None
    if isinstance(value, datetime):
        return _to_naive_utc(value).date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        logging.warning("Unsupported date value: %r", value)
        return None

    raw = value.strip()
    if not raw:
        return None
    try:
        return date.fromisoformat(raw)
    except ValueError:
        pass
    try:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        logging.warning("Unparseable date value: %r", value)
        return None
    return _to_naive_utc(parsed).date()


def add_months(source: date, months: int) -> date:
    """Add calendar months, clamping to the last day of a shorter month."""

    month_index = source.month - 1 + months
    year = source.year + month_index // 12
    month = month_index % 12 + 1
    day = min(source.day, calendar.monthrange(year, month)[1])
    return source.replace(year=year, month=month, day=day)


def compute_expiry(base_date, interval_months: int, today: date | None = None) -> date:
    base = parse_date(base_date)
    if base is None:
        base = today or utcnow().date()
    return add_months(base, interval_months)


def days_until_expiry(expiry_date, now: datetime | date | None = None) -> int | None:
    expiry = parse_date(expiry_date)
    if expiry is None:
        return None
    if now is None:
        now = utcnow()
    elif isinstance(now, datetime):
        now = _to_naive_utc(now)
    else:
        now = datetime.combine(now, datetime.min.time())
    delta = datetime.combine(expiry, datetime.min.time()) - now
    return math.ceil(delta.total_seconds() / _SECONDS_PER_DAY)


def classify_status(expiry_date, now: datetime | date | None = None) -> str:
    days = days_until_expiry(expiry_date, now)
    if days is None:
        return STATUS_ACTIVE
    if days < 0:
        return STATUS_EXPIRED
    if days <= EXPIRING_WINDOW_DAYS:
        return STATUS_EXPIRING
    return STATUS_ACTIVE
