"""Form-level renewal rules: customer defaults, recompute-on-change and status overrides."""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, replace
from datetime import date, datetime

from app.services.renewal_dates import (
    RENEWAL_STATUSES,
    STATUS_ACTIVE,
    STATUS_RENEWED,
    classify_status,
    compute_expiry,
    parse_date,
    utcnow,
)

DEFAULT_INTERVAL_MONTHS = 1
DEFAULT_REMINDER_DAYS = 30

INTERVAL_MONTHS = {
    "monthly": 1,
    "quarterly": 3,
    "half-yearly": 6,
    "yearly": 12,
}

_DETAIL_FIELDS = {"service", "amount", "reminder_days", "notes"}
_DATE_FIELDS = ("base_date", "expiry_date", "today")


def interval_months_for(recurring_interval: str | None) -> int | None:
    if not recurring_interval:
        return None
    return INTERVAL_MONTHS.get(recurring_interval.strip().lower())


def resolve_status(current: str, suggested: str | None) -> str:
    """Apply the classifier's suggestion only over an ``active`` status.

    ``renewed``, ``expiring`` and ``expired`` set on the record are kept as-is.
    """

    if current == STATUS_ACTIVE and suggested:
        return suggested
    return current


def effective_status(stored: str | None, expiry_date, now: datetime | date | None = None) -> str:
    if stored == STATUS_RENEWED:
        return STATUS_RENEWED
    return classify_status(expiry_date, now)


def _parse_amount(value) -> float:
    if value is None or value == "":
        return 0.0
    try:
        amount = float(value)
    except (TypeError, ValueError):
        return 0.0
    return 0.0 if math.isnan(amount) else amount


def _positive_int(value, default: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


@dataclass(frozen=True)
class RenewalDraft:
    customer_id: int | None
    base_date: date
    interval_months: int
    expiry_date: date | None
    service: str = ""
    amount: float | None = None
    status: str = STATUS_ACTIVE
    reminder_days: int | None = DEFAULT_REMINDER_DAYS
    notes: str = ""
    suggested_status: str | None = None
    today: date | None = None

    def _classify(self, expiry: date | None) -> str | None:
        if expiry is None:
            return None
        return classify_status(expiry, self.today)

    def with_base_date(self, value) -> RenewalDraft:
        base = parse_date(value)
        if base is None:
            return self
        expiry = compute_expiry(base, self.interval_months)
        return replace(self, base_date=base, expiry_date=expiry, suggested_status=self._classify(expiry))

    def with_interval(self, months) -> RenewalDraft:
        try:
            months = int(months)
        except (TypeError, ValueError):
            return self
        if months <= 0:
            return self
        expiry = compute_expiry(self.base_date, months)
        return replace(self, interval_months=months, expiry_date=expiry, suggested_status=self._classify(expiry))

    def with_expiry(self, value) -> RenewalDraft:
        expiry = parse_date(value)
        return replace(self, expiry_date=expiry, suggested_status=self._classify(expiry))

    def with_status(self, status: str) -> RenewalDraft:
        if status not in RENEWAL_STATUSES:
            raise ValueError(f"Unknown renewal status: {status!r}")
        return replace(self, status=status)

    def with_details(self, **changes) -> RenewalDraft:
        """Free-form fields that never touch the dates: service, amount, reminder_days, notes."""

        unknown = set(changes) - _DETAIL_FIELDS
        if unknown:
            raise ValueError(f"Not a detail field: {sorted(unknown)}")
        return replace(self, **changes)

    def to_state(self) -> dict:
        data = asdict(self)
        for key in _DATE_FIELDS:
            if data[key] is not None:
                data[key] = data[key].isoformat()
        return data

    @classmethod
    def from_state(cls, data: dict) -> RenewalDraft:
        values = dict(data)
        for key in _DATE_FIELDS:
            values[key] = parse_date(values.get(key))
        return cls(**values)

    def to_payload(self) -> dict:
        base = self.base_date or self.expiry_date
        return {
            "customer_id": self.customer_id,
            "service": (self.service or "").strip(),
            "amount": _parse_amount(self.amount),
            "expiry_date": self.expiry_date.isoformat() if self.expiry_date else None,
            "status": resolve_status(self.status, self.suggested_status),
            "reminder_days": _positive_int(self.reminder_days, DEFAULT_REMINDER_DAYS),
            "notes": (self.notes or "").strip(),
            "interval_months": _positive_int(self.interval_months, DEFAULT_INTERVAL_MONTHS),
            "base_date": base.isoformat() if base else None,
        }


def _customer_base_date(customer, today: date) -> date:
    return parse_date(getattr(customer, "created_at", None)) or today


def draft_for_customer(customer, today: date | None = None) -> RenewalDraft:
    """Defaults for a brand new renewal of ``customer``."""

    today = today or utcnow().date()
    base = _customer_base_date(customer, today)
    interval = DEFAULT_INTERVAL_MONTHS
    service = ""
    amount = None
    if getattr(customer, "recurring_enabled", False):
        service = customer.recurring_service or ""
        amount = customer.recurring_amount
        interval = interval_months_for(customer.recurring_interval) or interval

    reminder_days = getattr(customer, "default_renewal_reminder_days", None)
    expiry = compute_expiry(base, interval, today)
    return RenewalDraft(
        customer_id=customer.id,
        base_date=base,
        interval_months=interval,
        expiry_date=expiry,
        service=service,
        amount=amount,
        reminder_days=reminder_days if reminder_days is not None else DEFAULT_REMINDER_DAYS,
        notes=getattr(customer, "default_renewal_notes", None) or "",
        suggested_status=classify_status(expiry, today),
        today=today,
    )


def draft_from_renewal(renewal, today: date | None = None) -> RenewalDraft:
    today = today or utcnow().date()
    base = parse_date(renewal.base_date) or parse_date(getattr(renewal, "created_at", None)) or today
    expiry = parse_date(renewal.expiry_date)
    return RenewalDraft(
        customer_id=renewal.customer_id,
        base_date=base,
        interval_months=_positive_int(renewal.interval_months, DEFAULT_INTERVAL_MONTHS),
        expiry_date=expiry,
        service=renewal.service or "",
        amount=renewal.amount,
        status=renewal.status or STATUS_ACTIVE,
        reminder_days=renewal.reminder_days or DEFAULT_REMINDER_DAYS,
        notes=renewal.notes or "",
        suggested_status=classify_status(expiry, today) if expiry else None,
        today=today,
    )


def apply_customer(draft: RenewalDraft, customer, today: date | None = None) -> RenewalDraft:
    """Switch ``draft`` to ``customer``, only filling fields the user left empty."""

    today = today or draft.today or utcnow().date()
    service = draft.service
    amount = draft.amount
    interval = draft.interval_months
    reminder_days = draft.reminder_days
    notes = draft.notes

    if customer.recurring_enabled:
        if customer.recurring_service and not service.strip():
            service = customer.recurring_service
        if customer.recurring_amount is not None and amount in (None, ""):
            amount = customer.recurring_amount
        interval = interval_months_for(customer.recurring_interval) or interval
    if customer.default_renewal_reminder_days and not reminder_days:
        reminder_days = customer.default_renewal_reminder_days
    if customer.default_renewal_notes and not notes.strip():
        notes = customer.default_renewal_notes

    updated = replace(
        draft,
        customer_id=customer.id,
        service=service,
        amount=amount,
        interval_months=interval,
        reminder_days=reminder_days,
        notes=notes,
        base_date=_customer_base_date(customer, today),
        today=today,
    )
    return updated.with_interval(updated.interval_months)


DATE_EDIT_FIELDS = ("expiry", "base_date")
NUMBER_EDIT_FIELDS = ("amount", "reminder_days")
TEXT_EDIT_FIELDS = ("service", "notes")


def apply_edit(draft: RenewalDraft, field: str, value: str) -> RenewalDraft:
    """Apply one typed form value to ``draft``.

    Raises ``ValueError`` when the value does not fit the field.
    """

    value = (value or "").strip()
    if field in DATE_EDIT_FIELDS:
        if parse_date(value) is None:
            raise ValueError(f"Not a date: {value!r}")
        if field == "expiry":
            return draft.with_expiry(value)
        return draft.with_base_date(value)
    if field == "amount":
        return draft.with_details(amount=float(value.replace(",", "")))
    if field == "reminder_days":
        days = int(value)
        if days <= 0:
            raise ValueError(f"Reminder days must be positive: {days}")
        return draft.with_details(reminder_days=days)
    if field in TEXT_EDIT_FIELDS:
        return draft.with_details(**{field: value})
    raise ValueError(f"Unknown field: {field!r}")
