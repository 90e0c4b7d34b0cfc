"""Load customer and renewal records exported by the CRM backend into the local store."""

from __future__ import annotations

from datetime import datetime, timezone

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import Customer, Renewal
from app.services.renewal_dates import RENEWAL_STATUSES, STATUS_ACTIVE, add_months, parse_date, utcnow
from app.services.renewal_policy import DEFAULT_INTERVAL_MONTHS, DEFAULT_REMINDER_DAYS


def _pick(record: dict, *keys, default=None):
    for key in keys:
        value = record.get(key)
        if value is not None:
            return value
    return default


def _parse_timestamp(value) -> datetime | None:
    if not value:
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            logging.warning("Unparseable timestamp: %r", value)
            return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def _int_or_none(value) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _float_or_none(value) -> float | None:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def customer_fields(record: dict) -> dict:
    return {
        "name": str(_pick(record, "name", default="")).strip(),
        "email": _pick(record, "email"),
        "phone": _pick(record, "phone"),
        "whatsapp_number": _pick(record, "whatsappNumber", "whatsapp_number"),
        "company": _pick(record, "company"),
        "recurring_enabled": bool(_pick(record, "recurringEnabled", "recurring_enabled", default=False)),
        "recurring_interval": _pick(record, "recurringInterval", "recurring_interval"),
        "recurring_amount": _float_or_none(_pick(record, "recurringAmount", "recurring_amount")),
        "recurring_service": _pick(record, "recurringService", "recurring_service", "service"),
        "next_renewal_date": parse_date(_pick(record, "nextRenewalDate", "next_renewal_date")),
        "default_renewal_reminder_days": _int_or_none(
            _pick(record, "defaultRenewalReminderDays", "default_renewal_reminder_days")
        ),
        "default_renewal_notes": _pick(record, "defaultRenewalNotes", "default_renewal_notes"),
        "created_at": _parse_timestamp(_pick(record, "createdAt", "created_at")),
    }


def renewal_fields(record: dict) -> dict:
    interval = _int_or_none(_pick(record, "intervalMonths", "interval_months")) or DEFAULT_INTERVAL_MONTHS
    base = parse_date(_pick(record, "baseDate", "base_date", "createdAt", "created_at", "startDate"))
    expiry = parse_date(_pick(record, "expiryDate", "expiry_date"))
    if expiry is None:
        base = base or utcnow().date()
        expiry = add_months(base, interval)
    status = _pick(record, "status", default=STATUS_ACTIVE)
    if status not in RENEWAL_STATUSES:
        logging.warning("Unknown renewal status %r, using %s", status, STATUS_ACTIVE)
        status = STATUS_ACTIVE
    return {
        "service": _pick(record, "service", default=""),
        "amount": _float_or_none(_pick(record, "amount")) or 0.0,
        "base_date": base or expiry,
        "interval_months": interval,
        "expiry_date": expiry,
        "status": status,
        "reminder_days": _int_or_none(_pick(record, "reminderDays", "reminder_days")) or DEFAULT_REMINDER_DAYS,
        "notes": _pick(record, "notes", default=""),
        "updated_at": _parse_timestamp(_pick(record, "updatedAt", "updated_at")),
    }


async def sync_customers(session: AsyncSession, records: list[dict]) -> tuple[int, int]:
    """Upsert customers by their backend id. Returns (created, updated)."""

    created = 0
    updated = 0
    for record in records:
        external_id = _pick(record, "id")
        if external_id is None:
            logging.warning("Customer record without id skipped: %s", record.get("name"))
            continue
        fields = customer_fields(record)
        if fields["created_at"] is None:
            fields.pop("created_at")
        result = await session.execute(select(Customer).where(Customer.external_id == str(external_id)))
        customer = result.scalar_one_or_none()
        if customer is None:
            session.add(Customer(external_id=str(external_id), **fields))
            created += 1
            continue
        for key, value in fields.items():
            setattr(customer, key, value)
        updated += 1

    if created or updated:
        await session.commit()
    return created, updated


async def sync_renewals(session: AsyncSession, records: list[dict]) -> tuple[int, int]:
    """Upsert renewals by their backend id, resolving backend customer ids."""

    created = 0
    updated = 0
    for record in records:
        external_id = _pick(record, "id")
        customer_ref = _pick(record, "customerId", "customer_id")
        if external_id is None or customer_ref is None:
            logging.warning("Renewal record without id or customer skipped: %s", record)
            continue
        result = await session.execute(select(Customer).where(Customer.external_id == str(customer_ref)))
        customer = result.scalar_one_or_none()
        if customer is None:
            logging.warning("Renewal %s references unknown customer %s", external_id, customer_ref)
            continue
        fields = renewal_fields(record)
        if fields["updated_at"] is None:
            fields.pop("updated_at")
        result = await session.execute(select(Renewal).where(Renewal.external_id == str(external_id)))
        renewal = result.scalar_one_or_none()
        if renewal is None:
            session.add(Renewal(external_id=str(external_id), customer_id=customer.id, **fields))
            created += 1
            continue
        renewal.customer_id = customer.id
        for key, value in fields.items():
            setattr(renewal, key, value)
        updated += 1

    if created or updated:
        await session.commit()
    return created, updated
