from __future__ import annotations

from datetime import date, datetime

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import Customer, Renewal
from app.services.customer_service import list_customers
from app.services.renewal_dates import (
    RENEWAL_STATUSES,
    STATUS_ACTIVE,
    STATUS_RENEWED,
    add_months,
    parse_date,
    utcnow,
)
from app.services.renewal_policy import DEFAULT_INTERVAL_MONTHS, DEFAULT_REMINDER_DAYS
from app.services.renewal_rows import RenewalRow, build_renewal_rows, renewal_stats

_UPDATABLE_FIELDS = ("service", "amount", "status", "reminder_days", "notes", "interval_months")


async def get_renewal_by_id(session: AsyncSession, renewal_id: int) -> Renewal | None:
    result = await session.execute(select(Renewal).where(Renewal.id == renewal_id))
    return result.scalar_one_or_none()


async def get_renewal_for_customer(session: AsyncSession, customer_id: int) -> Renewal | None:
    result = await session.execute(
        select(Renewal).where(Renewal.customer_id == customer_id).order_by(Renewal.id).limit(1)
    )
    return result.scalar_one_or_none()


async def list_renewals(session: AsyncSession) -> list[Renewal]:
    result = await session.execute(select(Renewal).order_by(Renewal.id))
    return list(result.scalars().all())


async def list_renewals_with_customers(session: AsyncSession) -> list[tuple[Renewal, Customer]]:
    result = await session.execute(
        select(Renewal, Customer)
        .join(Customer, Customer.id == Renewal.customer_id)
        .order_by(Renewal.expiry_date, Customer.name)
    )
    return list(result.all())


def _normalize_payload(
    payload: dict,
    fallback_base_date=None,
    today: date | None = None,
    default_interval: int = DEFAULT_INTERVAL_MONTHS,
) -> dict:
    data = {key: payload[key] for key in _UPDATABLE_FIELDS if key in payload}
    interval = data.get("interval_months") or default_interval
    base = parse_date(payload.get("base_date")) or parse_date(fallback_base_date)
    expiry = parse_date(payload.get("expiry_date"))
    if expiry is None:
        # computed expiry: keep the base it was computed from
        base = base or today or utcnow().date()
        expiry = add_months(base, interval)
        logging.info("Renewal expiry filled from base=%s interval=%s -> %s", base, interval, expiry)
    data["interval_months"] = interval
    data["expiry_date"] = expiry
    data["base_date"] = base or expiry
    status = data.get("status")
    if status is not None and status not in RENEWAL_STATUSES:
        raise ValueError(f"Unknown renewal status: {status!r}")
    return data


async def save_renewal(
    session: AsyncSession,
    payload: dict,
    renewal_id: int | None = None,
    fallback_base_date=None,
    today: date | None = None,
) -> Renewal | None:
    """Insert or update a renewal from a submit payload.

    A missing expiry is filled from base date + interval before saving.
    Returns ``None`` when ``renewal_id`` does not exist.
    """

    if renewal_id is not None:
        renewal = await get_renewal_by_id(session, renewal_id)
        if renewal is None:
            return None
        data = _normalize_payload(
            payload,
            fallback_base_date or renewal.base_date,
            today,
            default_interval=renewal.interval_months or DEFAULT_INTERVAL_MONTHS,
        )
        for key, value in data.items():
            setattr(renewal, key, value)
        if payload.get("customer_id"):
            renewal.customer_id = payload["customer_id"]
    else:
        data = _normalize_payload(payload, fallback_base_date, today)
        renewal = Renewal(
            customer_id=payload["customer_id"],
            service=data.get("service", ""),
            amount=data.get("amount", 0),
            status=data.get("status", STATUS_ACTIVE),
            reminder_days=data.get("reminder_days", DEFAULT_REMINDER_DAYS),
            notes=data.get("notes", ""),
            interval_months=data["interval_months"],
            expiry_date=data["expiry_date"],
            base_date=data["base_date"],
        )
        session.add(renewal)
    await session.commit()
    await session.refresh(renewal)
    logging.info(
        "Renewal saved: id=%s customer_id=%s expiry=%s status=%s",
        renewal.id,
        renewal.customer_id,
        renewal.expiry_date,
        renewal.status,
    )
    return renewal


async def _set_status(session: AsyncSession, renewal_id: int, status: str) -> Renewal | None:
    renewal = await get_renewal_by_id(session, renewal_id)
    if renewal is None:
        return None
    renewal.status = status
    renewal.updated_at = utcnow()
    await session.commit()
    await session.refresh(renewal)
    logging.info("Renewal %s status -> %s", renewal_id, status)
    return renewal


async def mark_renewed(session: AsyncSession, renewal_id: int) -> Renewal | None:
    return await _set_status(session, renewal_id, STATUS_RENEWED)


async def mark_active(session: AsyncSession, renewal_id: int) -> Renewal | None:
    return await _set_status(session, renewal_id, STATUS_ACTIVE)


async def list_renewal_rows(session: AsyncSession, now: datetime | date | None = None) -> list[RenewalRow]:
    customers = await list_customers(session)
    renewals = await list_renewals(session)
    return build_renewal_rows(customers, renewals, now)


async def load_renewal_stats(session: AsyncSession, now: datetime | date | None = None) -> dict[str, int]:
    customers = await list_customers(session)
    renewals = await list_renewals(session)
    rows = build_renewal_rows(customers, renewals, now)
    return renewal_stats(rows, renewals, now)
