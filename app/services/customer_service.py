from __future__ import annotations

from datetime import date, datetime

import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import Customer


async def get_customer_by_id(session: AsyncSession, customer_id: int) -> Customer | None:
    result = await session.execute(select(Customer).where(Customer.id == customer_id))
    return result.scalar_one_or_none()


async def get_customer_by_name(session: AsyncSession, name: str) -> Customer | None:
    normalized = (name or "").strip().lower()
    result = await session.execute(select(Customer).where(func.lower(Customer.name) == normalized))
    return result.scalars().first()


async def list_customers(session: AsyncSession) -> list[Customer]:
    result = await session.execute(select(Customer).order_by(Customer.name, Customer.id))
    return list(result.scalars().all())


async def create_customer(
    session: AsyncSession,
    name: str,
    phone: str | None = None,
    whatsapp_number: str | None = None,
    email: str | None = None,
    company: str | None = None,
    created_at: datetime | None = None,
    recurring_enabled: bool = False,
    recurring_interval: str | None = None,
    recurring_amount: float | None = None,
    recurring_service: str | None = None,
    next_renewal_date: date | None = None,
    default_renewal_reminder_days: int | None = None,
    default_renewal_notes: str | None = None,
) -> Customer:
    customer = Customer(
        name=name,
        phone=phone,
        whatsapp_number=whatsapp_number,
        email=email,
        company=company,
        recurring_enabled=recurring_enabled,
        recurring_interval=recurring_interval,
        recurring_amount=recurring_amount,
        recurring_service=recurring_service,
        next_renewal_date=next_renewal_date,
        default_renewal_reminder_days=default_renewal_reminder_days,
        default_renewal_notes=default_renewal_notes,
    )
    if created_at is not None:
        customer.created_at = created_at
    session.add(customer)
    await session.commit()
    await session.refresh(customer)
    logging.info("Customer saved in DB: name=%s id=%s", name, customer.id)
    return customer
