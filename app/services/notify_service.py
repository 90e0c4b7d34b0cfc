from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from app.bot.keyboards import back_to_menu_keyboard
from app.config import get_settings
from app.models import Customer, Renewal
from app.services.renewal_dates import STATUS_RENEWED, days_until_expiry, parse_date, utcnow
from app.services.renewal_service import list_renewals_with_customers
from app.services.template_service import pick_template_kind, render_reminder


@dataclass(frozen=True)
class DueReminder:
    renewal: Renewal
    customer: Customer
    recipient: str
    days_left: int | None
    kind: str


def _t(value: str, **kwargs) -> str:
    text = value.replace("\\n", "\n")
    return text.format(**kwargs) if kwargs else text


def reminder_recipient(customer) -> str | None:
    for value in (customer.whatsapp_number, customer.phone):
        number = (value or "").strip()
        if number:
            return number
    return None


def due_reminder_for(renewal, customer, now: datetime | date | None = None) -> DueReminder | None:
    if renewal.status == STATUS_RENEWED:
        return None
    days_left = days_until_expiry(renewal.expiry_date, now)
    if days_left is None or days_left > (renewal.reminder_days or 0):
        return None
    recipient = reminder_recipient(customer)
    if not recipient:
        logging.info("Reminder skipped, no phone: renewal_id=%s customer=%s", renewal.id, customer.name)
        return None
    kind = pick_template_kind(days_left)
    already_sent = (
        renewal.last_reminder_for is not None
        and parse_date(renewal.last_reminder_for) == parse_date(renewal.expiry_date)
        and renewal.last_reminder_kind == kind
    )
    if already_sent:
        return None
    return DueReminder(renewal=renewal, customer=customer, recipient=recipient, days_left=days_left, kind=kind)


async def list_due_reminders(session: AsyncSession, now: datetime | date | None = None) -> list[DueReminder]:
    now = now or utcnow()
    due: list[DueReminder] = []
    for renewal, customer in await list_renewals_with_customers(session):
        item = due_reminder_for(renewal, customer, now)
        if item is not None:
            due.append(item)
    return due


async def _deliver(session: AsyncSession, whatsapp, item: DueReminder, now) -> None:
    text = render_reminder(item.renewal, item.customer, now, kind=item.kind)
    await whatsapp.send_text(item.recipient, text)
    item.renewal.last_reminder_for = item.renewal.expiry_date
    item.renewal.last_reminder_kind = item.kind
    await session.commit()
    logging.info("Reminder sent: renewal_id=%s kind=%s to=%s", item.renewal.id, item.kind, item.recipient)


async def send_due_reminders(session: AsyncSession, whatsapp, now: datetime | date | None = None) -> list[DueReminder]:
    now = now or utcnow()
    sent: list[DueReminder] = []
    for item in await list_due_reminders(session, now):
        try:
            await _deliver(session, whatsapp, item, now)
        except Exception as exc:
            logging.warning("Reminder failed for renewal %s: %s", item.renewal.id, exc)
            continue
        sent.append(item)
    return sent


async def send_reminder(
    session: AsyncSession,
    whatsapp,
    renewal: Renewal,
    customer: Customer,
    now: datetime | date | None = None,
) -> DueReminder:
    """Send one renewal's reminder right away, regardless of its reminder window.

    Raises ``ValueError`` when the customer has no number and ``RuntimeError``
    when WhatsApp rejects the message.
    """

    now = now or utcnow()
    recipient = reminder_recipient(customer)
    if not recipient:
        raise ValueError(f"Customer {customer.name!r} has no phone number")
    days_left = days_until_expiry(renewal.expiry_date, now)
    kind = pick_template_kind(days_left if days_left is not None else 0)
    item = DueReminder(renewal=renewal, customer=customer, recipient=recipient, days_left=days_left, kind=kind)
    await _deliver(session, whatsapp, item, now)
    return item


async def check_connection(whatsapp) -> str | None:
    """Ping the WhatsApp API. Returns the error text, or ``None`` when reachable."""

    try:
        await whatsapp.ping()
    except RuntimeError as exc:
        logging.warning("WhatsApp connection check failed: %s", exc)
        return str(exc)
    return None


async def notify_staff(bot, sent: list[DueReminder]) -> None:
    settings = get_settings()
    if not sent:
        return
    text = _t(settings.text_reminders_done, count=len(sent))
    for chat_id in {settings.owner_telegram_id, *settings.admin_id_set}:
        try:
            await bot.send_message(chat_id, text, reply_markup=back_to_menu_keyboard())
        except Exception as exc:
            logging.warning("Reminder summary failed for %s: %s", chat_id, exc)
