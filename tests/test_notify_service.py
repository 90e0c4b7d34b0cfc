import asyncio
from datetime import date
from types import SimpleNamespace

import pytest

from app.services.customer_service import create_customer
from app.services.notify_service import (
    check_connection,
    due_reminder_for,
    list_due_reminders,
    notify_staff,
    reminder_recipient,
    send_due_reminders,
    send_reminder,
)
from app.services.renewal_service import get_renewal_for_customer, save_renewal

NOW = date(2026, 4, 1)


class FakeWhatsApp:
    def __init__(self, failing: set[str] | None = None):
        self.failing = failing or set()
        self.sent: list[tuple[str, str]] = []

    async def send_text(self, to, body):
        if to in self.failing:
            raise RuntimeError("WhatsApp POST /messages failed: 400 invalid recipient")
        self.sent.append((to, body))
        return {"messages": [{"id": "wamid.1"}]}


class FakeBot:
    def __init__(self):
        self.messages: list[tuple[int, str]] = []

    async def send_message(self, chat_id, text, reply_markup=None):
        self.messages.append((chat_id, text))


async def _seed(session):
    async def add(name, expiry, status="active", **contact):
        customer = await create_customer(session, name, **contact)
        await save_renewal(
            session,
            {"customer_id": customer.id, "service": "Hosting", "amount": 1500, "expiry_date": expiry, "status": status},
        )
        return customer

    await add("Acme", "2026-04-05", phone="+91 90000 00001")
    await add("Beta", "2026-04-05")
    await add("Gamma", "2026-06-30", whatsapp_number="+91 90000 00003")
    await add("Delta", "2026-03-01", status="renewed", phone="+91 90000 00004")
    await add("Echo", "2026-03-25", phone="+91 90000 00005")


def test_reminder_recipient_prefers_whatsapp():
    customer = SimpleNamespace(whatsapp_number="+1 555 0100", phone="+1 555 0199")
    assert reminder_recipient(customer) == "+1 555 0100"
    assert reminder_recipient(SimpleNamespace(whatsapp_number="  ", phone="+1 555 0199")) == "+1 555 0199"
    assert reminder_recipient(SimpleNamespace(whatsapp_number=None, phone=None)) is None


def test_due_reminder_respects_reminder_days():
    customer = SimpleNamespace(id=1, name="Acme", whatsapp_number=None, phone="+1 555 0100")
    renewal = SimpleNamespace(
        id=1,
        status="active",
        expiry_date=date(2026, 4, 20),
        reminder_days=14,
        last_reminder_for=None,
        last_reminder_kind=None,
    )
    assert due_reminder_for(renewal, customer, NOW) is None
    renewal.reminder_days = 30
    item = due_reminder_for(renewal, customer, NOW)
    assert item.kind == "reminder"
    assert item.days_left == 19


def test_list_due_reminders(open_session):
    async def scenario():
        async with open_session() as session:
            await _seed(session)
            due = await list_due_reminders(session, NOW)
            assert [(item.customer.name, item.kind) for item in due] == [("Echo", "expired"), ("Acme", "urgent")]

    asyncio.run(scenario())


def test_send_due_reminders_marks_sent_and_skips_failures(open_session):
    async def scenario():
        async with open_session() as session:
            await _seed(session)
            whatsapp = FakeWhatsApp(failing={"+91 90000 00005"})
            sent = await send_due_reminders(session, whatsapp, NOW)
            assert [item.customer.name for item in sent] == ["Acme"]
            [(to, body)] = whatsapp.sent
            assert to == "+91 90000 00001"
            assert "expires in 4 days" in body

            acme_renewal = sent[0].renewal
            assert acme_renewal.last_reminder_for == date(2026, 4, 5)
            assert acme_renewal.last_reminder_kind == "urgent"

            again = await send_due_reminders(session, FakeWhatsApp(), NOW)
            assert [item.customer.name for item in again] == ["Echo"]

            assert await send_due_reminders(session, FakeWhatsApp(), NOW) == []

    asyncio.run(scenario())


def test_kind_change_triggers_new_reminder(open_session):
    async def scenario():
        async with open_session() as session:
            customer = await create_customer(session, "Foxtrot", phone="+1 555 0100")
            await save_renewal(session, {"customer_id": customer.id, "expiry_date": "2026-04-20"})
            first = await send_due_reminders(session, FakeWhatsApp(), NOW)
            assert [item.kind for item in first] == ["reminder"]

            later = await send_due_reminders(session, FakeWhatsApp(), date(2026, 4, 15))
            assert [item.kind for item in later] == ["urgent"]
            renewal = await get_renewal_for_customer(session, customer.id)
            assert renewal.last_reminder_kind == "urgent"

    asyncio.run(scenario())


def test_notify_staff(monkeypatch):
    monkeypatch.setenv("ADMIN_IDS", "2000, 1000")
    bot = FakeBot()
    item = SimpleNamespace(customer=SimpleNamespace(name="Acme"))

    asyncio.run(notify_staff(bot, [item]))
    assert sorted(chat_id for chat_id, _ in bot.messages) == [1000, 2000]
    assert "Reminders sent: <b>1</b>" in bot.messages[0][1]

    bot = FakeBot()
    asyncio.run(notify_staff(bot, []))
    assert bot.messages == []


def test_send_reminder_outside_window(open_session):
    async def scenario():
        async with open_session() as session:
            customer = await create_customer(session, "Golf", whatsapp_number=" ", phone="+1 555 0100")
            renewal = await save_renewal(session, {"customer_id": customer.id, "expiry_date": "2026-09-01"})
            whatsapp = FakeWhatsApp()
            item = await send_reminder(session, whatsapp, renewal, customer, NOW)
            assert item.kind == "reminder"
            assert item.recipient == "+1 555 0100"
            assert len(whatsapp.sent) == 1
            assert renewal.last_reminder_for == date(2026, 9, 1)

    asyncio.run(scenario())


def test_send_reminder_errors(open_session):
    async def scenario():
        async with open_session() as session:
            silent = await create_customer(session, "Hush")
            renewal = await save_renewal(session, {"customer_id": silent.id, "expiry_date": "2026-04-05"})
            with pytest.raises(ValueError):
                await send_reminder(session, FakeWhatsApp(), renewal, silent, NOW)

            loud = await create_customer(session, "Loud", phone="+1 555 0100")
            renewal = await save_renewal(session, {"customer_id": loud.id, "expiry_date": "2026-04-05"})
            with pytest.raises(RuntimeError):
                await send_reminder(session, FakeWhatsApp(failing={"+1 555 0100"}), renewal, loud, NOW)
            assert renewal.last_reminder_kind is None

    asyncio.run(scenario())


class PingingWhatsApp:
    def __init__(self, error: str | None = None):
        self.error = error

    async def ping(self):
        if self.error:
            raise RuntimeError(self.error)


def test_check_connection():
    assert asyncio.run(check_connection(PingingWhatsApp())) is None
    assert asyncio.run(check_connection(PingingWhatsApp("WhatsApp GET /555 failed: 401"))) == "WhatsApp GET /555 failed: 401"
