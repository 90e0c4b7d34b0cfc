from datetime import date
from types import SimpleNamespace

import pytest

from app.services.template_service import (
    format_amount,
    format_date,
    format_days_left,
    pick_template_kind,
    render_reminder,
    render_template,
)


def test_render_template_keeps_unknown_placeholders():
    text = render_template("Hi {customer_name}, see {unknown}", customer_name="Acme")
    assert text == "Hi Acme, see {unknown}"


def test_render_template_expands_escaped_newlines():
    assert render_template("Line one\\nLine two") == "Line one\nLine two"


@pytest.mark.parametrize(
    ("days_left", "kind"),
    [(-1, "expired"), (0, "urgent"), (7, "urgent"), (8, "reminder"), (30, "reminder")],
)
def test_pick_template_kind(days_left, kind):
    assert pick_template_kind(days_left) == kind


def test_urgent_window_is_configurable(monkeypatch):
    monkeypatch.setenv("URGENT_REMINDER_DAYS", "3")
    assert pick_template_kind(5) == "reminder"
    assert pick_template_kind(3) == "urgent"


def test_format_days_left():
    assert format_days_left(12) == "12 days remaining"
    assert format_days_left(0) == "Expires today"
    assert format_days_left(-4) == "Expired 4 days ago"
    assert format_days_left(None) == "—"


def test_format_amount_and_date():
    assert format_amount(1500) == "₹1500"
    assert format_amount(99.5) == "₹99.50"
    assert format_amount(None) == "₹0"
    assert format_date(date(2026, 4, 15)) == "15 Apr 2026"
    assert format_date("garbage") == "—"


def test_render_reminder_urgent(monkeypatch):
    monkeypatch.setenv("BUSINESS_NAME", "Northwind")
    renewal = SimpleNamespace(service="Hosting", amount=1500, expiry_date=date(2026, 4, 5))
    customer = SimpleNamespace(name="Acme", recurring_service=None)
    text = render_reminder(renewal, customer, date(2026, 4, 1))
    assert text.startswith("Dear Acme, your Hosting service expires in 4 days on 05 Apr 2026.")
    assert "₹1500" in text


def test_render_reminder_custom_template(monkeypatch):
    monkeypatch.setenv("TEMPLATE_EXPIRED", "{business_name}: {customer_name} lapsed {days_left}d ago, pay {amount} at {renewal_url}")
    monkeypatch.setenv("BUSINESS_NAME", "Northwind")
    monkeypatch.setenv("RENEWAL_URL", "https://pay.example.com")
    renewal = SimpleNamespace(service="", amount=200, expiry_date=date(2026, 3, 29))
    customer = SimpleNamespace(name="Beta", recurring_service="Domain")
    text = render_reminder(renewal, customer, date(2026, 4, 1))
    assert text == "Northwind: Beta lapsed 3d ago, pay ₹200 at https://pay.example.com"
