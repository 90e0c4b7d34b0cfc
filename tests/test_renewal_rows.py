from datetime import date, datetime
from types import SimpleNamespace

from app.services.renewal_rows import build_renewal_rows, filter_rows, renewal_stats

NOW = date(2026, 4, 1)


def _customer(id, name, **overrides):
    values = dict(
        id=id,
        name=name,
        created_at=datetime(2026, 1, 1),
        recurring_service=None,
        recurring_amount=None,
        next_renewal_date=None,
    )
    values.update(overrides)
    return SimpleNamespace(**values)


def _renewal(id, customer_id, expiry, status="active", **overrides):
    values = dict(
        id=id,
        customer_id=customer_id,
        service="Hosting",
        amount=100.0,
        base_date=date(2026, 1, 1),
        expiry_date=expiry,
        status=status,
        updated_at=None,
    )
    values.update(overrides)
    return SimpleNamespace(**values)


def test_rows_fall_back_to_customer_fields():
    customers = [
        _customer(1, "Acme", recurring_service="Domain", recurring_amount=499, next_renewal_date=date(2026, 4, 20)),
    ]
    [row] = build_renewal_rows(customers, [], NOW)
    assert row.renewal_id is None
    assert row.service == "Domain"
    assert row.amount == 499.0
    assert row.expiry_date == date(2026, 4, 20)
    assert row.status == "expiring"
    assert row.days_left == 19
    assert row.base_date == date(2026, 1, 1)


def test_customer_without_any_data():
    [row] = build_renewal_rows([_customer(1, "Bare", created_at=None)], [], NOW)
    assert row.service == ""
    assert row.amount == 0.0
    assert row.expiry_date is None
    assert row.days_left is None
    assert row.status == "active"
    assert row.base_date is None


def test_first_renewal_per_customer_wins():
    customers = [_customer(1, "Acme")]
    renewals = [
        _renewal(10, 1, date(2026, 6, 1), service="Hosting"),
        _renewal(11, 1, date(2026, 4, 5), service="Email"),
    ]
    [row] = build_renewal_rows(customers, renewals, NOW)
    assert row.renewal_id == 10
    assert row.service == "Hosting"


def test_renewed_status_is_sticky_in_list():
    customers = [_customer(1, "Acme"), _customer(2, "Beta")]
    renewals = [
        _renewal(10, 1, date(2026, 3, 1), status="renewed"),
        _renewal(11, 2, date(2026, 3, 1), status="active"),
    ]
    rows = build_renewal_rows(customers, renewals, NOW)
    assert [row.status for row in rows] == ["renewed", "expired"]


def test_stored_expired_is_reclassified():
    rows = build_renewal_rows([_customer(1, "Acme")], [_renewal(10, 1, date(2026, 9, 1), status="expired")], NOW)
    assert rows[0].status == "active"


def test_filter_by_search_and_status():
    customers = [_customer(1, "Acme"), _customer(2, "Beta"), _customer(3, "Gamma")]
    renewals = [
        _renewal(10, 1, date(2026, 4, 10), service="Hosting"),
        _renewal(11, 2, date(2026, 9, 1), service="SEO retainer"),
        _renewal(12, 3, date(2026, 3, 1), service="Hosting"),
    ]
    rows = build_renewal_rows(customers, renewals, NOW)
    assert [row.customer_name for row in filter_rows(rows, search="host")] == ["Acme", "Gamma"]
    assert [row.customer_name for row in filter_rows(rows, search="BETA")] == ["Beta"]
    assert [row.customer_name for row in filter_rows(rows, status="expired")] == ["Gamma"]
    assert [row.customer_name for row in filter_rows(rows, search="hosting", status="expiring")] == ["Acme"]
    assert filter_rows(rows, status="all") == rows
    assert filter_rows(rows, search="   ") == rows


def test_stats_counts():
    customers = [_customer(i, f"C{i}") for i in range(1, 6)]
    renewals = [
        _renewal(10, 1, date(2026, 4, 1)),
        _renewal(11, 2, date(2026, 4, 20)),
        _renewal(12, 3, date(2026, 2, 1)),
        _renewal(13, 4, date(2026, 12, 1), status="renewed", updated_at=datetime(2026, 4, 1, 8, 0)),
        _renewal(14, 5, date(2026, 4, 30), status="renewed", updated_at=datetime(2026, 3, 28)),
    ]
    rows = build_renewal_rows(customers, renewals, NOW)
    stats = renewal_stats(rows, renewals, NOW)
    assert stats == {"total": 5, "upcoming": 2, "expired": 2, "renewed_this_month": 1}


def test_stats_on_empty_store():
    assert renewal_stats([], [], NOW) == {"total": 0, "upcoming": 0, "expired": 0, "renewed_this_month": 0}
