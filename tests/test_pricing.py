"""
Unit tests for table pricing
"""

import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from chalkboard.core.errors import NotFoundError
from chalkboard.models import BillingMode, PricingPackage, Table
from chalkboard.services.pricing import (
    billable_hours,
    billable_minutes,
    compute_table_cost,
    elapsed_minutes,
    resolve_billing_mode,
    table_rate,
)


def test_hourly_billing_rounds_up_to_whole_hours():
    """61 minutes bills two hours, 60 minutes bills one"""
    assert compute_table_cost(61, BillingMode.HOURLY, Decimal("10000")) == Decimal("20000.00")
    assert compute_table_cost(60, BillingMode.HOURLY, Decimal("10000")) == Decimal("10000.00")
    assert compute_table_cost(0, BillingMode.HOURLY, Decimal("10000")) == Decimal("0.00")


def test_per_minute_billing():
    """Every minute is charged at the per-minute rate"""
    assert compute_table_cost(90, BillingMode.PER_MINUTE, Decimal("500")) == Decimal("45000.00")


def test_per_minute_cost_is_rounded_to_cents():
    rate = Decimal("40000") / Decimal(60)
    assert compute_table_cost(1, BillingMode.PER_MINUTE, rate) == Decimal("666.67")


def test_billable_hours():
    assert billable_hours(1) == 1
    assert billable_hours(75) == 2
    assert billable_hours(120) == 2


def test_elapsed_minutes_floors():
    start = datetime(2026, 1, 1, 10, 0, 0)
    assert elapsed_minutes(start, start + timedelta(minutes=75, seconds=59)) == 75
    assert elapsed_minutes(start, start - timedelta(minutes=5)) == 0


def test_billable_minutes_rounds_past_half_minute():
    start = datetime(2026, 1, 1, 10, 0, 0)
    assert billable_minutes(start, start + timedelta(minutes=10, seconds=30)) == 10
    assert billable_minutes(start, start + timedelta(minutes=10, seconds=31)) == 11


def test_elapsed_time_treats_naive_values_as_utc():
    """SQLite hands timestamps back without an offset"""
    start = datetime(2026, 1, 1, 10, 0, 0)
    end = datetime(2026, 1, 1, 18, 15, 0, tzinfo=timezone(timedelta(hours=7)))
    assert elapsed_minutes(start, end) == 75
    assert billable_minutes(start, end) == 75


def test_table_rate_prefers_package_rate():
    table = Table(name="T", hourly_rate=Decimal("40000"))
    package = PricingPackage(name="P", category=BillingMode.HOURLY, hourly_rate=Decimal("50000"))

    assert table_rate(table, package, BillingMode.HOURLY) == Decimal("50000")
    # Package has no per-minute rate, the table's derived rate applies
    assert table_rate(table, package, BillingMode.PER_MINUTE) == Decimal("40000") / Decimal(60)


def test_table_rate_uses_explicit_per_minute_rate():
    table = Table(name="T", hourly_rate=Decimal("40000"), per_minute_rate=Decimal("700"))
    assert table_rate(table, None, BillingMode.PER_MINUTE) == Decimal("700")
    assert table_rate(table, None, BillingMode.HOURLY) == Decimal("40000")


def test_resolve_billing_mode(db, hourly_package, per_minute_package):
    """Mode comes from the package category, rate from the matching field"""
    hourly = resolve_billing_mode(db, hourly_package.id)
    assert hourly.mode == BillingMode.HOURLY
    assert hourly.rate == Decimal("50000.00")

    per_minute = resolve_billing_mode(db, per_minute_package.id)
    assert per_minute.mode == BillingMode.PER_MINUTE
    assert per_minute.rate == Decimal("500.00")


def test_resolve_billing_mode_rejects_inactive_package(db, hourly_package):
    hourly_package.is_active = False
    db.add(hourly_package)
    db.commit()

    with pytest.raises(NotFoundError):
        resolve_billing_mode(db, hourly_package.id)
