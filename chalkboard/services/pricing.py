"""
Pricing resolver
Turns a pricing package or table into a billing mode and rate, and prices
elapsed table time
"""

from datetime import datetime
from decimal import Decimal
from typing import NamedTuple, Optional
import math
import uuid

from sqlmodel import Session

from chalkboard.core.datetime_utils import as_utc
from chalkboard.core.errors import NotFoundError
from chalkboard.models import BillingMode, PricingPackage, Table
from chalkboard.services.utils import money


class BillingRate(NamedTuple):
    mode: BillingMode
    rate: Decimal


def get_active_package(session: Session, package_id: uuid.UUID) -> PricingPackage:
    package = session.get(PricingPackage, package_id)
    if package is None or not package.is_active:
        raise NotFoundError("Pricing package not found")
    return package


def resolve_billing_mode(session: Session, package_id: uuid.UUID) -> BillingRate:
    """Billing mode and rate of an active package.

    The mode is the package category; the rate is the one matching it.
    Packages are validated on write so the matching rate is never null.
    """
    package = get_active_package(session, package_id)
    return BillingRate(mode=package.category, rate=Decimal(package.rate_for(package.category)))


def table_rate(table: Table, package: Optional[PricingPackage], mode: BillingMode) -> Decimal:
    """Rate charged for a session on ``table`` in ``mode``.

    A package rate for the mode wins; otherwise the table's own rate, where
    the per-minute rate falls back to hourly_rate / 60.
    """
    if package is not None:
        rate = package.rate_for(mode)
        if rate is not None:
            return Decimal(rate)

    if mode == BillingMode.PER_MINUTE:
        return table.effective_per_minute_rate()
    return Decimal(table.hourly_rate)


def billable_hours(minutes: int) -> int:
    return math.ceil(minutes / 60)


def compute_table_cost(actual_duration: int, mode: BillingMode, rate: Decimal) -> Decimal:
    """Price ``actual_duration`` minutes of table time.

    Hourly mode always charges whole hours, rounded up.
    """
    if mode == BillingMode.PER_MINUTE:
        return money(Decimal(actual_duration) * Decimal(rate))
    return money(billable_hours(actual_duration) * Decimal(rate))


def elapsed_minutes(start: datetime, end: datetime) -> int:
    """Whole minutes between two instants, floored"""
    return max(0, int((as_utc(end) - as_utc(start)).total_seconds() // 60))


def billable_minutes(start: datetime, end: datetime) -> int:
    """Per-minute billing time: a trailing part over 30 seconds counts as a minute"""
    seconds = max(0.0, (as_utc(end) - as_utc(start)).total_seconds())
    minutes, remainder = divmod(seconds, 60)
    return int(minutes) + (1 if remainder > 30 else 0)
