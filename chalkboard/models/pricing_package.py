"""
Pricing package model for table billing plans
"""

from sqlmodel import Field, SQLModel
from decimal import Decimal
from datetime import datetime
from typing import Optional
from enum import Enum
import uuid

from chalkboard.core.datetime_utils import UTCDateTime, utcnow


class BillingMode(str, Enum):
    """How table time is charged"""
    HOURLY = "hourly"           # Billable hours, rounded up
    PER_MINUTE = "per_minute"   # Every minute charged


class PricingPackage(SQLModel, table=True):
    """Named billing plan a table or session can use"""

    __tablename__ = "pricing_packages"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)

    name: str = Field(max_length=255, nullable=False)
    description: Optional[str] = Field(default=None, max_length=500, nullable=True)
    category: BillingMode = Field(index=True, description="Billing mode for sessions using this package")

    # Rates, the one matching the category is required
    hourly_rate: Optional[Decimal] = Field(default=None, max_digits=10, decimal_places=2)
    per_minute_rate: Optional[Decimal] = Field(default=None, max_digits=10, decimal_places=2)

    is_default: bool = Field(default=False, description="At most one default per category")
    is_active: bool = Field(default=True, index=True)
    sort_order: int = Field(default=0)

    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)

    def rate_for(self, mode: BillingMode) -> Optional[Decimal]:
        """Rate this package charges in the given mode, if it defines one"""
        if mode == BillingMode.PER_MINUTE:
            return self.per_minute_rate
        return self.hourly_rate
