"""
F&B item model with stock tracking
"""

from sqlmodel import Field, SQLModel
from decimal import Decimal
from datetime import datetime
from typing import Optional
import uuid

from chalkboard.core.datetime_utils import UTCDateTime, utcnow


class FnbItem(SQLModel, table=True):
    """Menu item sold at the counter or to a table"""

    __tablename__ = "fnb_items"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    category_id: uuid.UUID = Field(foreign_key="fnb_categories.id", index=True)

    name: str = Field(max_length=100, nullable=False)
    description: Optional[str] = Field(default=None, max_length=1000, nullable=True)

    # Pricing
    price: Decimal = Field(max_digits=10, decimal_places=2, description="Current selling price")
    cost: Optional[Decimal] = Field(default=None, max_digits=10, decimal_places=2)

    # Stock, committed when an order is assigned and never below zero
    stock_quantity: int = Field(default=0)
    min_stock_level: int = Field(default=0)
    unit: str = Field(default="pcs", max_length=20)

    is_active: bool = Field(default=True, index=True)

    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)

    def is_low_stock(self) -> bool:
        return self.stock_quantity <= self.min_stock_level
