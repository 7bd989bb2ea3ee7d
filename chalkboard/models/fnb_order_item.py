"""
F&B order line item with price snapshot
"""

from sqlmodel import Field, SQLModel, Relationship
from decimal import Decimal
from typing import Optional, TYPE_CHECKING
import uuid

if TYPE_CHECKING:
    from chalkboard.models.fnb_order import FnbOrder


class FnbOrderItem(SQLModel, table=True):
    """Line of an F&B order, priced at order time"""

    __tablename__ = "fnb_order_items"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    order_id: uuid.UUID = Field(foreign_key="fnb_orders.id", index=True)
    item_id: uuid.UUID = Field(foreign_key="fnb_items.id", index=True)

    quantity: int = Field(gt=0)
    unit_price: Decimal = Field(max_digits=10, decimal_places=2, description="Item price when ordered")
    subtotal: Decimal = Field(max_digits=10, decimal_places=2)

    order: Optional["FnbOrder"] = Relationship(back_populates="items")

    def calculate_subtotal(self) -> Decimal:
        self.subtotal = Decimal(self.unit_price) * self.quantity
        return self.subtotal
