"""
F&B order model
Orders start as editable drafts or go straight to a table, then follow the
payment they are billed on
"""

from sqlmodel import Field, SQLModel, Relationship
from decimal import Decimal
from datetime import datetime
from typing import Optional, TYPE_CHECKING, List
from enum import Enum
import uuid

from chalkboard.core.datetime_utils import UTCDateTime, utcnow
from chalkboard.models.transitions import TransitionTable

if TYPE_CHECKING:
    from chalkboard.models.fnb_order_item import FnbOrderItem


class FnbOrderStatus(str, Enum):
    """Status of an F&B order"""
    DRAFT = "draft"             # No table or payment yet, stock untouched
    PENDING = "pending"         # Assigned to a table with an active session
    BILLED = "billed"           # Attached to a payment
    PAID = "paid"               # Payment succeeded
    CANCELLED = "cancelled"


ORDER_TRANSITIONS = TransitionTable(
    "F&B order",
    {
        FnbOrderStatus.DRAFT: {FnbOrderStatus.PENDING, FnbOrderStatus.BILLED, FnbOrderStatus.CANCELLED},
        FnbOrderStatus.PENDING: {FnbOrderStatus.BILLED, FnbOrderStatus.CANCELLED},
        FnbOrderStatus.BILLED: {FnbOrderStatus.BILLED, FnbOrderStatus.PAID},
        # A paid order reverts to billed when its payment is cancelled or fails
        FnbOrderStatus.PAID: {FnbOrderStatus.PAID, FnbOrderStatus.BILLED},
        FnbOrderStatus.CANCELLED: set(),
    },
)


class FnbOrder(SQLModel, table=True):
    """Food and beverage order"""

    __tablename__ = "fnb_orders"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    order_number: str = Field(max_length=50, unique=True, index=True)

    # Null only while the order is a draft (or billed straight to a payment)
    table_id: Optional[uuid.UUID] = Field(default=None, foreign_key="tables.id", index=True, nullable=True)

    # Customer, used to find draft orders before a table is chosen
    customer_name: Optional[str] = Field(default=None, max_length=100, nullable=True)
    customer_phone: Optional[str] = Field(default=None, max_length=20, nullable=True, index=True)

    # Amounts
    subtotal: Decimal = Field(max_digits=10, decimal_places=2)
    tax: Decimal = Field(default=Decimal("0.00"), max_digits=10, decimal_places=2)
    total: Decimal = Field(max_digits=10, decimal_places=2)

    status: FnbOrderStatus = Field(default=FnbOrderStatus.PENDING, index=True)
    payment_id: Optional[uuid.UUID] = Field(default=None, foreign_key="payments.id", index=True, nullable=True)
    staff_id: Optional[uuid.UUID] = Field(default=None, foreign_key="staff.id", index=True, nullable=True)
    notes: Optional[str] = Field(default=None, max_length=1000, nullable=True)

    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime, index=True)

    # Relationships
    items: List["FnbOrderItem"] = Relationship(
        back_populates="order",
        sa_relationship_kwargs={"cascade": "all, delete-orphan"}
    )

    def can_transition_to(self, target: FnbOrderStatus) -> bool:
        return ORDER_TRANSITIONS.can_transition(self.status, target)

    def transition_to(self, target: FnbOrderStatus) -> None:
        """Move to ``target`` or raise InvalidTransitionError"""
        ORDER_TRANSITIONS.check(self.status, target)
        self.status = target

    def calculate_total(self) -> None:
        """Recompute subtotal and total from line items and the current tax"""
        self.subtotal = sum((Decimal(item.subtotal) for item in self.items), Decimal("0.00"))
        self.total = self.subtotal + Decimal(self.tax or 0)
