"""
Payment model
One checkout: a table charge plus any number of F&B orders
"""

from sqlmodel import Field, SQLModel
from sqlalchemy import Column, JSON
from decimal import Decimal
from datetime import datetime
from typing import Optional, List
from enum import Enum
import uuid

from chalkboard.core.datetime_utils import UTCDateTime, utcnow
from chalkboard.models.transitions import TransitionTable


class PaymentStatus(str, Enum):
    """Status of a payment"""
    PENDING = "pending"         # Open tab, amounts may still change
    SUCCESS = "success"         # Settled
    FAILED = "failed"
    CANCELLED = "cancelled"


# Staff correct a payment in any direction; the order cascade follows the new status
PAYMENT_TRANSITIONS = TransitionTable(
    "payment",
    {status: set(PaymentStatus) for status in PaymentStatus},
)


class Payment(SQLModel, table=True):
    """Billing record for one checkout event"""

    __tablename__ = "payments"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    transaction_number: str = Field(max_length=50, unique=True, index=True)

    customer_name: Optional[str] = Field(default=None, max_length=100, nullable=True)
    customer_phone: Optional[str] = Field(default=None, max_length=20, nullable=True)

    # Components; total_amount is always table_amount + fnb_amount
    table_amount: Decimal = Field(default=Decimal("0.00"), max_digits=10, decimal_places=2)
    fnb_amount: Decimal = Field(default=Decimal("0.00"), max_digits=10, decimal_places=2)
    discount_amount: Decimal = Field(default=Decimal("0.00"), max_digits=10, decimal_places=2)
    tax_amount: Decimal = Field(
        default=Decimal("0.00"),
        max_digits=10,
        decimal_places=2,
        description="Tax already contained in the components, informational"
    )
    total_amount: Decimal = Field(default=Decimal("0.00"), max_digits=10, decimal_places=2)
    currency: str = Field(default="IDR", max_length=3)

    payment_methods: List[dict] = Field(
        default_factory=list,
        description="Tender split as [{type, amount}]",
        sa_column=Column(JSON, nullable=False)
    )

    staff_id: Optional[uuid.UUID] = Field(default=None, foreign_key="staff.id", index=True, nullable=True)
    status: PaymentStatus = Field(default=PaymentStatus.PENDING, index=True)

    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime, index=True)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)

    def can_transition_to(self, target: PaymentStatus) -> bool:
        return PAYMENT_TRANSITIONS.can_transition(self.status, target)

    def transition_to(self, target: PaymentStatus) -> None:
        """Move to ``target`` or raise InvalidTransitionError"""
        PAYMENT_TRANSITIONS.check(self.status, target)
        self.status = target
        self.updated_at = utcnow()

    def is_pending(self) -> bool:
        return self.status == PaymentStatus.PENDING

    def set_components(self, table_amount: Decimal, fnb_amount: Decimal) -> None:
        """Write both components and the total they imply"""
        self.table_amount = table_amount
        self.fnb_amount = fnb_amount
        self.total_amount = table_amount + fnb_amount
        self.updated_at = utcnow()

    def single_method(self, method: str) -> None:
        """Record the whole amount as paid with one tender type"""
        self.payment_methods = [{"type": method, "amount": str(self.total_amount)}]
