"""
Table session model for tracking billiard table occupancy
"""

from sqlmodel import Field, SQLModel
from sqlalchemy import Index, text
from decimal import Decimal
from datetime import datetime
from typing import Optional
from enum import Enum
import uuid

from chalkboard.core.datetime_utils import UTCDateTime, utcnow
from chalkboard.models.pricing_package import BillingMode
from chalkboard.models.transitions import TransitionTable


class TableSessionStatus(str, Enum):
    """Status of a table session"""
    ACTIVE = "active"           # Clock running
    COMPLETED = "completed"     # Ended and billed
    CANCELLED = "cancelled"     # Abandoned without billing


SESSION_TRANSITIONS = TransitionTable(
    "table session",
    {
        TableSessionStatus.ACTIVE: {TableSessionStatus.COMPLETED, TableSessionStatus.CANCELLED},
        TableSessionStatus.COMPLETED: set(),
        TableSessionStatus.CANCELLED: set(),
    },
)


class TableSession(SQLModel, table=True):
    """One customer's occupancy of a table"""

    __tablename__ = "table_sessions"
    __table_args__ = (
        # Backstop for the one-active-session-per-table rule
        Index(
            "uq_table_sessions_active_table",
            "table_id",
            unique=True,
            sqlite_where=text("status = 'ACTIVE'"),
            postgresql_where=text("status = 'ACTIVE'"),
        ),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    table_id: uuid.UUID = Field(foreign_key="tables.id", index=True)

    # Customer
    customer_name: str = Field(max_length=100, nullable=False)
    customer_phone: Optional[str] = Field(default=None, max_length=20, nullable=True)

    # Timing, durations in minutes
    start_time: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime, index=True)
    end_time: Optional[datetime] = Field(default=None, nullable=True, sa_type=UTCDateTime)
    planned_duration: int = Field(default=0, description="0 means open table")
    actual_duration: Optional[int] = Field(
        default=None,
        nullable=True,
        description="Billable minutes, set at end or by manual override"
    )
    original_duration: Optional[int] = Field(
        default=None,
        nullable=True,
        description="Clock time captured before the first manual override, never rewritten"
    )
    duration_type: BillingMode = Field(default=BillingMode.HOURLY)

    # Billing
    pricing_package_id: Optional[uuid.UUID] = Field(
        default=None,
        foreign_key="pricing_packages.id",
        index=True,
        nullable=True
    )
    total_cost: Optional[Decimal] = Field(default=None, max_digits=10, decimal_places=2)
    payment_id: Optional[uuid.UUID] = Field(
        default=None,
        foreign_key="payments.id",
        index=True,
        nullable=True
    )

    status: TableSessionStatus = Field(default=TableSessionStatus.ACTIVE, index=True)

    # Attribution and feedback
    staff_id: Optional[uuid.UUID] = Field(default=None, foreign_key="staff.id", index=True, nullable=True)
    session_rating: Optional[int] = Field(default=None, ge=1, le=5, nullable=True)
    fnb_order_count: int = Field(default=0)

    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)

    def is_active(self) -> bool:
        return self.status == TableSessionStatus.ACTIVE

    def can_transition_to(self, target: TableSessionStatus) -> bool:
        return SESSION_TRANSITIONS.can_transition(self.status, target)

    def transition_to(self, target: TableSessionStatus) -> None:
        """Move to ``target`` or raise InvalidTransitionError"""
        SESSION_TRANSITIONS.check(self.status, target)
        self.status = target

    def snapshot_original_duration(self, elapsed_minutes: int) -> None:
        """Record the measured clock time once; later calls keep the first value"""
        if self.original_duration is None:
            self.original_duration = elapsed_minutes
