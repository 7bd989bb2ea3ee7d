"""
Table model for billiard tables
"""

from sqlmodel import Field, SQLModel
from decimal import Decimal
from datetime import datetime
from typing import Optional
from enum import Enum
import uuid

from chalkboard.core.datetime_utils import UTCDateTime, utcnow


class TableStatus(str, Enum):
    """Floor status of a table"""
    AVAILABLE = "available"
    OCCUPIED = "occupied"           # Has exactly one active session
    MAINTENANCE = "maintenance"
    RESERVED = "reserved"


class Table(SQLModel, table=True):
    """Physical billiard table"""

    __tablename__ = "tables"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)

    name: str = Field(max_length=50, nullable=False, description="Display name (e.g., 'Table 1', 'VIP 2')")
    status: TableStatus = Field(default=TableStatus.AVAILABLE, index=True)

    # Fallback rates when a session has no package rate for its mode
    hourly_rate: Decimal = Field(max_digits=10, decimal_places=2)
    per_minute_rate: Optional[Decimal] = Field(default=None, max_digits=10, decimal_places=4)

    pricing_package_id: Optional[uuid.UUID] = Field(
        default=None,
        foreign_key="pricing_packages.id",
        index=True,
        nullable=True,
        description="Default pricing package for this table"
    )

    # Soft delete
    is_active: bool = Field(default=True, index=True)

    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
    updated_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)

    def effective_per_minute_rate(self) -> Decimal:
        """Per-minute rate, derived from the hourly rate when not set"""
        if self.per_minute_rate is not None:
            return Decimal(self.per_minute_rate)
        return Decimal(self.hourly_rate) / Decimal(60)
