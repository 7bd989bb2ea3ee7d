"""
Staff model for order and session attribution
"""

from sqlmodel import Field, SQLModel
from datetime import datetime
import uuid

from chalkboard.core.datetime_utils import UTCDateTime, utcnow


class Staff(SQLModel, table=True):
    """Staff member credited with sessions, orders and payments"""

    __tablename__ = "staff"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    name: str = Field(max_length=100, nullable=False)
    role: str = Field(max_length=50, nullable=False, description="admin, manager, cashier or staff")
    is_active: bool = Field(default=True, index=True)
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
