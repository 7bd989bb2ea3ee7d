"""
F&B category model
"""

from sqlmodel import Field, SQLModel
from datetime import datetime
from typing import Optional
import uuid

from chalkboard.core.datetime_utils import UTCDateTime, utcnow


class FnbCategory(SQLModel, table=True):
    """Menu grouping for food and beverage items"""

    __tablename__ = "fnb_categories"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    name: str = Field(max_length=100, nullable=False)
    description: Optional[str] = Field(default=None, max_length=1000, nullable=True)
    is_active: bool = Field(default=True, index=True)
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
