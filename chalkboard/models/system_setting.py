"""
Key/value system settings
"""

from sqlmodel import Field, SQLModel
from datetime import datetime
from typing import Optional
import uuid

from chalkboard.core.datetime_utils import UTCDateTime, utcnow


class SystemSetting(SQLModel, table=True):
    """Generic setting row; typed shapes are serialized into ``value``"""

    __tablename__ = "system_settings"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    key: str = Field(max_length=100, unique=True, index=True)
    value: str = Field(nullable=False)
    description: Optional[str] = Field(default=None, max_length=255, nullable=True)
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
