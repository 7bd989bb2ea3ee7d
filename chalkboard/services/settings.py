"""
Settings repository over the system_settings key/value table
"""

from decimal import Decimal
from typing import Optional

from pydantic import ValidationError
from sqlmodel import Session, select
import structlog

from chalkboard.core.database import atomic
from chalkboard.core.datetime_utils import utcnow
from chalkboard.core.errors import InvalidArgumentError
from chalkboard.models import BillingMode, SystemSetting
from chalkboard.services.tax import TaxSettings

logger = structlog.get_logger(__name__)

TAX_SETTINGS_KEY = "tax_settings"
BILLING_RATE_TYPE_KEY = "billing_rate_type"


class SettingsRepository:
    """Typed access to system settings.

    Fixed shapes (tax settings, billing rate type) get their own accessors;
    ``get_value``/``set_value`` remain for keys without a schema.
    """

    def __init__(self, session: Session):
        self.session = session

    def _get_row(self, key: str) -> Optional[SystemSetting]:
        return self.session.exec(
            select(SystemSetting).where(SystemSetting.key == key)
        ).first()

    def get_value(self, key: str, default: Optional[str] = None) -> Optional[str]:
        row = self._get_row(key)
        if row is None or not row.is_active:
            return default
        return row.value

    def set_value(self, key: str, value: str, description: Optional[str] = None) -> SystemSetting:
        """Upsert a raw value; the caller owns the transaction"""
        row = self._get_row(key)
        if row is None:
            row = SystemSetting(key=key, value=value, description=description)
        else:
            row.value = value
            row.is_active = True
            row.updated_at = utcnow()
            if description:
                row.description = description
        self.session.add(row)
        return row

    def get_tax_settings(self) -> TaxSettings:
        raw = self.get_value(TAX_SETTINGS_KEY)
        if raw is None:
            return TaxSettings()
        try:
            return TaxSettings.model_validate_json(raw)
        except ValidationError as e:
            logger.error(f"Stored tax settings are invalid, using defaults: {e}")
            return TaxSettings()

    def save_tax_settings(self, settings: TaxSettings) -> TaxSettings:
        percentage = Decimal(settings.percentage)
        if percentage < 0 or percentage > 100:
            raise InvalidArgumentError("Tax percentage must be between 0 and 100")

        with atomic(self.session):
            self.set_value(
                TAX_SETTINGS_KEY,
                settings.model_dump_json(),
                description="Tax configuration settings for tables and F&B",
            )
        logger.info(f"Tax settings updated: enabled={settings.enabled} percentage={percentage}")
        return settings

    def get_billing_rate_type(self) -> BillingMode:
        raw = self.get_value(BILLING_RATE_TYPE_KEY, BillingMode.HOURLY.value)
        try:
            return BillingMode(raw)
        except ValueError:
            logger.warning(f"Unknown billing rate type {raw!r}, defaulting to hourly")
            return BillingMode.HOURLY

    def set_billing_rate_type(self, mode: BillingMode) -> BillingMode:
        with atomic(self.session):
            self.set_value(
                BILLING_RATE_TYPE_KEY,
                BillingMode(mode).value,
                description="Determines whether billing is calculated per hour or per minute",
            )
        return BillingMode(mode)
