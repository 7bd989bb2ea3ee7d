"""
Settings API endpoints
"""

from fastapi import APIRouter, Depends
from sqlmodel import Session
import structlog

from chalkboard.core.database import get_session
from chalkboard.core.dependencies import Identity
from chalkboard.core.permissions import Permission, require_permission
from chalkboard.api.schemas import BillingRateTypeSetting
from chalkboard.services.settings import SettingsRepository
from chalkboard.services.tax import TaxSettings

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.get("/tax", response_model=TaxSettings)
async def get_tax_settings(
    session: Session = Depends(get_session)
):
    """Current tax settings, defaults when never saved"""
    return SettingsRepository(session).get_tax_settings()


@router.put("/tax", response_model=TaxSettings)
async def update_tax_settings(
    tax_settings: TaxSettings,
    identity: Identity = Depends(require_permission(Permission.SETTINGS_EDIT)),
    session: Session = Depends(get_session)
):
    """Replace the tax settings"""
    saved = SettingsRepository(session).save_tax_settings(tax_settings)
    logger.info(f"Tax settings changed by {identity.staff_id}")
    return saved


@router.get("/billing-rate-type", response_model=BillingRateTypeSetting)
async def get_billing_rate_type(
    session: Session = Depends(get_session)
):
    return {"billing_rate_type": SettingsRepository(session).get_billing_rate_type()}


@router.put("/billing-rate-type", response_model=BillingRateTypeSetting)
async def update_billing_rate_type(
    setting: BillingRateTypeSetting,
    identity: Identity = Depends(require_permission(Permission.SETTINGS_EDIT)),
    session: Session = Depends(get_session)
):
    """Choose hourly or per-minute as the hall's default billing"""
    mode = SettingsRepository(session).set_billing_rate_type(setting.billing_rate_type)
    return {"billing_rate_type": mode}
