"""
Pricing packages API endpoints
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy import update
from sqlmodel import Session, select, func
from typing import List, Optional
import structlog
import uuid

from chalkboard.core.database import atomic, get_session
from chalkboard.core.datetime_utils import utcnow
from chalkboard.core.dependencies import Identity
from chalkboard.core.errors import ConflictError, InvalidArgumentError, NotFoundError
from chalkboard.core.permissions import Permission, require_permission
from chalkboard.models import BillingMode, PricingPackage, Table, TableSession
from chalkboard.api.schemas import PricingPackageCreate, PricingPackageUpdate
from chalkboard.services.utils import guarded_update

logger = structlog.get_logger(__name__)
router = APIRouter()


def _validate_rates(package: PricingPackage) -> None:
    """A package must price the mode it bills in"""
    if package.rate_for(package.category) is None:
        if package.category == BillingMode.PER_MINUTE:
            raise InvalidArgumentError("Per-minute rate is required for per-minute packages")
        raise InvalidArgumentError("Hourly rate is required for hourly packages")


def _clear_other_defaults(session: Session, package: PricingPackage) -> None:
    guarded_update(
        session,
        update(PricingPackage)
        .where(
            PricingPackage.category == package.category,
            PricingPackage.id != package.id,
            PricingPackage.is_default == True,
        )
        .values(is_default=False, updated_at=utcnow())
    )


def _get_package(session: Session, package_id: uuid.UUID) -> PricingPackage:
    package = session.get(PricingPackage, package_id)
    if not package:
        raise NotFoundError("Pricing package not found")
    return package


@router.get("/", response_model=List[PricingPackage])
async def list_packages(
    category: Optional[BillingMode] = None,
    is_active: Optional[bool] = None,
    session: Session = Depends(get_session)
):
    """List pricing packages in display order"""
    query = select(PricingPackage)
    if category:
        query = query.where(PricingPackage.category == category)
    if is_active is not None:
        query = query.where(PricingPackage.is_active == is_active)
    query = query.order_by(PricingPackage.sort_order, PricingPackage.name)
    return session.exec(query).all()


@router.get("/{package_id}", response_model=PricingPackage)
async def get_package(
    package_id: uuid.UUID,
    session: Session = Depends(get_session)
):
    return _get_package(session, package_id)


@router.post("/", response_model=PricingPackage, status_code=status.HTTP_201_CREATED)
async def create_package(
    package_data: PricingPackageCreate,
    identity: Identity = Depends(require_permission(Permission.PRICING_EDIT)),
    session: Session = Depends(get_session)
):
    """Create a pricing package; a new default replaces the old one in its category"""
    package = PricingPackage(**package_data.model_dump())
    _validate_rates(package)

    with atomic(session):
        session.add(package)
        session.flush()
        if package.is_default:
            _clear_other_defaults(session, package)
    session.refresh(package)

    logger.info(f"Pricing package created: {package.id} ({package.category.value})")
    return package


@router.put("/{package_id}", response_model=PricingPackage)
async def update_package(
    package_id: uuid.UUID,
    package_data: PricingPackageUpdate,
    identity: Identity = Depends(require_permission(Permission.PRICING_EDIT)),
    session: Session = Depends(get_session)
):
    """Update a pricing package"""
    package = _get_package(session, package_id)

    with atomic(session):
        for key, value in package_data.model_dump(exclude_unset=True).items():
            setattr(package, key, value)
        _validate_rates(package)
        package.updated_at = utcnow()
        session.add(package)
        session.flush()
        if package.is_default:
            _clear_other_defaults(session, package)
    session.refresh(package)

    logger.info(f"Pricing package updated: {package_id}")
    return package


@router.delete("/{package_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_package(
    package_id: uuid.UUID,
    identity: Identity = Depends(require_permission(Permission.PRICING_EDIT)),
    session: Session = Depends(get_session)
):
    """Delete a package that no table or session refers to"""
    package = _get_package(session, package_id)

    table_count = session.exec(
        select(func.count(Table.id)).where(Table.pricing_package_id == package_id)
    ).one()
    if table_count:
        raise ConflictError(f"Pricing package is used by {table_count} tables")

    session_count = session.exec(
        select(func.count(TableSession.id)).where(TableSession.pricing_package_id == package_id)
    ).one()
    if session_count:
        raise ConflictError("Pricing package has billed sessions, deactivate it instead")

    with atomic(session):
        session.delete(package)
    logger.info(f"Pricing package deleted: {package_id}")
