"""
Tables API endpoints
Floor configuration plus the per-table session entry points
"""

from fastapi import APIRouter, Depends, status
from sqlmodel import Session, select
from typing import List
import structlog
import uuid

from chalkboard.core.database import get_session
from chalkboard.core.dependencies import Identity, get_current_staff_id
from chalkboard.core.errors import ChalkboardError, InternalError, NotFoundError
from chalkboard.core.permissions import Permission, require_permission
from chalkboard.models import PricingPackage, Table, TableStatus
from chalkboard.api.schemas import (
    CurrentSessionResponse, EndSessionResponse, FnbOrderRead, StartSessionRequest,
    TableCreate, TableSessionRead, TableUpdate, order_payload
)
from chalkboard.services import billing, fnb_orders, sessions

logger = structlog.get_logger(__name__)
router = APIRouter()


def _get_table(session: Session, table_id: uuid.UUID) -> Table:
    table = session.get(Table, table_id)
    if not table:
        raise NotFoundError("Table not found")
    return table


def _check_package(session: Session, package_id) -> None:
    if package_id is not None and session.get(PricingPackage, package_id) is None:
        raise NotFoundError("Pricing package not found")


@router.get("/", response_model=List[Table])
async def list_tables(
    include_inactive: bool = False,
    session: Session = Depends(get_session)
):
    """List tables, active ones only unless asked otherwise"""
    query = select(Table)
    if not include_inactive:
        query = query.where(Table.is_active == True)
    return session.exec(query.order_by(Table.name)).all()


@router.post("/", response_model=Table, status_code=status.HTTP_201_CREATED)
async def create_table(
    table_data: TableCreate,
    identity: Identity = Depends(require_permission(Permission.TABLES_EDIT)),
    session: Session = Depends(get_session)
):
    """Create a new table"""
    try:
        _check_package(session, table_data.pricing_package_id)
        table = Table(
            name=table_data.name,
            hourly_rate=table_data.hourly_rate,
            per_minute_rate=table_data.per_minute_rate,
            pricing_package_id=table_data.pricing_package_id,
            status=TableStatus.AVAILABLE,
        )
        session.add(table)
        session.commit()
        session.refresh(table)

        logger.info(f"Table created: {table.id} by {identity.staff_id}")
        return table

    except ChalkboardError:
        raise
    except Exception as e:
        session.rollback()
        logger.error(f"Error creating table: {e}")
        raise InternalError("Failed to create table")


@router.get("/{table_id}", response_model=Table)
async def get_table(
    table_id: uuid.UUID,
    session: Session = Depends(get_session)
):
    """Get table by ID"""
    return _get_table(session, table_id)


@router.put("/{table_id}", response_model=Table)
async def update_table(
    table_id: uuid.UUID,
    table_data: TableUpdate,
    identity: Identity = Depends(require_permission(Permission.TABLES_EDIT)),
    session: Session = Depends(get_session)
):
    """Update table settings or set a manual status"""
    _get_table(session, table_id)
    changes = table_data.model_dump(exclude_unset=True)
    if "pricing_package_id" in changes:
        _check_package(session, changes["pricing_package_id"])

    table = sessions.update_table(session, table_id, changes)
    logger.info(f"Table updated: {table_id} by {identity.staff_id}")
    return table


@router.delete("/{table_id}", response_model=Table)
async def delete_table(
    table_id: uuid.UUID,
    identity: Identity = Depends(require_permission(Permission.TABLES_EDIT)),
    session: Session = Depends(get_session)
):
    """Soft delete a table that is not in play"""
    table = sessions.deactivate_table(session, table_id)
    logger.info(f"Table deactivated: {table_id} by {identity.staff_id}")
    return table


@router.post(
    "/{table_id}/start-session",
    response_model=TableSessionRead,
    status_code=status.HTTP_201_CREATED
)
async def start_session(
    table_id: uuid.UUID,
    request: StartSessionRequest,
    current_staff_id: uuid.UUID = Depends(get_current_staff_id),
    session: Session = Depends(get_session)
):
    """Start a session on an available table"""
    return sessions.start_session(
        session,
        table_id=table_id,
        customer_name=request.customer_name,
        pricing_package_id=request.pricing_package_id,
        mode=request.mode,
        planned_duration=request.planned_duration,
        customer_phone=request.customer_phone,
        staff_id=current_staff_id,
    )


@router.post("/{table_id}/end-session", response_model=EndSessionResponse)
async def end_session(
    table_id: uuid.UUID,
    session: Session = Depends(get_session)
):
    """End the active session on a table and open its payment"""
    result = billing.end_table_session(session, table_id)
    payload = result._asdict()
    payload["orders"] = [order_payload(order) for order in result.orders]
    return payload


@router.get("/{table_id}/current-session", response_model=CurrentSessionResponse)
async def get_current_session(
    table_id: uuid.UUID,
    session: Session = Depends(get_session)
):
    """Active session on a table, if any"""
    _get_table(session, table_id)
    table_session, package = sessions.get_current_session(session, table_id)
    return {"session": table_session, "pricing_package": package}


@router.get("/{table_id}/orders", response_model=List[FnbOrderRead])
async def list_table_orders(
    table_id: uuid.UUID,
    session: Session = Depends(get_session)
):
    """Pending F&B orders served to a table"""
    return [order_payload(order) for order in fnb_orders.list_table_orders(session, table_id)]
