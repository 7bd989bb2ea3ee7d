"""
Session lifecycle manager
Starts, moves, corrects and cancels table sessions. Ending a session is a
billing concern and lives in ``chalkboard.services.billing``.
"""

from enum import Enum
from typing import List, NamedTuple, Optional, Tuple
import uuid

from sqlalchemy import func, update
from sqlmodel import Session, select
import structlog

from chalkboard.core.database import atomic
from chalkboard.core.datetime_utils import utcnow
from chalkboard.core.errors import ConflictError, InvalidArgumentError, NotFoundError
from chalkboard.models import (
    BillingMode, FnbOrder, FnbOrderStatus, PricingPackage, Staff, Table,
    TableSession, TableSessionStatus, TableStatus
)
from chalkboard.services.pricing import elapsed_minutes, resolve_billing_mode
from chalkboard.services.utils import guarded_update

logger = structlog.get_logger(__name__)


class SessionMode(str, Enum):
    OPEN = "open"           # Duration decided at the end
    PLANNED = "planned"     # Duration agreed up front


class MoveResult(NamedTuple):
    session: TableSession
    old_table_id: uuid.UUID
    new_table_id: uuid.UUID
    moved_order_count: int


def parse_billing_mode(value) -> BillingMode:
    try:
        return BillingMode(value)
    except ValueError:
        raise InvalidArgumentError('Invalid duration type. Must be "hourly" or "per_minute"')


def require_duration(value) -> int:
    if value is None or isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidArgumentError("Actual duration must be a number of minutes")
    if isinstance(value, float) and not value.is_integer():
        raise InvalidArgumentError("Actual duration must be a whole number of minutes")
    if value < 0:
        raise InvalidArgumentError("Actual duration cannot be negative")
    return int(value)


def require_staff(session: Session, staff_id: Optional[uuid.UUID]) -> Optional[Staff]:
    if staff_id is None:
        return None
    staff = session.get(Staff, staff_id)
    if staff is None or not staff.is_active:
        raise NotFoundError("Staff member not found")
    return staff


def get_table_session(session: Session, session_id: uuid.UUID) -> TableSession:
    table_session = session.get(TableSession, session_id)
    if table_session is None:
        raise NotFoundError("Table session not found")
    return table_session


def _lock_session(session: Session, session_id: uuid.UUID, status: TableSessionStatus) -> Optional[TableSession]:
    return session.exec(
        select(TableSession)
        .where(TableSession.id == session_id, TableSession.status == status)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).first()


def get_active_session(session: Session, session_id: uuid.UUID) -> TableSession:
    table_session = session.exec(
        select(TableSession).where(
            TableSession.id == session_id,
            TableSession.status == TableSessionStatus.ACTIVE
        )
    ).first()
    if table_session is None:
        raise NotFoundError("Active session not found")
    return table_session


def find_active_session_for_table(session: Session, table_id: uuid.UUID) -> Optional[TableSession]:
    return session.exec(
        select(TableSession).where(
            TableSession.table_id == table_id,
            TableSession.status == TableSessionStatus.ACTIVE
        )
    ).first()


def get_current_session(
    session: Session, table_id: uuid.UUID
) -> Tuple[Optional[TableSession], Optional[PricingPackage]]:
    """Active session on a table with the package it bills against"""
    table_session = find_active_session_for_table(session, table_id)
    if table_session is None:
        return None, None
    package = None
    if table_session.pricing_package_id:
        package = session.get(PricingPackage, table_session.pricing_package_id)
    return table_session, package


def list_sessions(
    session: Session,
    status: Optional[TableSessionStatus] = None,
    table_id: Optional[uuid.UUID] = None,
    limit: int = 100,
) -> List[TableSession]:
    query = select(TableSession)
    if status:
        query = query.where(TableSession.status == status)
    if table_id:
        query = query.where(TableSession.table_id == table_id)
    query = query.order_by(TableSession.start_time.desc()).limit(limit)
    return list(session.exec(query).all())


def start_session(
    session: Session,
    table_id: uuid.UUID,
    customer_name: Optional[str],
    pricing_package_id: Optional[uuid.UUID],
    mode: str = SessionMode.OPEN.value,
    planned_duration: Optional[int] = None,
    customer_phone: Optional[str] = None,
    staff_id: Optional[uuid.UUID] = None,
) -> TableSession:
    """Open a session on an available table.

    The table is claimed with a conditional UPDATE on ``status = available``;
    if another request claimed it first no row matches and nothing is
    written.
    """
    if not customer_name or not customer_name.strip():
        raise InvalidArgumentError("Customer name is required")

    try:
        session_mode = SessionMode(mode)
    except ValueError:
        raise InvalidArgumentError('Invalid mode. Must be "open" or "planned"')

    if session_mode == SessionMode.PLANNED:
        if planned_duration is None or isinstance(planned_duration, bool) or planned_duration < 0:
            raise InvalidArgumentError("Planned duration is required for planned mode")

    if pricing_package_id is None:
        raise InvalidArgumentError("Pricing package is required")

    billing = resolve_billing_mode(session, pricing_package_id)
    require_staff(session, staff_id)

    table = session.get(Table, table_id)
    if table is None or not table.is_active:
        raise NotFoundError("Table not found")

    with atomic(session):
        claimed = guarded_update(
            session,
            update(Table)
            .where(
                Table.id == table_id,
                Table.is_active == True,
                Table.status == TableStatus.AVAILABLE,
            )
            .values(status=TableStatus.OCCUPIED, updated_at=utcnow())
        )
        if claimed != 1:
            logger.warning(f"Start rejected, table {table_id} is not available")
            raise ConflictError("Table is not available")

        table_session = TableSession(
            table_id=table_id,
            customer_name=customer_name.strip(),
            customer_phone=customer_phone,
            start_time=utcnow(),
            planned_duration=int(planned_duration) if session_mode == SessionMode.PLANNED else 0,
            duration_type=billing.mode,
            pricing_package_id=pricing_package_id,
            staff_id=staff_id,
            status=TableSessionStatus.ACTIVE,
        )
        session.add(table_session)

    session.refresh(table_session)
    session.refresh(table)
    logger.info(f"Started session {table_session.id} on table {table_id} ({billing.mode.value})")
    return table_session


def move_session(session: Session, session_id: uuid.UUID, new_table_id: Optional[uuid.UUID]) -> MoveResult:
    """Move an active session, and its pending F&B orders, to another table"""
    if new_table_id is None:
        raise InvalidArgumentError("New table ID is required")

    table_session = get_active_session(session, session_id)
    old_table_id = table_session.table_id

    new_table = session.get(Table, new_table_id)
    if new_table is None or not new_table.is_active:
        raise NotFoundError("Target table not found or not active")

    if session.get(Table, old_table_id) is None:
        raise NotFoundError("Current table not found")

    now = utcnow()
    with atomic(session):
        claimed = guarded_update(
            session,
            update(Table)
            .where(
                Table.id == new_table_id,
                Table.is_active == True,
                Table.status == TableStatus.AVAILABLE,
            )
            .values(status=TableStatus.OCCUPIED, updated_at=now)
        )
        if claimed != 1:
            raise ConflictError("Target table is not available")

        moved = guarded_update(
            session,
            update(TableSession)
            .where(
                TableSession.id == session_id,
                TableSession.table_id == old_table_id,
                TableSession.status == TableSessionStatus.ACTIVE,
            )
            .values(table_id=new_table_id)
        )
        if moved != 1:
            raise ConflictError("Session changed while moving, try again")

        guarded_update(
            session,
            update(Table)
            .where(Table.id == old_table_id)
            .values(status=TableStatus.AVAILABLE, updated_at=now)
        )

        # F&B orders follow the customer
        order_count = guarded_update(
            session,
            update(FnbOrder)
            .where(
                FnbOrder.table_id == old_table_id,
                FnbOrder.status == FnbOrderStatus.PENDING,
            )
            .values(table_id=new_table_id)
        )

    session.refresh(table_session)
    logger.info(
        f"Moved session {session_id} from table {old_table_id} to {new_table_id} "
        f"with {order_count} pending orders"
    )
    return MoveResult(table_session, old_table_id, new_table_id, order_count)


def update_duration(
    session: Session,
    session_id: uuid.UUID,
    duration_type,
    actual_duration,
) -> TableSession:
    """Manually override the billable time of an active session.

    The first override snapshots the clock into ``original_duration``;
    later overrides leave that snapshot alone.
    """
    mode = parse_billing_mode(duration_type)
    minutes = require_duration(actual_duration)

    with atomic(session):
        table_session = _lock_session(session, session_id, TableSessionStatus.ACTIVE)
        if table_session is None:
            raise NotFoundError("Active session not found")

        table_session.snapshot_original_duration(
            elapsed_minutes(table_session.start_time, utcnow())
        )
        table_session.duration_type = mode
        table_session.actual_duration = minutes
        session.add(table_session)

    session.refresh(table_session)
    logger.info(
        f"Session {session_id} duration set to {minutes} min ({mode.value}), "
        f"clock was {table_session.original_duration} min"
    )
    return table_session


def cancel_session(session: Session, session_id: uuid.UUID) -> TableSession:
    """Abandon an active session without billing and free its table.

    Refused while F&B orders are pending on the table: they belong to this
    session's bill and would otherwise land on the next customer's.
    """
    with atomic(session):
        table_session = _lock_session(session, session_id, TableSessionStatus.ACTIVE)
        if table_session is None:
            raise NotFoundError("Active session not found")

        pending_orders = session.exec(
            select(func.count(FnbOrder.id)).where(
                FnbOrder.table_id == table_session.table_id,
                FnbOrder.status == FnbOrderStatus.PENDING,
            )
        ).one()
        if pending_orders:
            logger.warning(f"Cancel rejected, session {session_id} has {pending_orders} pending orders")
            raise ConflictError("Session has pending F&B orders, end it to bill them")

        now = utcnow()
        table_session.transition_to(TableSessionStatus.CANCELLED)
        table_session.end_time = now
        session.add(table_session)

        guarded_update(
            session,
            update(Table)
            .where(Table.id == table_session.table_id)
            .values(status=TableStatus.AVAILABLE, updated_at=now)
        )

    session.refresh(table_session)
    logger.info(f"Cancelled session {session_id} on table {table_session.table_id}")
    return table_session


# Statuses staff may set by hand; occupied is owned by the session lifecycle
MANUAL_STATUSES = {TableStatus.AVAILABLE, TableStatus.MAINTENANCE, TableStatus.RESERVED}


def update_table(session: Session, table_id: uuid.UUID, changes: dict) -> Table:
    """Apply staff edits to a table.

    A manual status is written with a conditional UPDATE that only matches
    a table that is not occupied, so it cannot overwrite a session that
    started after the table was read.
    """
    if "status" in changes and changes["status"] not in MANUAL_STATUSES:
        raise ConflictError("Occupied status is set by starting a session")

    table = session.get(Table, table_id)
    if table is None:
        raise NotFoundError("Table not found")

    statement = update(Table).where(Table.id == table_id)
    if "status" in changes:
        statement = statement.where(Table.status != TableStatus.OCCUPIED)

    with atomic(session):
        updated = guarded_update(session, statement.values(**changes, updated_at=utcnow()))
        if updated != 1:
            logger.warning(f"Status change rejected, table {table_id} is occupied")
            raise ConflictError("Table has an active session")

    session.refresh(table)
    return table


def deactivate_table(session: Session, table_id: uuid.UUID) -> Table:
    """Soft delete a table that is not in play"""
    table = session.get(Table, table_id)
    if table is None:
        raise NotFoundError("Table not found")

    with atomic(session):
        if find_active_session_for_table(session, table_id) is not None:
            raise ConflictError("Cannot delete a table with an active session")
        updated = guarded_update(
            session,
            update(Table)
            .where(Table.id == table_id, Table.status != TableStatus.OCCUPIED)
            .values(is_active=False, updated_at=utcnow())
        )
        if updated != 1:
            raise ConflictError("Cannot delete a table with an active session")

    session.refresh(table)
    return table
