"""
Tests for the table session lifecycle
"""

import pytest
from datetime import timedelta
from decimal import Decimal
import uuid

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.attributes import set_committed_value
from sqlmodel import select

from chalkboard.core.datetime_utils import utcnow
from chalkboard.core.errors import ConflictError, InternalError, InvalidArgumentError, NotFoundError
from chalkboard.models import (
    BillingMode, FnbOrderStatus, Table, TableSession, TableSessionStatus, TableStatus
)
from chalkboard.services import fnb_orders, sessions
from chalkboard.services.pricing import elapsed_minutes


def start(db, table, package, **kwargs):
    params = {"customer_name": "Andi", "pricing_package_id": package.id}
    params.update(kwargs)
    return sessions.start_session(db, table.id, **params)


def active_count(db, table_id) -> int:
    return len(db.exec(
        select(TableSession).where(
            TableSession.table_id == table_id,
            TableSession.status == TableSessionStatus.ACTIVE,
        )
    ).all())


def test_start_open_session(db, table, hourly_package, admin):
    """Starting occupies the table and opens an active, open-ended session"""
    table_session = start(db, table, hourly_package, staff_id=admin.id, customer_phone="0812")

    db.refresh(table)
    assert table.status == TableStatus.OCCUPIED
    assert table_session.status == TableSessionStatus.ACTIVE
    assert table_session.planned_duration == 0
    assert table_session.duration_type == BillingMode.HOURLY
    assert table_session.staff_id == admin.id
    assert table_session.customer_phone == "0812"


def test_start_planned_session_takes_mode_from_package(db, table, per_minute_package):
    table_session = start(db, table, per_minute_package, mode="planned", planned_duration=90)

    assert table_session.planned_duration == 90
    assert table_session.duration_type == BillingMode.PER_MINUTE


def test_start_validates_input(db, table, hourly_package):
    with pytest.raises(InvalidArgumentError):
        start(db, table, hourly_package, customer_name="  ")

    with pytest.raises(InvalidArgumentError):
        start(db, table, hourly_package, mode="planned")

    with pytest.raises(InvalidArgumentError):
        start(db, table, hourly_package, mode="planned", planned_duration=-5)

    with pytest.raises(InvalidArgumentError):
        sessions.start_session(db, table.id, customer_name="Andi", pricing_package_id=None)

    db.refresh(table)
    assert table.status == TableStatus.AVAILABLE


def test_start_unknown_table_or_package(db, table, hourly_package):
    with pytest.raises(NotFoundError):
        sessions.start_session(db, uuid.uuid4(), customer_name="Andi", pricing_package_id=hourly_package.id)

    with pytest.raises(NotFoundError):
        sessions.start_session(db, table.id, customer_name="Andi", pricing_package_id=uuid.uuid4())


def test_start_on_occupied_table_conflicts(db, table, hourly_package):
    """A second start is rejected and leaves table and sessions untouched"""
    start(db, table, hourly_package)

    with pytest.raises(ConflictError):
        start(db, table, hourly_package, customer_name="Budi")

    db.refresh(table)
    assert table.status == TableStatus.OCCUPIED
    assert active_count(db, table.id) == 1


def test_start_on_maintenance_table_conflicts(db, table, hourly_package):
    table.status = TableStatus.MAINTENANCE
    db.add(table)
    db.commit()

    with pytest.raises(ConflictError):
        start(db, table, hourly_package)
    assert active_count(db, table.id) == 0


def test_active_session_index_backstops_stale_table_status(db, table, hourly_package):
    """Even if the table status drifts, a second active session cannot be stored"""
    start(db, table, hourly_package)
    table.status = TableStatus.AVAILABLE
    db.add(table)
    db.commit()

    with pytest.raises(InternalError):
        start(db, table, hourly_package, customer_name="Budi")
    assert active_count(db, table.id) == 1


def test_active_session_index_rejects_direct_insert(db, table):
    for name in ("Andi", "Budi"):
        db.add(TableSession(table_id=table.id, customer_name=name, status=TableSessionStatus.ACTIVE))
    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()


def test_completed_sessions_do_not_block_the_index(db, table):
    for name in ("Andi", "Budi"):
        db.add(TableSession(table_id=table.id, customer_name=name, status=TableSessionStatus.COMPLETED))
    db.add(TableSession(table_id=table.id, customer_name="Citra", status=TableSessionStatus.ACTIVE))
    db.commit()
    assert active_count(db, table.id) == 1


def test_move_session_takes_pending_orders_along(db, table, other_table, hourly_package, menu_item, admin):
    table_session = start(db, table, hourly_package)
    order, _ = fnb_orders.create_order(
        db, "table_session", "Andi", admin.id,
        [{"item_id": menu_item.id, "quantity": 1}], table_id=table.id,
    )

    result = sessions.move_session(db, table_session.id, other_table.id)

    db.refresh(table)
    db.refresh(other_table)
    db.refresh(order)
    assert result.moved_order_count == 1
    assert result.old_table_id == table.id
    assert result.session.table_id == other_table.id
    assert table.status == TableStatus.AVAILABLE
    assert other_table.status == TableStatus.OCCUPIED
    assert order.table_id == other_table.id
    assert order.status == FnbOrderStatus.PENDING


def test_move_to_unavailable_table_changes_nothing(db, table, other_table, hourly_package):
    table_session = start(db, table, hourly_package)
    start(db, other_table, hourly_package, customer_name="Budi")

    with pytest.raises(ConflictError):
        sessions.move_session(db, table_session.id, other_table.id)

    db.refresh(table_session)
    db.refresh(table)
    assert table_session.table_id == table.id
    assert table.status == TableStatus.OCCUPIED


def test_move_requires_target_and_active_session(db, table, other_table, hourly_package):
    table_session = start(db, table, hourly_package)

    with pytest.raises(InvalidArgumentError):
        sessions.move_session(db, table_session.id, None)

    sessions.cancel_session(db, table_session.id)
    with pytest.raises(NotFoundError):
        sessions.move_session(db, table_session.id, other_table.id)


def test_update_duration_keeps_first_clock_snapshot(db, table, hourly_package):
    """The clock reading is captured on the first override only"""
    table_session = start(db, table, hourly_package)
    table_session.start_time = utcnow() - timedelta(minutes=47)
    db.add(table_session)
    db.commit()

    first = sessions.update_duration(db, table_session.id, "per_minute", 30)
    assert first.original_duration == 47
    assert first.actual_duration == 30
    assert first.duration_type == BillingMode.PER_MINUTE

    second = sessions.update_duration(db, table_session.id, "hourly", 120)
    assert second.original_duration == 47
    assert second.actual_duration == 120
    assert second.duration_type == BillingMode.HOURLY


def test_update_duration_validation(db, table, hourly_package):
    table_session = start(db, table, hourly_package)

    with pytest.raises(InvalidArgumentError):
        sessions.update_duration(db, table_session.id, "daily", 30)
    with pytest.raises(InvalidArgumentError):
        sessions.update_duration(db, table_session.id, "hourly", None)
    with pytest.raises(InvalidArgumentError):
        sessions.update_duration(db, table_session.id, "hourly", -1)
    with pytest.raises(InvalidArgumentError):
        sessions.update_duration(db, table_session.id, "hourly", 90.9)

    assert sessions.update_duration(db, table_session.id, "hourly", 90.0).actual_duration == 90


def test_update_duration_needs_active_session(db, table, hourly_package):
    table_session = start(db, table, hourly_package)
    sessions.cancel_session(db, table_session.id)

    with pytest.raises(NotFoundError):
        sessions.update_duration(db, table_session.id, "hourly", 60)


def test_cancel_session_frees_table(db, table, hourly_package):
    table_session = start(db, table, hourly_package)

    cancelled = sessions.cancel_session(db, table_session.id)

    db.refresh(table)
    assert cancelled.status == TableSessionStatus.CANCELLED
    assert cancelled.end_time is not None
    assert table.status == TableStatus.AVAILABLE

    with pytest.raises(NotFoundError):
        sessions.cancel_session(db, table_session.id)


def test_current_session_and_listing(db, table, other_table, hourly_package):
    assert sessions.get_current_session(db, table.id) == (None, None)

    table_session = start(db, table, hourly_package)
    current, package = sessions.get_current_session(db, table.id)
    assert current.id == table_session.id
    assert package.id == hourly_package.id

    start(db, other_table, hourly_package, customer_name="Budi")
    assert len(sessions.list_sessions(db)) == 2
    assert len(sessions.list_sessions(db, table_id=table.id)) == 1
    assert sessions.list_sessions(db, status=TableSessionStatus.COMPLETED) == []
    assert sessions.get_table_session(db, table_session.id).id == table_session.id


def test_session_timestamps_read_back_as_utc(db, table, hourly_package):
    table_session = start(db, table, hourly_package)
    db.expire_all()

    stored = db.get(TableSession, table_session.id)
    assert stored.start_time.utcoffset() == timedelta(0)
    assert 0 <= elapsed_minutes(stored.start_time, utcnow()) <= 1


def test_move_leaves_no_stale_rows_in_the_session(db, table, other_table, hourly_package):
    """Tables loaded before a move read their new status without a refresh"""
    table_session = start(db, table, hourly_package)
    assert other_table.status == TableStatus.AVAILABLE

    sessions.move_session(db, table_session.id, other_table.id)

    statuses = {t.name: t.status for t in db.exec(select(Table)).all()}
    assert statuses == {table.name: TableStatus.AVAILABLE, other_table.name: TableStatus.OCCUPIED}


def test_cancel_refused_while_orders_pending(db, table, hourly_package, menu_item, admin):
    """Pending orders keep the session open so they are billed, not inherited"""
    table_session = start(db, table, hourly_package)
    order, _ = fnb_orders.create_order(
        db, "table_session", "Andi", admin.id,
        [{"item_id": menu_item.id, "quantity": 1}], table_id=table.id,
    )

    with pytest.raises(ConflictError):
        sessions.cancel_session(db, table_session.id)

    db.refresh(table_session)
    db.refresh(table)
    db.refresh(order)
    assert table_session.status == TableSessionStatus.ACTIVE
    assert table.status == TableStatus.OCCUPIED
    assert order.status == FnbOrderStatus.PENDING
    assert order.table_id == table.id


def test_manual_status_change(db, table):
    updated = sessions.update_table(db, table.id, {"status": TableStatus.MAINTENANCE, "name": "Table 1A"})
    assert updated.status == TableStatus.MAINTENANCE
    assert updated.name == "Table 1A"
    assert updated.updated_at is not None

    with pytest.raises(ConflictError):
        sessions.update_table(db, table.id, {"status": TableStatus.OCCUPIED})
    with pytest.raises(NotFoundError):
        sessions.update_table(db, uuid.uuid4(), {"status": TableStatus.AVAILABLE})


def test_manual_status_cannot_free_a_table_read_before_start(db, table, hourly_package):
    """The status check runs in the database, not on the loaded row"""
    start(db, table, hourly_package)
    set_committed_value(table, "status", TableStatus.AVAILABLE)

    with pytest.raises(ConflictError):
        sessions.update_table(db, table.id, {"status": TableStatus.MAINTENANCE})

    db.refresh(table)
    assert table.status == TableStatus.OCCUPIED
    assert active_count(db, table.id) == 1


def test_rate_edits_allowed_while_occupied(db, table, hourly_package):
    start(db, table, hourly_package)

    updated = sessions.update_table(db, table.id, {"hourly_rate": Decimal("45000.00")})
    assert updated.hourly_rate == Decimal("45000.00")
    assert updated.status == TableStatus.OCCUPIED


def test_deactivate_table(db, table, other_table, hourly_package):
    start(db, table, hourly_package)
    with pytest.raises(ConflictError):
        sessions.deactivate_table(db, table.id)

    assert sessions.deactivate_table(db, other_table.id).is_active is False
