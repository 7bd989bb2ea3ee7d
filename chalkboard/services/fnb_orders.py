"""
F&B order attachment manager
Creates orders, attaches drafts to tables or open payments, and commits
stock when an order leaves the draft state.
"""

from collections import defaultdict
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple
import uuid

from sqlalchemy import case, func, or_, update
from pydantic import ValidationError
from sqlmodel import Session, SQLModel, select
import structlog

from chalkboard.core.config import get_settings
from chalkboard.core.database import atomic
from chalkboard.core.datetime_utils import utcnow
from chalkboard.core.errors import InvalidArgumentError, NotFoundError
from chalkboard.models import (
    FnbItem, FnbOrder, FnbOrderItem, FnbOrderStatus, Payment, PaymentStatus,
    Table, TableSession, TableSessionStatus
)
from chalkboard.services.billing import open_payment
from chalkboard.services.sessions import find_active_session_for_table, require_staff
from chalkboard.services.settings import SettingsRepository
from chalkboard.services.tax import calculate_tax
from chalkboard.services.utils import generate_reference, guarded_update, money

logger = structlog.get_logger(__name__)
settings = get_settings()


class OrderContext(str, Enum):
    """Where a new order is headed"""
    WAITING = "waiting"                 # Customer waiting for a table, saved as draft
    TABLE_SESSION = "table_session"     # Served to a table that is in play
    STANDALONE = "standalone"           # Counter sale, checked out immediately


ORDER_NUMBER_PREFIX = {
    OrderContext.WAITING: "DRAFT",
    OrderContext.TABLE_SESSION: "TABLE",
    OrderContext.STANDALONE: "FNB",
}


class OrderLine(SQLModel):
    item_id: uuid.UUID
    quantity: int


def commit_stock(session: Session, order_id: uuid.UUID) -> int:
    """Take an order's quantities out of stock, flooring each item at zero.

    One conditional UPDATE per item so concurrent orders on the same item
    never read-modify-write.
    """
    quantities: Dict[uuid.UUID, int] = defaultdict(int)
    for line in session.exec(select(FnbOrderItem).where(FnbOrderItem.order_id == order_id)):
        quantities[line.item_id] += line.quantity

    now = utcnow()
    for item_id, quantity in quantities.items():
        guarded_update(
            session,
            update(FnbItem)
            .where(FnbItem.id == item_id)
            .values(
                stock_quantity=case(
                    (FnbItem.stock_quantity >= quantity, FnbItem.stock_quantity - quantity),
                    else_=0,
                ),
                updated_at=now,
            )
        )
    return len(quantities)


def _require_draft(session: Session, order_id: uuid.UUID) -> FnbOrder:
    order = session.exec(
        select(FnbOrder).where(FnbOrder.id == order_id, FnbOrder.status == FnbOrderStatus.DRAFT)
    ).first()
    if order is None:
        raise NotFoundError("Draft order not found")
    return order


def _claim_drafts(session: Session, order_ids: Sequence[uuid.UUID], **values) -> None:
    """Move drafts on, conditioned on every one of them still being a draft"""
    claimed = guarded_update(
        session,
        update(FnbOrder)
        .where(FnbOrder.id.in_(order_ids), FnbOrder.status == FnbOrderStatus.DRAFT)
        .values(**values)
    )
    if claimed != len(order_ids):
        raise NotFoundError("Draft order not found")


def _increment_fnb_count(session: Session, table_session_id: uuid.UUID) -> None:
    counted = guarded_update(
        session,
        update(TableSession)
        .where(
            TableSession.id == table_session_id,
            TableSession.status == TableSessionStatus.ACTIVE,
        )
        .values(fnb_order_count=TableSession.fnb_order_count + 1)
    )
    if counted != 1:
        raise NotFoundError("No active session found for this table")


def _checkout(
    session: Session,
    orders: List[FnbOrder],
    staff_id: uuid.UUID,
    customer_name: Optional[str] = None,
    customer_phone: Optional[str] = None,
    payment_methods: Optional[List[dict]] = None,
) -> Payment:
    fnb_total = sum((Decimal(o.total) for o in orders), Decimal("0.00"))
    fnb_tax = sum((Decimal(o.tax) for o in orders), Decimal("0.00"))

    payment = open_payment(
        session,
        table_amount=Decimal("0.00"),
        fnb_amount=fnb_total,
        tax_amount=money(fnb_tax),
        customer_name=customer_name or orders[0].customer_name or settings.WALK_IN_CUSTOMER_NAME,
        customer_phone=customer_phone or orders[0].customer_phone,
        staff_id=staff_id,
        payment_methods=payment_methods,
    )

    order_ids = [o.id for o in orders]
    _claim_drafts(
        session,
        order_ids,
        payment_id=payment.id,
        status=FnbOrderStatus.BILLED,
        staff_id=staff_id,
    )
    for order_id in order_ids:
        commit_stock(session, order_id)
    return payment


def create_order(
    session: Session,
    context,
    customer_name: Optional[str],
    staff_id: Optional[uuid.UUID],
    items: Sequence,
    customer_phone: Optional[str] = None,
    table_id: Optional[uuid.UUID] = None,
    notes: Optional[str] = None,
) -> Tuple[FnbOrder, Optional[Payment]]:
    """Create an order priced from current menu prices.

    Returns the order and, for standalone sales, the payment it was
    checked out into.
    """
    try:
        context = OrderContext(context)
    except ValueError:
        raise InvalidArgumentError('Invalid context. Must be "waiting", "table_session" or "standalone"')

    if not customer_name or not customer_name.strip():
        raise InvalidArgumentError("Customer name is required")
    if staff_id is None:
        raise InvalidArgumentError("Staff ID is required")
    if not items:
        raise InvalidArgumentError("Order must contain at least one item")
    try:
        lines = [i if isinstance(i, OrderLine) else OrderLine.model_validate(i) for i in items]
    except ValidationError:
        raise InvalidArgumentError("Each item needs an item_id and a quantity")
    for line in lines:
        if line.quantity <= 0:
            raise InvalidArgumentError("Item quantity must be positive")
    if context == OrderContext.TABLE_SESSION and table_id is None:
        raise InvalidArgumentError("Table ID is required for table session orders")

    require_staff(session, staff_id)

    table_session = None
    if context == OrderContext.TABLE_SESSION:
        table = session.get(Table, table_id)
        if table is None or not table.is_active:
            raise NotFoundError("Table not found")
        table_session = find_active_session_for_table(session, table_id)
        if table_session is None:
            raise NotFoundError("No active session found for this table")

    menu: Dict[uuid.UUID, FnbItem] = {}
    for line in lines:
        item = session.get(FnbItem, line.item_id)
        if item is None or not item.is_active:
            raise NotFoundError(f"F&B item not found: {line.item_id}")
        menu[line.item_id] = item

    tax_settings = SettingsRepository(session).get_tax_settings()

    with atomic(session):
        order = FnbOrder(
            order_number=generate_reference(ORDER_NUMBER_PREFIX[context]),
            table_id=table_id if context == OrderContext.TABLE_SESSION else None,
            customer_name=customer_name.strip(),
            customer_phone=customer_phone,
            status=FnbOrderStatus.DRAFT,
            staff_id=staff_id,
            notes=notes,
            subtotal=Decimal("0.00"),
            total=Decimal("0.00"),
        )
        for line in lines:
            order_item = FnbOrderItem(
                item_id=line.item_id,
                quantity=line.quantity,
                unit_price=menu[line.item_id].price,
            )
            order_item.calculate_subtotal()
            order.items.append(order_item)

        order.calculate_total()
        order.tax = calculate_tax(order.subtotal, tax_settings, is_table_charge=False)
        order.calculate_total()
        session.add(order)
        session.flush()

        payment = None
        if context == OrderContext.TABLE_SESSION:
            _claim_drafts(session, [order.id], status=FnbOrderStatus.PENDING)
            commit_stock(session, order.id)
            _increment_fnb_count(session, table_session.id)
        elif context == OrderContext.STANDALONE:
            payment = _checkout(session, [order], staff_id, customer_name, customer_phone)

    session.refresh(order)
    if payment is not None:
        session.refresh(payment)
    logger.info(
        f"Created {context.value} order {order.order_number} "
        f"({len(lines)} lines, total {order.total}, status {order.status.value})"
    )
    return order, payment


def assign_to_table(
    session: Session,
    order_id: uuid.UUID,
    table_id: Optional[uuid.UUID],
    staff_id: Optional[uuid.UUID],
) -> FnbOrder:
    """Serve a draft order to a table that has an active session"""
    if table_id is None or staff_id is None:
        raise InvalidArgumentError("Table ID and staff ID are required")

    order = _require_draft(session, order_id)
    require_staff(session, staff_id)

    table_session = find_active_session_for_table(session, table_id)
    if table_session is None:
        raise NotFoundError("No active session found for this table")

    with atomic(session):
        _claim_drafts(
            session,
            [order_id],
            table_id=table_id,
            status=FnbOrderStatus.PENDING,
            staff_id=staff_id,
        )
        commit_stock(session, order_id)
        _increment_fnb_count(session, table_session.id)

    session.refresh(order)
    logger.info(f"Assigned order {order.order_number} to table {table_id} (session {table_session.id})")
    return order


def assign_to_pending_transaction(
    session: Session,
    order_id: uuid.UUID,
    transaction_id: Optional[uuid.UUID],
    staff_id: Optional[uuid.UUID],
) -> FnbOrder:
    """Fold a draft order into an open payment"""
    if transaction_id is None or staff_id is None:
        raise InvalidArgumentError("Transaction ID and staff ID are required")

    order = _require_draft(session, order_id)
    require_staff(session, staff_id)

    payment = session.exec(
        select(Payment).where(Payment.id == transaction_id, Payment.status == PaymentStatus.PENDING)
    ).first()
    if payment is None:
        raise NotFoundError("Pending transaction not found")

    total = Decimal(order.total)
    tax = Decimal(order.tax)
    with atomic(session):
        _claim_drafts(
            session,
            [order_id],
            payment_id=transaction_id,
            status=FnbOrderStatus.BILLED,
            staff_id=staff_id,
        )
        commit_stock(session, order_id)

        added = guarded_update(
            session,
            update(Payment)
            .where(Payment.id == transaction_id, Payment.status == PaymentStatus.PENDING)
            .values(
                fnb_amount=Payment.fnb_amount + total,
                total_amount=Payment.total_amount + total,
                tax_amount=Payment.tax_amount + tax,
                updated_at=utcnow(),
            )
        )
        if added != 1:
            raise NotFoundError("Pending transaction not found")

    session.refresh(order)
    session.refresh(payment)
    logger.info(
        f"Added order {order.order_number} ({total}) to transaction {payment.transaction_number}"
    )
    return order


def checkout_drafts(
    session: Session,
    order_ids: Sequence[uuid.UUID],
    staff_id: Optional[uuid.UUID],
    customer_name: Optional[str] = None,
    customer_phone: Optional[str] = None,
    payment_methods: Optional[List[dict]] = None,
) -> Payment:
    """Merge one or more drafts into a new pending payment"""
    if not order_ids:
        raise InvalidArgumentError("At least one order is required")
    if staff_id is None:
        raise InvalidArgumentError("Staff ID is required")

    unique_ids = list(dict.fromkeys(order_ids))
    orders = list(session.exec(
        select(FnbOrder)
        .where(FnbOrder.id.in_(unique_ids), FnbOrder.status == FnbOrderStatus.DRAFT)
        .order_by(FnbOrder.created_at)
    ).all())
    if len(orders) != len(unique_ids):
        raise NotFoundError("Draft order not found")
    require_staff(session, staff_id)

    with atomic(session):
        payment = _checkout(session, orders, staff_id, customer_name, customer_phone, payment_methods)

    session.refresh(payment)
    for order in orders:
        session.refresh(order)
    logger.info(
        f"Checked out {len(orders)} draft orders into {payment.transaction_number} "
        f"total {payment.total_amount}"
    )
    return payment


def list_drafts(
    session: Session,
    search: Optional[str] = None,
    customer_phone: Optional[str] = None,
) -> List[Tuple[FnbOrder, int]]:
    """Draft orders with their line counts, newest first.

    ``search`` matches customer name or order number case-insensitively;
    ``customer_phone`` must match exactly.
    """
    query = (
        select(FnbOrder, func.count(FnbOrderItem.id))
        .outerjoin(FnbOrderItem, FnbOrderItem.order_id == FnbOrder.id)
        .where(FnbOrder.status == FnbOrderStatus.DRAFT)
    )
    if search:
        pattern = f"%{search.strip()}%"
        query = query.where(or_(
            FnbOrder.customer_name.ilike(pattern),
            FnbOrder.order_number.ilike(pattern),
        ))
    if customer_phone:
        query = query.where(FnbOrder.customer_phone == customer_phone)

    query = query.group_by(FnbOrder.id).order_by(FnbOrder.created_at.desc())
    return [(order, count) for order, count in session.exec(query).all()]


def list_orders(
    session: Session,
    status: Optional[FnbOrderStatus] = None,
    limit: int = 100,
) -> List[FnbOrder]:
    query = select(FnbOrder)
    if status:
        query = query.where(FnbOrder.status == status)
    query = query.order_by(FnbOrder.created_at.desc()).limit(limit)
    return list(session.exec(query).all())


def list_table_orders(session: Session, table_id: uuid.UUID) -> List[FnbOrder]:
    """Orders served to a table and not billed yet"""
    if session.get(Table, table_id) is None:
        raise NotFoundError("Table not found")
    return list(session.exec(
        select(FnbOrder)
        .where(FnbOrder.table_id == table_id, FnbOrder.status == FnbOrderStatus.PENDING)
        .order_by(FnbOrder.created_at)
    ).all())


def list_pending_transactions(session: Session) -> List[Payment]:
    return list(session.exec(
        select(Payment)
        .where(Payment.status == PaymentStatus.PENDING)
        .order_by(Payment.created_at.desc())
    ).all())


def get_order(session: Session, order_id: uuid.UUID) -> FnbOrder:
    order = session.get(FnbOrder, order_id)
    if order is None:
        raise NotFoundError("Order not found")
    return order


def restock_item(session: Session, item_id: uuid.UUID, quantity: int) -> FnbItem:
    """Add delivered stock to an item"""
    if quantity <= 0:
        raise InvalidArgumentError("Restock quantity must be positive")
    item = session.get(FnbItem, item_id)
    if item is None:
        raise NotFoundError("F&B item not found")

    with atomic(session):
        guarded_update(
            session,
            update(FnbItem)
            .where(FnbItem.id == item_id)
            .values(stock_quantity=FnbItem.stock_quantity + quantity, updated_at=utcnow())
        )

    session.refresh(item)
    logger.info(f"Restocked {item.name} by {quantity}, now {item.stock_quantity}")
    return item
