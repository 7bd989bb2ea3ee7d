"""
Billing reconciliation engine
Combines table time and F&B orders into one Payment and keeps order
statuses in step with the payment they are billed on.

Tax handling: table tax is folded into ``table_amount`` and every F&B
order already carries its own tax in ``total``, so a payment total is
always ``table_amount + fnb_amount``. ``tax_amount`` records how much of
that total is tax.
"""

from decimal import Decimal
from typing import List, NamedTuple, Optional
import uuid

from sqlalchemy import update
from sqlmodel import Field, Session, SQLModel, select
import structlog

from chalkboard.core.config import get_settings
from chalkboard.core.database import atomic
from chalkboard.core.datetime_utils import utcnow
from chalkboard.core.errors import ConflictError, InvalidArgumentError, NotFoundError
from chalkboard.models import (
    BillingMode, FnbOrder, FnbOrderStatus, ORDER_TRANSITIONS, Payment, PaymentStatus,
    PricingPackage, Table, TableSession, TableSessionStatus, TableStatus
)
from chalkboard.services.pricing import (
    billable_hours, billable_minutes, compute_table_cost, elapsed_minutes, table_rate
)
from chalkboard.services.sessions import (
    find_active_session_for_table, parse_billing_mode, require_duration
)
from chalkboard.services.settings import SettingsRepository
from chalkboard.services.tax import TaxSettings, calculate_tax, format_tax_label
from chalkboard.services.utils import generate_reference, guarded_update, money

logger = structlog.get_logger(__name__)
settings = get_settings()

ZERO = Decimal("0.00")


class BillingBreakdown(SQLModel):
    """How a session's bill was put together"""
    duration_type: BillingMode
    actual_duration: int = Field(description="Billable minutes")
    billable_units: int = Field(description="Hours for hourly billing, minutes for per-minute billing")
    rate: Decimal
    package_name: Optional[str] = None
    table_cost: Decimal
    table_tax: Decimal
    fnb_total: Decimal
    fnb_tax: Decimal
    tax_label: str
    total: Decimal


class EndSessionResult(NamedTuple):
    session: TableSession
    payment: Payment
    billing: BillingBreakdown
    orders: List[FnbOrder]


class RecalculationResult(NamedTuple):
    session: TableSession
    payment: Optional[Payment]
    billing: BillingBreakdown


class PaymentStatusResult(NamedTuple):
    payment: Payment
    previous_status: PaymentStatus
    orders_updated: int


class PaymentDetail(NamedTuple):
    payment: Payment
    sessions: List[TableSession]
    orders: List[FnbOrder]


def build_breakdown(
    table: Table,
    package: Optional[PricingPackage],
    mode: BillingMode,
    minutes: int,
    orders: List[FnbOrder],
    tax_settings: TaxSettings,
) -> BillingBreakdown:
    rate = table_rate(table, package, mode)
    table_cost = compute_table_cost(minutes, mode, rate)
    table_tax = calculate_tax(table_cost, tax_settings, is_table_charge=True)
    fnb_total = money(sum((Decimal(o.total) for o in orders), ZERO))
    fnb_tax = money(sum((Decimal(o.tax) for o in orders), ZERO))

    return BillingBreakdown(
        duration_type=mode,
        actual_duration=minutes,
        billable_units=billable_hours(minutes) if mode == BillingMode.HOURLY else minutes,
        rate=rate,
        package_name=package.name if package else None,
        table_cost=table_cost,
        table_tax=table_tax,
        fnb_total=fnb_total,
        fnb_tax=fnb_tax,
        tax_label=format_tax_label(tax_settings),
        total=table_cost + table_tax + fnb_total,
    )


def _apply_breakdown(payment: Payment, billing: BillingBreakdown) -> None:
    payment.set_components(billing.table_cost + billing.table_tax, billing.fnb_total)
    payment.tax_amount = billing.table_tax + billing.fnb_tax


def open_payment(
    session: Session,
    table_amount: Decimal,
    fnb_amount: Decimal,
    tax_amount: Decimal = ZERO,
    customer_name: Optional[str] = None,
    customer_phone: Optional[str] = None,
    staff_id: Optional[uuid.UUID] = None,
    payment_methods: Optional[List[dict]] = None,
) -> Payment:
    """Add a new pending payment to the current unit of work"""
    payment = Payment(
        transaction_number=generate_reference("TXN"),
        customer_name=customer_name,
        customer_phone=customer_phone,
        tax_amount=tax_amount,
        currency=settings.CURRENCY,
        staff_id=staff_id,
        status=PaymentStatus.PENDING,
    )
    payment.set_components(money(table_amount), money(fnb_amount))
    if payment_methods:
        payment.payment_methods = [
            {"type": m["type"], "amount": str(money(m["amount"]))} for m in payment_methods
        ]
    else:
        payment.single_method("cash")

    session.add(payment)
    session.flush()
    return payment


def _package_for(session: Session, table_session: TableSession) -> Optional[PricingPackage]:
    if table_session.pricing_package_id is None:
        return None
    return session.get(PricingPackage, table_session.pricing_package_id)


def end_session(session: Session, session_id: uuid.UUID) -> EndSessionResult:
    """Stop the clock, bill table time plus pending orders, free the table"""
    tax_settings = SettingsRepository(session).get_tax_settings()

    with atomic(session):
        table_session = session.exec(
            select(TableSession)
            .where(
                TableSession.id == session_id,
                TableSession.status == TableSessionStatus.ACTIVE,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        ).first()
        if table_session is None:
            raise NotFoundError("No active session found")

        table = session.get(Table, table_session.table_id)
        if table is None:
            raise NotFoundError("Table not found")
        package = _package_for(session, table_session)

        now = utcnow()
        mode = table_session.duration_type
        clock_minutes = elapsed_minutes(table_session.start_time, now)
        if table_session.actual_duration is not None:
            minutes = table_session.actual_duration
        elif mode == BillingMode.PER_MINUTE:
            minutes = billable_minutes(table_session.start_time, now)
        else:
            minutes = clock_minutes

        orders = list(session.exec(
            select(FnbOrder).where(
                FnbOrder.table_id == table_session.table_id,
                FnbOrder.status == FnbOrderStatus.PENDING,
            )
        ).all())

        billing = build_breakdown(table, package, mode, minutes, orders, tax_settings)

        payment = None
        if table_session.payment_id:
            payment = session.get(Payment, table_session.payment_id, populate_existing=True)
            if payment is not None and not payment.is_pending():
                payment = None
        if payment is None:
            payment = open_payment(
                session,
                table_amount=ZERO,
                fnb_amount=ZERO,
                customer_name=table_session.customer_name,
                customer_phone=table_session.customer_phone,
                staff_id=table_session.staff_id,
            )
        _apply_breakdown(payment, billing)
        payment.single_method("cash")
        session.add(payment)
        session.flush()

        if orders:
            linked = guarded_update(
                session,
                update(FnbOrder)
                .where(
                    FnbOrder.id.in_([o.id for o in orders]),
                    FnbOrder.status == FnbOrderStatus.PENDING,
                )
                .values(payment_id=payment.id, status=FnbOrderStatus.BILLED)
            )
            if linked != len(orders):
                raise ConflictError("F&B orders changed while ending the session, try again")

        table_session.transition_to(TableSessionStatus.COMPLETED)
        table_session.end_time = now
        table_session.snapshot_original_duration(clock_minutes)
        table_session.actual_duration = minutes
        table_session.total_cost = payment.total_amount
        table_session.payment_id = payment.id
        session.add(table_session)

        guarded_update(
            session,
            update(Table)
            .where(Table.id == table_session.table_id)
            .values(status=TableStatus.AVAILABLE, updated_at=now)
        )

    session.refresh(table_session)
    session.refresh(payment)
    for order in orders:
        session.refresh(order)

    logger.info(
        f"Ended session {session_id}: {minutes} min {mode.value}, "
        f"table {billing.table_cost} + tax {billing.table_tax}, F&B {billing.fnb_total}, "
        f"payment {payment.transaction_number} total {payment.total_amount}"
    )
    return EndSessionResult(session=table_session, payment=payment, billing=billing, orders=orders)


def end_table_session(session: Session, table_id: uuid.UUID) -> EndSessionResult:
    """End whichever session is active on a table"""
    table = session.get(Table, table_id)
    if table is None:
        raise NotFoundError("Table not found")

    table_session = find_active_session_for_table(session, table_id)
    if table_session is None:
        raise NotFoundError("No active session found")
    return end_session(session, table_session.id)


def recalculate_billing(
    session: Session,
    session_id: uuid.UUID,
    actual_duration,
    duration_type,
) -> RecalculationResult:
    """Re-price a completed session after a manual correction.

    F&B is taken from every order billed on the session's payment, and the
    payment components are rewritten so its total stays consistent.
    """
    mode = parse_billing_mode(duration_type)
    minutes = require_duration(actual_duration)
    tax_settings = SettingsRepository(session).get_tax_settings()

    with atomic(session):
        table_session = session.exec(
            select(TableSession)
            .where(
                TableSession.id == session_id,
                TableSession.status == TableSessionStatus.COMPLETED,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        ).first()
        if table_session is None:
            raise NotFoundError("Completed session not found")

        table = session.get(Table, table_session.table_id)
        if table is None:
            raise NotFoundError("Table not found")

        orders = []
        payment = None
        if table_session.payment_id:
            payment = session.get(Payment, table_session.payment_id, populate_existing=True)
            orders = list(session.exec(
                select(FnbOrder).where(FnbOrder.payment_id == table_session.payment_id)
            ).all())

        billing = build_breakdown(
            table, _package_for(session, table_session), mode, minutes, orders, tax_settings
        )

        table_session.actual_duration = minutes
        table_session.duration_type = mode
        table_session.total_cost = billing.total
        session.add(table_session)

        if payment is not None:
            _apply_breakdown(payment, billing)
            session.add(payment)

    session.refresh(table_session)
    if payment is not None:
        session.refresh(payment)

    logger.info(
        f"Recalculated session {session_id}: {minutes} min {mode.value}, total {billing.total}"
    )
    return RecalculationResult(session=table_session, payment=payment, billing=billing)


def parse_payment_status(value) -> PaymentStatus:
    try:
        return PaymentStatus(value)
    except ValueError:
        raise InvalidArgumentError(
            "Invalid status. Must be one of: " + ", ".join(s.value for s in PaymentStatus)
        )


def update_payment_status(
    session: Session,
    payment_id: uuid.UUID,
    status,
    payment_method: Optional[str] = None,
) -> PaymentStatusResult:
    """Settle, fail, cancel or reopen a payment and cascade to its orders.

    Success marks every billed order paid. Cancelled or failed puts them
    back to billed; they stay committed against stock.
    """
    target = parse_payment_status(status)

    with atomic(session):
        payment = session.exec(
            select(Payment)
            .where(Payment.id == payment_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).first()
        if payment is None:
            raise NotFoundError("Payment not found")

        previous = payment.status
        payment.transition_to(target)
        if payment_method:
            payment.single_method(payment_method)
        session.add(payment)

        order_target = None
        if target == PaymentStatus.SUCCESS:
            order_target = FnbOrderStatus.PAID
        elif target in (PaymentStatus.CANCELLED, PaymentStatus.FAILED):
            order_target = FnbOrderStatus.BILLED

        orders_updated = 0
        if order_target is not None:
            orders_updated = guarded_update(
                session,
                update(FnbOrder)
                .where(
                    FnbOrder.payment_id == payment_id,
                    FnbOrder.status.in_(ORDER_TRANSITIONS.sources(order_target)),
                )
                .values(status=order_target)
            )

    session.refresh(payment)
    logger.info(
        f"Payment {payment.transaction_number} {previous.value} -> {target.value}, "
        f"{orders_updated} orders updated"
    )
    return PaymentStatusResult(payment=payment, previous_status=previous, orders_updated=orders_updated)


def get_payment_detail(session: Session, payment_id: uuid.UUID) -> PaymentDetail:
    payment = session.get(Payment, payment_id)
    if payment is None:
        raise NotFoundError("Payment not found")

    sessions = session.exec(
        select(TableSession).where(TableSession.payment_id == payment_id)
    ).all()
    orders = session.exec(
        select(FnbOrder).where(FnbOrder.payment_id == payment_id).order_by(FnbOrder.created_at)
    ).all()
    return PaymentDetail(payment=payment, sessions=list(sessions), orders=list(orders))


def list_payments(
    session: Session,
    status: Optional[PaymentStatus] = None,
    limit: int = 100,
) -> List[Payment]:
    query = select(Payment)
    if status:
        query = query.where(Payment.status == status)
    query = query.order_by(Payment.created_at.desc()).limit(limit)
    return list(session.exec(query).all())
