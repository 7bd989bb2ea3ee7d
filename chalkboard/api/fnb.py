"""
F&B API endpoints
Menu catalog, stock, and the order lifecycle from draft to payment
"""

from fastapi import APIRouter, Depends, status
from sqlmodel import Session, select
from typing import List, Optional
import structlog
import uuid

from chalkboard.core.database import get_session
from chalkboard.core.datetime_utils import utcnow
from chalkboard.core.dependencies import Identity, get_current_staff_id
from chalkboard.core.errors import ChalkboardError, InternalError, NotFoundError
from chalkboard.core.permissions import Permission, require_permission
from chalkboard.models import FnbCategory, FnbItem, FnbOrderStatus
from chalkboard.api.schemas import (
    AssignTableRequest, AssignTransactionRequest, CheckoutRequest, DraftOrderRead,
    FnbCategoryCreate, FnbCategoryUpdate, FnbItemCreate, FnbItemUpdate, FnbOrderRead,
    OrderCreateRequest, OrderCreateResponse, PaymentRead, RestockRequest, order_payload
)
from chalkboard.services import fnb_orders

logger = structlog.get_logger(__name__)
router = APIRouter()


# ============================================================================
# Categories
# ============================================================================

@router.get("/categories", response_model=List[FnbCategory])
async def list_categories(
    include_inactive: bool = False,
    session: Session = Depends(get_session)
):
    """List F&B categories"""
    query = select(FnbCategory)
    if not include_inactive:
        query = query.where(FnbCategory.is_active == True)
    return session.exec(query.order_by(FnbCategory.name)).all()


@router.post("/categories", response_model=FnbCategory, status_code=status.HTTP_201_CREATED)
async def create_category(
    category_data: FnbCategoryCreate,
    identity: Identity = Depends(require_permission(Permission.MENU_EDIT)),
    session: Session = Depends(get_session)
):
    """Create an F&B category"""
    try:
        category = FnbCategory(**category_data.model_dump())
        session.add(category)
        session.commit()
        session.refresh(category)

        logger.info(f"Created F&B category {category.id}")
        return category

    except Exception as e:
        session.rollback()
        logger.error(f"Error creating F&B category: {e}")
        raise InternalError("Failed to create F&B category")


@router.put("/categories/{category_id}", response_model=FnbCategory)
async def update_category(
    category_id: uuid.UUID,
    category_data: FnbCategoryUpdate,
    identity: Identity = Depends(require_permission(Permission.MENU_EDIT)),
    session: Session = Depends(get_session)
):
    """Update an F&B category"""
    category = session.get(FnbCategory, category_id)
    if not category:
        raise NotFoundError("F&B category not found")

    for key, value in category_data.model_dump(exclude_unset=True).items():
        setattr(category, key, value)
    session.add(category)
    session.commit()
    session.refresh(category)
    return category


# ============================================================================
# Items
# ============================================================================

@router.get("/items", response_model=List[FnbItem])
async def list_items(
    category_id: Optional[uuid.UUID] = None,
    low_stock: bool = False,
    include_inactive: bool = False,
    session: Session = Depends(get_session)
):
    """List menu items, optionally only those at or below their minimum stock"""
    query = select(FnbItem)
    if category_id:
        query = query.where(FnbItem.category_id == category_id)
    if not include_inactive:
        query = query.where(FnbItem.is_active == True)
    if low_stock:
        query = query.where(FnbItem.stock_quantity <= FnbItem.min_stock_level)
    return session.exec(query.order_by(FnbItem.name)).all()


@router.post("/items", response_model=FnbItem, status_code=status.HTTP_201_CREATED)
async def create_item(
    item_data: FnbItemCreate,
    identity: Identity = Depends(require_permission(Permission.MENU_EDIT)),
    session: Session = Depends(get_session)
):
    """Create a menu item"""
    if session.get(FnbCategory, item_data.category_id) is None:
        raise NotFoundError("F&B category not found")

    try:
        item = FnbItem(**item_data.model_dump())
        session.add(item)
        session.commit()
        session.refresh(item)

        logger.info(f"Created F&B item {item.id} ({item.name})")
        return item

    except ChalkboardError:
        raise
    except Exception as e:
        session.rollback()
        logger.error(f"Error creating F&B item: {e}")
        raise InternalError("Failed to create F&B item")


@router.put("/items/{item_id}", response_model=FnbItem)
async def update_item(
    item_id: uuid.UUID,
    item_data: FnbItemUpdate,
    identity: Identity = Depends(require_permission(Permission.MENU_EDIT)),
    session: Session = Depends(get_session)
):
    """Update a menu item; stock changes go through restock"""
    item = session.get(FnbItem, item_id)
    if not item:
        raise NotFoundError("F&B item not found")

    changes = item_data.model_dump(exclude_unset=True)
    if changes.get("category_id") and session.get(FnbCategory, changes["category_id"]) is None:
        raise NotFoundError("F&B category not found")

    for key, value in changes.items():
        setattr(item, key, value)
    item.updated_at = utcnow()
    session.add(item)
    session.commit()
    session.refresh(item)
    return item


@router.post("/items/{item_id}/restock", response_model=FnbItem)
async def restock_item(
    item_id: uuid.UUID,
    request: RestockRequest,
    identity: Identity = Depends(require_permission(Permission.STOCK_ADJUST)),
    session: Session = Depends(get_session)
):
    """Add delivered stock to an item"""
    return fnb_orders.restock_item(session, item_id, request.quantity)


# ============================================================================
# Orders
# ============================================================================

@router.get("/orders", response_model=List[FnbOrderRead])
async def list_orders(
    status: Optional[FnbOrderStatus] = None,
    limit: int = 100,
    session: Session = Depends(get_session)
):
    """List F&B orders, newest first"""
    return [order_payload(o) for o in fnb_orders.list_orders(session, status=status, limit=limit)]


@router.post("/orders", response_model=OrderCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_order(
    request: OrderCreateRequest,
    current_staff_id: uuid.UUID = Depends(get_current_staff_id),
    session: Session = Depends(get_session)
):
    """Create a draft, table or standalone order"""
    order, payment = fnb_orders.create_order(
        session,
        context=request.context,
        customer_name=request.customer_name,
        staff_id=request.staff_id or current_staff_id,
        items=[line.model_dump() for line in request.items],
        customer_phone=request.customer_phone,
        table_id=request.table_id,
        notes=request.notes,
    )
    return {"order": order_payload(order), "payment": payment}


@router.get("/orders/drafts", response_model=List[DraftOrderRead])
async def list_drafts(
    search: Optional[str] = None,
    customer_phone: Optional[str] = None,
    session: Session = Depends(get_session)
):
    """Draft orders, searchable by customer name or order number"""
    drafts = fnb_orders.list_drafts(session, search=search, customer_phone=customer_phone)
    return [{**order_payload(order), "item_count": count} for order, count in drafts]


@router.post("/orders/checkout", response_model=PaymentRead, status_code=status.HTTP_201_CREATED)
async def checkout_drafts(
    request: CheckoutRequest,
    current_staff_id: uuid.UUID = Depends(get_current_staff_id),
    session: Session = Depends(get_session)
):
    """Check one or more drafts out into a new payment"""
    return fnb_orders.checkout_drafts(
        session,
        order_ids=request.order_ids,
        staff_id=request.staff_id or current_staff_id,
        customer_name=request.customer_name,
        customer_phone=request.customer_phone,
        payment_methods=(
            [m.model_dump() for m in request.payment_methods] if request.payment_methods else None
        ),
    )


@router.get("/orders/{order_id}", response_model=FnbOrderRead)
async def get_order(
    order_id: uuid.UUID,
    session: Session = Depends(get_session)
):
    """Get an order with its line items"""
    return order_payload(fnb_orders.get_order(session, order_id))


@router.post("/orders/{order_id}/assign", response_model=FnbOrderRead)
async def assign_to_table(
    order_id: uuid.UUID,
    request: AssignTableRequest,
    session: Session = Depends(get_session)
):
    """Serve a draft order to a table with an active session"""
    order = fnb_orders.assign_to_table(session, order_id, request.table_id, request.staff_id)
    return order_payload(order)


@router.post("/orders/{order_id}/assign-transaction", response_model=FnbOrderRead)
async def assign_to_transaction(
    order_id: uuid.UUID,
    request: AssignTransactionRequest,
    session: Session = Depends(get_session)
):
    """Add a draft order to an open payment"""
    order = fnb_orders.assign_to_pending_transaction(
        session, order_id, request.transaction_id, request.staff_id
    )
    return order_payload(order)


@router.get("/pending-transactions", response_model=List[PaymentRead])
async def list_pending_transactions(
    session: Session = Depends(get_session)
):
    """Payments still open for more orders"""
    return fnb_orders.list_pending_transactions(session)
