"""
Payments API endpoints
"""

from fastapi import APIRouter, Depends
from sqlmodel import Session
from typing import List, Optional
import structlog
import uuid

from chalkboard.core.database import get_session
from chalkboard.core.dependencies import get_current_staff_id
from chalkboard.models import PaymentStatus
from chalkboard.api.schemas import (
    PaymentDetailResponse, PaymentRead, PaymentStatusRequest, PaymentStatusResponse,
    order_payload
)
from chalkboard.services import billing

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.get("/", response_model=List[PaymentRead])
async def list_payments(
    status: Optional[PaymentStatus] = None,
    limit: int = 100,
    session: Session = Depends(get_session)
):
    """List payments, newest first"""
    return billing.list_payments(session, status=status, limit=limit)


@router.get("/{payment_id}", response_model=PaymentDetailResponse)
async def get_payment(
    payment_id: uuid.UUID,
    session: Session = Depends(get_session)
):
    """Payment with the sessions and orders billed on it"""
    detail = billing.get_payment_detail(session, payment_id)
    return {
        "payment": detail.payment,
        "sessions": detail.sessions,
        "orders": [order_payload(order) for order in detail.orders],
    }


@router.put("/{payment_id}", response_model=PaymentStatusResponse)
async def update_payment_status(
    payment_id: uuid.UUID,
    request: PaymentStatusRequest,
    current_staff_id: uuid.UUID = Depends(get_current_staff_id),
    session: Session = Depends(get_session)
):
    """Settle, fail, cancel or reopen a payment"""
    result = billing.update_payment_status(
        session,
        payment_id,
        status=request.status,
        payment_method=request.payment_method,
    )
    logger.info(f"Payment {payment_id} set to {result.payment.status.value} by {current_staff_id}")
    return result._asdict()
