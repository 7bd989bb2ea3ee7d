"""
Table sessions API endpoints
"""

from fastapi import APIRouter, Depends
from sqlmodel import Session
from typing import List, Optional
import structlog
import uuid

from chalkboard.core.database import get_session
from chalkboard.core.dependencies import Identity
from chalkboard.core.permissions import Permission, require_permission
from chalkboard.models import TableSessionStatus
from chalkboard.api.schemas import (
    DurationRequest, MoveSessionResponse, MoveTableRequest, RecalculationResponse,
    TableSessionRead
)
from chalkboard.services import billing, sessions

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.get("/", response_model=List[TableSessionRead])
async def list_sessions(
    status: Optional[TableSessionStatus] = None,
    table_id: Optional[uuid.UUID] = None,
    limit: int = 100,
    session: Session = Depends(get_session)
):
    """List sessions, newest first"""
    return sessions.list_sessions(session, status=status, table_id=table_id, limit=limit)


@router.get("/{session_id}", response_model=TableSessionRead)
async def get_session_by_id(
    session_id: uuid.UUID,
    session: Session = Depends(get_session)
):
    """Get table session by ID"""
    return sessions.get_table_session(session, session_id)


@router.post("/{session_id}/move-table", response_model=MoveSessionResponse)
async def move_table(
    session_id: uuid.UUID,
    request: MoveTableRequest,
    session: Session = Depends(get_session)
):
    """Move an active session and its pending orders to another table"""
    return sessions.move_session(session, session_id, request.new_table_id)._asdict()


@router.post("/{session_id}/update-duration", response_model=TableSessionRead)
async def update_duration(
    session_id: uuid.UUID,
    request: DurationRequest,
    session: Session = Depends(get_session)
):
    """Override the billable duration of an active session"""
    return sessions.update_duration(
        session,
        session_id,
        duration_type=request.duration_type,
        actual_duration=request.actual_duration,
    )


@router.post("/{session_id}/recalculate-billing", response_model=RecalculationResponse)
async def recalculate_billing(
    session_id: uuid.UUID,
    request: DurationRequest,
    identity: Identity = Depends(require_permission(Permission.BILLING_ADJUST)),
    session: Session = Depends(get_session)
):
    """Re-price a completed session"""
    result = billing.recalculate_billing(
        session,
        session_id,
        actual_duration=request.actual_duration,
        duration_type=request.duration_type,
    )
    logger.info(f"Billing for session {session_id} adjusted by {identity.staff_id}")
    return result._asdict()


@router.post("/{session_id}/cancel", response_model=TableSessionRead)
async def cancel_session(
    session_id: uuid.UUID,
    session: Session = Depends(get_session)
):
    """Cancel an active session without billing"""
    return sessions.cancel_session(session, session_id)
