"""
Staff API endpoints
"""

from fastapi import APIRouter, Depends, status
from sqlmodel import Session, select
from typing import List
import structlog

from chalkboard.core.database import get_session
from chalkboard.core.dependencies import Identity
from chalkboard.core.errors import InvalidArgumentError
from chalkboard.core.permissions import ROLE_PERMISSIONS, Permission, require_permission
from chalkboard.models import Staff
from chalkboard.api.schemas import StaffCreate

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.get("/", response_model=List[Staff])
async def list_staff(
    include_inactive: bool = False,
    session: Session = Depends(get_session)
):
    """List staff members"""
    query = select(Staff)
    if not include_inactive:
        query = query.where(Staff.is_active == True)
    return session.exec(query.order_by(Staff.name)).all()


@router.post("/", response_model=Staff, status_code=status.HTTP_201_CREATED)
async def create_staff(
    staff_data: StaffCreate,
    identity: Identity = Depends(require_permission(Permission.STAFF_MANAGE)),
    session: Session = Depends(get_session)
):
    """Register a staff member for attribution"""
    role = staff_data.role.lower()
    if role not in ROLE_PERMISSIONS:
        raise InvalidArgumentError(f"Unknown role: {staff_data.role}")

    staff = Staff(name=staff_data.name, role=role)
    session.add(staff)
    session.commit()
    session.refresh(staff)

    logger.info(f"Staff created: {staff.id} ({role})")
    return staff
