"""
RBAC (Role-Based Access Control) permission system
"""

from enum import Enum
from typing import Set

from fastapi import Depends
import structlog

from chalkboard.core.dependencies import Identity, get_current_identity
from chalkboard.core.errors import ForbiddenError

logger = structlog.get_logger(__name__)


class Permission(str, Enum):
    """Permission definitions"""
    # Floor configuration
    TABLES_EDIT = "tables:edit"
    PRICING_EDIT = "pricing:edit"

    # Menu and stock
    MENU_EDIT = "menu:edit"
    STOCK_ADJUST = "stock:adjust"

    # Billing corrections after the fact
    BILLING_ADJUST = "billing:adjust"

    # Administration
    SETTINGS_EDIT = "settings:edit"
    STAFF_MANAGE = "staff:manage"


# Role permission mapping
ROLE_PERMISSIONS = {
    "admin": set(Permission),
    "manager": {
        Permission.TABLES_EDIT,
        Permission.PRICING_EDIT,
        Permission.MENU_EDIT,
        Permission.STOCK_ADJUST,
        Permission.BILLING_ADJUST,
        Permission.STAFF_MANAGE,
    },
    "cashier": {Permission.BILLING_ADJUST},
    "staff": set(),
}


def get_permissions_for_role(role: str) -> Set[Permission]:
    """Get permissions for a given role"""
    return ROLE_PERMISSIONS.get((role or "").lower(), set())


def has_permission(required_permission: Permission, user_permissions: Set[Permission]) -> bool:
    """Check if user has required permission"""
    return required_permission in user_permissions


def require_permission(required_permission: Permission):
    """Dependency factory to check permissions"""
    def check_permission(identity: Identity = Depends(get_current_identity)) -> Identity:
        if not has_permission(required_permission, get_permissions_for_role(identity.role)):
            logger.warning(f"Staff {identity.staff_id} ({identity.role}) lacks {required_permission.value}")
            raise ForbiddenError(f"Permission required: {required_permission.value}")
        return identity
    return check_permission
