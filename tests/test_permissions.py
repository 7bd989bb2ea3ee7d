"""
Unit tests for RBAC permission system
"""

import pytest
import uuid

from chalkboard.core.dependencies import Identity
from chalkboard.core.errors import ForbiddenError
from chalkboard.core.permissions import (
    Permission,
    get_permissions_for_role,
    has_permission,
    require_permission
)


def test_get_permissions_for_role():
    """Test permission retrieval for all roles"""
    # Admin has all permissions
    assert get_permissions_for_role("admin") == set(Permission)

    # Manager runs the floor but cannot change hall settings
    manager_perms = get_permissions_for_role("manager")
    assert Permission.TABLES_EDIT in manager_perms
    assert Permission.STAFF_MANAGE in manager_perms
    assert Permission.SETTINGS_EDIT not in manager_perms

    # Cashier may only correct bills
    assert get_permissions_for_role("cashier") == {Permission.BILLING_ADJUST}

    # Floor staff get nothing beyond authentication
    assert get_permissions_for_role("staff") == set()


def test_unknown_role_has_no_permissions():
    assert get_permissions_for_role("owner") == set()
    assert get_permissions_for_role(None) == set()
    assert get_permissions_for_role("ADMIN") == set(Permission)


def test_has_permission():
    assert has_permission(Permission.PRICING_EDIT, get_permissions_for_role("manager"))
    assert not has_permission(Permission.MENU_EDIT, get_permissions_for_role("cashier"))


def test_require_permission_checker():
    checker = require_permission(Permission.BILLING_ADJUST)
    assert callable(checker)

    cashier = Identity(staff_id=uuid.uuid4(), role="cashier")
    assert checker(cashier) is cashier

    with pytest.raises(ForbiddenError) as exc_info:
        checker(Identity(staff_id=uuid.uuid4(), role="staff"))
    assert exc_info.value.status_code == 403
    assert "billing:adjust" in exc_info.value.message
