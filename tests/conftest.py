"""
Test configuration for pytest
"""

import pytest
import os
from decimal import Decimal
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session
from fastapi.testclient import TestClient
from typing import Generator

# Test environment variables
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["JWT_SECRET_KEY"] = "test-jwt-secret"

from chalkboard.core.auth import create_access_token  # noqa: E402
from chalkboard.core.database import get_session  # noqa: E402
from chalkboard.models import (  # noqa: E402
    BillingMode, FnbCategory, FnbItem, PricingPackage, Staff, Table
)


# One in-memory SQLite database shared by every connection of the test
test_engine = create_engine(
    "sqlite://",
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Create a clean database session for each test"""
    SQLModel.metadata.create_all(test_engine)

    with Session(test_engine, expire_on_commit=False) as session:
        yield session

    SQLModel.metadata.drop_all(test_engine)


@pytest.fixture
def client(db: Session) -> Generator[TestClient, None, None]:
    """API client whose requests run on the test session"""
    from chalkboard.main import app

    def override_get_session():
        yield db

    app.dependency_overrides[get_session] = override_get_session
    yield TestClient(app)
    app.dependency_overrides.clear()


# ============================================================================
# Staff and auth
# ============================================================================

@pytest.fixture
def admin(db: Session) -> Staff:
    staff = Staff(name="Admin", role="admin")
    db.add(staff)
    db.commit()
    return staff


@pytest.fixture
def waiter(db: Session) -> Staff:
    staff = Staff(name="Budi", role="staff")
    db.add(staff)
    db.commit()
    return staff


@pytest.fixture
def admin_headers(admin: Staff) -> dict:
    return {"Authorization": f"Bearer {create_access_token(admin.id, admin.role)}"}


@pytest.fixture
def staff_headers(waiter: Staff) -> dict:
    return {"Authorization": f"Bearer {create_access_token(waiter.id, waiter.role)}"}


# ============================================================================
# Floor and menu
# ============================================================================

@pytest.fixture
def hourly_package(db: Session) -> PricingPackage:
    package = PricingPackage(
        name="Regular Hourly",
        category=BillingMode.HOURLY,
        hourly_rate=Decimal("50000.00"),
        is_default=True,
    )
    db.add(package)
    db.commit()
    return package


@pytest.fixture
def per_minute_package(db: Session) -> PricingPackage:
    package = PricingPackage(
        name="Pay As You Play",
        category=BillingMode.PER_MINUTE,
        per_minute_rate=Decimal("500.00"),
    )
    db.add(package)
    db.commit()
    return package


def make_table(db: Session, name: str, hourly_rate: str = "40000.00", **kwargs) -> Table:
    table = Table(name=name, hourly_rate=Decimal(hourly_rate), **kwargs)
    db.add(table)
    db.commit()
    return table


@pytest.fixture
def table(db: Session) -> Table:
    return make_table(db, "Table 1")


@pytest.fixture
def other_table(db: Session) -> Table:
    return make_table(db, "Table 2")


@pytest.fixture
def category(db: Session) -> FnbCategory:
    category = FnbCategory(name="Drinks")
    db.add(category)
    db.commit()
    return category


@pytest.fixture
def menu_item(db: Session, category: FnbCategory) -> FnbItem:
    """Item priced 10000 with 5 in stock"""
    item = FnbItem(
        category_id=category.id,
        name="Iced Tea",
        price=Decimal("10000.00"),
        stock_quantity=5,
        min_stock_level=2,
    )
    db.add(item)
    db.commit()
    return item
