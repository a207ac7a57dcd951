import pytest
from datetime import datetime
from decimal import Decimal
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock
from app.main import app
from app.models import Plan, Subscription, Users
from app.core.dependencies import get_current_user, get_db
from sqlalchemy.ext.asyncio import AsyncSession


@pytest.fixture
def mock_db_session():
    return AsyncMock(spec=AsyncSession)


@pytest.fixture(autouse=True)
def override_get_db(mock_db_session):
    async def _override():
        yield mock_db_session
    app.dependency_overrides[get_db] = _override
    yield
    app.dependency_overrides.pop(get_db, None)


def _client_as(user: Users):
    app.dependency_overrides[get_current_user] = lambda: user
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.pop(get_current_user, None)


@pytest.fixture
def tenant_admin():
    return Users(id=2, name="Tenant Admin", email="admin@example.com", role="admin", is_active=True)


@pytest.fixture
def employee_user():
    return Users(id=4, name="Front Desk", email="desk@example.com", role="employee", owner_id=2, is_active=True)


@pytest.fixture
def tenant_client(tenant_admin):
    """Client authenticated as a tenant admin."""
    yield from _client_as(tenant_admin)


@pytest.fixture
def employee_client(employee_user):
    """Client authenticated as an employee of tenant 2."""
    yield from _client_as(employee_user)


@pytest.fixture
def super_admin_client():
    """Client authenticated as a super admin."""
    yield from _client_as(Users(id=3, name="Super Admin", email="root@example.com", role="super_admin", is_active=True))


@pytest.fixture
def monthly_plan():
    return Plan(
        id=2,
        name="Premium - 1 Month",
        plan_type="monthly",
        price=Decimal("1000.00"),
        tax_percentage=Decimal("18"),
        currency="INR",
        trial_days=0,
        employee_limit=5,
        visitor_limit=10,
        appointment_limit=-1,
        spot_pass_limit=0,
        module_visitor_invite=True,
        module_message=False,
        is_active=True,
        is_public=True,
        sort_order=2,
    )


@pytest.fixture
def free_plan():
    return Plan(
        id=1,
        name="Free Trial",
        plan_type="free",
        price=Decimal("0"),
        tax_percentage=Decimal("0"),
        currency="INR",
        trial_days=3,
        employee_limit=5,
        visitor_limit=50,
        appointment_limit=50,
        spot_pass_limit=10,
        module_visitor_invite=True,
        module_message=True,
        is_active=True,
        is_public=True,
        sort_order=1,
    )


@pytest.fixture
def make_subscription():
    def _make(**overrides) -> Subscription:
        values = dict(
            id=10,
            tenant_id=2,
            plan_id=2,
            plan_type="monthly",
            start_date=datetime(2025, 1, 15, 10, 0),
            end_date=datetime(2025, 2, 14, 23, 59, 59, 999999),
            is_active=True,
            is_deleted=False,
            payment_status="succeeded",
            source="self",
        )
        values.update(overrides)
        return Subscription(**values)
    return _make
