"""Query-level tests against a real (in-memory SQLite) database.

The service tests mock the repositories; these run the actual filters.
"""
import pytest
import pytest_asyncio
from datetime import datetime, timedelta
from decimal import Decimal
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.core.exceptions import PaymentRequiredError
from app.models import (
    AddonPackage,
    Appointment,
    Employee,
    Plan,
    Subscription,
    SubscriptionHistory,
    TenantAddon,
    Users,
    Visitor,
)
from app.models.base import Base
from app.modules.subscription.addon_service import addon_service
from app.modules.subscription.catalog_repository import plan_repository
from app.modules.subscription.counters import resource_counter
from app.modules.subscription.repository import (
    subscription_history_repository,
    subscription_repository,
    tenant_addon_repository,
)
from app.modules.subscription.service import subscription_service

NOW = datetime(2025, 3, 20, 12, 0)
SEGMENT_START = datetime(2025, 3, 15, 0, 0)
SEGMENT_END = datetime(2025, 4, 14, 23, 59, 59, 999999)


@pytest_asyncio.fixture
async def db():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_maker() as session:
        yield session
    await engine.dispose()


@pytest_asyncio.fixture
async def catalog(db):
    """Two tenants, a monthly plan with 10 visitors and a 5-visitor add-on pack."""
    db.add_all([
        Users(id=1, name="Acme", email="acme@example.com", role="admin", is_active=True),
        Users(id=2, name="Globex", email="globex@example.com", role="admin", is_active=True),
        Plan(
            id=2, name="Premium - 1 Month", plan_type="monthly", price=Decimal("1000.00"),
            tax_percentage=Decimal("18"), currency="INR", trial_days=0, employee_limit=5,
            visitor_limit=10, appointment_limit=-1, spot_pass_limit=0,
            module_visitor_invite=True, module_message=False, is_active=True, is_public=True,
        ),
        AddonPackage(
            id=1, name="Extra 5 Visitors", resource_type="visitors", unit_quantity=5,
            price=Decimal("100.00"), currency="INR", is_active=True,
        ),
    ])
    await db.commit()


def _segment(**overrides) -> Subscription:
    values = dict(
        tenant_id=1, plan_id=2, plan_type="monthly", start_date=SEGMENT_START, end_date=SEGMENT_END,
        is_active=True, is_deleted=False, payment_status="succeeded", source="self",
    )
    values.update(overrides)
    return Subscription(**values)


def _addon(**overrides) -> TenantAddon:
    values = dict(
        tenant_id=1, addon_id=1, resource_type="visitors", quantity=1, payment_status="succeeded",
        is_active=True, source="user", created_at=SEGMENT_START + timedelta(days=1),
    )
    values.update(overrides)
    return TenantAddon(**values)


# --- Add-on extras ---

@pytest.mark.asyncio
async def test_sum_valid_quantity_applies_every_filter(db, catalog):
    db.add_all([
        _addon(quantity=5),
        # Bought in the previous segment
        _addon(quantity=7, created_at=SEGMENT_START - timedelta(seconds=1)),
        _addon(quantity=11, payment_status="failed"),
        _addon(quantity=13, is_active=False),
        _addon(quantity=17, resource_type="employees"),
        _addon(quantity=19, tenant_id=2),
        # Bought on the last instant of the segment
        _addon(quantity=3, created_at=SEGMENT_END),
    ])
    # Rows predating the active flag carry NULL and still count
    await db.execute(
        insert(TenantAddon).values(
            tenant_id=1, addon_id=1, resource_type="visitors", quantity=2, payment_status="succeeded",
            is_active=None, source="user", created_at=SEGMENT_START + timedelta(days=2),
        )
    )
    await db.commit()

    total = await tenant_addon_repository.sum_valid_quantity(db, 1, "visitors", SEGMENT_START, SEGMENT_END)

    assert total == 5 + 3 + 2


@pytest.mark.asyncio
async def test_sum_valid_quantity_without_addons_is_zero(db, catalog):
    assert await tenant_addon_repository.sum_valid_quantity(db, 1, "visitors", SEGMENT_START, SEGMENT_END) == 0


# --- Usage counters ---

@pytest.mark.asyncio
async def test_count_appointments_includes_employee_bookings(db, catalog):
    inside = SEGMENT_START + timedelta(days=2)
    db.add_all([
        Employee(id=1, tenant_id=1, status="Active", is_deleted=False, created_at=inside),
        Employee(id=2, tenant_id=2, status="Active", is_deleted=False, created_at=inside),
    ])
    await db.flush()
    db.add_all([
        Appointment(tenant_id=1, employee_id=None, is_deleted=False, created_at=inside),
        Appointment(tenant_id=None, employee_id=1, is_deleted=False, created_at=inside),
        # Matches both branches and still counts once
        Appointment(tenant_id=1, employee_id=1, is_deleted=False, created_at=SEGMENT_END),
        Appointment(tenant_id=None, employee_id=2, is_deleted=False, created_at=inside),
        Appointment(tenant_id=1, employee_id=None, is_deleted=True, created_at=inside),
        Appointment(tenant_id=1, employee_id=None, is_deleted=False, created_at=SEGMENT_START - timedelta(days=1)),
    ])
    await db.commit()

    assert await resource_counter.count_appointments(db, 1, SEGMENT_START, SEGMENT_END) == 3
    assert await resource_counter.count_appointments(db, 2, SEGMENT_START, SEGMENT_END) == 1


@pytest.mark.asyncio
async def test_count_employees_counts_active_seats_regardless_of_age(db, catalog):
    db.add_all([
        Employee(tenant_id=1, status="Active", is_deleted=False, created_at=datetime(2023, 1, 1)),
        Employee(tenant_id=1, status="Active", is_deleted=False, created_at=NOW),
        Employee(tenant_id=1, status="Inactive", is_deleted=False, created_at=NOW),
        Employee(tenant_id=1, status="Active", is_deleted=True, created_at=NOW),
        Employee(tenant_id=2, status="Active", is_deleted=False, created_at=NOW),
    ])
    await db.commit()

    assert await resource_counter.count_employees(db, 1) == 2
    assert await resource_counter.count(db, 1, "employees", SEGMENT_START, SEGMENT_END) == 2


@pytest.mark.asyncio
async def test_count_visitors_window_bounds_are_inclusive(db, catalog):
    db.add_all([
        Visitor(tenant_id=1, is_deleted=False, created_at=SEGMENT_START),
        Visitor(tenant_id=1, is_deleted=False, created_at=SEGMENT_END),
        Visitor(tenant_id=1, is_deleted=False, created_at=SEGMENT_END + timedelta(microseconds=1)),
        Visitor(tenant_id=1, is_deleted=True, created_at=NOW),
        Visitor(tenant_id=2, is_deleted=False, created_at=NOW),
    ])
    await db.commit()

    assert await resource_counter.count_visitors(db, 1, SEGMENT_START, SEGMENT_END) == 2


# --- Current segment ---

@pytest.mark.asyncio
async def test_get_current_picks_the_segment_covering_now(db, catalog):
    previous = _segment(start_date=datetime(2025, 2, 15), end_date=SEGMENT_START - timedelta(microseconds=1))
    current = _segment()
    chained = _segment(start_date=SEGMENT_END + timedelta(microseconds=1), end_date=datetime(2025, 5, 14, 23, 59, 59, 999999))
    # Later starts would win the ordering if the filters let them through
    deleted = _segment(start_date=datetime(2025, 3, 18), is_deleted=True)
    cancelled = _segment(start_date=datetime(2025, 3, 19), is_active=False, payment_status="cancelled")
    other_tenant = _segment(tenant_id=2, start_date=datetime(2025, 3, 19, 6, 0))
    db.add_all([previous, current, chained, deleted, cancelled, other_tenant])
    await db.commit()

    found = await subscription_repository.get_current(db, 1, NOW)
    assert found.id == current.id
    assert found.plan.name == "Premium - 1 Month"

    assert (await subscription_repository.get_current(db, 1, SEGMENT_END)).id == current.id
    assert (await subscription_repository.get_current(db, 1, SEGMENT_END + timedelta(microseconds=1))).id == chained.id
    assert (await subscription_repository.get_current(db, 1, SEGMENT_START)).id == current.id


@pytest.mark.asyncio
async def test_get_current_returns_none_between_lapse_and_sweep(db, catalog):
    db.add(_segment(end_date=datetime(2025, 3, 19, 23, 59, 59, 999999)))
    await db.commit()

    assert await subscription_repository.get_current(db, 1, NOW) is None


@pytest.mark.asyncio
async def test_list_live_keeps_future_segments(db, catalog):
    current = _segment()
    chained = _segment(start_date=SEGMENT_END + timedelta(microseconds=1), end_date=datetime(2025, 5, 14, 23, 59, 59, 999999))
    lapsed = _segment(start_date=datetime(2025, 2, 15), end_date=SEGMENT_START - timedelta(microseconds=1))
    db.add_all([current, chained, lapsed])
    await db.commit()

    live = await subscription_repository.list_live(db, 1, NOW)

    assert [s.id for s in live] == [current.id, chained.id]


# --- Expiry sweep ---

@pytest.mark.asyncio
async def test_expire_lapsed_marks_only_ended_active_segments(db, catalog):
    ends_now = _segment(end_date=NOW)
    ended = _segment(start_date=datetime(2025, 2, 1), end_date=datetime(2025, 2, 28, 23, 59, 59, 999999))
    running = _segment(end_date=NOW + timedelta(microseconds=1))
    cancelled = _segment(end_date=datetime(2025, 3, 1), is_active=False, payment_status="cancelled")
    db.add_all([ends_now, ended, running, cancelled])
    await db.commit()

    expired_ids = await subscription_repository.expire_lapsed(db, NOW)
    await db.commit()

    assert sorted(expired_ids) == sorted([ends_now.id, ended.id])
    for segment in (ends_now, ended, running, cancelled):
        await db.refresh(segment)
    assert (ends_now.is_active, ends_now.payment_status) == (False, "failed")
    assert (ended.is_active, ended.payment_status) == (False, "failed")
    assert (running.is_active, running.payment_status) == (True, "succeeded")
    assert cancelled.payment_status == "cancelled"

    assert await subscription_repository.expire_lapsed(db, NOW) == []


# --- Reporting ---

@pytest.mark.asyncio
async def test_status_counts_and_live_counts(db, catalog):
    db.add_all([
        _segment(),
        _segment(tenant_id=2, plan_type="free", end_date=datetime(2025, 3, 21)),
        _segment(end_date=datetime(2025, 3, 1), is_active=False, payment_status="failed"),
        _segment(end_date=datetime(2025, 3, 1), is_active=False, payment_status="cancelled"),
        _segment(is_deleted=True),
    ])
    await db.commit()

    assert await subscription_repository.count_by_status(db) == {"succeeded": 2, "failed": 1, "cancelled": 1}
    assert await subscription_repository.count_live(db, NOW) == 2
    assert await subscription_repository.count_live(db, NOW, plan_type="free") == 1


@pytest.mark.asyncio
async def test_revenue_totals_skip_free_and_failed_entries(db, catalog):
    def entry(number, amount, payment_status="succeeded"):
        return SubscriptionHistory(
            tenant_id=1, plan_id=2, plan_type="monthly", invoice_number=f"INV-{number}",
            purchase_date=NOW, start_date=SEGMENT_START, end_date=SEGMENT_END, amount=amount,
            currency="INR", tax_amount=Decimal("0"), tax_percentage=Decimal("0"),
            payment_status=payment_status, remaining_days_from_previous=0, source="user",
        )

    db.add_all([
        entry(1, Decimal("1180.00")),
        entry(2, Decimal("590.00")),
        entry(3, Decimal("0")),
        entry(4, Decimal("999.00"), payment_status="failed"),
    ])
    await db.commit()

    total, average = await subscription_history_repository.revenue_totals(db)

    assert total == Decimal("1770.00")
    assert average == Decimal("885.00")


@pytest.mark.asyncio
async def test_plan_repository_lists_hidden_plans(db, catalog):
    await plan_repository.add(db, Plan(name="Legacy", plan_type="yearly", is_active=False, is_public=False, sort_order=9))
    await db.commit()

    assert [p.name for p in await plan_repository.list_public(db)] == ["Premium - 1 Month"]
    assert [p.name for p in await plan_repository.list_all(db)] == ["Premium - 1 Month", "Legacy"]


# --- End to end through the services ---

@pytest.mark.asyncio
async def test_addon_raises_visitor_limit_until_the_sixteenth(db, catalog):
    subscription = await subscription_service.create_paid_subscription(db, 1, 2, payment_id="pay_1", now=NOW)
    db.add_all([Visitor(tenant_id=1, is_deleted=False, created_at=NOW) for _ in range(10)])
    await db.commit()

    with pytest.raises(PaymentRequiredError) as exc_info:
        await subscription_service.check_plan_limits(db, 1, "visitors", now=NOW)
    assert "10" in exc_info.value.detail

    await addon_service.create_addon_subscription(db, 1, 1, "order_2", "pay_2", now=NOW)
    info = await subscription_service.check_plan_limits(db, 1, "visitors", now=NOW)
    assert (info.total, info.current, info.remaining) == (15, 10, 5)

    db.add_all([Visitor(tenant_id=1, is_deleted=False, created_at=NOW) for _ in range(5)])
    await db.commit()
    with pytest.raises(PaymentRequiredError) as exc_info:
        await subscription_service.check_plan_limits(db, 1, "visitors", now=NOW)
    assert "15" in exc_info.value.detail

    # Once the sweep runs the tenant is blocked outright and loses its pointer
    assert await subscription_service.expire_subscriptions(db, now=subscription.end_date) == 1
    tenant = await db.get(Users, 1)
    await db.refresh(tenant)
    assert tenant.active_subscription_id is None
    with pytest.raises(PaymentRequiredError) as exc_info:
        await subscription_service.check_plan_limits(db, 1, "visitors", now=subscription.end_date + timedelta(seconds=1))
    assert "expired" in exc_info.value.detail
