import pytest
from datetime import datetime, timedelta
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch
from sqlalchemy.exc import IntegrityError

from app.core.exceptions import ConflictError, ForbiddenError, NotFoundError, PaymentRequiredError
from app.models import Users
from app.modules.subscription import service as service_module
from app.modules.subscription.catalog_repository import PlanRepository
from app.modules.subscription.counters import ResourceCounter
from app.modules.subscription.invoice import InvoiceNumberAllocator
from app.modules.subscription.repository import (
    SubscriptionHistoryRepository,
    SubscriptionRepository,
    TenantAddonRepository,
)
from app.modules.subscription.service import subscription_service

NOW = datetime(2025, 3, 20, 12, 0)


@pytest.fixture
def repos():
    subs = AsyncMock(spec=SubscriptionRepository)
    subs.get_by_payment_id.return_value = None
    subs.get_current.return_value = None
    subs.get_latest.return_value = None
    subs.get_latest_active.return_value = None
    subs.has_any.return_value = False
    subs.list_live.return_value = []
    subs.expire_lapsed.return_value = []

    history = AsyncMock(spec=SubscriptionHistoryRepository)
    history.get_by_payment_id.return_value = None

    addons = AsyncMock(spec=TenantAddonRepository)
    addons.sum_valid_quantity.return_value = 0

    plans = AsyncMock(spec=PlanRepository)
    plans.get.return_value = None
    plans.get_free_plan.return_value = None

    counter = AsyncMock(spec=ResourceCounter)
    counter.count.return_value = 0

    allocator = AsyncMock(spec=InvoiceNumberAllocator)
    allocator.allocate.return_value = ("INV-202503-1", {"company_name": "Acme Visitors"})

    with patch.object(service_module, "subscription_repository", subs), \
         patch.object(service_module, "subscription_history_repository", history), \
         patch.object(service_module, "tenant_addon_repository", addons), \
         patch.object(service_module, "plan_repository", plans), \
         patch.object(service_module, "resource_counter", counter), \
         patch.object(service_module, "invoice_allocator", allocator):
        yield SimpleNamespace(subs=subs, history=history, addons=addons, plans=plans, counter=counter, allocator=allocator)


@pytest.fixture
def tenant(mock_db_session, tenant_admin):
    mock_db_session.get.return_value = tenant_admin
    return tenant_admin


def _history_entry(repos):
    return repos.history.add.await_args.args[1]


# --- Limit gate ---

@pytest.mark.asyncio
async def test_check_plan_limits_allows_when_under_limit(mock_db_session, repos, tenant, monthly_plan, make_subscription):
    current = make_subscription(start_date=datetime(2025, 1, 15, 10, 0), end_date=datetime(2025, 4, 14, 23, 59))
    current.plan = monthly_plan
    repos.subs.get_current.return_value = current
    repos.counter.count.return_value = 9

    info = await subscription_service.check_plan_limits(mock_db_session, 2, "visitors", now=NOW)

    assert info.can_create is True
    assert info.total == 10
    repos.counter.count.assert_awaited_once_with(
        mock_db_session, 2, "visitors", datetime(2025, 3, 15), datetime(2025, 4, 14, 23, 59, 59, 999999)
    )


@pytest.mark.asyncio
async def test_addon_raises_limit_until_sixteenth_visitor(mock_db_session, repos, tenant, monthly_plan, make_subscription):
    current = make_subscription(start_date=datetime(2025, 3, 1), end_date=datetime(2025, 3, 31, 23, 59, 59, 999999))
    current.plan = monthly_plan
    repos.subs.get_current.return_value = current
    repos.addons.sum_valid_quantity.return_value = 5

    repos.counter.count.return_value = 14
    info = await subscription_service.check_plan_limits(mock_db_session, 2, "visitors", now=NOW)
    assert info.can_create is True

    repos.counter.count.return_value = 15
    with pytest.raises(PaymentRequiredError) as exc_info:
        await subscription_service.check_plan_limits(mock_db_session, 2, "visitors", now=NOW)
    assert exc_info.value.detail == (
        "You have reached your plan limit of 15 visitors. Please upgrade your plan or purchase an add-on."
    )
    repos.addons.sum_valid_quantity.assert_awaited_with(
        mock_db_session, 2, "visitors", current.start_date, current.end_date
    )


@pytest.mark.asyncio
async def test_expired_yesterday_blocks_creation(mock_db_session, repos, tenant, monthly_plan, make_subscription):
    lapsed = make_subscription(end_date=NOW - timedelta(days=1))
    repos.subs.get_latest.return_value = lapsed
    repos.plans.get.return_value = monthly_plan

    with pytest.raises(PaymentRequiredError) as exc_info:
        await subscription_service.check_plan_limits(mock_db_session, 2, "visitors", now=NOW)

    assert exc_info.value.detail == (
        "Your subscription has expired. Please renew your plan to continue creating visitors."
    )
    repos.addons.sum_valid_quantity.assert_not_awaited()


@pytest.mark.asyncio
async def test_unlimited_resource_is_still_blocked_when_expired(mock_db_session, repos, tenant, monthly_plan):
    repos.plans.get.return_value = monthly_plan

    with pytest.raises(PaymentRequiredError):
        await subscription_service.check_plan_limits(mock_db_session, 2, "appointments", now=NOW)


@pytest.mark.asyncio
async def test_employee_usage_is_counted_against_owning_tenant(
    mock_db_session, repos, employee_user, monthly_plan, make_subscription
):
    mock_db_session.get.return_value = employee_user
    current = make_subscription(start_date=datetime(2025, 3, 1), end_date=datetime(2025, 3, 31, 23, 59))
    current.plan = monthly_plan
    repos.subs.get_current.return_value = current
    repos.counter.count.return_value = 10

    with pytest.raises(PaymentRequiredError) as exc_info:
        await subscription_service.check_plan_limits(mock_db_session, employee_user.id, "visitors", now=NOW)

    assert "Please ask your admin to upgrade the plan." in exc_info.value.detail
    repos.subs.get_current.assert_awaited_with(mock_db_session, 2, NOW)
    assert repos.counter.count.await_args.args[1] == 2


@pytest.mark.asyncio
async def test_employee_sees_admin_renewal_message_when_expired(mock_db_session, repos, employee_user):
    mock_db_session.get.return_value = employee_user

    with pytest.raises(PaymentRequiredError) as exc_info:
        await subscription_service.check_plan_limits(mock_db_session, employee_user.id, "appointments", now=NOW)

    assert exc_info.value.detail == (
        "Your organization's subscription has expired. Please ask your admin to renew the plan."
    )


@pytest.mark.asyncio
async def test_unlinked_employee_is_forbidden(mock_db_session, repos):
    mock_db_session.get.return_value = Users(id=9, role="employee", owner_id=None, is_active=True)

    with pytest.raises(ForbiddenError) as exc_info:
        await subscription_service.check_plan_limits(mock_db_session, 9, "visitors", now=NOW)

    assert "not properly linked to an admin" in exc_info.value.detail


@pytest.mark.asyncio
async def test_employee_seats_ignore_the_window(mock_db_session, repos, tenant, monthly_plan, make_subscription):
    current = make_subscription(start_date=datetime(2025, 3, 1), end_date=datetime(2025, 3, 31, 23, 59))
    current.plan = monthly_plan
    repos.subs.get_current.return_value = current
    repos.counter.count.return_value = 5

    with pytest.raises(PaymentRequiredError) as exc_info:
        await subscription_service.check_plan_limits(mock_db_session, 2, "employees", now=NOW)

    assert "plan limit of 5 employees" in exc_info.value.detail


# --- Status & modules ---

@pytest.mark.asyncio
async def test_get_subscription_status_reports_every_resource(
    mock_db_session, repos, tenant, monthly_plan, make_subscription
):
    current = make_subscription(start_date=datetime(2025, 3, 1), end_date=datetime(2025, 3, 31, 23, 59, 59, 999999))
    current.plan = monthly_plan
    repos.subs.get_current.return_value = current
    counts = {"employees": 2, "visitors": 4, "appointments": 30, "spot_passes": 0}
    repos.counter.count.side_effect = lambda db, tenant_id, resource_type, start, end: counts[resource_type]

    status = await subscription_service.get_subscription_status(mock_db_session, 2, now=NOW)

    assert status.is_expired is False
    assert status.is_active is True
    assert status.is_trial is False
    assert status.plan_type == "monthly"
    assert status.tenant_id == 2
    assert status.days_remaining == 12
    assert status.limits["visitors"].remaining == 6
    assert status.limits["appointments"].total == -1
    assert status.limits["appointments"].can_create is True
    assert status.limits["spot_passes"].can_create is False
    assert status.modules == {"visitor_invite": True, "message": False}
    assert status.subscription.id == current.id
    assert status.plan.name == monthly_plan.name


@pytest.mark.asyncio
async def test_get_subscription_status_without_subscription_uses_calendar_month(mock_db_session, repos, tenant):
    status = await subscription_service.get_subscription_status(mock_db_session, 2, now=NOW)

    assert status.is_expired is True
    assert status.is_trial is True
    assert status.is_active is False
    assert status.plan_type is None
    assert status.window_start == datetime(2025, 3, 1)
    assert status.window_end == datetime(2025, 3, 31, 23, 59, 59, 999999)
    assert all(not limit.can_create for limit in status.limits.values())
    assert status.modules == {"visitor_invite": False, "message": False}


@pytest.mark.asyncio
async def test_status_reports_free_plan_as_trial(mock_db_session, repos, tenant, free_plan, make_subscription):
    current = make_subscription(plan_id=1, plan_type="free", start_date=NOW - timedelta(days=1), end_date=NOW + timedelta(days=2))
    current.plan = free_plan
    repos.subs.get_current.return_value = current

    status = await subscription_service.get_subscription_status(mock_db_session, 2, now=NOW)

    assert status.is_trial is True
    assert status.is_active is True
    assert status.plan_type == "free"
    assert status.days_remaining == 2


@pytest.mark.asyncio
async def test_days_remaining_runs_to_end_of_chain(mock_db_session, repos, tenant, monthly_plan, make_subscription):
    current = make_subscription(id=10, start_date=datetime(2025, 3, 1), end_date=datetime(2025, 3, 31, 23, 59, 59, 999999))
    current.plan = monthly_plan
    chained = make_subscription(id=11, start_date=datetime(2025, 4, 1), end_date=datetime(2025, 4, 30, 23, 59, 59, 999999))
    repos.subs.get_current.return_value = current
    repos.subs.list_live.return_value = [current, chained]

    status = await subscription_service.get_subscription_status(mock_db_session, 2, now=NOW)

    assert status.days_remaining == 42
    assert status.subscription.id == 10


@pytest.mark.asyncio
async def test_check_module_access(mock_db_session, repos, tenant, monthly_plan, make_subscription):
    current = make_subscription(start_date=datetime(2025, 3, 1), end_date=datetime(2025, 3, 31, 23, 59))
    current.plan = monthly_plan
    repos.subs.get_current.return_value = current

    assert await subscription_service.check_module_access(mock_db_session, 2, "visitor_invite", now=NOW) is True
    assert await subscription_service.check_module_access(mock_db_session, 2, "message", now=NOW) is False

    repos.subs.get_current.return_value = None
    assert await subscription_service.check_module_access(mock_db_session, 2, "visitor_invite", now=NOW) is False


# --- Paid segments ---

@pytest.mark.asyncio
async def test_replayed_payment_returns_existing_subscription(mock_db_session, repos, make_subscription):
    existing = make_subscription(payment_id="pay_123")
    repos.subs.get_by_payment_id.return_value = existing

    result = await subscription_service.create_paid_subscription(
        mock_db_session, 2, 2, payment_id="pay_123", now=NOW
    )

    assert result is existing
    repos.subs.add.assert_not_awaited()
    repos.history.add.assert_not_awaited()
    mock_db_session.commit.assert_not_awaited()


@pytest.mark.asyncio
async def test_replay_after_record_was_reused_is_found_through_history(mock_db_session, repos, make_subscription):
    reused = make_subscription(id=11, payment_id="pay_later")
    repos.history.get_by_payment_id.return_value = SimpleNamespace(subscription_id=11)
    repos.subs.get.return_value = reused

    result = await subscription_service.create_paid_subscription(
        mock_db_session, 2, 2, payment_id="pay_first", now=NOW
    )

    assert result is reused
    repos.subs.add.assert_not_awaited()


@pytest.mark.asyncio
async def test_new_tenant_segment_starts_now(mock_db_session, repos, tenant, monthly_plan):
    repos.plans.get.return_value = monthly_plan

    result = await subscription_service.create_paid_subscription(
        mock_db_session, 2, 2, payment_id="pay_1", payment_order_id="order_1", now=NOW
    )

    assert result.start_date == NOW
    assert result.end_date == datetime(2025, 4, 19, 23, 59, 59, 999999)
    assert result.payment_status == "succeeded"
    assert result.is_active is True
    assert result.source == "self"
    repos.subs.set_tenant_pointer.assert_awaited_once()
    entry = _history_entry(repos)
    assert entry.invoice_number == "INV-202503-1"
    assert entry.amount == Decimal("1180.00")
    assert entry.tax_amount == Decimal("180.00")
    assert entry.payment_id == "pay_1"
    assert entry.remaining_days_from_previous == 0
    mock_db_session.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_renewal_during_active_segment_is_chained(mock_db_session, repos, tenant, monthly_plan, make_subscription):
    previous = make_subscription(start_date=datetime(2025, 3, 1), end_date=datetime(2025, 3, 31, 23, 59, 59, 999999))
    repos.subs.get_latest_active.return_value = previous
    repos.subs.get_latest.return_value = previous
    repos.plans.get.return_value = monthly_plan

    result = await subscription_service.create_paid_subscription(
        mock_db_session, 2, 2, payment_id="pay_2", now=NOW
    )

    assert result is not previous
    assert result.start_date == datetime(2025, 4, 1)
    assert result.start_date > previous.end_date
    assert result.end_date == datetime(2025, 4, 30, 23, 59, 59, 999999)
    # Future-dated: the current segment keeps the tenant pointer
    repos.subs.set_tenant_pointer.assert_not_awaited()
    entry = _history_entry(repos)
    assert entry.previous_subscription_id == previous.id
    assert entry.remaining_days_from_previous == 12


@pytest.mark.asyncio
async def test_lapsed_record_is_updated_in_place(mock_db_session, repos, tenant, monthly_plan, make_subscription):
    lapsed = make_subscription(id=10, end_date=datetime(2025, 2, 14, 23, 59), payment_id="pay_old")
    repos.subs.get_latest_active.return_value = lapsed
    repos.subs.get_latest.return_value = lapsed
    repos.plans.get.return_value = monthly_plan

    result = await subscription_service.create_paid_subscription(
        mock_db_session, 2, 2, payment_id="pay_new", now=NOW
    )

    assert result is lapsed
    assert lapsed.start_date == NOW
    assert lapsed.payment_id == "pay_new"
    repos.subs.set_tenant_pointer.assert_awaited_once_with(mock_db_session, 2, 10)
    assert _history_entry(repos).previous_subscription_id is None


@pytest.mark.asyncio
async def test_concurrent_duplicate_payment_returns_winner(mock_db_session, repos, tenant, monthly_plan, make_subscription):
    winner = make_subscription(id=77, payment_id="pay_dup")
    repos.subs.get_by_payment_id.side_effect = [None, winner]
    repos.plans.get.return_value = monthly_plan
    mock_db_session.commit.side_effect = IntegrityError("INSERT", {}, Exception("duplicate payment_id"))

    result = await subscription_service.create_paid_subscription(
        mock_db_session, 2, 2, payment_id="pay_dup", now=NOW
    )

    assert result is winner
    mock_db_session.rollback.assert_awaited_once()


@pytest.mark.asyncio
async def test_integrity_error_without_winner_is_a_conflict(mock_db_session, repos, tenant, monthly_plan):
    repos.plans.get.return_value = monthly_plan
    mock_db_session.commit.side_effect = IntegrityError("INSERT", {}, Exception("duplicate invoice"))

    with pytest.raises(ConflictError):
        await subscription_service.create_paid_subscription(mock_db_session, 2, 2, payment_id="pay_x", now=NOW)


@pytest.mark.asyncio
async def test_unknown_plan_is_rejected(mock_db_session, repos, tenant):
    with pytest.raises(NotFoundError):
        await subscription_service.create_paid_subscription(mock_db_session, 2, 99, payment_id="pay_1", now=NOW)


@pytest.mark.asyncio
async def test_admin_assignment_records_zero_amount(mock_db_session, repos, tenant, monthly_plan):
    repos.plans.get.return_value = monthly_plan

    result = await subscription_service.assign_subscription(mock_db_session, 2, 2, admin_id=3, now=NOW)

    assert result.source == "admin"
    assert result.assigned_by == 3
    assert result.payment_id is None
    entry = _history_entry(repos)
    assert entry.source == "admin"
    assert entry.amount == Decimal("0.00")


@pytest.mark.asyncio
async def test_admin_assigned_free_plan_matches_trial_length(mock_db_session, repos, tenant, free_plan):
    repos.plans.get.return_value = free_plan

    result = await subscription_service.assign_subscription(mock_db_session, 2, 1, admin_id=3, now=NOW)

    assert result.start_date == NOW
    assert result.end_date == NOW + timedelta(days=3)


# --- Trial ---

@pytest.mark.asyncio
async def test_free_trial_for_new_tenant(mock_db_session, repos, tenant, free_plan):
    repos.plans.get_free_plan.return_value = free_plan

    result = await subscription_service.create_free_trial(mock_db_session, 2, payment_id="seti_1", now=NOW)

    assert result.start_date == NOW
    assert result.end_date == NOW + timedelta(days=3)
    assert result.trial_days == 3
    assert result.plan_type == "free"
    assert _history_entry(repos).amount == Decimal("0")


@pytest.mark.asyncio
async def test_free_trial_is_not_granted_twice(mock_db_session, repos, tenant, make_subscription):
    existing = make_subscription(plan_type="free")
    repos.subs.has_any.return_value = True
    repos.subs.get_latest.return_value = existing

    result = await subscription_service.create_free_trial(mock_db_session, 2, now=NOW)

    assert result is existing
    repos.subs.add.assert_not_awaited()


@pytest.mark.asyncio
async def test_free_trial_requires_configured_plan(mock_db_session, repos, tenant):
    with pytest.raises(NotFoundError):
        await subscription_service.create_free_trial(mock_db_session, 2, now=NOW)


# --- Admin operations & sweep ---

@pytest.mark.asyncio
async def test_cancel_ends_current_and_future_segments(mock_db_session, repos, monthly_plan, make_subscription):
    current = make_subscription(id=10, start_date=datetime(2025, 3, 1), end_date=datetime(2025, 3, 31, 23, 59))
    future = make_subscription(id=11, start_date=datetime(2025, 4, 1), end_date=datetime(2025, 4, 30, 23, 59))
    repos.subs.get_current.return_value = current
    repos.subs.list_live.return_value = [current, future]
    repos.plans.get.return_value = monthly_plan

    cancelled = await subscription_service.cancel_subscription(mock_db_session, 2, admin_id=3, now=NOW)

    assert [s.id for s in cancelled] == [10, 11]
    for subscription in cancelled:
        assert subscription.is_active is False
        assert subscription.end_date == NOW
        assert subscription.is_deleted is True
        assert subscription.deleted_by == 3
    assert repos.history.add.await_count == 2
    assert _history_entry(repos).amount == Decimal("0")
    repos.subs.set_tenant_pointer.assert_awaited_once_with(mock_db_session, 2, None)
    mock_db_session.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_cancel_without_subscription(mock_db_session, repos):
    with pytest.raises(NotFoundError):
        await subscription_service.cancel_subscription(mock_db_session, 2, admin_id=3, now=NOW)


@pytest.mark.asyncio
async def test_extend_adds_days_to_chain_tail(mock_db_session, repos, monthly_plan, make_subscription):
    target = make_subscription(start_date=datetime(2025, 3, 1), end_date=datetime(2025, 3, 31, 23, 59, 59, 999999))
    repos.subs.get_latest_active.return_value = target
    repos.plans.get.return_value = monthly_plan

    result = await subscription_service.extend_subscription(mock_db_session, 2, 10, admin_id=3, now=NOW)

    assert result.end_date == datetime(2025, 4, 10, 23, 59, 59, 999999)
    entry = _history_entry(repos)
    assert entry.start_date == datetime(2025, 4, 1)
    assert entry.end_date == result.end_date
    assert entry.source == "admin"
    assert entry.amount == Decimal("0")


@pytest.mark.asyncio
async def test_extend_without_subscription(mock_db_session, repos):
    with pytest.raises(NotFoundError):
        await subscription_service.extend_subscription(mock_db_session, 2, 5, admin_id=3, now=NOW)


@pytest.mark.asyncio
async def test_expire_subscriptions_clears_pointers(mock_db_session, repos):
    repos.subs.expire_lapsed.return_value = [10, 12]

    expired = await subscription_service.expire_subscriptions(mock_db_session, now=NOW)

    assert expired == 2
    repos.subs.expire_lapsed.assert_awaited_once_with(mock_db_session, NOW)
    mock_db_session.execute.assert_awaited_once()
    mock_db_session.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_expire_subscriptions_is_idempotent(mock_db_session, repos):
    assert await subscription_service.expire_subscriptions(mock_db_session, now=NOW) == 0
    mock_db_session.execute.assert_not_awaited()


@pytest.mark.asyncio
async def test_subscription_stats_fill_missing_statuses(mock_db_session, repos):
    repos.subs.count_by_status.return_value = {"succeeded": 5, "failed": 2, "cancelled": 1}
    repos.subs.count_live.side_effect = lambda db, now, plan_type=None: 1 if plan_type == "free" else 4
    repos.history.revenue_totals.return_value = (Decimal("4500.00"), Decimal("1125.00"))

    stats = await subscription_service.get_subscription_stats(mock_db_session, now=NOW)

    assert stats.total_subscriptions == 8
    assert stats.subscriptions_by_status == {"pending": 0, "succeeded": 5, "failed": 2, "cancelled": 1}
    assert stats.active_subscriptions == 4
    assert stats.trialing_subscriptions == 1
    assert stats.cancelled_subscriptions == 1
    assert stats.expired_subscriptions == 2
    assert stats.total_revenue == Decimal("4500.00")
    assert stats.average_subscription_value == Decimal("1125.00")
    repos.subs.count_live.assert_any_await(mock_db_session, NOW, plan_type="free")
