import logging
import math
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import ConflictError, NotFoundError, PaymentRequiredError
from app.core.uow import atomic
from app.models import Plan, Subscription, SubscriptionHistory, Users
from app.models.subscription_model import PAYMENT_STATUSES
from app.modules.subscription import quota
from app.modules.subscription.catalog_repository import plan_repository
from app.modules.subscription.counters import resource_counter
from app.modules.subscription.invoice import invoice_allocator
from app.modules.subscription.repository import (
    subscription_history_repository,
    subscription_repository,
    tenant_addon_repository,
)
from app.modules.subscription.tenant_resolver import tenant_resolver
from app.schemas.plan_schema import PlanSummary
from app.schemas.subscription_schema import (
    LimitInfo,
    Subscription as SubscriptionSchema,
    SubscriptionStats,
    SubscriptionStatus,
)

logger = logging.getLogger(__name__)

# History ledger source -> subscription record source
RECORD_SOURCES = {"user": "self", "admin": "admin", "system": "system"}


class SubscriptionService:
    """
    Subscription lifecycle and quota enforcement.

    Every state transition (trial, paid segment, admin assignment, extension,
    cancellation, expiry) goes through this class so that the record write,
    its history entry and the tenant pointer commit together.
    """

    # --- Window & quota ---

    async def get_quota_window(
        self, db: AsyncSession, tenant_id: int, now: Optional[datetime] = None
    ) -> Tuple[datetime, datetime, Optional[Subscription]]:
        now = now or datetime.utcnow()
        current = await subscription_repository.get_current(db, tenant_id, now)
        start, end = quota.quota_window(now, current.start_date if current else None)
        return start, end, current

    async def _plan_for_limits(self, db: AsyncSession, tenant_id: int, current: Optional[Subscription]) -> Optional[Plan]:
        if current is not None:
            return current.plan or await plan_repository.get(db, current.plan_id)
        # Expired tenants still see the limits of their last plan
        latest = await subscription_repository.get_latest(db, tenant_id)
        if latest is None:
            return None
        return await plan_repository.get(db, latest.plan_id)

    async def _limit_for_resource(
        self,
        db: AsyncSession,
        tenant_id: int,
        resource_type: str,
        plan: Optional[Plan],
        current: Optional[Subscription],
        window: Tuple[datetime, datetime],
    ) -> quota.LimitInfo:
        is_expired = current is None
        extra = 0
        if current is not None:
            extra = await tenant_addon_repository.sum_valid_quantity(
                db, tenant_id, resource_type, current.start_date, current.end_date
            )
        used = await resource_counter.count(db, tenant_id, resource_type, window[0], window[1])
        return quota.build_limit_info(quota.plan_limit(plan, resource_type), extra, used, is_expired)

    async def get_limit_info(
        self, db: AsyncSession, tenant_id: int, resource_type: str, now: Optional[datetime] = None
    ) -> quota.LimitInfo:
        if resource_type not in quota.RESOURCE_TYPES:
            raise ValueError(f"Unknown resource type: {resource_type}")
        now = now or datetime.utcnow()
        start, end, current = await self.get_quota_window(db, tenant_id, now)
        plan = await self._plan_for_limits(db, tenant_id, current)
        return await self._limit_for_resource(db, tenant_id, resource_type, plan, current, (start, end))

    async def check_plan_limits(
        self, db: AsyncSession, user_id: int, resource_type: str, now: Optional[datetime] = None
    ) -> quota.LimitInfo:
        """
        Gate a resource creation. Returns the limit info when creation is
        allowed, raises PaymentRequiredError otherwise.

        The count and the caller's insert are not serialized; a burst of
        concurrent creations can overshoot the limit by a few rows.
        """
        resolved = await tenant_resolver.resolve(db, user_id)
        info = await self.get_limit_info(db, resolved.tenant_id, resource_type, now)
        if info.can_create:
            return info

        label = quota.RESOURCE_LABELS[resource_type]
        if info.is_expired:
            logger.info("Blocked %s creation for tenant %s: subscription expired", resource_type, resolved.tenant_id)
            if resolved.is_employee:
                raise PaymentRequiredError(
                    "Your organization's subscription has expired. Please ask your admin to renew the plan."
                )
            raise PaymentRequiredError(
                f"Your subscription has expired. Please renew your plan to continue creating {label}."
            )

        logger.info(
            "Blocked %s creation for tenant %s: %s/%s used", resource_type, resolved.tenant_id, info.current, info.total
        )
        if resolved.is_employee:
            raise PaymentRequiredError(
                f"Your organization has reached its plan limit of {info.total} {label}. "
                "Please ask your admin to upgrade the plan."
            )
        raise PaymentRequiredError(
            f"You have reached your plan limit of {info.total} {label}. "
            "Please upgrade your plan or purchase an add-on."
        )

    async def get_subscription_status(
        self, db: AsyncSession, user_id: int, now: Optional[datetime] = None
    ) -> SubscriptionStatus:
        now = now or datetime.utcnow()
        resolved = await tenant_resolver.resolve(db, user_id)
        tenant_id = resolved.tenant_id
        start, end, current = await self.get_quota_window(db, tenant_id, now)
        plan = await self._plan_for_limits(db, tenant_id, current)

        limits: Dict[str, LimitInfo] = {}
        for resource_type in quota.RESOURCE_TYPES:
            info = await self._limit_for_resource(db, tenant_id, resource_type, plan, current, (start, end))
            limits[resource_type] = LimitInfo(**info.as_dict())

        modules = {
            module: bool(current is not None and plan is not None and getattr(plan, field))
            for module, field in quota.MODULE_FIELDS.items()
        }
        # Days left run to the end of the chain, including future segments already paid for
        days_remaining = 0
        if current is not None:
            paid_through = current.end_date
            for segment in await subscription_repository.list_live(db, tenant_id, now):
                paid_through = max(paid_through, segment.end_date)
            days_remaining = max(math.ceil((paid_through - now).total_seconds() / 86400), 0)

        return SubscriptionStatus(
            tenant_id=tenant_id,
            is_trial=current is None or current.plan_type == "free",
            plan_type=current.plan_type if current else None,
            is_active=current is not None,
            is_expired=current is None,
            subscription=SubscriptionSchema.model_validate(current) if current else None,
            plan=PlanSummary.model_validate(plan) if plan else None,
            window_start=start,
            window_end=end,
            days_remaining=days_remaining,
            limits=limits,
            modules=modules,
        )

    async def check_module_access(
        self, db: AsyncSession, user_id: int, module: str, now: Optional[datetime] = None
    ) -> bool:
        field = quota.MODULE_FIELDS.get(module)
        if field is None:
            raise ValueError(f"Unknown module: {module}")
        resolved = await tenant_resolver.resolve(db, user_id)
        current = await subscription_repository.get_current(db, resolved.tenant_id, now or datetime.utcnow())
        if current is None:
            return False
        plan = current.plan or await plan_repository.get(db, current.plan_id)
        return bool(plan is not None and getattr(plan, field))

    # --- Segment lifecycle ---

    async def _find_by_payment_id(self, db: AsyncSession, payment_id: str) -> Optional[Subscription]:
        existing = await subscription_repository.get_by_payment_id(db, payment_id)
        if existing is not None:
            return existing
        # The record may since have been reused in place by a later segment
        entry = await subscription_history_repository.get_by_payment_id(db, payment_id)
        if entry is not None and entry.subscription_id is not None:
            return await subscription_repository.get(db, entry.subscription_id)
        return None

    async def _get_tenant(self, db: AsyncSession, tenant_id: int) -> Users:
        tenant = await db.get(Users, tenant_id)
        if tenant is None:
            raise NotFoundError("Tenant not found")
        return tenant

    async def _get_plan(self, db: AsyncSession, plan_id: int) -> Plan:
        plan = await plan_repository.get(db, plan_id)
        if plan is None:
            raise NotFoundError("Plan not found")
        return plan

    async def _write_segment(
        self,
        db: AsyncSession,
        *,
        tenant_id: int,
        plan: Plan,
        start: datetime,
        end: datetime,
        now: datetime,
        source: str,
        payment_id: Optional[str] = None,
        payment_order_id: Optional[str] = None,
        assigned_by: Optional[int] = None,
        trial_days: Optional[int] = None,
        charge: bool = True,
        previous: Optional[Subscription] = None,
    ) -> Subscription:
        """Record mutation + history entry + pointer; caller owns the transaction."""
        latest = await subscription_repository.get_latest(db, tenant_id)
        lapsed = latest is not None and (not latest.is_active or latest.end_date < now)

        if lapsed:
            subscription = latest
            logger.info("Reusing lapsed subscription %s for tenant %s", subscription.id, tenant_id)
        else:
            subscription = Subscription(tenant_id=tenant_id)

        subscription.plan_id = plan.id
        subscription.plan_type = plan.plan_type
        subscription.start_date = start
        subscription.end_date = end
        subscription.is_active = True
        subscription.payment_status = "succeeded"
        subscription.trial_days = trial_days
        subscription.payment_order_id = payment_order_id
        subscription.payment_id = payment_id
        subscription.source = RECORD_SOURCES[source]
        subscription.assigned_by = assigned_by
        await subscription_repository.add(db, subscription)

        if start <= now:
            await subscription_repository.set_tenant_pointer(db, tenant_id, subscription.id)

        price = Decimal(plan.price or 0) if charge else Decimal("0")
        tax_percentage = Decimal(plan.tax_percentage or 0)
        tax_amount = (price * tax_percentage / Decimal(100)).quantize(Decimal("0.01"))
        remaining_days = 0
        if previous is not None:
            remaining_days = max(math.ceil((previous.end_date - now).total_seconds() / 86400), 0)

        invoice_number, billing_details = await invoice_allocator.allocate(db, now)
        await subscription_history_repository.add(
            db,
            SubscriptionHistory(
                tenant_id=tenant_id,
                subscription_id=subscription.id,
                plan_id=plan.id,
                plan_type=plan.plan_type,
                invoice_number=invoice_number,
                purchase_date=now,
                start_date=start,
                end_date=end,
                amount=price + tax_amount,
                currency=plan.currency or settings.DEFAULT_CURRENCY,
                tax_amount=tax_amount,
                tax_percentage=tax_percentage,
                payment_status="succeeded",
                payment_order_id=payment_order_id,
                payment_id=payment_id,
                previous_subscription_id=previous.id if previous is not None else None,
                remaining_days_from_previous=remaining_days,
                source=source,
                billing_details=billing_details,
            ),
        )
        return subscription

    async def _commit_segment(self, db: AsyncSession, payment_id: Optional[str], failure_message: str, **segment) -> Subscription:
        try:
            async with atomic(db, failure_message):
                subscription = await self._write_segment(db, payment_id=payment_id, **segment)
        except IntegrityError:
            if payment_id:
                winner = await self._find_by_payment_id(db, payment_id)
                if winner is not None:
                    logger.info("Payment %s was applied concurrently; returning subscription %s", payment_id, winner.id)
                    return winner
            logger.exception("Unique constraint violated while writing subscription segment")
            raise ConflictError("Subscription change conflicted with a concurrent update. Please retry.")
        await db.refresh(subscription)
        return subscription

    async def create_free_trial(
        self,
        db: AsyncSession,
        tenant_id: int,
        *,
        payment_id: Optional[str] = None,
        payment_order_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Subscription:
        """Start the free trial once per tenant; replays return the existing record."""
        now = now or datetime.utcnow()
        if payment_id:
            existing = await self._find_by_payment_id(db, payment_id)
            if existing is not None:
                logger.info("Trial for payment %s already applied", payment_id)
                return existing

        await self._get_tenant(db, tenant_id)
        if await subscription_repository.has_any(db, tenant_id):
            logger.info("Tenant %s already has a subscription; skipping free trial", tenant_id)
            return await subscription_repository.get_latest(db, tenant_id)

        plan = await plan_repository.get_free_plan(db)
        if plan is None:
            raise NotFoundError("Free trial plan is not configured")

        trial_days = plan.trial_days or settings.TRIAL_DAYS
        subscription = await self._commit_segment(
            db,
            payment_id,
            "Failed to start free trial",
            tenant_id=tenant_id,
            plan=plan,
            start=now,
            end=quota.segment_end(now, "free", trial_days),
            now=now,
            source="system",
            payment_order_id=payment_order_id,
            trial_days=trial_days,
            charge=False,
        )
        logger.info("Started %s-day trial subscription %s for tenant %s", trial_days, subscription.id, tenant_id)
        return subscription

    async def create_paid_subscription(
        self,
        db: AsyncSession,
        tenant_id: int,
        plan_id: int,
        *,
        payment_id: Optional[str] = None,
        payment_order_id: Optional[str] = None,
        start_date: Optional[datetime] = None,
        source: str = "user",
        assigned_by: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> Subscription:
        """
        Apply a confirmed purchase (or admin assignment) of ``plan_id``.

        If the tenant still has time left, the new segment is chained to start
        right after the current one ends instead of overwriting it.
        """
        now = now or datetime.utcnow()
        if payment_id:
            existing = await self._find_by_payment_id(db, payment_id)
            if existing is not None:
                logger.info("Payment %s already applied to subscription %s", payment_id, existing.id)
                return existing

        await self._get_tenant(db, tenant_id)
        plan = await self._get_plan(db, plan_id)

        previous = await subscription_repository.get_latest_active(db, tenant_id)
        is_extension = previous is not None and previous.is_active and previous.end_date > now
        if is_extension:
            start = quota.next_segment_start(previous.end_date)
        else:
            start = start_date or now
            previous = None

        end = quota.segment_end(start, plan.plan_type, plan.trial_days or settings.TRIAL_DAYS)
        subscription = await self._commit_segment(
            db,
            payment_id,
            "Failed to create subscription",
            tenant_id=tenant_id,
            plan=plan,
            start=start,
            end=end,
            now=now,
            source=source,
            payment_order_id=payment_order_id,
            assigned_by=assigned_by,
            charge=source != "admin",
            previous=previous,
        )
        logger.info(
            "Subscription %s (%s) for tenant %s runs %s -> %s%s",
            subscription.id,
            plan.plan_type,
            tenant_id,
            start,
            end,
            " (chained)" if is_extension else "",
        )
        return subscription

    async def assign_subscription(
        self,
        db: AsyncSession,
        tenant_id: int,
        plan_id: int,
        admin_id: int,
        *,
        start_date: Optional[datetime] = None,
        now: Optional[datetime] = None,
    ) -> Subscription:
        return await self.create_paid_subscription(
            db,
            tenant_id,
            plan_id,
            start_date=start_date,
            source="admin",
            assigned_by=admin_id,
            now=now,
        )

    async def extend_subscription(
        self, db: AsyncSession, tenant_id: int, days: int, admin_id: int, now: Optional[datetime] = None
    ) -> Subscription:
        """Push the tail of the tenant's subscription chain out by ``days``."""
        if days <= 0:
            raise ValueError("days must be positive")
        now = now or datetime.utcnow()
        target = await subscription_repository.get_latest_active(db, tenant_id)
        if target is None:
            raise NotFoundError("No active subscription to extend")
        plan = await self._get_plan(db, target.plan_id)

        async with atomic(db, "Failed to extend subscription"):
            old_end = target.end_date
            target.end_date = old_end + timedelta(days=days)
            await subscription_repository.add(db, target)
            if target.start_date <= now:
                await subscription_repository.set_tenant_pointer(db, tenant_id, target.id)

            invoice_number, billing_details = await invoice_allocator.allocate(db, now)
            await subscription_history_repository.add(
                db,
                SubscriptionHistory(
                    tenant_id=tenant_id,
                    subscription_id=target.id,
                    plan_id=plan.id,
                    plan_type=plan.plan_type,
                    invoice_number=invoice_number,
                    purchase_date=now,
                    start_date=quota.next_segment_start(old_end),
                    end_date=target.end_date,
                    amount=Decimal("0"),
                    currency=plan.currency or settings.DEFAULT_CURRENCY,
                    tax_amount=Decimal("0"),
                    tax_percentage=Decimal("0"),
                    payment_status="succeeded",
                    previous_subscription_id=target.id,
                    remaining_days_from_previous=max(math.ceil((old_end - now).total_seconds() / 86400), 0),
                    source="admin",
                    billing_details=billing_details,
                ),
            )
        logger.info("Admin %s extended subscription %s by %s days", admin_id, target.id, days)
        await db.refresh(target)
        return target

    async def cancel_subscription(
        self, db: AsyncSession, tenant_id: int, admin_id: int, now: Optional[datetime] = None
    ) -> List[Subscription]:
        """
        End the tenant's current segment and any chained future segments now.
        Each cancelled segment gets a zero-amount history entry.
        """
        now = now or datetime.utcnow()
        live: List[Subscription] = []
        current = await subscription_repository.get_current(db, tenant_id, now)
        if current is not None:
            live.append(current)
        for candidate in await subscription_repository.list_live(db, tenant_id, now):
            if all(candidate.id != s.id for s in live):
                live.append(candidate)
        if not live:
            raise NotFoundError("No active subscription to cancel")

        async with atomic(db, "Failed to cancel subscription"):
            for subscription in live:
                plan = await self._get_plan(db, subscription.plan_id)
                subscription.is_active = False
                subscription.payment_status = "cancelled"
                subscription.end_date = now
                subscription.is_deleted = True
                subscription.deleted_at = now
                subscription.deleted_by = admin_id
                await subscription_repository.add(db, subscription)

                invoice_number, billing_details = await invoice_allocator.allocate(db, now)
                await subscription_history_repository.add(
                    db,
                    SubscriptionHistory(
                        tenant_id=tenant_id,
                        subscription_id=subscription.id,
                        plan_id=subscription.plan_id,
                        plan_type=subscription.plan_type,
                        invoice_number=invoice_number,
                        purchase_date=now,
                        start_date=min(subscription.start_date, now),
                        end_date=now,
                        amount=Decimal("0"),
                        currency=plan.currency or settings.DEFAULT_CURRENCY,
                        tax_amount=Decimal("0"),
                        tax_percentage=Decimal("0"),
                        payment_status="cancelled",
                        payment_order_id=subscription.payment_order_id,
                        source="admin",
                        billing_details=billing_details,
                    ),
                )
            await subscription_repository.set_tenant_pointer(db, tenant_id, None)

        logger.info("Admin %s cancelled %s subscription(s) for tenant %s", admin_id, len(live), tenant_id)
        return live

    async def expire_subscriptions(self, db: AsyncSession, now: Optional[datetime] = None) -> int:
        """Mark every active segment whose end date has passed as expired. Safe to re-run."""
        now = now or datetime.utcnow()
        async with atomic(db, "Failed to expire subscriptions"):
            expired_ids = await subscription_repository.expire_lapsed(db, now)
            if expired_ids:
                await db.execute(
                    update(Users)
                    .where(Users.active_subscription_id.in_(expired_ids))
                    .values(active_subscription_id=None)
                )
        logger.info("Expired %s subscription(s)", len(expired_ids))
        return len(expired_ids)

    # --- Reporting ---

    async def get_subscription_stats(self, db: AsyncSession, now: Optional[datetime] = None) -> SubscriptionStats:
        now = now or datetime.utcnow()
        by_status = {payment_status: 0 for payment_status in PAYMENT_STATUSES}
        by_status.update(await subscription_repository.count_by_status(db))
        total_revenue, average_value = await subscription_history_repository.revenue_totals(db)
        return SubscriptionStats(
            total_subscriptions=sum(by_status.values()),
            active_subscriptions=await subscription_repository.count_live(db, now),
            trialing_subscriptions=await subscription_repository.count_live(db, now, plan_type="free"),
            cancelled_subscriptions=by_status["cancelled"],
            # The expiry sweep marks lapsed segments as failed
            expired_subscriptions=by_status["failed"],
            subscriptions_by_status=by_status,
            total_revenue=total_revenue,
            average_subscription_value=average_value,
            currency=settings.DEFAULT_CURRENCY,
        )

    # --- Listings ---

    async def list_subscriptions(
        self,
        db: AsyncSession,
        *,
        skip: int = 0,
        limit: int = 10,
        tenant_id: Optional[int] = None,
        is_active: Optional[bool] = None,
    ) -> Tuple[List[Subscription], int]:
        return await subscription_repository.list_paginated(
            db, skip=skip, limit=limit, tenant_id=tenant_id, is_active=is_active
        )

    async def list_history(
        self, db: AsyncSession, tenant_id: int, *, skip: int = 0, limit: int = 10
    ) -> Tuple[List[SubscriptionHistory], int]:
        return await subscription_history_repository.list_for_tenant(db, tenant_id, skip=skip, limit=limit)


subscription_service = SubscriptionService()
