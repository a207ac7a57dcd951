# app/modules/subscription/repository.py
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import joinedload

from app.models import Subscription, SubscriptionHistory, TenantAddon, Users


class SubscriptionRepository:
    """
    Reads and writes subscription records. Writes only flush; the engine
    owns the transaction around them.
    """

    async def get(self, db: AsyncSession, subscription_id: int) -> Optional[Subscription]:
        return await db.get(Subscription, subscription_id)

    async def get_by_payment_id(self, db: AsyncSession, payment_id: str) -> Optional[Subscription]:
        result = await db.execute(select(Subscription).where(Subscription.payment_id == payment_id))
        return result.scalars().first()

    async def get_current(self, db: AsyncSession, tenant_id: int, now: datetime) -> Optional[Subscription]:
        """The segment covering ``now``; the tenant's cached pointer is not consulted."""
        stmt = (
            select(Subscription)
            .options(joinedload(Subscription.plan))
            .where(
                Subscription.tenant_id == tenant_id,
                Subscription.is_active.is_(True),
                Subscription.is_deleted.is_(False),
                Subscription.start_date <= now,
                Subscription.end_date >= now,
            )
            .order_by(Subscription.start_date.desc())
        )
        result = await db.execute(stmt)
        return result.scalars().first()

    async def get_latest(self, db: AsyncSession, tenant_id: int) -> Optional[Subscription]:
        """Most recently ending record, including lapsed and future-dated ones."""
        stmt = (
            select(Subscription)
            .where(Subscription.tenant_id == tenant_id, Subscription.is_deleted.is_(False))
            .order_by(Subscription.end_date.desc(), Subscription.id.desc())
        )
        result = await db.execute(stmt)
        return result.scalars().first()

    async def get_latest_active(self, db: AsyncSession, tenant_id: int) -> Optional[Subscription]:
        stmt = (
            select(Subscription)
            .where(
                Subscription.tenant_id == tenant_id,
                Subscription.is_active.is_(True),
                Subscription.is_deleted.is_(False),
            )
            .order_by(Subscription.end_date.desc(), Subscription.id.desc())
        )
        result = await db.execute(stmt)
        return result.scalars().first()

    async def list_live(self, db: AsyncSession, tenant_id: int, now: datetime) -> List[Subscription]:
        """Active records that have not ended yet, current and future-dated."""
        stmt = (
            select(Subscription)
            .where(
                Subscription.tenant_id == tenant_id,
                Subscription.is_active.is_(True),
                Subscription.is_deleted.is_(False),
                Subscription.end_date > now,
            )
            .order_by(Subscription.start_date.asc())
        )
        result = await db.execute(stmt)
        return result.scalars().all()

    async def has_any(self, db: AsyncSession, tenant_id: int) -> bool:
        stmt = select(func.count(Subscription.id)).where(Subscription.tenant_id == tenant_id)
        return (await db.execute(stmt)).scalar_one() > 0

    async def add(self, db: AsyncSession, subscription: Subscription) -> Subscription:
        db.add(subscription)
        await db.flush()
        return subscription

    async def set_tenant_pointer(self, db: AsyncSession, tenant_id: int, subscription_id: Optional[int]) -> None:
        await db.execute(
            update(Users).where(Users.id == tenant_id).values(active_subscription_id=subscription_id)
        )

    async def expire_lapsed(self, db: AsyncSession, now: datetime) -> List[int]:
        result = await db.execute(
            update(Subscription)
            .where(Subscription.is_active.is_(True), Subscription.end_date <= now)
            .values(is_active=False, payment_status="failed")
            .returning(Subscription.id)
        )
        return list(result.scalars().all())

    async def count_by_status(self, db: AsyncSession) -> Dict[str, int]:
        stmt = (
            select(Subscription.payment_status, func.count(Subscription.id))
            .where(Subscription.is_deleted.is_(False))
            .group_by(Subscription.payment_status)
        )
        result = await db.execute(stmt)
        return {payment_status: count for payment_status, count in result.all()}

    async def count_live(self, db: AsyncSession, now: datetime, plan_type: Optional[str] = None) -> int:
        """Segments covering ``now`` across all tenants, optionally of one plan type."""
        filters = [
            Subscription.is_active.is_(True),
            Subscription.is_deleted.is_(False),
            Subscription.start_date <= now,
            Subscription.end_date >= now,
        ]
        if plan_type is not None:
            filters.append(Subscription.plan_type == plan_type)
        return (await db.execute(select(func.count(Subscription.id)).where(*filters))).scalar_one()

    async def list_paginated(
        self,
        db: AsyncSession,
        *,
        skip: int = 0,
        limit: int = 10,
        tenant_id: Optional[int] = None,
        is_active: Optional[bool] = None,
    ) -> Tuple[List[Subscription], int]:
        filters = [Subscription.is_deleted.is_(False)]
        if tenant_id is not None:
            filters.append(Subscription.tenant_id == tenant_id)
        if is_active is not None:
            filters.append(Subscription.is_active.is_(is_active))

        total = (await db.execute(select(func.count(Subscription.id)).where(*filters))).scalar_one()
        stmt = (
            select(Subscription)
            .options(joinedload(Subscription.plan))
            .where(*filters)
            .order_by(Subscription.start_date.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await db.execute(stmt)
        return result.scalars().all(), total


class SubscriptionHistoryRepository:
    """Append-only; entries are never updated or deleted."""

    async def get_by_payment_id(self, db: AsyncSession, payment_id: str) -> Optional[SubscriptionHistory]:
        result = await db.execute(
            select(SubscriptionHistory)
            .where(SubscriptionHistory.payment_id == payment_id)
            .order_by(SubscriptionHistory.id.asc())
        )
        return result.scalars().first()

    async def add(self, db: AsyncSession, entry: SubscriptionHistory) -> SubscriptionHistory:
        db.add(entry)
        await db.flush()
        return entry

    async def revenue_totals(self, db: AsyncSession) -> Tuple[Decimal, Decimal]:
        """Sum and mean of succeeded paid entries; free trials do not dilute the mean."""
        stmt = select(
            func.coalesce(func.sum(SubscriptionHistory.amount), 0),
            func.coalesce(func.avg(SubscriptionHistory.amount), 0),
        ).where(
            SubscriptionHistory.payment_status == "succeeded",
            SubscriptionHistory.amount > 0,
        )
        total, average = (await db.execute(stmt)).one()
        cents = Decimal("0.01")
        return Decimal(str(total)).quantize(cents), Decimal(str(average)).quantize(cents)

    async def list_for_tenant(
        self, db: AsyncSession, tenant_id: int, *, skip: int = 0, limit: int = 10
    ) -> Tuple[List[SubscriptionHistory], int]:
        total = (
            await db.execute(
                select(func.count(SubscriptionHistory.id)).where(SubscriptionHistory.tenant_id == tenant_id)
            )
        ).scalar_one()
        stmt = (
            select(SubscriptionHistory)
            .where(SubscriptionHistory.tenant_id == tenant_id)
            .order_by(SubscriptionHistory.purchase_date.desc(), SubscriptionHistory.id.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await db.execute(stmt)
        return result.scalars().all(), total


class TenantAddonRepository:
    async def get_by_payment_id(self, db: AsyncSession, payment_id: str) -> Optional[TenantAddon]:
        result = await db.execute(select(TenantAddon).where(TenantAddon.payment_id == payment_id))
        return result.scalars().first()

    async def add(self, db: AsyncSession, addon: TenantAddon) -> TenantAddon:
        db.add(addon)
        await db.flush()
        return addon

    async def sum_valid_quantity(
        self, db: AsyncSession, tenant_id: int, resource_type: str, start: datetime, end: datetime
    ) -> int:
        """Quantity of succeeded, not-deactivated add-ons bought inside [start, end]."""
        stmt = select(func.coalesce(func.sum(TenantAddon.quantity), 0)).where(
            TenantAddon.tenant_id == tenant_id,
            TenantAddon.resource_type == resource_type,
            TenantAddon.payment_status == "succeeded",
            TenantAddon.is_active.isnot(False),
            TenantAddon.created_at >= start,
            TenantAddon.created_at <= end,
        )
        return int((await db.execute(stmt)).scalar_one() or 0)

    async def list_valid(
        self, db: AsyncSession, tenant_id: int, start: datetime, end: datetime
    ) -> List[TenantAddon]:
        stmt = (
            select(TenantAddon)
            .where(
                TenantAddon.tenant_id == tenant_id,
                TenantAddon.payment_status == "succeeded",
                TenantAddon.is_active.isnot(False),
                TenantAddon.created_at >= start,
                TenantAddon.created_at <= end,
            )
            .order_by(TenantAddon.created_at.desc())
        )
        result = await db.execute(stmt)
        return result.scalars().all()

    async def list_for_tenant(
        self, db: AsyncSession, tenant_id: int, *, skip: int = 0, limit: int = 10
    ) -> Tuple[List[TenantAddon], int]:
        total = (
            await db.execute(select(func.count(TenantAddon.id)).where(TenantAddon.tenant_id == tenant_id))
        ).scalar_one()
        stmt = (
            select(TenantAddon)
            .where(TenantAddon.tenant_id == tenant_id)
            .order_by(TenantAddon.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await db.execute(stmt)
        return result.scalars().all(), total


subscription_repository = SubscriptionRepository()
subscription_history_repository = SubscriptionHistoryRepository()
tenant_addon_repository = TenantAddonRepository()
