import logging
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictError, NotFoundError
from app.core.uow import atomic
from app.models import AddonPackage, TenantAddon, Users
from app.modules.subscription.catalog_repository import addon_package_repository
from app.modules.subscription.repository import subscription_repository, tenant_addon_repository

logger = logging.getLogger(__name__)


class AddonService:
    """Purchased and granted quota extensions on top of the plan limits."""

    async def _get_package(self, db: AsyncSession, addon_id: int) -> AddonPackage:
        package = await addon_package_repository.get(db, addon_id)
        if package is None or not package.is_active:
            raise NotFoundError("Add-on not found")
        return package

    async def _write(self, db: AsyncSession, addon: TenantAddon, failure_message: str) -> TenantAddon:
        try:
            async with atomic(db, failure_message):
                await tenant_addon_repository.add(db, addon)
        except IntegrityError:
            if addon.payment_id:
                winner = await tenant_addon_repository.get_by_payment_id(db, addon.payment_id)
                if winner is not None:
                    logger.info("Add-on payment %s was applied concurrently", addon.payment_id)
                    return winner
            logger.exception("Unique constraint violated while writing add-on")
            raise ConflictError("Add-on purchase conflicted with a concurrent update. Please retry.")
        await db.refresh(addon)
        return addon

    async def create_addon_subscription(
        self,
        db: AsyncSession,
        tenant_id: int,
        addon_id: int,
        payment_order_id: Optional[str],
        payment_id: str,
        now: Optional[datetime] = None,
    ) -> TenantAddon:
        """Record a paid add-on. Replays of the same payment return the first record."""
        existing = await tenant_addon_repository.get_by_payment_id(db, payment_id)
        if existing is not None:
            logger.info("Add-on payment %s already applied as %s", payment_id, existing.id)
            return existing

        if await db.get(Users, tenant_id) is None:
            raise NotFoundError("Tenant not found")
        package = await self._get_package(db, addon_id)
        now = now or datetime.utcnow()

        if await subscription_repository.get_current(db, tenant_id, now) is None:
            # Still recorded: it just will not count until it falls inside a segment
            logger.warning("Tenant %s bought add-on %s without a current subscription", tenant_id, addon_id)

        addon = TenantAddon(
            tenant_id=tenant_id,
            addon_id=package.id,
            resource_type=package.resource_type,
            quantity=package.unit_quantity,
            payment_status="succeeded",
            payment_order_id=payment_order_id,
            payment_id=payment_id,
            is_active=True,
            source="user",
            created_at=now,
        )
        addon = await self._write(db, addon, "Failed to record add-on purchase")
        logger.info("Added %s %s for tenant %s", addon.quantity, addon.resource_type, tenant_id)
        return addon

    async def grant_addon(
        self,
        db: AsyncSession,
        tenant_id: int,
        addon_id: int,
        admin_id: int,
        quantity_multiplier: int = 1,
        now: Optional[datetime] = None,
    ) -> TenantAddon:
        if quantity_multiplier < 1:
            raise ValueError("quantity_multiplier must be at least 1")
        if await db.get(Users, tenant_id) is None:
            raise NotFoundError("Tenant not found")
        package = await self._get_package(db, addon_id)

        addon = TenantAddon(
            tenant_id=tenant_id,
            addon_id=package.id,
            resource_type=package.resource_type,
            quantity=package.unit_quantity * quantity_multiplier,
            payment_status="succeeded",
            is_active=True,
            source="admin",
            granted_by=admin_id,
            created_at=now or datetime.utcnow(),
        )
        addon = await self._write(db, addon, "Failed to grant add-on")
        logger.info("Admin %s granted %s %s to tenant %s", admin_id, addon.quantity, addon.resource_type, tenant_id)
        return addon

    async def get_valid_addons(
        self, db: AsyncSession, tenant_id: int, now: Optional[datetime] = None
    ) -> List[TenantAddon]:
        """Add-ons counting toward the current segment; empty when expired."""
        current = await subscription_repository.get_current(db, tenant_id, now or datetime.utcnow())
        if current is None:
            return []
        return await tenant_addon_repository.list_valid(db, tenant_id, current.start_date, current.end_date)

    async def list_tenant_addons(
        self, db: AsyncSession, tenant_id: int, *, skip: int = 0, limit: int = 10
    ) -> Tuple[List[TenantAddon], int]:
        return await tenant_addon_repository.list_for_tenant(db, tenant_id, skip=skip, limit=limit)


addon_service = AddonService()
