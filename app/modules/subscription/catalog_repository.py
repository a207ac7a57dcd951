# app/modules/subscription/catalog_repository.py
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from app.models import AddonPackage, Plan


class PlanRepository:
    async def get(self, db: AsyncSession, plan_id: int) -> Optional[Plan]:
        return await db.get(Plan, plan_id)

    async def get_free_plan(self, db: AsyncSession) -> Optional[Plan]:
        stmt = (
            select(Plan)
            .where(Plan.plan_type == "free", Plan.is_active.is_(True))
            .order_by(Plan.sort_order.asc(), Plan.id.asc())
        )
        result = await db.execute(stmt)
        return result.scalars().first()

    async def list_public(self, db: AsyncSession) -> List[Plan]:
        stmt = (
            select(Plan)
            .where(Plan.is_active.is_(True), Plan.is_public.is_(True))
            .order_by(Plan.sort_order.asc(), Plan.price.asc())
        )
        result = await db.execute(stmt)
        return result.scalars().all()

    async def get_by_name(self, db: AsyncSession, name: str) -> Optional[Plan]:
        result = await db.execute(select(Plan).where(Plan.name == name))
        return result.scalars().first()

    async def list_all(self, db: AsyncSession) -> List[Plan]:
        """Every plan, including retired and private ones."""
        result = await db.execute(select(Plan).order_by(Plan.sort_order.asc(), Plan.id.asc()))
        return result.scalars().all()

    async def add(self, db: AsyncSession, plan: Plan) -> Plan:
        db.add(plan)
        await db.flush()
        return plan


class AddonPackageRepository:
    async def get(self, db: AsyncSession, addon_id: int) -> Optional[AddonPackage]:
        return await db.get(AddonPackage, addon_id)

    async def list_active(self, db: AsyncSession) -> List[AddonPackage]:
        stmt = (
            select(AddonPackage)
            .where(AddonPackage.is_active.is_(True))
            .order_by(AddonPackage.sort_order.asc(), AddonPackage.price.asc())
        )
        result = await db.execute(stmt)
        return result.scalars().all()

    async def get_by_name(self, db: AsyncSession, name: str) -> Optional[AddonPackage]:
        result = await db.execute(select(AddonPackage).where(AddonPackage.name == name))
        return result.scalars().first()


plan_repository = PlanRepository()
addon_package_repository = AddonPackageRepository()
