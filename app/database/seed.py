import asyncio
import logging
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.uow import UnitOfWork
from app.models import AddonPackage, Plan
from app.modules.subscription.catalog_repository import addon_package_repository, plan_repository

logger = logging.getLogger(__name__)

DEFAULT_PLANS = [
    {
        "name": "Free Trial",
        "description": "Experience full features for 3 days",
        "plan_type": "free",
        "price": Decimal("0"),
        "trial_days": 3,
        "employee_limit": 5,
        "visitor_limit": 50,
        "appointment_limit": 50,
        "spot_pass_limit": 10,
        "module_visitor_invite": True,
        "module_message": True,
        "sort_order": 1,
    },
    {
        "name": "Premium - 1 Month",
        "description": "Monthly billing",
        "plan_type": "monthly",
        "price": Decimal("8499.00"),
        "tax_percentage": Decimal("18"),
        "trial_days": 0,
        "module_visitor_invite": True,
        "module_message": True,
        "spot_pass_limit": -1,
        "sort_order": 2,
    },
    {
        "name": "Premium - 3 Months",
        "description": "Save 5% with 3-month billing",
        "plan_type": "quarterly",
        "price": Decimal("24222.00"),
        "tax_percentage": Decimal("18"),
        "trial_days": 0,
        "module_visitor_invite": True,
        "module_message": True,
        "spot_pass_limit": -1,
        "sort_order": 3,
    },
    {
        "name": "Premium - 12 Months",
        "description": "Save 10% with annual billing",
        "plan_type": "yearly",
        "price": Decimal("91790.00"),
        "tax_percentage": Decimal("18"),
        "trial_days": 0,
        "module_visitor_invite": True,
        "module_message": True,
        "spot_pass_limit": -1,
        "sort_order": 4,
    },
]

DEFAULT_ADDONS = [
    {"name": "Extra 5 Employees", "resource_type": "employees", "unit_quantity": 5, "price": Decimal("499"), "sort_order": 1},
    {"name": "Extra 10 Employees", "resource_type": "employees", "unit_quantity": 10, "price": Decimal("899"), "sort_order": 2},
    {"name": "Extra 25 Appointments", "resource_type": "appointments", "unit_quantity": 25, "price": Decimal("499"), "sort_order": 3},
    {"name": "Extra 50 Appointments", "resource_type": "appointments", "unit_quantity": 50, "price": Decimal("899"), "sort_order": 4},
    {"name": "Extra 100 Appointments", "resource_type": "appointments", "unit_quantity": 100, "price": Decimal("1599"), "sort_order": 5},
]


async def seed_plans(db: AsyncSession) -> int:
    """Insert or update the default plans by name. Returns how many were created."""
    created = 0
    for data in DEFAULT_PLANS:
        plan = await plan_repository.get_by_name(db, data["name"])
        if plan is None:
            plan = Plan(currency=settings.DEFAULT_CURRENCY, is_active=True, is_public=True)
            db.add(plan)
            created += 1
        for field, value in data.items():
            setattr(plan, field, value)
    await db.flush()
    return created


async def seed_addons(db: AsyncSession) -> int:
    created = 0
    for data in DEFAULT_ADDONS:
        addon = await addon_package_repository.get_by_name(db, data["name"])
        if addon is None:
            addon = AddonPackage(currency=settings.DEFAULT_CURRENCY, is_active=True)
            db.add(addon)
            created += 1
        for field, value in data.items():
            setattr(addon, field, value)
    await db.flush()
    return created


async def seed_catalog(uow: UnitOfWork | None = None) -> None:
    uow = uow or UnitOfWork()
    async with uow() as db:
        plans = await seed_plans(db)
        addons = await seed_addons(db)
    logger.info("Catalog seeded: %s new plan(s), %s new add-on(s)", plans, addons)


if __name__ == "__main__":
    from app.core.logging_config import configure_logging

    configure_logging()
    asyncio.run(seed_catalog())
