import logging
from typing import List

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictError, NotFoundError
from app.core.uow import atomic
from app.models import BillingProfile, Plan
from app.modules.subscription.catalog_repository import plan_repository
from app.modules.subscription.invoice import invoice_allocator
from app.schemas.billing_schema import BillingProfileUpdate
from app.schemas.plan_schema import PlanCreate, PlanUpdate

logger = logging.getLogger(__name__)

# Columns an explicit null may clear; a null for any other field is ignored
NULLABLE_PLAN_FIELDS = ("description", "trial_days")
NULLABLE_PROFILE_FIELDS = ("address", "tax_id", "contact_email", "contact_phone", "bank_details")


def _changes(payload, nullable) -> dict:
    return {
        field: value
        for field, value in payload.model_dump(exclude_unset=True).items()
        if value is not None or field in nullable
    }


class CatalogService:
    """
    Super-admin maintenance of the plan catalog and the seller billing profile.

    Plan edits apply to segments created afterwards; existing segments and
    their history entries keep the values they were bought with.
    """

    async def list_plans(self, db: AsyncSession) -> List[Plan]:
        return await plan_repository.list_all(db)

    async def create_plan(self, db: AsyncSession, payload: PlanCreate) -> Plan:
        if await plan_repository.get_by_name(db, payload.name) is not None:
            raise ConflictError(f"A plan named '{payload.name}' already exists")

        plan = Plan(**payload.model_dump())
        try:
            async with atomic(db, "Failed to create plan"):
                await plan_repository.add(db, plan)
        except IntegrityError:
            raise ConflictError(f"A plan named '{payload.name}' already exists")
        await db.refresh(plan)
        logger.info("Created plan %s (%s, %s)", plan.id, plan.name, plan.plan_type)
        return plan

    async def update_plan(self, db: AsyncSession, plan_id: int, payload: PlanUpdate) -> Plan:
        plan = await plan_repository.get(db, plan_id)
        if plan is None:
            raise NotFoundError(f"Plan {plan_id} not found")

        changes = _changes(payload, NULLABLE_PLAN_FIELDS)
        new_name = changes.get("name", plan.name)
        if new_name != plan.name and await plan_repository.get_by_name(db, new_name) is not None:
            raise ConflictError(f"A plan named '{new_name}' already exists")

        try:
            async with atomic(db, "Failed to update plan"):
                for field, value in changes.items():
                    setattr(plan, field, value)
                await plan_repository.add(db, plan)
        except IntegrityError:
            raise ConflictError(f"A plan named '{new_name}' already exists")
        await db.refresh(plan)
        logger.info("Updated plan %s: %s", plan.id, ", ".join(sorted(changes)) or "no changes")
        return plan

    async def get_billing_profile(self, db: AsyncSession) -> BillingProfile:
        # A default profile is created on first access
        async with atomic(db, "Failed to load billing profile"):
            profile = await invoice_allocator.get_billing_profile(db)
        return profile

    async def update_billing_profile(self, db: AsyncSession, payload: BillingProfileUpdate) -> BillingProfile:
        changes = _changes(payload, NULLABLE_PROFILE_FIELDS)
        async with atomic(db, "Failed to update billing profile"):
            profile = await invoice_allocator.get_billing_profile(db)
            for field, value in changes.items():
                setattr(profile, field, value)
            await db.flush()
        await db.refresh(profile)
        logger.info("Updated billing profile %s: %s", profile.id, ", ".join(sorted(changes)) or "no changes")
        return profile


catalog_service = CatalogService()
