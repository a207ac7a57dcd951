from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
from math import ceil

from app.core.config import settings
from app.core.dependencies import get_current_super_admin, get_db
from app.models.user_model import Users
from app.modules.subscription.addon_service import addon_service
from app.modules.subscription.catalog_service import catalog_service
from app.modules.subscription.service import subscription_service
from app.schemas import billing_schema, plan_schema, subscription_schema

router = APIRouter(
    prefix="/admin",
    tags=["Super Admin"],
    dependencies=[Depends(get_current_super_admin)],
)


@router.get("/subscriptions", response_model=subscription_schema.PaginatedSubscriptionResponse)
async def read_subscriptions(
    db: AsyncSession = Depends(get_db),
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE, description="Items per page"),
    tenant_id: Optional[int] = Query(None, description="Only this tenant's subscriptions"),
    is_active: Optional[bool] = Query(None, description="Filter by active flag"),
):
    subscriptions, total = await subscription_service.list_subscriptions(
        db, skip=(page - 1) * limit, limit=limit, tenant_id=tenant_id, is_active=is_active
    )
    return {
        "subscriptions": subscriptions,
        "total_subscriptions": total,
        "current_page": page,
        "total_pages": ceil(total / limit) if total else 0,
    }


@router.post(
    "/tenants/{tenant_id}/subscription",
    response_model=subscription_schema.Subscription,
    status_code=status.HTTP_201_CREATED,
)
async def assign_subscription(
    tenant_id: int,
    payload: subscription_schema.AssignSubscriptionRequest,
    db: AsyncSession = Depends(get_db),
    current_user: Users = Depends(get_current_super_admin),
):
    return await subscription_service.assign_subscription(
        db, tenant_id, payload.plan_id, current_user.id, start_date=payload.start_date
    )


@router.post("/tenants/{tenant_id}/subscription/cancel", response_model=List[subscription_schema.Subscription])
async def cancel_subscription(
    tenant_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: Users = Depends(get_current_super_admin),
):
    return await subscription_service.cancel_subscription(db, tenant_id, current_user.id)


@router.post("/tenants/{tenant_id}/subscription/extend", response_model=subscription_schema.Subscription)
async def extend_subscription(
    tenant_id: int,
    payload: subscription_schema.ExtendSubscriptionRequest,
    db: AsyncSession = Depends(get_db),
    current_user: Users = Depends(get_current_super_admin),
):
    return await subscription_service.extend_subscription(db, tenant_id, payload.days, current_user.id)


@router.post(
    "/tenants/{tenant_id}/addons",
    response_model=subscription_schema.TenantAddon,
    status_code=status.HTTP_201_CREATED,
)
async def grant_addon(
    tenant_id: int,
    payload: subscription_schema.GrantAddonRequest,
    db: AsyncSession = Depends(get_db),
    current_user: Users = Depends(get_current_super_admin),
):
    return await addon_service.grant_addon(
        db, tenant_id, payload.addon_id, current_user.id, quantity_multiplier=payload.quantity_multiplier
    )


@router.get("/tenants/{tenant_id}/addons", response_model=subscription_schema.PaginatedTenantAddonResponse)
async def read_tenant_addons(
    tenant_id: int,
    db: AsyncSession = Depends(get_db),
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE, description="Items per page"),
):
    addons, total = await addon_service.list_tenant_addons(db, tenant_id, skip=(page - 1) * limit, limit=limit)
    return {
        "addons": addons,
        "total_addons": total,
        "current_page": page,
        "total_pages": ceil(total / limit) if total else 0,
    }


@router.get("/tenants/{tenant_id}/history", response_model=subscription_schema.PaginatedHistoryResponse)
async def read_tenant_history(
    tenant_id: int,
    db: AsyncSession = Depends(get_db),
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE, description="Items per page"),
):
    entries, total = await subscription_service.list_history(db, tenant_id, skip=(page - 1) * limit, limit=limit)
    return {
        "history": entries,
        "total_history": total,
        "current_page": page,
        "total_pages": ceil(total / limit) if total else 0,
    }


@router.get("/stats", response_model=subscription_schema.SubscriptionStats)
async def read_subscription_stats(db: AsyncSession = Depends(get_db)):
    return await subscription_service.get_subscription_stats(db)


@router.post("/subscriptions/process-expired", response_model=subscription_schema.ExpirySweepResult)
async def process_expired_subscriptions(db: AsyncSession = Depends(get_db)):
    """Run the expiry sweep now instead of waiting for the scheduled task."""
    return {"expired": await subscription_service.expire_subscriptions(db)}


@router.get("/plans", response_model=plan_schema.AdminPlanListResponse)
async def read_all_plans(db: AsyncSession = Depends(get_db)):
    return {"plans": await catalog_service.list_plans(db)}


@router.post("/plans", response_model=plan_schema.PlanAdmin, status_code=status.HTTP_201_CREATED)
async def create_plan(payload: plan_schema.PlanCreate, db: AsyncSession = Depends(get_db)):
    return await catalog_service.create_plan(db, payload)


@router.put("/plans/{plan_id}", response_model=plan_schema.PlanAdmin)
async def update_plan(plan_id: int, payload: plan_schema.PlanUpdate, db: AsyncSession = Depends(get_db)):
    return await catalog_service.update_plan(db, plan_id, payload)


@router.get("/billing-profile", response_model=billing_schema.BillingProfile)
async def read_billing_profile(db: AsyncSession = Depends(get_db)):
    return await catalog_service.get_billing_profile(db)


@router.put("/billing-profile", response_model=billing_schema.BillingProfile)
async def update_billing_profile(payload: billing_schema.BillingProfileUpdate, db: AsyncSession = Depends(get_db)):
    return await catalog_service.update_billing_profile(db, payload)
