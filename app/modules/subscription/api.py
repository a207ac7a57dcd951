from math import ceil

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.dependencies import get_current_tenant_member, get_db
from app.models.user_model import Users
from app.modules.subscription.addon_service import addon_service
from app.modules.subscription.catalog_repository import addon_package_repository, plan_repository
from app.modules.subscription.service import subscription_service
from app.modules.subscription.tenant_resolver import tenant_resolver
from app.schemas.plan_schema import AddonPackageListResponse, PlanListResponse
from app.schemas.subscription_schema import (
    PaginatedHistoryResponse,
    PaginatedTenantAddonResponse,
    SubscriptionStatus,
)

router = APIRouter()


@router.get("/plans", response_model=PlanListResponse, tags=["Catalog"])
async def get_available_plans(db: AsyncSession = Depends(get_db)):
    plans = await plan_repository.list_public(db)
    return {"plans": plans}


@router.get("/addons", response_model=AddonPackageListResponse, tags=["Catalog"])
async def get_available_addons(db: AsyncSession = Depends(get_db)):
    addons = await addon_package_repository.list_active(db)
    return {"addons": addons}


@router.get("/subscriptions/my-status", response_model=SubscriptionStatus, tags=["Subscriptions"])
async def get_my_subscription_status(
    current_user: Users = Depends(get_current_tenant_member),
    db: AsyncSession = Depends(get_db),
):
    return await subscription_service.get_subscription_status(db, current_user.id)


@router.get("/subscriptions/history", response_model=PaginatedHistoryResponse, tags=["Subscriptions"])
async def get_my_subscription_history(
    current_user: Users = Depends(get_current_tenant_member),
    db: AsyncSession = Depends(get_db),
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE, description="Items per page"),
):
    resolved = await tenant_resolver.resolve(db, current_user.id)
    entries, total = await subscription_service.list_history(
        db, resolved.tenant_id, skip=(page - 1) * limit, limit=limit
    )
    return {
        "history": entries,
        "total_history": total,
        "current_page": page,
        "total_pages": ceil(total / limit) if total else 0,
    }


@router.get("/subscriptions/addons", response_model=PaginatedTenantAddonResponse, tags=["Subscriptions"])
async def get_my_addons(
    current_user: Users = Depends(get_current_tenant_member),
    db: AsyncSession = Depends(get_db),
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE, description="Items per page"),
):
    resolved = await tenant_resolver.resolve(db, current_user.id)
    addons, total = await addon_service.list_tenant_addons(
        db, resolved.tenant_id, skip=(page - 1) * limit, limit=limit
    )
    return {
        "addons": addons,
        "total_addons": total,
        "current_page": page,
        "total_pages": ceil(total / limit) if total else 0,
    }
