from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.dependencies import get_current_tenant_member, get_db
from app.core.exceptions import ForbiddenError
from app.models.user_model import Users
from app.modules.subscription import quota
from app.modules.subscription.service import subscription_service

MODULE_LABELS = {
    "visitor_invite": "visitor invite",
    "message": "messaging",
}


def require_plan_limit(resource_type: str):
    """
    Route dependency for endpoints that create a counted resource.

    Usage: ``dependencies=[Depends(require_plan_limit("visitors"))]``.
    """
    if resource_type not in quota.RESOURCE_TYPES:
        raise ValueError(f"Unknown resource type: {resource_type}")

    async def checker(
        current_user: Users = Depends(get_current_tenant_member),
        db: AsyncSession = Depends(get_db),
    ):
        return await subscription_service.check_plan_limits(db, current_user.id, resource_type)

    return checker


def require_module(module: str):
    if module not in quota.MODULE_FIELDS:
        raise ValueError(f"Unknown module: {module}")

    async def checker(
        current_user: Users = Depends(get_current_tenant_member),
        db: AsyncSession = Depends(get_db),
    ):
        if not await subscription_service.check_module_access(db, current_user.id, module):
            raise ForbiddenError(
                f"Your current plan does not include the {MODULE_LABELS[module]} module. Please upgrade your plan."
            )
        return current_user

    return checker
