import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ForbiddenError, NotFoundError
from app.models import Users

logger = logging.getLogger(__name__)

NOT_LINKED_MESSAGE = (
    "Employee account is not properly linked to an admin. Please contact your administrator."
)


@dataclass
class ResolvedTenant:
    tenant_id: int
    is_employee: bool


class TenantResolver:
    async def resolve(self, db: AsyncSession, user_id: int) -> ResolvedTenant:
        """
        Map a caller to the tenant whose quota applies.

        Admins are their own tenant; employees resolve to the admin that owns
        them and are refused if that link is missing.
        """
        user = await db.get(Users, user_id)
        if user is None:
            raise NotFoundError("User not found")

        if user.role == "employee":
            if not user.owner_id:
                logger.warning("Employee %s has no owning admin", user_id)
                raise ForbiddenError(NOT_LINKED_MESSAGE)
            return ResolvedTenant(tenant_id=user.owner_id, is_employee=True)

        return ResolvedTenant(tenant_id=user.id, is_employee=False)


tenant_resolver = TenantResolver()
