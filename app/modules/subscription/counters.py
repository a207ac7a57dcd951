from datetime import datetime

from sqlalchemy import func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from app.models import Appointment, Employee, SpotPass, Visitor


class ResourceCounter:
    """
    Usage counts per tenant.

    Employees are a standing seat count and ignore the window; visitors,
    appointments and spot passes only count what was created inside it.
    """

    async def count_employees(self, db: AsyncSession, tenant_id: int) -> int:
        stmt = select(func.count(Employee.id)).where(
            Employee.tenant_id == tenant_id,
            Employee.status == "Active",
            Employee.is_deleted.is_(False),
        )
        return (await db.execute(stmt)).scalar_one()

    async def count_visitors(self, db: AsyncSession, tenant_id: int, start: datetime, end: datetime) -> int:
        stmt = select(func.count(Visitor.id)).where(
            Visitor.tenant_id == tenant_id,
            Visitor.is_deleted.is_(False),
            Visitor.created_at >= start,
            Visitor.created_at <= end,
        )
        return (await db.execute(stmt)).scalar_one()

    async def count_appointments(self, db: AsyncSession, tenant_id: int, start: datetime, end: datetime) -> int:
        # Appointments booked by employees count against their tenant
        employee_ids = select(Employee.id).where(Employee.tenant_id == tenant_id)
        stmt = select(func.count(Appointment.id)).where(
            or_(Appointment.tenant_id == tenant_id, Appointment.employee_id.in_(employee_ids)),
            Appointment.is_deleted.is_(False),
            Appointment.created_at >= start,
            Appointment.created_at <= end,
        )
        return (await db.execute(stmt)).scalar_one()

    async def count_spot_passes(self, db: AsyncSession, tenant_id: int, start: datetime, end: datetime) -> int:
        stmt = select(func.count(SpotPass.id)).where(
            SpotPass.tenant_id == tenant_id,
            SpotPass.is_deleted.is_(False),
            SpotPass.created_at >= start,
            SpotPass.created_at <= end,
        )
        return (await db.execute(stmt)).scalar_one()

    async def count(self, db: AsyncSession, tenant_id: int, resource_type: str, start: datetime, end: datetime) -> int:
        if resource_type == "employees":
            return await self.count_employees(db, tenant_id)
        if resource_type == "visitors":
            return await self.count_visitors(db, tenant_id, start, end)
        if resource_type == "appointments":
            return await self.count_appointments(db, tenant_id, start, end)
        if resource_type == "spot_passes":
            return await self.count_spot_passes(db, tenant_id, start, end)
        raise ValueError(f"Unknown resource type: {resource_type}")


resource_counter = ResourceCounter()
