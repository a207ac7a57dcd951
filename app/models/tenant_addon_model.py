# app/models/tenant_addon_model.py
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Boolean, Index, func

from .base import Base


class TenantAddon(Base):
    __tablename__ = "tenant_addons"
    __table_args__ = (
        Index("ix_tenant_addons_tenant_resource", "tenant_id", "resource_type", "created_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    addon_id = Column(Integer, ForeignKey("addon_packages.id"), nullable=False)
    resource_type = Column(String(20), nullable=False)
    quantity = Column(Integer, nullable=False)

    payment_status = Column(String(20), nullable=False, default="pending")
    payment_order_id = Column(String(255), nullable=True)
    # NULLs are distinct in a unique index, so admin grants without a payment id coexist
    payment_id = Column(String(255), nullable=True, unique=True)
    is_active = Column(Boolean, default=True, nullable=True)
    source = Column(String(20), nullable=False, default="user")  # user|admin
    granted_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    created_at = Column(DateTime, server_default=func.now(), nullable=False)
