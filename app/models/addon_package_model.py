# app/models/addon_package_model.py
from sqlalchemy import Column, Integer, String, Boolean, Index, Numeric, Text, CheckConstraint

from .base import Base


class AddonPackage(Base):
    __tablename__ = "addon_packages"
    __table_args__ = (
        Index("ix_addon_packages_resource_type", "resource_type"),
        Index("ix_addon_packages_is_active", "is_active"),
        CheckConstraint("unit_quantity >= 1", name="ck_addon_packages_unit_quantity"),
    )

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, nullable=False)  # e.g. Extra 5 Employees
    description = Column(Text, nullable=True)
    resource_type = Column(String(20), nullable=False)  # employees|visitors|appointments|spot_passes
    unit_quantity = Column(Integer, nullable=False, default=1)
    price = Column(Numeric(12, 2), nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="INR")
    is_active = Column(Boolean, default=True, nullable=False)
    sort_order = Column(Integer, default=0)
