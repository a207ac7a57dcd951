# app/models/plan_model.py
from sqlalchemy import Column, Integer, String, Boolean, Index, DateTime, Numeric, Text, func
from .base import Base

PLAN_TYPES = ("free", "weekly", "monthly", "quarterly", "yearly")


class Plan(Base):
    __tablename__ = 'plans'
    __table_args__ = (
        Index("ix_plans_is_active", "is_active"),
        Index("ix_plans_plan_type", "plan_type"),
    )
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, nullable=False)
    description = Column(Text, nullable=True)
    plan_type = Column(String(20), nullable=False)  # free|weekly|monthly|quarterly|yearly
    price = Column(Numeric(12, 2), nullable=False, default=0)
    tax_percentage = Column(Numeric(5, 2), nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="INR")
    trial_days = Column(Integer, nullable=True)

    # -1 means unlimited
    employee_limit = Column(Integer, nullable=False, default=-1)
    visitor_limit = Column(Integer, nullable=False, default=-1)
    appointment_limit = Column(Integer, nullable=False, default=-1)
    spot_pass_limit = Column(Integer, nullable=False, default=0)

    module_visitor_invite = Column(Boolean, default=False, nullable=False)
    module_message = Column(Boolean, default=False, nullable=False)

    is_active = Column(Boolean, default=True)
    is_public = Column(Boolean, default=True)
    sort_order = Column(Integer, default=0)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
