# app/models/subscription_model.py
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Boolean, Index, func
from sqlalchemy.orm import relationship

from .base import Base

PAYMENT_STATUSES = ("pending", "succeeded", "failed", "cancelled")


class Subscription(Base):
    __tablename__ = 'subscriptions'
    __table_args__ = (
        Index("ix_subscriptions_tenant_window", "tenant_id", "is_active", "start_date", "end_date"),
        Index("ix_subscriptions_active_end", "is_active", "end_date"),
    )
    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey('users.id'), nullable=False, index=True)
    plan_id = Column(Integer, ForeignKey('plans.id'), nullable=False)
    plan_type = Column(String(20), nullable=False)

    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    # pending -> succeeded -> failed (expired) | cancelled
    payment_status = Column(String(20), default='pending', nullable=False)
    trial_days = Column(Integer, nullable=True)
    payment_order_id = Column(String(255), nullable=True)
    # Unique: a retried payment event can never produce a second segment
    payment_id = Column(String(255), nullable=True, unique=True)

    source = Column(String(20), default='self', nullable=False)  # self|admin|system
    assigned_by = Column(Integer, ForeignKey('users.id'), nullable=True)

    is_deleted = Column(Boolean, default=False, nullable=False)
    deleted_at = Column(DateTime, nullable=True)
    deleted_by = Column(Integer, ForeignKey('users.id'), nullable=True)

    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    plan = relationship("Plan")
