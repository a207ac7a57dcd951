# app/models/subscription_history_model.py
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Numeric, JSON, Index, func

from .base import Base


class SubscriptionHistory(Base):
    """Append-only purchase/renewal/cancellation ledger, one row per segment event."""
    __tablename__ = "subscription_history"
    __table_args__ = (
        Index("ix_subscription_history_tenant_purchase", "tenant_id", "purchase_date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    subscription_id = Column(Integer, ForeignKey("subscriptions.id"), nullable=True, index=True)
    plan_id = Column(Integer, ForeignKey("plans.id"), nullable=False)
    plan_type = Column(String(20), nullable=False)

    invoice_number = Column(String(64), unique=True, nullable=False)
    purchase_date = Column(DateTime, nullable=False)
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)

    amount = Column(Numeric(12, 2), nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="INR")
    tax_amount = Column(Numeric(12, 2), nullable=False, default=0)
    tax_percentage = Column(Numeric(5, 2), nullable=False, default=0)

    payment_status = Column(String(20), nullable=False)
    payment_order_id = Column(String(255), nullable=True)
    payment_id = Column(String(255), nullable=True)

    previous_subscription_id = Column(Integer, ForeignKey("subscriptions.id"), nullable=True)
    remaining_days_from_previous = Column(Integer, nullable=False, default=0)
    source = Column(String(20), nullable=False, default="user")  # user|admin|system

    # Frozen copy of the billing profile at the time of the event
    billing_details = Column(JSON, nullable=True)

    created_at = Column(DateTime, server_default=func.now(), nullable=False)
