# app/schemas/subscription_schema.py
from decimal import Decimal
from pydantic import BaseModel, Field
from typing import Dict, List, Optional
from datetime import datetime
from .plan_schema import PlanSummary

class Subscription(BaseModel):
    id: int
    tenant_id: int
    plan_id: int
    plan_type: str
    start_date: datetime
    end_date: datetime
    is_active: bool
    payment_status: str
    trial_days: Optional[int] = None
    payment_order_id: Optional[str] = None
    payment_id: Optional[str] = None
    source: str
    assigned_by: Optional[int] = None

    class Config:
        from_attributes = True

class SubscriptionWithPlan(Subscription):
    plan: Optional[PlanSummary] = None

class PaginatedSubscriptionResponse(BaseModel):
    subscriptions: List[SubscriptionWithPlan]
    total_subscriptions: int
    current_page: int
    total_pages: int

class LimitInfo(BaseModel):
    base_limit: int
    extra: int
    total: int
    current: int
    remaining: int
    reached: bool
    can_create: bool
    is_expired: bool = False

class SubscriptionStatus(BaseModel):
    tenant_id: int
    is_trial: bool
    plan_type: Optional[str] = None
    is_active: bool
    is_expired: bool
    subscription: Optional[Subscription] = None
    plan: Optional[PlanSummary] = None
    window_start: datetime
    window_end: datetime
    days_remaining: int
    limits: Dict[str, LimitInfo]
    modules: Dict[str, bool]

class SubscriptionHistoryEntry(BaseModel):
    id: int
    subscription_id: Optional[int] = None
    plan_id: int
    plan_type: str
    invoice_number: str
    purchase_date: datetime
    start_date: datetime
    end_date: datetime
    amount: Decimal
    currency: str
    tax_amount: Decimal
    tax_percentage: Decimal
    payment_status: str
    payment_id: Optional[str] = None
    previous_subscription_id: Optional[int] = None
    remaining_days_from_previous: int
    source: str
    billing_details: Optional[dict] = None

    class Config:
        from_attributes = True

class PaginatedHistoryResponse(BaseModel):
    history: List[SubscriptionHistoryEntry]
    total_history: int
    current_page: int
    total_pages: int

class TenantAddon(BaseModel):
    id: int
    addon_id: int
    resource_type: str
    quantity: int
    payment_status: str
    payment_id: Optional[str] = None
    is_active: Optional[bool] = None
    source: str
    created_at: datetime

    class Config:
        from_attributes = True

class PaginatedTenantAddonResponse(BaseModel):
    addons: List[TenantAddon]
    total_addons: int
    current_page: int
    total_pages: int

class AssignSubscriptionRequest(BaseModel):
    plan_id: int
    start_date: Optional[datetime] = None

class ExtendSubscriptionRequest(BaseModel):
    days: int = Field(..., gt=0, le=3650)

class GrantAddonRequest(BaseModel):
    addon_id: int
    quantity_multiplier: int = Field(1, ge=1, le=100)

class SubscriptionStats(BaseModel):
    total_subscriptions: int
    active_subscriptions: int
    trialing_subscriptions: int
    cancelled_subscriptions: int
    expired_subscriptions: int
    subscriptions_by_status: Dict[str, int]
    total_revenue: Decimal
    average_subscription_value: Decimal
    currency: str

class ExpirySweepResult(BaseModel):
    expired: int
