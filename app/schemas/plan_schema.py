# app/schemas/plan_schema.py
from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, Field
from typing import List, Literal, Optional

from app.core.config import settings

PlanType = Literal["free", "weekly", "monthly", "quarterly", "yearly"]

class PlanPublic(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    plan_type: str
    price: Decimal
    tax_percentage: Decimal
    currency: str
    trial_days: Optional[int] = None
    employee_limit: int
    visitor_limit: int
    appointment_limit: int
    spot_pass_limit: int
    module_visitor_invite: bool
    module_message: bool
    sort_order: Optional[int] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class PlanAdmin(PlanPublic):
    is_active: bool
    is_public: bool

class PlanCreate(BaseModel):
    # Limits use -1 for unlimited
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    plan_type: PlanType
    price: Decimal = Field(Decimal("0"), ge=0)
    tax_percentage: Decimal = Field(Decimal("0"), ge=0, le=100)
    currency: str = Field(settings.DEFAULT_CURRENCY, min_length=3, max_length=3)
    trial_days: Optional[int] = Field(None, ge=0)
    employee_limit: int = Field(-1, ge=-1)
    visitor_limit: int = Field(-1, ge=-1)
    appointment_limit: int = Field(-1, ge=-1)
    spot_pass_limit: int = Field(0, ge=-1)
    module_visitor_invite: bool = False
    module_message: bool = False
    is_active: bool = True
    is_public: bool = True
    sort_order: int = 0

class PlanUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    plan_type: Optional[PlanType] = None
    price: Optional[Decimal] = Field(None, ge=0)
    tax_percentage: Optional[Decimal] = Field(None, ge=0, le=100)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    trial_days: Optional[int] = Field(None, ge=0)
    employee_limit: Optional[int] = Field(None, ge=-1)
    visitor_limit: Optional[int] = Field(None, ge=-1)
    appointment_limit: Optional[int] = Field(None, ge=-1)
    spot_pass_limit: Optional[int] = Field(None, ge=-1)
    module_visitor_invite: Optional[bool] = None
    module_message: Optional[bool] = None
    is_active: Optional[bool] = None
    is_public: Optional[bool] = None
    sort_order: Optional[int] = None

class PlanSummary(BaseModel):
    id: int
    name: str
    plan_type: str

    class Config:
        from_attributes = True

class AddonPackagePublic(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    resource_type: str
    unit_quantity: int
    price: Decimal
    currency: str

    class Config:
        from_attributes = True

class PlanListResponse(BaseModel):
    plans: List[PlanPublic]

class AdminPlanListResponse(BaseModel):
    plans: List[PlanAdmin]

class AddonPackageListResponse(BaseModel):
    addons: List[AddonPackagePublic]
