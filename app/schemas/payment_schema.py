# app/schemas/payment_schema.py
from pydantic import BaseModel
from typing import Optional, Union

class PaymentEventData(BaseModel):
    tenant_id: Union[int, str]
    plan_id: Optional[Union[int, str]] = None
    addon_id: Optional[Union[int, str]] = None
    payment_id: Optional[str] = None
    order_id: Optional[str] = None

class PaymentEvent(BaseModel):
    id: str
    event: str
    data: PaymentEventData

class PaymentEventResult(BaseModel):
    status: str  # processed|ignored
    event: str
    subscription_id: Optional[int] = None
    tenant_addon_id: Optional[int] = None
