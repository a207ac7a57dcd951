# app/schemas/billing_schema.py
from datetime import datetime
from pydantic import BaseModel, EmailStr, Field
from typing import Optional

class BillingProfile(BaseModel):
    id: int
    company_name: str
    address: Optional[str] = None
    tax_id: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    bank_details: Optional[dict] = None
    invoice_prefix: str
    next_invoice_number: int
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class BillingProfileUpdate(BaseModel):
    """Seller details frozen into future history entries. Past invoices keep their copy."""
    company_name: Optional[str] = Field(None, min_length=1, max_length=255)
    address: Optional[str] = None
    tax_id: Optional[str] = Field(None, max_length=64)
    contact_email: Optional[EmailStr] = None
    contact_phone: Optional[str] = Field(None, max_length=32)
    bank_details: Optional[dict] = None
    invoice_prefix: Optional[str] = Field(None, min_length=1, max_length=64)
