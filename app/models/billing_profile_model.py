# app/models/billing_profile_model.py
from sqlalchemy import Column, Integer, String, Boolean, JSON, Text, DateTime, func

from .base import Base


class BillingProfile(Base):
    __tablename__ = "billing_profiles"

    id = Column(Integer, primary_key=True, index=True)
    company_name = Column(String(255), nullable=False)
    address = Column(Text, nullable=True)
    tax_id = Column(String(64), nullable=True)
    contact_email = Column(String(255), nullable=True)
    contact_phone = Column(String(32), nullable=True)
    bank_details = Column(JSON, nullable=True)
    invoice_prefix = Column(String(64), nullable=False, default="INV-{YYYY}{MM}-{SEQ}")
    next_invoice_number = Column(Integer, nullable=False, default=1)
    is_active = Column(Boolean, default=True, nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    def snapshot(self) -> dict:
        """Copy of the fields frozen into a history entry."""
        return {
            "company_name": self.company_name,
            "address": self.address,
            "tax_id": self.tax_id,
            "contact_email": self.contact_email,
            "contact_phone": self.contact_phone,
            "bank_details": self.bank_details,
        }
