import logging
from datetime import datetime
from typing import Tuple

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from app.core.config import settings
from app.models.billing_profile_model import BillingProfile

logger = logging.getLogger(__name__)


def generate_invoice_number(prefix: str, sequence: int, date: datetime) -> str:
    """
    Render an invoice number from a prefix template.

    Supported placeholders: {YYYY}, {YY}, {MM}, {DD} and {SEQ}. A template
    without {SEQ} gets the sequence appended as ``prefix-sequence``.
    """
    rendered = (
        prefix.replace("{YYYY}", f"{date.year:04d}")
        .replace("{YY}", f"{date.year % 100:02d}")
        .replace("{MM}", f"{date.month:02d}")
        .replace("{DD}", f"{date.day:02d}")
    )
    if "{SEQ}" in rendered:
        return rendered.replace("{SEQ}", str(sequence))
    return f"{rendered}-{sequence}"


class InvoiceNumberAllocator:
    """Hands out invoice sequence numbers from the billing profile row."""

    async def get_billing_profile(self, db: AsyncSession) -> BillingProfile:
        result = await db.execute(
            select(BillingProfile).filter(BillingProfile.is_active.is_(True)).order_by(BillingProfile.id).limit(1)
        )
        profile = result.scalar_one_or_none()
        if profile is None:
            logger.info("No billing profile found; creating default profile")
            profile = BillingProfile(
                company_name=settings.APP_NAME,
                invoice_prefix=settings.INVOICE_PREFIX,
                next_invoice_number=1,
                is_active=True,
            )
            db.add(profile)
            await db.flush()
        return profile

    async def allocate(self, db: AsyncSession, date: datetime) -> Tuple[str, dict]:
        """
        Reserve the next sequence number and render it.

        The increment is a single UPDATE ... RETURNING, so two concurrent
        segment transactions can never read the same value. Must run inside
        the caller's transaction so a rollback also gives the number back.
        """
        profile = await self.get_billing_profile(db)
        result = await db.execute(
            update(BillingProfile)
            .where(BillingProfile.id == profile.id)
            .values(next_invoice_number=BillingProfile.next_invoice_number + 1)
            .returning(BillingProfile.next_invoice_number, BillingProfile.invoice_prefix)
        )
        next_number, prefix = result.one()
        sequence = next_number - 1
        return generate_invoice_number(prefix or settings.INVOICE_PREFIX, sequence, date), profile.snapshot()


invoice_allocator = InvoiceNumberAllocator()
