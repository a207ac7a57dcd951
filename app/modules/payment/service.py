import hashlib
import hmac
import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import BadRequestError
from app.modules.subscription.addon_service import addon_service
from app.modules.subscription.service import subscription_service
from app.schemas.payment_schema import PaymentEvent, PaymentEventResult
from app.utils.helpers import normalize_id

logger = logging.getLogger(__name__)

SETUP_VERIFIED = "setup.verified"
PAYMENT_SUCCEEDED = "payment.succeeded"


class PaymentEventService:
    """Verifies and applies payment gateway events. Delivery is at-least-once."""

    def __init__(self, secret: Optional[str] = None):
        self._secret = secret

    @property
    def secret(self) -> str:
        return self._secret or settings.PAYMENT_WEBHOOK_SECRET

    def compute_signature(self, body: bytes) -> str:
        """HMAC-SHA256 of the raw request body, hex encoded."""
        return hmac.new(self.secret.encode(), body, hashlib.sha256).hexdigest()

    def verify_signature(self, body: bytes, signature: Optional[str]) -> bool:
        if not signature:
            return False
        return hmac.compare_digest(self.compute_signature(body), signature.strip().lower())

    def _id(self, value, field: str) -> int:
        try:
            return normalize_id(value)
        except ValueError:
            raise BadRequestError(f"Invalid {field} in payment event")

    async def handle_event(self, db: AsyncSession, event: PaymentEvent) -> PaymentEventResult:
        data = event.data
        tenant_id = self._id(data.tenant_id, "tenant_id")

        if event.event == SETUP_VERIFIED:
            subscription = await subscription_service.create_free_trial(
                db, tenant_id, payment_id=data.payment_id, payment_order_id=data.order_id
            )
            return PaymentEventResult(status="processed", event=event.event, subscription_id=subscription.id)

        if event.event == PAYMENT_SUCCEEDED:
            if not data.payment_id:
                raise BadRequestError("payment_id is required for payment events")
            if data.plan_id is not None:
                subscription = await subscription_service.create_paid_subscription(
                    db,
                    tenant_id,
                    self._id(data.plan_id, "plan_id"),
                    payment_id=data.payment_id,
                    payment_order_id=data.order_id,
                )
                return PaymentEventResult(status="processed", event=event.event, subscription_id=subscription.id)
            if data.addon_id is not None:
                addon = await addon_service.create_addon_subscription(
                    db,
                    tenant_id,
                    self._id(data.addon_id, "addon_id"),
                    data.order_id,
                    data.payment_id,
                )
                return PaymentEventResult(status="processed", event=event.event, tenant_addon_id=addon.id)
            logger.warning("Payment event %s has neither plan_id nor addon_id; ignoring", event.id)
            return PaymentEventResult(status="ignored", event=event.event)

        logger.info("Ignoring unhandled payment event type %s (%s)", event.event, event.id)
        return PaymentEventResult(status="ignored", event=event.event)


payment_event_service = PaymentEventService()
