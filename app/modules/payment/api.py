import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.dependencies import get_db
from app.modules.payment.service import payment_event_service
from app.schemas.payment_schema import PaymentEvent, PaymentEventResult

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/webhooks/payment", response_model=PaymentEventResult, status_code=status.HTTP_200_OK)
async def payment_webhook(request: Request, db: AsyncSession = Depends(get_db)):
    """
    Receives signed payment gateway events.
    """
    body = await request.body()
    signature = request.headers.get(settings.PAYMENT_SIGNATURE_HEADER)
    if not payment_event_service.verify_signature(body, signature):
        logger.warning("Rejected payment webhook with invalid signature")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid webhook signature")

    try:
        event = PaymentEvent.model_validate(json.loads(body.decode("utf-8")))
    except (ValueError, ValidationError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON payload")

    logger.info("Received payment event %s (%s)", event.id, event.event)
    return await payment_event_service.handle_event(db, event)
