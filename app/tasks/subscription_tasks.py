# app/tasks/subscription_tasks.py
import asyncio
import logging
from datetime import datetime
from typing import Optional

from app.core.celery_app import celery_app
from app.core.database import DatabaseManager
from app.core.uow import UnitOfWork
from app.modules.subscription.service import subscription_service

logger = logging.getLogger(__name__)


async def _run_expiry_sweep(now: Optional[datetime] = None) -> int:
    # Each task run gets its own event loop, so it also needs its own engine
    manager = DatabaseManager()
    try:
        uow = UnitOfWork(manager.async_session_maker)
        async with uow() as db:
            return await subscription_service.expire_subscriptions(db, now=now)
    finally:
        await manager.close()


@celery_app.task(
    name="tasks.expire_subscriptions",
    acks_late=True,
    autoretry_for=(Exception,),
    retry_backoff=True,
    max_retries=3,
    retry_jitter=True,
)
def expire_subscriptions():
    """
    Periodic task: mark every active subscription whose end date has passed
    as expired. Re-running it is harmless.
    """
    logger.info("Running periodic task: expiring lapsed subscriptions")
    expired = asyncio.run(_run_expiry_sweep())
    logger.info("Expiry sweep finished; %s subscription(s) expired", expired)
    return expired
