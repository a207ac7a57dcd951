import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Callable, Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import db_manager
from app.core.exceptions import DomainError, InternalError

logger = logging.getLogger(__name__)


class UnitOfWork:
    """
    Minimal async Unit of Work helper to centralize session lifecycle.
    Background jobs and webhook processing use this to own a fresh session
    whose commit/rollback happens in one place.
    """

    def __init__(self, session_factory: Optional[Callable[[], AsyncSession]] = None):
        self._session_factory = session_factory or db_manager.async_session_maker

    @asynccontextmanager
    async def __call__(self) -> AsyncGenerator[AsyncSession, None]:
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise


@asynccontextmanager
async def atomic(db: AsyncSession, failure_message: str) -> AsyncGenerator[AsyncSession, None]:
    """
    Commit everything written inside the block, or nothing.

    Domain errors and IntegrityError (unique payment id / invoice number races)
    propagate unchanged after the rollback so callers can react to them; any
    other failure is surfaced as InternalError.
    """
    try:
        yield db
        await db.commit()
    except (DomainError, IntegrityError):
        await db.rollback()
        raise
    except Exception as exc:
        await db.rollback()
        logger.exception("%s: transaction rolled back", failure_message)
        raise InternalError(failure_message) from exc
