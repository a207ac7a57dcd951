from fastapi import FastAPI, Depends
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession
from app.modules.admin.api import router as admin_router
from app.modules.subscription.api import router as subscription_router
from app.modules.payment.api import router as payment_router
from app.core.database import db_manager
from app.core.dependencies import get_db
from app.core.global_error_handler import register_global_exception_handlers
from app.core.logging_config import configure_logging
from app.core.config import settings
import logging

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.APP_NAME,
    description="Subscription lifecycle and quota enforcement for a multi-tenant visitor-management platform.",
    version="1.0.0"
)

# Register global exception handlers
register_global_exception_handlers(app)

@app.on_event("shutdown")
async def shutdown_event():
    """Close database connections on shutdown."""
    await db_manager.close()
    logger.info("Database engine closed.")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(subscription_router, prefix="/api")
app.include_router(admin_router, prefix="/api")
app.include_router(payment_router, prefix="/api")

@app.get("/api/")
async def root():
    return {"message": f"{settings.APP_NAME} is running"}

@app.get("/api/health")
async def health_check(db: AsyncSession = Depends(get_db)):
    await db.execute(text("SELECT 1"))
    return {"status": "ok"}
