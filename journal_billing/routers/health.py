from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from journal_billing import __version__
from journal_billing.config import Settings, get_settings
from journal_billing.database import get_db

router = APIRouter(tags=["core"])


@router.get("/health")
async def health_check(
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    try:
        await db.execute(text("SELECT 1"))
        db_status = "ok"
    except SQLAlchemyError:
        db_status = "error"

    # Presence only; values are never echoed.
    return {
        "status": "ok",
        "db": db_status,
        "stripe_configured": bool(settings.stripe_secret_key and settings.stripe_price_id_monthly
                                  and settings.stripe_price_id_yearly),
        "revenuecat_configured": bool(settings.revenuecat_webhook_secret),
    }


@router.get("/version")
async def version(settings: Settings = Depends(get_settings)):
    return {
        "version": __version__,
        "environment": settings.environment,
        "app_name": "Journal Billing",
    }
