# Webhook receivers for RevenueCat and Stripe.
# - Signature is checked against the raw body before any JSON parsing
# - Unknown but authentic events are acknowledged with 200 so they are not retried
# - A failed profile write answers 500 so the provider redelivers later

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from journal_billing.config import StripeConfig, WebhookSecrets
from journal_billing.database import get_db
from journal_billing.deps import get_stripe_config, get_stripe_service, get_webhook_secrets
from journal_billing.errors import BillingError
from journal_billing.services.stripe_events import StripeEventProcessor
from journal_billing.services.stripe_service import StripeService
from journal_billing.services.webhooks import WebhookEventProcessor

logger = logging.getLogger(__name__)

router = APIRouter(tags=["webhooks"])


@router.post("/revenuecat-webhook")
async def revenuecat_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
    secrets: WebhookSecrets = Depends(get_webhook_secrets),
):
    shared_secret = secrets.require_revenuecat()
    payload = await request.body()

    try:
        await WebhookEventProcessor(db, shared_secret).process(payload, request.headers.get("X-Signature"))
    except BillingError:
        raise
    except Exception as e:
        logger.error("[REVENUECAT_FATAL_ERROR] %r", e, exc_info=True)
        raise BillingError("Webhook handler error") from e

    return {"success": True, "received": True}


@router.post("/stripe-webhook")
async def stripe_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
    secrets: WebhookSecrets = Depends(get_webhook_secrets),
    config: StripeConfig = Depends(get_stripe_config),
    stripe_service: StripeService = Depends(get_stripe_service),
):
    webhook_secret = secrets.require_stripe()
    payload = await request.body()

    try:
        outcome = await StripeEventProcessor(db, config, stripe_service).process(
            payload,
            request.headers.get("stripe-signature"),
            webhook_secret,
        )
    except BillingError:
        raise
    except Exception as e:
        logger.error("[STRIPE_WEBHOOK_FATAL_ERROR] %r", e, exc_info=True)
        raise BillingError("Webhook handler error") from e

    return {"success": True, "received": True, "outcome": outcome}
