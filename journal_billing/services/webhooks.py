from __future__ import annotations

import json
import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from journal_billing.errors import InputValidationError, SignatureError
from journal_billing.models.profile import SubscriptionStatus
from journal_billing.services import signature
from journal_billing.services.audit import audit_service
from journal_billing.services.events import (
    BillingEvent,
    CancellationEvent,
    ExpirationEvent,
    IgnoredEvent,
    PurchaseEvent,
    parse_event,
)
from journal_billing.services.profiles import ProfileRepository

logger = logging.getLogger(__name__)

APPLIED = "applied"
IGNORED = "ignored"
UNKNOWN_PROFILE = "unknown_profile"


class WebhookEventProcessor:
    """
    Applies RevenueCat lifecycle events to profiles.

    Every effect is a plain overwrite of status/tier/expiry, so redelivering
    an event is harmless. Events are applied in arrival order; an older event
    arriving late overwrites a newer one.
    """

    def __init__(self, db: AsyncSession, shared_secret: str):
        self.db = db
        self.shared_secret = shared_secret
        self.profiles = ProfileRepository(db)

    async def process(self, raw_body: bytes, provided_signature: Optional[str]) -> BillingEvent:
        if not provided_signature:
            raise SignatureError("Missing RevenueCat signature")
        # Check the bytes as received; re-serialised JSON would not match.
        if not signature.verify(raw_body, provided_signature, self.shared_secret):
            logger.error("[REVENUECAT] webhook signature verification failed")
            raise SignatureError()

        try:
            payload = json.loads(raw_body)
        except ValueError as e:
            raise InputValidationError("Invalid webhook payload") from e

        event = parse_event(payload)
        logger.info("[REVENUECAT] event received: %s", event.type or "<none>")
        await self.apply(event)
        return event

    async def apply(self, event: BillingEvent) -> str:
        if isinstance(event, PurchaseEvent):
            matched = await self.profiles.apply_subscription(
                event.app_user_id,
                status=SubscriptionStatus.PREMIUM,
                tier=event.tier,
                expires_at=event.expires_at,
                customer_id=event.app_user_id,
            )
        elif isinstance(event, CancellationEvent):
            matched = await self.profiles.apply_subscription(
                event.app_user_id,
                status=SubscriptionStatus.CANCELLED,
                expires_at=event.expires_at,
            )
        elif isinstance(event, ExpirationEvent):
            matched = await self.profiles.apply_subscription(
                event.app_user_id,
                status=SubscriptionStatus.EXPIRED,
                expires_at=event.expires_at,
            )
        elif isinstance(event, IgnoredEvent):
            logger.info("[REVENUECAT] ignoring event type %s", event.type)
            return IGNORED
        else:
            raise TypeError(f"Unhandled billing event {event!r}")

        if not matched:
            logger.warning("[REVENUECAT] %s for unknown user %s, nothing updated", event.type, event.app_user_id)
            return UNKNOWN_PROFILE

        await audit_service.log(
            db=self.db,
            event_type=event.type.lower(),
            source="revenuecat",
            status="success",
            user_id=event.app_user_id,
            reference=event.event_id,
            details=event.product_id or None,
        )
        return APPLIED
