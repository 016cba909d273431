from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from journal_billing.config import StripeConfig
from journal_billing.errors import SignatureError
from journal_billing.models.profile import SubscriptionStatus
from journal_billing.services.audit import audit_service
from journal_billing.services.profiles import ProfileRepository
from journal_billing.services.stripe_service import StripeService, stripe_field, stripe_metadata
from journal_billing.services.verification import (
    SubscriptionState,
    premium_state_for,
    subscription_period_end,
)

logger = logging.getLogger(__name__)

ENDED_STATUSES = ("canceled", "unpaid", "past_due", "incomplete_expired")


def _pick_user_id(*candidates: Optional[str]) -> Optional[str]:
    for c in candidates:
        if c and str(c).strip():
            return str(c).strip()
    return None


def state_for_subscription(subscription: Any, config: StripeConfig) -> Optional[SubscriptionState]:
    """Map a Stripe subscription onto profile state; None means leave the profile alone."""
    status = stripe_field(subscription, "status")
    if status in ("active", "trialing"):
        if stripe_field(subscription, "cancel_at_period_end", False):
            return SubscriptionState(
                status=SubscriptionStatus.CANCELLED,
                tier=None,
                expires_at=subscription_period_end(subscription),
            )
        return premium_state_for(subscription, config)
    if status in ENDED_STATUSES:
        return SubscriptionState(
            status=SubscriptionStatus.EXPIRED,
            tier=None,
            expires_at=subscription_period_end(subscription),
        )
    # incomplete / paused: nothing paid yet or temporarily on hold
    return None


class StripeEventProcessor:
    """
    Stripe-side backstop for the same profile state the verify endpoint and
    the RevenueCat webhook write.
    """

    def __init__(self, db: AsyncSession, config: StripeConfig, stripe_service: StripeService):
        self.db = db
        self.config = config
        self.stripe = stripe_service
        self.profiles = ProfileRepository(db)

    async def process(self, raw_body: bytes, sig_header: Optional[str], webhook_secret: str) -> str:
        if not sig_header:
            raise SignatureError("Missing stripe-signature header")
        event = self.stripe.construct_webhook_event(raw_body, sig_header, webhook_secret)

        event_id = stripe_field(event, "id")
        event_type = stripe_field(event, "type")
        data_obj = stripe_field(stripe_field(event, "data"), "object") or {}
        logger.info("[STRIPE_WEBHOOK] event received: %s %s", event_type, event_id)

        if event_type == "checkout.session.completed":
            user_id = _pick_user_id(
                stripe_metadata(data_obj).get("userId"),
                stripe_field(data_obj, "client_reference_id"),
            )
            subscription_id = stripe_field(data_obj, "subscription")
            if not user_id or not subscription_id:
                logger.info("[STRIPE_WEBHOOK] checkout session without user or subscription, ignoring")
                return "ignored"
            subscription = await self.stripe.retrieve_subscription(subscription_id)
            state = premium_state_for(subscription, self.config)

        elif event_type in ("customer.subscription.updated", "customer.subscription.deleted"):
            user_id = await self._user_for_subscription(data_obj)
            if not user_id:
                logger.warning("[STRIPE_WEBHOOK] %s for unknown customer %s", event_type, stripe_field(data_obj, "customer"))
                return "ignored"
            if event_type == "customer.subscription.deleted":
                state = SubscriptionState(
                    status=SubscriptionStatus.EXPIRED,
                    tier=None,
                    expires_at=subscription_period_end(data_obj),
                )
            else:
                state = state_for_subscription(data_obj, self.config)
                if state is None:
                    return "ignored"

        else:
            return "ignored"

        matched = await self.profiles.apply_subscription(
            user_id,
            status=state.status,
            tier=state.tier,
            expires_at=state.expires_at,
        )
        if not matched:
            logger.warning("[STRIPE_WEBHOOK] %s for unknown user %s, nothing updated", event_type, user_id)
            return "ignored"

        await audit_service.log(
            db=self.db,
            event_type=event_type,
            source="stripe",
            status="success",
            user_id=user_id,
            reference=event_id,
            details=state.status.value,
        )
        return "applied"

    async def _user_for_subscription(self, subscription: Any) -> Optional[str]:
        user_id = _pick_user_id(stripe_metadata(subscription).get("userId"))
        if user_id:
            return user_id
        customer_id = stripe_field(subscription, "customer")
        if not customer_id:
            return None
        profile = await self.profiles.get_by_customer_id(customer_id)
        return profile.user_id if profile else None
