from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from journal_billing.config import StripeConfig
from journal_billing.errors import InputValidationError, NotFoundError
from journal_billing.models.profile import SubscriptionStatus, SubscriptionTier
from journal_billing.services.audit import audit_service
from journal_billing.services.profiles import ProfileRepository, isoformat
from journal_billing.services.stripe_service import StripeService, stripe_field

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubscriptionState:
    status: SubscriptionStatus
    tier: Optional[SubscriptionTier]
    expires_at: Optional[datetime]

    def to_dict(self) -> dict:
        return {
            "subscription_status": self.status.value,
            "subscription_tier": self.tier.value if self.tier else None,
            "subscription_expires_at": isoformat(self.expires_at),
        }


@dataclass(frozen=True)
class VerificationResult:
    success: bool
    state: Optional[SubscriptionState] = None
    session_status: Optional[str] = None
    payment_status: Optional[str] = None


def tier_for_price(price_id: Optional[str], config: StripeConfig) -> SubscriptionTier:
    if price_id == config.price_id_monthly:
        return SubscriptionTier.PREMIUM
    return SubscriptionTier.PREMIUM_PLUS


def _first_item(subscription: Any) -> Any:
    items = stripe_field(subscription, "items") or {}
    data = stripe_field(items, "data") or []
    return data[0] if data else None


def subscription_price_id(subscription: Any) -> Optional[str]:
    return stripe_field(stripe_field(_first_item(subscription), "price"), "id")


def subscription_period_end(subscription: Any) -> Optional[datetime]:
    # Newer Stripe API versions moved the period onto the subscription items.
    ts = stripe_field(subscription, "current_period_end") or stripe_field(_first_item(subscription), "current_period_end")
    if not ts:
        return None
    return datetime.fromtimestamp(int(ts), tz=timezone.utc)


def premium_state_for(subscription: Any, config: StripeConfig) -> SubscriptionState:
    return SubscriptionState(
        status=SubscriptionStatus.PREMIUM,
        tier=tier_for_price(subscription_price_id(subscription), config),
        expires_at=subscription_period_end(subscription),
    )


def is_session_complete(session: Any) -> bool:
    return stripe_field(session, "payment_status") == "paid" or stripe_field(session, "status") == "complete"


class SubscriptionVerifier:
    def __init__(self, db: AsyncSession, config: StripeConfig, stripe_service: StripeService):
        self.db = db
        self.config = config
        self.stripe = stripe_service
        self.profiles = ProfileRepository(db)

    async def verify_and_apply(self, session_id: str, user_id: str) -> VerificationResult:
        """
        Reconcile a user's profile with a checkout session they just returned from.

        An unpaid session is a normal outcome (payment pending or abandoned)
        and comes back as `success=False` without touching the profile.
        """
        session = await self.stripe.retrieve_checkout_session(session_id)

        if not is_session_complete(session):
            logger.info("[VERIFY] session %s not completed (status=%s payment=%s)",
                        session_id, stripe_field(session, "status"), stripe_field(session, "payment_status"))
            return VerificationResult(
                success=False,
                session_status=stripe_field(session, "status"),
                payment_status=stripe_field(session, "payment_status"),
            )

        subscription_ref = stripe_field(session, "subscription")
        if not subscription_ref:
            raise InputValidationError("No subscription found in session")
        if not isinstance(subscription_ref, str):
            subscription_ref = stripe_field(subscription_ref, "id")

        subscription = await self.stripe.retrieve_subscription(subscription_ref)
        state = premium_state_for(subscription, self.config)

        matched = await self.profiles.apply_subscription(
            user_id,
            status=state.status,
            tier=state.tier,
            expires_at=state.expires_at,
        )
        if not matched:
            logger.warning("[VERIFY] paid session %s for user %s with no profile", session_id, user_id)
            raise NotFoundError("Profile not found")

        logger.info("[VERIFY] user %s now %s/%s", user_id, state.status.value, state.tier.value)
        await audit_service.log(
            db=self.db,
            event_type="subscription_verified",
            source="stripe",
            status="success",
            user_id=user_id,
            reference=session_id,
            details=state.tier.value,
        )
        return VerificationResult(success=True, state=state)
