from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from journal_billing.config import StripeConfig
from journal_billing.errors import InputValidationError, ProviderError
from journal_billing.services.audit import audit_service
from journal_billing.services.customers import CustomerResolver
from journal_billing.services.profiles import ProfileRepository
from journal_billing.services.stripe_service import StripeService, stripe_field

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckoutResult:
    url: str
    session_id: str


class CheckoutSessionManager:
    def __init__(self, db: AsyncSession, config: StripeConfig, stripe_service: StripeService):
        self.db = db
        self.config = config
        self.stripe = stripe_service
        self.customers = CustomerResolver(db, stripe_service)

    def success_url(self) -> str:
        # Stripe substitutes the literal {CHECKOUT_SESSION_ID} placeholder.
        return f"{self.config.app_url}/home?subscription=success&session_id={{CHECKOUT_SESSION_ID}}"

    def cancel_url(self) -> str:
        return f"{self.config.app_url}/premium?subscription=canceled"

    async def create_checkout_session(
        self,
        price_id: str,
        user_id: str,
        email: str,
        name: Optional[str] = None,
    ) -> CheckoutResult:
        if price_id not in self.config.allowed_price_ids:
            logger.error("[CHECKOUT] invalid price id %r for user %s", price_id, user_id)
            raise InputValidationError(
                f"Invalid price ID: {price_id}. Expected one of: "
                f"{self.config.price_id_monthly}, {self.config.price_id_yearly}"
            )

        customer_id = await self.customers.resolve_or_create_customer(user_id, email, name)

        session = await self.stripe.create_checkout_session(
            customer_id=customer_id,
            price_id=price_id,
            user_id=user_id,
            success_url=self.success_url(),
            cancel_url=self.cancel_url(),
        )
        url = stripe_field(session, "url")
        session_id = stripe_field(session, "id")
        if not url or not session_id:
            raise ProviderError("Failed to create checkout session")

        logger.info("[CHECKOUT] session %s created for customer %s", session_id, customer_id)
        await audit_service.log(
            db=self.db,
            event_type="checkout_session_created",
            source="stripe",
            status="success",
            user_id=user_id,
            reference=session_id,
            details=price_id,
        )
        return CheckoutResult(url=url, session_id=session_id)


class PortalRedirector:
    def __init__(self, db: AsyncSession, config: StripeConfig, stripe_service: StripeService):
        self.profiles = ProfileRepository(db)
        self.config = config
        self.stripe = stripe_service

    async def create_portal_session(self, user_id: str) -> str:
        profile = await self.profiles.get(user_id)
        customer_id = profile.billing_customer_id if profile else None
        if not customer_id:
            raise InputValidationError("No Stripe customer ID found for this user")

        session = await self.stripe.create_portal_session(
            customer_id=customer_id,
            return_url=f"{self.config.app_url}/settings",
        )
        url = stripe_field(session, "url")
        if not url:
            raise ProviderError("Failed to create customer portal session")
        return url
