from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from journal_billing.errors import PersistenceError
from journal_billing.services.audit import audit_service
from journal_billing.services.profiles import ProfileRepository
from journal_billing.services.stripe_service import StripeService, stripe_field

logger = logging.getLogger(__name__)


def default_display_name(email: str, name: Optional[str] = None) -> str:
    if name and name.strip():
        return name.strip()
    return email.split("@")[0]


class CustomerResolver:
    def __init__(self, db: AsyncSession, stripe_service: StripeService):
        self.db = db
        self.profiles = ProfileRepository(db)
        self.stripe = stripe_service

    async def resolve_or_create_customer(self, user_id: str, email: str, name: Optional[str] = None) -> str:
        """
        Return a Stripe customer id for the user, creating one if needed.

        A stored id is re-checked against Stripe so that a wiped test account
        or deleted customer gets replaced. If saving a new id fails, the id is
        still returned; the next call will create and save another one.
        """
        profile = await self.profiles.get(user_id)
        customer_id = profile.billing_customer_id if profile else None

        if customer_id:
            if await self.stripe.retrieve_customer(customer_id) is not None:
                return customer_id
            logger.info("[CUSTOMER] stored id %s for user %s is gone, creating a new one", customer_id, user_id)

        customer = await self.stripe.create_customer(
            email=email,
            name=default_display_name(email, name),
            user_id=user_id,
        )
        customer_id = stripe_field(customer, "id")

        try:
            saved = await self.profiles.set_customer_id(user_id, customer_id)
        except PersistenceError:
            logger.warning("[CUSTOMER] could not save customer %s for user %s, continuing", customer_id, user_id)
            return customer_id

        if not saved:
            logger.warning("[CUSTOMER] no profile for user %s, customer %s not saved", user_id, customer_id)
        else:
            logger.info("[CUSTOMER] created and saved customer %s for user %s", customer_id, user_id)
            await audit_service.log(
                db=self.db,
                event_type="customer_created",
                source="stripe",
                status="success",
                user_id=user_id,
                reference=customer_id,
            )
        return customer_id
