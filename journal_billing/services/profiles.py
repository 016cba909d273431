from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from journal_billing.errors import PersistenceError
from journal_billing.models.profile import (
    Profile,
    SubscriptionStatus,
    SubscriptionTier,
    utcnow,
)

logger = logging.getLogger(__name__)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes even for timezone=True columns.
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def isoformat(value: Optional[datetime]) -> Optional[str]:
    value = as_utc(value)
    return value.isoformat().replace("+00:00", "Z") if value else None


class ProfileRepository:
    """
    Single-row reads and writes against `profiles`.

    Every write is one UPDATE keyed by user id, committed immediately; there
    is no locking, the last writer wins.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, user_id: str) -> Optional[Profile]:
        try:
            result = await self.db.execute(select(Profile).where(Profile.user_id == user_id))
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("[PROFILE_READ_ERROR] %s: %r", user_id, e, exc_info=True)
            raise PersistenceError("Failed to fetch user profile from database") from e

    async def get_by_customer_id(self, customer_id: str) -> Optional[Profile]:
        try:
            result = await self.db.execute(
                select(Profile).where(Profile.billing_customer_id == customer_id).limit(1)
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("[PROFILE_READ_ERROR] customer %s: %r", customer_id, e, exc_info=True)
            raise PersistenceError("Failed to fetch user profile from database") from e

    async def ensure_profile(self, user_id: str, email: str, name: Optional[str] = None) -> bool:
        """Create the default free profile if missing. Returns True when a row was inserted."""
        if await self.get(user_id) is not None:
            return False

        profile = Profile(
            user_id=user_id,
            email=email,
            name=name or email.split("@")[0],
            subscription_status=SubscriptionStatus.FREE,
            subscription_tier=SubscriptionTier.FREE,
        )
        try:
            self.db.add(profile)
            await self.db.commit()
        except IntegrityError:
            # created concurrently by another signup delivery
            await self.db.rollback()
            return False
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("[PROFILE_CREATE_ERROR] %s: %r", user_id, e, exc_info=True)
            raise PersistenceError("Failed to create user profile") from e
        return True

    async def set_customer_id(self, user_id: str, customer_id: str) -> bool:
        return await self._update(
            user_id,
            billing_customer_id=customer_id,
            updated_at=utcnow(),
        )

    async def apply_subscription(
        self,
        user_id: str,
        *,
        status: SubscriptionStatus,
        expires_at: Optional[datetime],
        tier: Optional[SubscriptionTier] = None,
        customer_id: Optional[str] = None,
    ) -> bool:
        """
        Write subscription state for one user. Returns False when no profile matched.

        `tier` is left untouched when None; so is billing_customer_id when
        `customer_id` is None.
        """
        values = {
            "subscription_status": status,
            "subscription_expires_at": expires_at,
            "updated_at": utcnow(),
        }
        if tier is not None:
            values["subscription_tier"] = tier
        if customer_id:
            values["billing_customer_id"] = customer_id
        return await self._update(user_id, **values)

    async def _update(self, user_id: str, **values) -> bool:
        try:
            result = await self.db.execute(
                update(Profile)
                .where(Profile.user_id == user_id)
                .values(**values)
                .execution_options(synchronize_session="fetch")
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("[PROFILE_UPDATE_ERROR] %s: %r", user_id, e, exc_info=True)
            raise PersistenceError() from e
        return result.rowcount > 0
