from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from journal_billing.config import StripeConfig
from journal_billing.database import get_db
from journal_billing.deps import get_stripe_config, get_stripe_service
from journal_billing.errors import InputValidationError, NotFoundError
from journal_billing.models.profile import Profile, SubscriptionStatus
from journal_billing.services.profiles import ProfileRepository, as_utc, isoformat
from journal_billing.services.stripe_service import StripeService
from journal_billing.services.verification import SubscriptionVerifier

router = APIRouter(tags=["subscription"])


class VerifyRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: Optional[str] = Field(default=None, alias="sessionId")
    user_id: Optional[str] = Field(default=None, alias="userId")


class StatusRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: Optional[str] = Field(default=None, alias="userId")


class StatusResponse(BaseModel):
    success: bool
    user_id: str
    subscription_status: str
    subscription_tier: str
    subscription_expires_at: Optional[str] = None
    is_premium: bool


def has_premium_access(profile: Profile, now: Optional[datetime] = None) -> bool:
    # A cancelled subscription keeps its benefits until the paid period ends.
    if profile.subscription_status == SubscriptionStatus.PREMIUM:
        return True
    expires_at = as_utc(profile.subscription_expires_at)
    if profile.subscription_status == SubscriptionStatus.CANCELLED and expires_at:
        return expires_at > (now or datetime.now(timezone.utc))
    return False


@router.post("/verify-subscription")
async def verify_subscription(
    request: VerifyRequest,
    db: AsyncSession = Depends(get_db),
    config: StripeConfig = Depends(get_stripe_config),
    stripe_service: StripeService = Depends(get_stripe_service),
):
    if not request.session_id or not request.user_id:
        raise InputValidationError("Session ID and User ID are required")

    verifier = SubscriptionVerifier(db, config, stripe_service)
    result = await verifier.verify_and_apply(request.session_id, request.user_id)

    if not result.success:
        # Not an error: the user came back before paying or abandoned checkout.
        return JSONResponse(
            status_code=200,
            content={
                "success": False,
                "error": "Payment not completed",
                "session_status": result.session_status,
                "payment_status": result.payment_status,
            },
        )
    return {"success": True, **result.state.to_dict()}


@router.post("/subscription-status", response_model=StatusResponse)
async def subscription_status(request: StatusRequest, db: AsyncSession = Depends(get_db)):
    if not request.user_id:
        raise InputValidationError("User ID is required")

    profile = await ProfileRepository(db).get(request.user_id)
    if profile is None:
        raise NotFoundError("Profile not found")

    return StatusResponse(
        success=True,
        user_id=profile.user_id,
        subscription_status=profile.subscription_status.value,
        subscription_tier=profile.subscription_tier.value,
        subscription_expires_at=isoformat(profile.subscription_expires_at),
        is_premium=has_premium_access(profile),
    )
