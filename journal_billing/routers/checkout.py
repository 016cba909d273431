from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from sqlalchemy.ext.asyncio import AsyncSession

from journal_billing.config import StripeConfig
from journal_billing.database import get_db
from journal_billing.deps import get_stripe_config, get_stripe_service
from journal_billing.errors import InputValidationError
from journal_billing.services.checkout import CheckoutSessionManager, PortalRedirector
from journal_billing.services.stripe_service import StripeService

router = APIRouter(tags=["checkout"])


# -------------------------
# Schemas
# -------------------------
class CheckoutRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    price_id: Optional[str] = Field(default=None, alias="priceId")
    user_id: Optional[str] = Field(default=None, alias="userId")
    email: Optional[EmailStr] = None
    name: Optional[str] = None


class CheckoutResponse(BaseModel):
    success: bool
    url: str
    session_id: str


class PortalRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: Optional[str] = Field(default=None, alias="userId")


class PortalResponse(BaseModel):
    success: bool
    url: str


# -------------------------
# Routes
# -------------------------
@router.post("/create-checkout-session", response_model=CheckoutResponse)
async def create_checkout_session(
    request: CheckoutRequest,
    db: AsyncSession = Depends(get_db),
    config: StripeConfig = Depends(get_stripe_config),
    stripe_service: StripeService = Depends(get_stripe_service),
):
    if not request.price_id or not request.user_id or not request.email:
        raise InputValidationError("Missing required fields: priceId, userId, and email are required")

    manager = CheckoutSessionManager(db, config, stripe_service)
    result = await manager.create_checkout_session(
        price_id=request.price_id,
        user_id=request.user_id,
        email=str(request.email),
        name=request.name,
    )
    return CheckoutResponse(success=True, url=result.url, session_id=result.session_id)


@router.post("/create-portal-session", response_model=PortalResponse)
async def create_portal_session(
    request: PortalRequest,
    db: AsyncSession = Depends(get_db),
    config: StripeConfig = Depends(get_stripe_config),
    stripe_service: StripeService = Depends(get_stripe_service),
):
    if not request.user_id:
        raise InputValidationError("User ID is required")

    url = await PortalRedirector(db, config, stripe_service).create_portal_session(request.user_id)
    return PortalResponse(success=True, url=url)
