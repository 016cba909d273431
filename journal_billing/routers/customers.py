from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from journal_billing.database import get_db
from journal_billing.deps import get_stripe_service
from journal_billing.errors import InputValidationError
from journal_billing.services.customers import CustomerResolver
from journal_billing.services.profiles import ProfileRepository
from journal_billing.services.stripe_service import StripeService

router = APIRouter(tags=["customers"])


class SignupRecord(BaseModel):
    id: Optional[str] = None
    email: Optional[str] = None
    user_metadata: Optional[Dict[str, Any]] = None
    raw_user_meta_data: Optional[Dict[str, Any]] = None

    def display_name(self) -> Optional[str]:
        meta = self.user_metadata or self.raw_user_meta_data or {}
        return meta.get("name") or meta.get("full_name")


class SignupWebhook(BaseModel):
    """Payload posted by the database trigger on a new auth user."""

    type: Optional[str] = None
    table: Optional[str] = None
    record: Optional[SignupRecord] = None


@router.post("/create-stripe-customer")
async def create_stripe_customer(
    payload: SignupWebhook,
    db: AsyncSession = Depends(get_db),
    stripe_service: StripeService = Depends(get_stripe_service),
):
    record = payload.record
    if record is None or not record.id or not record.email:
        raise InputValidationError("Invalid webhook payload. Missing user data.")

    name = record.display_name()
    created = await ProfileRepository(db).ensure_profile(record.id, record.email, name)
    customer_id = await CustomerResolver(db, stripe_service).resolve_or_create_customer(
        record.id, record.email, name
    )

    return {
        "success": True,
        "message": "Profile created and linked to Stripe customer" if created
        else "Stripe customer linked to user profile",
        "customerId": customer_id,
    }
