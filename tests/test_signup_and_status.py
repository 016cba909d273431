"""
API tests for the signup hook, subscription status, health and version
"""
from datetime import datetime, timedelta, timezone

import pytest

from journal_billing import __version__
from journal_billing.models.profile import Profile, SubscriptionStatus, SubscriptionTier
from journal_billing.routers.subscription import has_premium_access
from tests.fakes import create_profile, load_profile, utc


def _signup(user_id="user_1", email="jane@example.com", **record):
    return {
        "type": "INSERT",
        "table": "users",
        "record": {"id": user_id, "email": email, **record},
    }


@pytest.mark.asyncio
async def test_signup_creates_profile_and_customer(async_client, session_maker, fake_stripe):
    response = await async_client.post(
        "/create-stripe-customer",
        json=_signup(raw_user_meta_data={"full_name": "Jane Doe"}),
    )

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["message"] == "Profile created and linked to Stripe customer"

    profile = await load_profile(session_maker, "user_1")
    assert profile.name == "Jane Doe"
    assert profile.subscription_status == SubscriptionStatus.FREE
    assert profile.billing_customer_id == data["customerId"]
    assert fake_stripe.calls_to("create_customer")[0]["name"] == "Jane Doe"


@pytest.mark.asyncio
async def test_signup_for_existing_profile_links_customer(async_client, session_maker, fake_stripe):
    await create_profile(session_maker, "user_1", name="Existing")

    response = await async_client.post("/create-stripe-customer", json=_signup())

    assert response.status_code == 200
    assert response.json()["message"] == "Stripe customer linked to user profile"
    profile = await load_profile(session_maker, "user_1")
    assert profile.name == "Existing"
    assert profile.billing_customer_id == response.json()["customerId"]


@pytest.mark.asyncio
async def test_signup_redelivery_does_not_duplicate_customer(async_client, fake_stripe):
    first = await async_client.post("/create-stripe-customer", json=_signup())
    second = await async_client.post("/create-stripe-customer", json=_signup())

    assert first.json()["customerId"] == second.json()["customerId"]
    assert len(fake_stripe.calls_to("create_customer")) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [{}, {"record": {"id": "user_1"}}, {"record": {"email": "a@example.com"}}])
async def test_signup_without_user_data_rejected(async_client, fake_stripe, payload):
    response = await async_client.post("/create-stripe-customer", json=payload)

    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Invalid webhook payload. Missing user data."}
    assert fake_stripe.calls == []


@pytest.mark.asyncio
async def test_status_for_premium_user(async_client, session_maker):
    await create_profile(
        session_maker,
        "user_1",
        subscription_status=SubscriptionStatus.PREMIUM,
        subscription_tier=SubscriptionTier.PREMIUM_PLUS,
        subscription_expires_at=utc(2030, 1, 1),
    )

    response = await async_client.post("/subscription-status", json={"userId": "user_1"})

    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "user_id": "user_1",
        "subscription_status": "premium",
        "subscription_tier": "premium_plus",
        "subscription_expires_at": "2030-01-01T00:00:00Z",
        "is_premium": True,
    }


@pytest.mark.asyncio
async def test_status_for_unknown_user(async_client):
    response = await async_client.post("/subscription-status", json={"userId": "nobody"})

    assert response.status_code == 404
    assert response.json()["success"] is False


def test_cancelled_keeps_access_until_expiry():
    now = datetime(2030, 1, 1, tzinfo=timezone.utc)
    profile = Profile(
        user_id="u",
        subscription_status=SubscriptionStatus.CANCELLED,
        subscription_tier=SubscriptionTier.PREMIUM,
        subscription_expires_at=now + timedelta(days=3),
    )
    assert has_premium_access(profile, now) is True
    assert has_premium_access(profile, now + timedelta(days=4)) is False


def test_expired_and_free_have_no_access():
    for status in (SubscriptionStatus.EXPIRED, SubscriptionStatus.FREE):
        profile = Profile(user_id="u", subscription_status=status, subscription_tier=SubscriptionTier.FREE)
        assert has_premium_access(profile) is False


@pytest.mark.asyncio
async def test_health_and_version(async_client):
    health = await async_client.get("/health")
    version = await async_client.get("/version")

    assert health.status_code == 200
    assert health.json() == {
        "status": "ok",
        "db": "ok",
        "stripe_configured": True,
        "revenuecat_configured": True,
    }
    assert version.status_code == 200
    assert version.json()["version"] == __version__
