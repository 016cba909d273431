"""
API tests for POST /create-portal-session
"""
import pytest

from tests.conftest import APP_URL
from tests.fakes import create_profile


@pytest.mark.asyncio
async def test_portal_session_for_customer(async_client, session_maker, fake_stripe):
    await create_profile(session_maker, "user_1", billing_customer_id="cus_42")

    response = await async_client.post("/create-portal-session", json={"userId": "user_1"})

    assert response.status_code == 200
    assert response.json() == {"success": True, "url": "https://billing.stripe.test/p/cus_42"}
    assert fake_stripe.calls_to("create_portal_session") == [
        {"customer_id": "cus_42", "return_url": f"{APP_URL}/settings"}
    ]


@pytest.mark.asyncio
async def test_portal_without_customer(async_client, session_maker, fake_stripe):
    await create_profile(session_maker, "user_1")

    response = await async_client.post("/create-portal-session", json={"userId": "user_1"})

    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "No Stripe customer ID found for this user"}
    assert fake_stripe.calls == []


@pytest.mark.asyncio
async def test_portal_for_unknown_user(async_client, fake_stripe):
    response = await async_client.post("/create-portal-session", json={"userId": "nobody"})

    assert response.status_code == 400
    assert fake_stripe.calls == []


@pytest.mark.asyncio
async def test_portal_requires_user_id(async_client):
    response = await async_client.post("/create-portal-session", json={})

    assert response.status_code == 400
    assert response.json()["error"] == "User ID is required"


@pytest.mark.asyncio
async def test_portal_provider_failure(async_client, session_maker, fake_stripe):
    await create_profile(session_maker, "user_1", billing_customer_id="cus_42")
    fake_stripe.fail.add("create_portal_session")

    response = await async_client.post("/create-portal-session", json={"userId": "user_1"})

    assert response.status_code == 500
    assert response.json()["success"] is False
