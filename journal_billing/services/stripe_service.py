from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

import stripe

from journal_billing.errors import InputValidationError, ProviderError, SignatureError

logger = logging.getLogger(__name__)

TRIAL_PERIOD_DAYS = 7


def stripe_field(obj: Any, key: str, default: Any = None) -> Any:
    if obj is None:
        return default
    if isinstance(obj, dict):
        value = obj.get(key, default)
    else:
        # fields like `items` collide with mapping methods on StripeObject
        try:
            value = obj[key]
        except (KeyError, TypeError):
            value = getattr(obj, key, default) if not hasattr(obj, "__getitem__") else default
    return default if value is None else value


def stripe_metadata(obj: Any) -> Dict[str, str]:
    meta = stripe_field(obj, "metadata") or {}
    if not isinstance(meta, dict) and hasattr(meta, "to_dict"):
        meta = meta.to_dict()
    out: Dict[str, str] = {}
    for k, v in meta.items():
        if v is None:
            continue
        out[str(k)] = str(v)
    return out


def _is_missing(e: stripe.StripeError) -> bool:
    return isinstance(e, stripe.InvalidRequestError) and getattr(e, "code", None) == "resource_missing"


class StripeService:
    """
    Thin wrapper over the Stripe SDK.

    The secret key is passed on every call rather than set on the global
    `stripe.api_key`. Stripe failures surface as `ProviderError` with a
    generic message; the SDK error itself is only logged.
    """

    def __init__(self, secret_key: str):
        self._secret_key = secret_key

    def _call(self, action: str, fn: Callable[..., Any], *args: Any, **params: Any) -> Any:
        try:
            return fn(*args, api_key=self._secret_key, **params)
        except stripe.StripeError as e:
            logger.error("[STRIPE_ERROR] %s failed: %s", action, e, exc_info=True)
            raise ProviderError(f"Failed to {action}") from e

    async def retrieve_customer(self, customer_id: str) -> Optional[Any]:
        """Fetch a customer; None when Stripe no longer knows it or it was deleted."""
        try:
            customer = stripe.Customer.retrieve(customer_id, api_key=self._secret_key)
        except stripe.StripeError as e:
            if _is_missing(e):
                logger.info("[STRIPE] customer %s not found, treating as absent", customer_id)
                return None
            logger.error("[STRIPE_ERROR] retrieve customer failed: %s", e, exc_info=True)
            raise ProviderError("Failed to retrieve Stripe customer") from e
        if stripe_field(customer, "deleted", False):
            return None
        return customer

    async def create_customer(self, email: str, name: str, user_id: str) -> Any:
        return self._call(
            "create Stripe customer",
            stripe.Customer.create,
            email=email,
            name=name,
            metadata={"userId": user_id},
        )

    async def create_checkout_session(
        self,
        customer_id: str,
        price_id: str,
        user_id: str,
        success_url: str,
        cancel_url: str
    ) -> Any:
        return self._call(
            "create checkout session",
            stripe.checkout.Session.create,
            customer=customer_id,
            payment_method_types=["card"],
            line_items=[{"price": price_id, "quantity": 1}],
            mode="subscription",
            subscription_data={
                "trial_period_days": TRIAL_PERIOD_DAYS,
                "metadata": {"userId": user_id},
            },
            success_url=success_url,
            cancel_url=cancel_url,
            metadata={"userId": user_id},
        )

    async def retrieve_checkout_session(self, session_id: str) -> Any:
        try:
            return stripe.checkout.Session.retrieve(session_id, api_key=self._secret_key)
        except stripe.StripeError as e:
            if _is_missing(e):
                raise InputValidationError("Invalid session ID") from e
            logger.error("[STRIPE_ERROR] retrieve checkout session failed: %s", e, exc_info=True)
            raise ProviderError("Failed to verify subscription status") from e

    async def retrieve_subscription(self, subscription_id: str) -> Any:
        return self._call(
            "verify subscription status",
            stripe.Subscription.retrieve,
            subscription_id,
        )

    async def create_portal_session(self, customer_id: str, return_url: str) -> Any:
        return self._call(
            "create customer portal session",
            stripe.billing_portal.Session.create,
            customer=customer_id,
            return_url=return_url,
        )

    def construct_webhook_event(self, payload: bytes, sig_header: str, webhook_secret: str) -> Any:
        try:
            return stripe.Webhook.construct_event(payload, sig_header, webhook_secret)
        except (stripe.SignatureVerificationError, ValueError) as e:
            logger.warning("[STRIPE_WEBHOOK] rejected event: %s", e)
            raise SignatureError() from e
