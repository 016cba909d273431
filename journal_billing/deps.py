from fastapi import Depends

from journal_billing.config import Settings, StripeConfig, WebhookSecrets, get_settings, require_settings
from journal_billing.services.stripe_service import StripeService


def get_stripe_config(settings: Settings = Depends(get_settings)) -> StripeConfig:
    return StripeConfig.from_settings(settings)


def get_webhook_secrets(settings: Settings = Depends(get_settings)) -> WebhookSecrets:
    return WebhookSecrets.from_settings(settings)


def get_stripe_service(settings: Settings = Depends(get_settings)) -> StripeService:
    # Only the key is needed to talk to Stripe; price ids are checked by StripeConfig.
    require_settings([("STRIPE_SECRET_KEY", settings.stripe_secret_key)])
    return StripeService(settings.stripe_secret_key)
