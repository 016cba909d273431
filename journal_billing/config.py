from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from journal_billing.errors import ConfigurationError


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    environment: str = "development"
    log_level: str = "INFO"

    database_url: str = "sqlite+aiosqlite:///./journal.db"

    stripe_secret_key: Optional[str] = None
    stripe_price_id_monthly: Optional[str] = None
    stripe_price_id_yearly: Optional[str] = None
    stripe_webhook_secret: Optional[str] = None

    revenuecat_webhook_secret: Optional[str] = None

    app_url: str = "http://localhost:5173"
    cors_origins: str = "*"

    @property
    def cors_origin_list(self) -> list[str]:
        origins = [o.strip() for o in self.cors_origins.split(",") if o.strip()]
        return origins or ["*"]


@lru_cache
def get_settings() -> Settings:
    return Settings()


def require_settings(pairs: list[tuple[str, Optional[str]]]) -> None:
    missing = [name for name, value in pairs if not value]
    if missing:
        raise ConfigurationError(missing)


@dataclass(frozen=True)
class StripeConfig:
    """Everything the checkout, verify and portal handlers need from the environment."""

    secret_key: str
    price_id_monthly: str
    price_id_yearly: str
    app_url: str

    @classmethod
    def from_settings(cls, settings: Settings) -> "StripeConfig":
        require_settings([
            ("STRIPE_SECRET_KEY", settings.stripe_secret_key),
            ("STRIPE_PRICE_ID_MONTHLY", settings.stripe_price_id_monthly),
            ("STRIPE_PRICE_ID_YEARLY", settings.stripe_price_id_yearly),
        ])
        return cls(
            secret_key=settings.stripe_secret_key,
            price_id_monthly=settings.stripe_price_id_monthly,
            price_id_yearly=settings.stripe_price_id_yearly,
            app_url=settings.app_url.rstrip("/"),
        )

    @property
    def allowed_price_ids(self) -> tuple[str, str]:
        return (self.price_id_monthly, self.price_id_yearly)


@dataclass(frozen=True)
class WebhookSecrets:
    revenuecat: Optional[str]
    stripe: Optional[str]

    @classmethod
    def from_settings(cls, settings: Settings) -> "WebhookSecrets":
        return cls(
            revenuecat=settings.revenuecat_webhook_secret,
            stripe=settings.stripe_webhook_secret,
        )

    def require_revenuecat(self) -> str:
        require_settings([("REVENUECAT_WEBHOOK_SECRET", self.revenuecat)])
        return self.revenuecat

    def require_stripe(self) -> str:
        require_settings([("STRIPE_WEBHOOK_SECRET", self.stripe)])
        return self.stripe
