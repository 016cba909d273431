"""
Unit tests for settings, validated config objects and database URL handling
"""
import pytest

from journal_billing.config import Settings, StripeConfig, WebhookSecrets
from journal_billing.database import convert_database_url, engine_options
from journal_billing.errors import ConfigurationError


def test_stripe_config_lists_every_missing_variable():
    settings = Settings(_env_file=None, stripe_secret_key=None, stripe_price_id_monthly=None,
                        stripe_price_id_yearly="price_y")

    with pytest.raises(ConfigurationError) as exc_info:
        StripeConfig.from_settings(settings)

    assert exc_info.value.missing == ["STRIPE_SECRET_KEY", "STRIPE_PRICE_ID_MONTHLY"]
    assert exc_info.value.status_code == 500
    assert exc_info.value.to_payload() == {
        "success": False,
        "error": "Missing required environment variables: STRIPE_SECRET_KEY, STRIPE_PRICE_ID_MONTHLY",
        "missing": ["STRIPE_SECRET_KEY", "STRIPE_PRICE_ID_MONTHLY"],
    }


def test_stripe_config_strips_trailing_slash(settings):
    config = StripeConfig.from_settings(settings.model_copy(update={"app_url": "https://journal.test/"}))

    assert config.app_url == "https://journal.test"
    assert config.allowed_price_ids == (settings.stripe_price_id_monthly, settings.stripe_price_id_yearly)


def test_webhook_secrets_required_per_provider():
    secrets = WebhookSecrets.from_settings(Settings(_env_file=None, revenuecat_webhook_secret="rc",
                                                    stripe_webhook_secret=None))

    assert secrets.require_revenuecat() == "rc"
    with pytest.raises(ConfigurationError) as exc_info:
        secrets.require_stripe()
    assert exc_info.value.missing == ["STRIPE_WEBHOOK_SECRET"]


def test_cors_origin_list():
    assert Settings(_env_file=None, cors_origins="").cors_origin_list == ["*"]
    assert Settings(_env_file=None, cors_origins="https://a.test, https://b.test").cors_origin_list == [
        "https://a.test",
        "https://b.test",
    ]


@pytest.mark.parametrize(
    "url,expected",
    [
        ("postgres://u:p@db.test/journal?sslmode=require", "postgresql+asyncpg://u:p@db.test/journal"),
        ("postgresql://u:p@db.test/journal", "postgresql+asyncpg://u:p@db.test/journal"),
        ("sqlite+aiosqlite:///./journal.db", "sqlite+aiosqlite:///./journal.db"),
    ],
)
def test_convert_database_url(url, expected):
    assert convert_database_url(url) == expected


def test_engine_options():
    assert engine_options("sqlite+aiosqlite://") == {"connect_args": {"check_same_thread": False}}
    assert engine_options("postgresql://u:p@ep-x.neon.tech/db")["connect_args"] == {"ssl": True}
    assert engine_options("postgresql://u:p@db.test/db")["connect_args"] == {}
