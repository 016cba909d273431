from journal_billing.routers.health import router as health_router
from journal_billing.routers.checkout import router as checkout_router
from journal_billing.routers.subscription import router as subscription_router
from journal_billing.routers.webhooks import router as webhooks_router
from journal_billing.routers.customers import router as customers_router

__all__ = ["health_router", "checkout_router", "subscription_router", "webhooks_router", "customers_router"]
