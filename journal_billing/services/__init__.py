from journal_billing.services.stripe_service import StripeService
from journal_billing.services.audit import AuditService
from journal_billing.services.profiles import ProfileRepository

__all__ = ["StripeService", "AuditService", "ProfileRepository"]
