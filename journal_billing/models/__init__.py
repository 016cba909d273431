from journal_billing.models.profile import Profile, SubscriptionStatus, SubscriptionTier
from journal_billing.models.audit_log import AuditLog

__all__ = ["Profile", "SubscriptionStatus", "SubscriptionTier", "AuditLog"]
