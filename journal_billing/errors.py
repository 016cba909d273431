from __future__ import annotations

from typing import Any, Dict, List, Optional


class BillingError(Exception):
    """Base for every failure a handler turns into a `{success: false}` response."""

    status_code = 500
    public_message = "An unexpected error occurred"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.public_message
        super().__init__(self.message)

    def to_payload(self) -> Dict[str, Any]:
        return {"success": False, "error": self.message}


class ConfigurationError(BillingError):
    status_code = 500

    def __init__(self, missing: List[str]):
        self.missing = list(missing)
        super().__init__(
            "Missing required environment variables: " + ", ".join(self.missing)
        )

    def to_payload(self) -> Dict[str, Any]:
        payload = super().to_payload()
        payload["missing"] = self.missing
        return payload


class InputValidationError(BillingError):
    status_code = 400
    public_message = "Invalid request"


class NotFoundError(BillingError):
    status_code = 404
    public_message = "Not found"


class SignatureError(BillingError):
    status_code = 400
    public_message = "Webhook signature verification failed"


class ProviderError(BillingError):
    # Callers pass a generic message; the provider's own error is only logged.
    status_code = 500
    public_message = "Billing provider request failed"


class PersistenceError(BillingError):
    status_code = 500
    public_message = "Failed to update user profile"
