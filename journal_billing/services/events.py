"""
RevenueCat webhook payloads parsed into one dataclass per kind of effect.

    {"event": {"type": "RENEWAL", "app_user_id": "...", "product_id": "yearly_premium",
               "expires_date": "2026-01-01T00:00:00Z", ...}}

`parse_event` never returns a loosely typed dict: a known type becomes a
PurchaseEvent / CancellationEvent / ExpirationEvent, anything else an
IgnoredEvent that the processor acknowledges without side effects.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional, Union

from journal_billing.errors import InputValidationError
from journal_billing.models.profile import SubscriptionTier

PURCHASE_TYPES = frozenset({"INITIAL_PURCHASE", "RENEWAL", "RESTORE", "NON_RENEWING_PURCHASE"})
CANCELLATION_TYPES = frozenset({"CANCELLATION"})
EXPIRATION_TYPES = frozenset({"EXPIRATION", "BILLING_ISSUE"})


@dataclass(frozen=True)
class _Event:
    type: str
    app_user_id: Optional[str]
    product_id: str
    expires_at: Optional[datetime]
    event_id: Optional[str]


@dataclass(frozen=True)
class PurchaseEvent(_Event):
    @property
    def tier(self) -> SubscriptionTier:
        return tier_for_product(self.product_id)


@dataclass(frozen=True)
class CancellationEvent(_Event):
    pass


@dataclass(frozen=True)
class ExpirationEvent(_Event):
    pass


@dataclass(frozen=True)
class IgnoredEvent(_Event):
    pass


BillingEvent = Union[PurchaseEvent, CancellationEvent, ExpirationEvent, IgnoredEvent]


def tier_for_product(product_id: Optional[str]) -> SubscriptionTier:
    product = (product_id or "").lower()
    if "yearly" in product or "annual" in product:
        return SubscriptionTier.PREMIUM_PLUS
    return SubscriptionTier.PREMIUM


def _parse_expiry(event: dict) -> Optional[datetime]:
    raw = event.get("expires_date")
    if raw:
        txt = str(raw).strip()
        if txt.endswith("Z"):
            txt = txt[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(txt)
        except ValueError as e:
            raise InputValidationError("Invalid expires_date in webhook event") from e
        return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)

    ms = event.get("expiration_at_ms")
    if ms in (None, "", 0):
        return None
    try:
        return datetime.fromtimestamp(int(ms) / 1000.0, tz=timezone.utc)
    except (TypeError, ValueError, OverflowError) as e:
        raise InputValidationError("Invalid expiration_at_ms in webhook event") from e


def parse_event(payload: Any) -> BillingEvent:
    event = payload.get("event") if isinstance(payload, dict) else None
    if not isinstance(event, dict):
        raise InputValidationError("Invalid webhook payload")

    event_type = str(event.get("type") or "").strip().upper()
    app_user_id = event.get("app_user_id")
    app_user_id = str(app_user_id).strip() if app_user_id else None

    if event_type in PURCHASE_TYPES:
        cls = PurchaseEvent
    elif event_type in CANCELLATION_TYPES:
        cls = CancellationEvent
    elif event_type in EXPIRATION_TYPES:
        cls = ExpirationEvent
    else:
        return IgnoredEvent(
            type=event_type,
            app_user_id=app_user_id,
            product_id=str(event.get("product_id") or ""),
            expires_at=None,
            event_id=event.get("id"),
        )

    if not app_user_id:
        raise InputValidationError(f"Webhook event {event_type} is missing app_user_id")

    return cls(
        type=event_type,
        app_user_id=app_user_id,
        product_id=str(event.get("product_id") or ""),
        expires_at=_parse_expiry(event),
        event_id=event.get("id"),
    )
