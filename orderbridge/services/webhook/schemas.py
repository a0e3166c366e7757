"""Canonical records derived from a WooCommerce order payload."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class ProfileRecord(BaseModel):
    """Customer profile forwarded to the marketing API."""

    email: str = Field(min_length=1)
    first_name: str = ""
    last_name: str = ""
    external_id: Any = None


class OrderEventRecord(BaseModel):
    """The "Placed Order" event; `order_id` doubles as the idempotency key."""

    order_id: int
    total: Decimal = Decimal("0")
    currency: str = "USD"
    payment_method: str = ""
    coupons: list[Any] = Field(default_factory=list)
    items: list[Any] = Field(default_factory=list)
    occurred_at: datetime
    extra_properties: dict[str, Any] = Field(default_factory=dict)

    @property
    def customer_email(self) -> str:
        billing = self.extra_properties.get("billing")
        if isinstance(billing, dict) and isinstance(billing.get("email"), str):
            return billing["email"]
        return ""


class WebhookStatus(str, Enum):
    """Status values returned to the webhook sender."""

    INVALID_PAYLOAD = "invalid_payload"
    PROCESSED = "processed"
    ALREADY_PROCESSED = "already_processed"
    ERROR_LOGGED = "error_logged"


class WebhookResponse(BaseModel):
    """Body of every webhook response."""

    status: WebhookStatus
