"""Map a loosely-structured WooCommerce order into canonical records.

Every field falls back to a default when absent or of the wrong type, so a
payload that passed validation always normalizes.
"""

import math
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

from orderbridge.services.webhook.schemas import OrderEventRecord, ProfileRecord
from orderbridge.services.webhook.validation import parse_order_id


def _text(value: Any, default: str = "") -> str:
    return value if isinstance(value, str) else default


def _decimal(value: Any) -> Decimal:
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        return Decimal("0")
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        return Decimal("0")
    # Totals are sent as JSON numbers, so they must also fit a finite float.
    if not amount.is_finite() or not math.isfinite(float(amount)):
        return Decimal("0")
    return amount


def _sequence(value: Any) -> list[Any]:
    return list(value) if isinstance(value, list) else []


def _parse_timestamp(value: Any, now: datetime) -> datetime:
    """Parse WooCommerce ISO-8601 dates; naive values are read as UTC."""

    if not isinstance(value, str) or not value.strip():
        return now
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return now
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def normalize_order(
    payload: dict[str, Any], now: datetime | None = None
) -> tuple[ProfileRecord, OrderEventRecord]:
    """Derive the profile and "Placed Order" event from a validated payload."""

    now = now or datetime.now(timezone.utc)
    billing = payload.get("billing")
    if not isinstance(billing, dict):
        billing = {}

    profile = ProfileRecord(
        email=billing["email"],
        first_name=_text(billing.get("first_name")),
        last_name=_text(billing.get("last_name")),
        external_id=payload.get("customer_id"),
    )
    event = OrderEventRecord(
        order_id=parse_order_id(payload["id"]),
        total=_decimal(payload.get("total", 0)),
        currency=_text(payload.get("currency")) or "USD",
        payment_method=_text(payload.get("payment_method")),
        coupons=_sequence(payload.get("coupon_lines")),
        items=_sequence(payload.get("line_items")),
        occurred_at=_parse_timestamp(payload.get("date_created"), now),
        extra_properties=dict(payload),
    )
    return profile, event
