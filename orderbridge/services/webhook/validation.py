"""Minimum-shape checks for inbound order-created payloads."""

import re
from typing import Any

from email_validator import EmailNotValidError, validate_email
from pydantic import BaseModel, Field

_INT_STRING = re.compile(r"^[+-]?\d+$")


class ValidationError(Exception):
    """Inbound payload is malformed or incomplete; terminal for the request."""

    def __init__(self, errors: dict[str, str]) -> None:
        super().__init__(f"invalid payload: {errors}")
        self.errors = errors


class ValidationResult(BaseModel):
    """Pass/fail plus field path -> violation reason."""

    errors: dict[str, str] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors


def parse_order_id(value: Any) -> int | None:
    """Canonical integer for an integer-like order id, or None.

    `501`, `501.0`, `"501"`, `" +0501"` all map to `501`, so every spelling of
    one order shares an idempotency key.
    """

    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str) and _INT_STRING.match(value.strip()):
        return int(value.strip())
    return None


def _email_error(billing: Any) -> str | None:
    if not isinstance(billing, dict) or billing.get("email") in (None, ""):
        return "field required"
    email = billing["email"]
    if not isinstance(email, str):
        return "must be a string"
    try:
        validate_email(email, check_deliverability=False)
    except EmailNotValidError as exc:
        return f"invalid email: {exc}"
    return None


def validate_payload(payload: Any) -> ValidationResult:
    """Check `billing.email` is a valid address and `id` is integer-like."""

    if not isinstance(payload, dict):
        return ValidationResult(errors={"__root__": "payload must be a JSON object"})

    errors: dict[str, str] = {}
    email_error = _email_error(payload.get("billing"))
    if email_error:
        errors["billing.email"] = email_error
    if "id" not in payload or payload["id"] is None:
        errors["id"] = "field required"
    elif parse_order_id(payload["id"]) is None:
        errors["id"] = "must be an integer"
    return ValidationResult(errors=errors)
