"""Klaviyo API client for profile upserts and "Placed Order" events.

Both calls are blocking POSTs with a per-attempt timeout and a small, fixed
number of attempts. Outcomes are returned as `ForwardResult` values; callers
decide what a failure means for the webhook response.
"""

import json
import time
from enum import Enum
from typing import Any

import httpx
from pydantic import BaseModel

from orderbridge.common.config import CommonSettings
from orderbridge.common.logging import logger
from orderbridge.common.metrics import klaviyo_request_latency_seconds, klaviyo_requests_total, retries_total
from orderbridge.services.webhook.schemas import OrderEventRecord, ProfileRecord

PROFILES_ENDPOINT = "/profiles/"
EVENTS_ENDPOINT = "/events/"
PLACED_ORDER_METRIC = "Placed Order"


class ForwardingError(Exception):
    """Klaviyo rejected the request or was unreachable after all attempts."""

    def __init__(self, endpoint: str, status_code: int | None = None, body: str | None = None, reason: str = "") -> None:
        self.endpoint = endpoint
        self.status_code = status_code
        self.body = body
        self.reason = reason or (f"status={status_code}" if status_code is not None else "transport error")
        super().__init__(f"Klaviyo API error endpoint={endpoint} {self.reason}")


class ForwardOutcome(str, Enum):
    SUCCESS = "success"
    CONFLICT = "conflict"
    FAILURE = "failure"


class ForwardResult(BaseModel):
    """Outcome of one forwarding call, with diagnostics on failure."""

    outcome: ForwardOutcome
    endpoint: str
    status_code: int | None = None
    body: str | None = None
    reason: str | None = None

    @property
    def ok(self) -> bool:
        return self.outcome != ForwardOutcome.FAILURE

    @classmethod
    def failure(cls, exc: ForwardingError) -> "ForwardResult":
        return cls(
            outcome=ForwardOutcome.FAILURE,
            endpoint=exc.endpoint,
            status_code=exc.status_code,
            body=exc.body,
            reason=exc.reason,
        )


def profile_body(profile: ProfileRecord) -> dict[str, Any]:
    """Wire body for `POST /profiles/`."""

    return {
        "data": {
            "type": "profile",
            "attributes": {
                "email": profile.email,
                "first_name": profile.first_name,
                "last_name": profile.last_name,
                "properties": {"woocommerce_id": profile.external_id},
            },
        }
    }


def event_body(event: OrderEventRecord) -> dict[str, Any]:
    """Wire body for `POST /events/`.

    Raw payload keys are merged after the canonical properties, so a raw key
    with the same name (e.g. a string `total`) replaces the canonical value.
    """

    total = float(event.total)
    return {
        "data": {
            "type": "event",
            "attributes": {
                "metric": {"data": {"type": "metric", "attributes": {"name": PLACED_ORDER_METRIC}}},
                "profile": {"data": {"type": "profile", "attributes": {"email": event.customer_email}}},
                "value": total,
                "time": event.occurred_at.isoformat(),
                "properties": {
                    "order_id": event.order_id,
                    "total": total,
                    "currency": event.currency,
                    "payment_method": event.payment_method,
                    "coupons": event.coupons,
                    "items": event.items,
                    **event.extra_properties,
                },
            },
        }
    }


class KlaviyoClient:
    """Authenticated Klaviyo client with bounded fixed-delay retry."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://a.klaviyo.com/api",
        revision: str = "2023-10-15",
        timeout_seconds: float = 30.0,
        max_attempts: int = 3,
        retry_delay_seconds: float = 0.1,
        http_client: httpx.Client | None = None,
        service_name: str = "orderbridge",
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.max_attempts = max(1, max_attempts)
        self.retry_delay_seconds = retry_delay_seconds
        self.service_name = service_name
        self.headers = {
            "Authorization": f"Klaviyo-API-Key {api_key}",
            "Revision": revision,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        self.http = http_client or httpx.Client(timeout=timeout_seconds)

    @classmethod
    def from_settings(cls, config: CommonSettings) -> "KlaviyoClient":
        return cls(
            api_key=config.klaviyo_api_key,
            base_url=config.klaviyo_base_url,
            revision=config.klaviyo_revision,
            timeout_seconds=config.klaviyo_timeout_seconds,
            max_attempts=config.klaviyo_max_attempts,
            retry_delay_seconds=config.klaviyo_retry_delay_seconds,
            service_name=config.service_name,
        )

    def close(self) -> None:
        self.http.close()

    def upsert_profile(self, profile: ProfileRecord) -> ForwardResult:
        """Create the profile; an existing profile (409) counts as success."""

        return self._forward(PROFILES_ENDPOINT, profile_body(profile), conflict_ok=True)

    def track_order_event(self, event: OrderEventRecord) -> ForwardResult:
        """Record one "Placed Order" event for the order's billing email."""

        return self._forward(EVENTS_ENDPOINT, event_body(event))

    def _forward(self, endpoint: str, body: dict[str, Any], conflict_ok: bool = False) -> ForwardResult:
        with klaviyo_request_latency_seconds.labels(service=self.service_name, endpoint=endpoint).time():
            try:
                response = self._send(endpoint, body, conflict_ok)
            except ForwardingError as exc:
                logger.error(
                    "klaviyo_call_failed endpoint=%s status=%s reason=%s body=%s",
                    endpoint,
                    exc.status_code,
                    exc.reason,
                    exc.body,
                )
                klaviyo_requests_total.labels(service=self.service_name, endpoint=endpoint, outcome="failure").inc()
                return ForwardResult.failure(exc)

        if response.status_code == 409:
            logger.info("klaviyo_profile_exists endpoint=%s status=409", endpoint)
            outcome = ForwardOutcome.CONFLICT
        else:
            logger.info("klaviyo_call_succeeded endpoint=%s status=%s", endpoint, response.status_code)
            outcome = ForwardOutcome.SUCCESS
        klaviyo_requests_total.labels(service=self.service_name, endpoint=endpoint, outcome=outcome.value).inc()
        return ForwardResult(outcome=outcome, endpoint=endpoint, status_code=response.status_code)

    def _send(self, endpoint: str, body: dict[str, Any], conflict_ok: bool) -> httpx.Response:
        """POST with retry; raise `ForwardingError` once attempts are exhausted."""

        url = f"{self.base_url}{endpoint}"
        try:
            content = json.dumps(body, allow_nan=False)
        except (TypeError, ValueError) as exc:
            raise ForwardingError(endpoint, reason=f"unserializable body: {exc}") from exc

        last_error = ForwardingError(endpoint)
        for attempt in range(1, self.max_attempts + 1):
            try:
                response = self.http.post(url, headers=self.headers, content=content)
            except httpx.HTTPError as exc:
                last_error = ForwardingError(endpoint, reason=f"{type(exc).__name__}: {exc}")
            else:
                if response.is_success or (conflict_ok and response.status_code == 409):
                    return response
                last_error = ForwardingError(endpoint, status_code=response.status_code, body=response.text)

            if attempt < self.max_attempts:
                retries_total.labels(service=self.service_name, dependency="klaviyo").inc()
                logger.warning(
                    "klaviyo attempt failed endpoint=%s attempt=%s reason=%s delay_s=%s",
                    endpoint,
                    attempt,
                    last_error.reason,
                    self.retry_delay_seconds,
                )
                time.sleep(self.retry_delay_seconds)
        raise last_error
