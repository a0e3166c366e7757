"""Order-created webhook orchestration.

Validates, normalizes, upserts the customer profile and forwards the
"Placed Order" event at most once per order id. Once the payload is valid the
sender is always acknowledged; forwarding problems are logged, not surfaced,
so WooCommerce does not keep redelivering.
"""

from typing import Any

from orderbridge.common.idempotency import IdempotencyGuard
from orderbridge.common.logging import logger, order_context
from orderbridge.common.metrics import duplicate_orders_skipped_total
from orderbridge.services.webhook.klaviyo import KlaviyoClient
from orderbridge.services.webhook.normalizer import normalize_order
from orderbridge.services.webhook.schemas import WebhookStatus
from orderbridge.services.webhook.validation import ValidationError, parse_order_id, validate_payload


class WebhookService:
    """Runs one webhook delivery through the normalize-and-forward pipeline."""

    def __init__(self, klaviyo: KlaviyoClient, guard: IdempotencyGuard, service_name: str = "orderbridge") -> None:
        self.klaviyo = klaviyo
        self.guard = guard
        self.service_name = service_name

    def handle(self, payload: Any) -> WebhookStatus:
        """Process one order-created payload.

        Raises `ValidationError` when the payload lacks a valid billing email or
        an integer order id; nothing is forwarded in that case.
        """

        result = validate_payload(payload)
        if not result.ok:
            raise ValidationError(result.errors)

        with order_context(parse_order_id(payload["id"])):
            try:
                return self._forward(payload)
            except Exception:
                logger.exception("webhook_processing_error payload=%s", payload)
                return WebhookStatus.ERROR_LOGGED

    def _forward(self, payload: dict[str, Any]) -> WebhookStatus:
        profile, event = normalize_order(payload)

        # Profile failures never block event tracking.
        profile_result = self.klaviyo.upsert_profile(profile)
        if not profile_result.ok:
            logger.error(
                "profile_upsert_failed order_id=%s status=%s reason=%s",
                event.order_id,
                profile_result.status_code,
                profile_result.reason,
            )

        if self.guard.has_been_processed(event.order_id):
            logger.info("order event already tracked order_id=%s", event.order_id)
            duplicate_orders_skipped_total.labels(service=self.service_name).inc()
            return WebhookStatus.ALREADY_PROCESSED

        event_result = self.klaviyo.track_order_event(event)
        if event_result.ok:
            self.guard.mark_processed(event.order_id)
        else:
            logger.error(
                "order_event_failed order_id=%s status=%s reason=%s",
                event.order_id,
                event_result.status_code,
                event_result.reason,
            )
        return WebhookStatus.PROCESSED
