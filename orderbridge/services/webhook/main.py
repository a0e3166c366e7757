"""Public entrypoint for WooCommerce order-created webhooks.

Receives the delivery, runs it through `WebhookService` in the threadpool
(the Klaviyo calls block), and answers with a `{"status": ...}` body.
"""

import json
import math
from contextlib import asynccontextmanager
from time import perf_counter
from uuid import uuid4

from fastapi import FastAPI, Header, Request
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from orderbridge.common.config import settings
from orderbridge.common.idempotency import IdempotencyGuard, RedisKeyValueStore
from orderbridge.common.logging import configure_logging, logger, trace_id_ctx
from orderbridge.common.metrics import (
    http_request_duration_seconds,
    http_requests_total,
    metrics_response,
    webhook_deliveries_total,
)
from orderbridge.common.startup import log_startup_config
from orderbridge.common.tracing import instrument_app, setup_tracing
from orderbridge.services.webhook.klaviyo import KlaviyoClient
from orderbridge.services.webhook.schemas import WebhookResponse, WebhookStatus
from orderbridge.services.webhook.service import WebhookService
from orderbridge.services.webhook.validation import ValidationError

WEBHOOK_PATH = "/webhooks/woocommerce/order-created"

configure_logging()
setup_tracing(settings.service_name)
log_startup_config(
    settings,
    [
        "service_name",
        "redis_url",
        "klaviyo_api_key",
        "klaviyo_base_url",
        "klaviyo_revision",
        "klaviyo_max_attempts",
        "idempotency_ttl_seconds",
    ],
)


def _reject_constant(token: str) -> float:
    """`json.loads` hook: NaN and Infinity are not valid JSON numbers."""

    raise ValueError(f"non-standard JSON constant {token}")


def _finite_float(token: str) -> float:
    """`json.loads` hook: numbers that overflow to infinity are rejected."""

    value = float(token)
    if not math.isfinite(value):
        raise ValueError(f"number out of range {token}")
    return value


def build_service() -> WebhookService:
    """Wire the production pipeline from settings."""

    guard = IdempotencyGuard(
        RedisKeyValueStore.from_url(settings.redis_url),
        ttl_seconds=settings.idempotency_ttl_seconds,
    )
    return WebhookService(KlaviyoClient.from_settings(settings), guard, service_name=settings.service_name)


def _respond(status: WebhookStatus, status_code: int = 200) -> JSONResponse:
    webhook_deliveries_total.labels(service=settings.service_name, status=status.value).inc()
    return JSONResponse(status_code=status_code, content=WebhookResponse(status=status).model_dump(mode="json"))


def create_app(service: WebhookService | None = None) -> FastAPI:
    """Build the FastAPI app around one `WebhookService`."""

    service = service or build_service()

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        """Release the Klaviyo connection pool on shutdown."""

        yield
        service.klaviyo.close()

    app = FastAPI(title="OrderBridge WooCommerce Webhooks", lifespan=lifespan)
    instrument_app(app)

    @app.middleware("http")
    async def metrics_middleware(request: Request, call_next):
        """Record request count and latency for every HTTP call."""

        start = perf_counter()
        route = request.url.path
        method = request.method
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            route_obj = request.scope.get("route")
            if route_obj is not None and getattr(route_obj, "path", None):
                route = route_obj.path
            return response
        finally:
            elapsed = max(0.0, perf_counter() - start)
            http_request_duration_seconds.labels(
                service=settings.service_name,
                route=route,
                method=method,
            ).observe(elapsed)
            http_requests_total.labels(
                service=settings.service_name,
                route=route,
                method=method,
                status_code=str(status_code),
            ).inc()

    @app.post(WEBHOOK_PATH, response_model=WebhookResponse)
    async def order_created(
        request: Request,
        x_wc_webhook_topic: str | None = Header(default=None),
        x_wc_webhook_source: str | None = Header(default=None),
        x_wc_webhook_delivery_id: str | None = Header(default=None),
    ):
        """Accept one order-created delivery.

        Returns 400 only for unusable payloads; every valid delivery gets a
        200 whatever happened downstream.
        """

        trace_id_ctx.set(x_wc_webhook_delivery_id or str(uuid4()))
        body = await request.body()
        logger.info(
            "webhook_received topic=%s source=%s delivery_id=%s headers=%s payload=%s",
            x_wc_webhook_topic,
            x_wc_webhook_source,
            x_wc_webhook_delivery_id,
            dict(request.headers),
            body.decode("utf-8", errors="replace"),
        )

        try:
            payload = json.loads(body, parse_constant=_reject_constant, parse_float=_finite_float)
        except ValueError as exc:
            logger.warning(
                "invalid_webhook_payload errors=%s payload=%s",
                {"__root__": f"malformed JSON: {exc}"},
                body.decode("utf-8", errors="replace"),
            )
            return _respond(WebhookStatus.INVALID_PAYLOAD, 400)

        try:
            status = await run_in_threadpool(service.handle, payload)
        except ValidationError as exc:
            logger.warning("invalid_webhook_payload errors=%s payload=%s", exc.errors, payload)
            return _respond(WebhookStatus.INVALID_PAYLOAD, 400)
        return _respond(status)

    @app.get("/metrics")
    def metrics():
        """Prometheus scrape endpoint."""

        return metrics_response()

    @app.get("/health")
    def health():
        """Container health probe endpoint."""

        return {"ok": True}

    return app


app = create_app()
