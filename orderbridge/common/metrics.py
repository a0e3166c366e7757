"""Prometheus metric definitions for the webhook bridge."""

from prometheus_client import Counter, Histogram, generate_latest
from starlette.responses import Response


http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["service", "route", "method", "status_code"],
)
http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration seconds",
    ["service", "route", "method"],
)
webhook_deliveries_total = Counter(
    "webhook_deliveries_total",
    "Webhook deliveries by response status",
    ["service", "status"],
)
klaviyo_requests_total = Counter(
    "klaviyo_requests_total",
    "Klaviyo API calls by endpoint and final outcome",
    ["service", "endpoint", "outcome"],
)
klaviyo_request_latency_seconds = Histogram(
    "klaviyo_request_latency_seconds",
    "Klaviyo API call latency seconds including retries",
    ["service", "endpoint"],
)
retries_total = Counter("retries_total", "Retry count", ["service", "dependency"])
duplicate_orders_skipped_total = Counter(
    "duplicate_orders_skipped_total",
    "Order events skipped because the order was already forwarded",
    ["service"],
)


def metrics_response() -> Response:
    """Expose all registered Prometheus metrics in text format."""

    return Response(content=generate_latest(), media_type="text/plain")
