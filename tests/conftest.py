"""Shared fixtures: settings env, a scripted fake Klaviyo API and wired services."""

import os

os.environ.setdefault("KLAVIYO_API_KEY", "test-key")
os.environ.setdefault("SERVICE_NAME", "orderbridge-test")

import json

import httpx
import pytest

from orderbridge.common.idempotency import IdempotencyGuard, InMemoryKeyValueStore
from orderbridge.services.webhook.klaviyo import KlaviyoClient
from orderbridge.services.webhook.service import WebhookService


class FakeKlaviyo:
    """httpx transport handler that records requests and replays scripted outcomes.

    `script` maps an endpoint suffix ("/profiles/", "/events/") to a list of
    status codes or exceptions consumed one per request; 202 once exhausted.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.script: dict[str, list] = {}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        endpoint = "/profiles/" if request.url.path.endswith("/profiles/") else "/events/"
        queue = self.script.get(endpoint) or []
        outcome = queue.pop(0) if queue else 202
        if isinstance(outcome, Exception):
            raise outcome
        return httpx.Response(outcome, json={"status": outcome}, request=request)

    def calls(self, endpoint: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path.endswith(endpoint)]

    def bodies(self, endpoint: str) -> list[dict]:
        return [json.loads(r.content) for r in self.calls(endpoint)]


class FakeClock:
    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_api() -> FakeKlaviyo:
    return FakeKlaviyo()


@pytest.fixture
def klaviyo(fake_api) -> KlaviyoClient:
    return KlaviyoClient(
        api_key="test-key",
        retry_delay_seconds=0.0,
        http_client=httpx.Client(transport=httpx.MockTransport(fake_api)),
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def guard(clock) -> IdempotencyGuard:
    return IdempotencyGuard(InMemoryKeyValueStore(clock=clock), ttl_seconds=3600)


@pytest.fixture
def service(klaviyo, guard) -> WebhookService:
    return WebhookService(klaviyo, guard)


@pytest.fixture
def order_payload() -> dict:
    return {
        "id": 501,
        "billing": {"email": "a@b.com", "first_name": "A"},
        "total": "42.50",
        "currency": "EUR",
        "line_items": [{"sku": "X"}],
    }
