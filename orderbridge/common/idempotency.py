"""Order-level idempotency for event forwarding.

The guard remembers which order ids already produced a forwarded event for a
bounded retention window. Storage is pluggable: Redis in production, an
in-process store for single-instance runs and tests. Store outages fail open so
a Redis blip never blocks webhook acknowledgement.
"""

import threading
import time
from typing import Callable, Protocol

import redis

from orderbridge.common.logging import logger

DEFAULT_TTL_SECONDS = 30 * 86400


class KeyValueStore(Protocol):
    """Minimal key-value contract with per-key expiry."""

    def exists(self, key: str) -> bool: ...

    def set(self, key: str, value: str, ttl_seconds: int) -> None: ...


class RedisKeyValueStore:
    """`KeyValueStore` backed by a shared Redis instance."""

    def __init__(self, client: redis.Redis) -> None:
        self.client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisKeyValueStore":
        return cls(redis.Redis.from_url(url, decode_responses=True))

    def exists(self, key: str) -> bool:
        return bool(self.client.exists(key))

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self.client.set(key, value, ex=ttl_seconds)


class InMemoryKeyValueStore:
    """Process-local `KeyValueStore`; entries vanish on restart."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._expires_at: dict[str, float] = {}
        self._values: dict[str, str] = {}
        self._lock = threading.Lock()

    def exists(self, key: str) -> bool:
        with self._lock:
            expires_at = self._expires_at.get(key)
            if expires_at is None:
                return False
            if expires_at <= self._clock():
                # Lazy eviction on read.
                del self._expires_at[key]
                del self._values[key]
                return False
            return True

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        with self._lock:
            self._values[key] = value
            self._expires_at[key] = self._clock() + ttl_seconds


def _order_key(order_id: object) -> str:
    return f"idempotency:klaviyo:order:{order_id}"


class IdempotencyGuard:
    """Tracks forwarded order ids: Unknown -> Processed -> (ttl) -> Unknown."""

    def __init__(self, store: KeyValueStore, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> None:
        self.store = store
        self.ttl_seconds = ttl_seconds

    def has_been_processed(self, order_id: object) -> bool:
        """Return True when the order was marked within the retention window."""

        try:
            return self.store.exists(_order_key(order_id))
        except Exception as exc:
            logger.warning("idempotency_read_failed order_id=%s error=%s", order_id, exc)
            return False

    def mark_processed(self, order_id: object, ttl_seconds: int | None = None) -> None:
        """Record a successful forward; call only after the event was accepted."""

        ttl = ttl_seconds if ttl_seconds is not None else self.ttl_seconds
        try:
            self.store.set(_order_key(order_id), "1", ttl)
        except Exception as exc:
            logger.warning("idempotency_write_failed order_id=%s error=%s", order_id, exc)
