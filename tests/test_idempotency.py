"""Unit tests for the order idempotency guard and its stores."""

from unittest.mock import MagicMock

import redis

from orderbridge.common.idempotency import IdempotencyGuard, InMemoryKeyValueStore, RedisKeyValueStore


def test_unknown_order_not_processed(guard):
    assert guard.has_been_processed(501) is False


def test_marked_order_is_processed(guard):
    """Unknown -> Processed after a mark."""

    guard.mark_processed(501)
    assert guard.has_been_processed(501) is True
    assert guard.has_been_processed(502) is False


def test_int_and_string_ids_share_a_key(guard):
    guard.mark_processed(501)
    assert guard.has_been_processed("501") is True


def test_order_forgotten_after_ttl(guard, clock):
    """Processed -> Unknown once the retention window elapses."""

    guard.mark_processed(501)
    clock.advance(3599)
    assert guard.has_been_processed(501) is True
    clock.advance(1)
    assert guard.has_been_processed(501) is False


def test_per_call_ttl_override(guard, clock):
    guard.mark_processed(501, ttl_seconds=10)
    clock.advance(10)
    assert guard.has_been_processed(501) is False


def test_default_ttl_is_thirty_days():
    guard = IdempotencyGuard(InMemoryKeyValueStore())
    assert guard.ttl_seconds == 30 * 24 * 3600


def test_redis_store_uses_expiring_set():
    """Marks become `SET key 1 EX ttl` and checks become `EXISTS`."""

    client = MagicMock()
    client.exists.return_value = 1
    guard = IdempotencyGuard(RedisKeyValueStore(client), ttl_seconds=60)

    guard.mark_processed(7)
    client.set.assert_called_once_with("idempotency:klaviyo:order:7", "1", ex=60)
    assert guard.has_been_processed(7) is True
    client.exists.assert_called_once_with("idempotency:klaviyo:order:7")


def test_store_outage_fails_open():
    """A Redis error is logged, never raised; the order reads as unknown."""

    client = MagicMock()
    client.exists.side_effect = redis.ConnectionError("down")
    client.set.side_effect = redis.ConnectionError("down")
    guard = IdempotencyGuard(RedisKeyValueStore(client))

    assert guard.has_been_processed(7) is False
    guard.mark_processed(7)
