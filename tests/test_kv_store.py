"""Unit tests for the key-value store adapters."""

from __future__ import annotations

import pytest
import redis

from datastore.kv_store import InMemoryKeyValueStore, RedisKeyValueStore, StoreError


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class StubRedis:
    """Records calls made by RedisKeyValueStore."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.data: dict[str, str] = {}
        self.set_calls: list[tuple[str, str, int | None]] = []
        self.closed = False

    def _maybe_fail(self) -> None:
        if self.fail:
            raise redis.ConnectionError("connection refused")

    def set(self, key, value, ex=None):
        self._maybe_fail()
        self.set_calls.append((key, value, ex))
        self.data[key] = value
        return True

    def get(self, key):
        self._maybe_fail()
        return self.data.get(key)

    def exists(self, key):
        self._maybe_fail()
        return int(key in self.data)

    def scan_iter(self, match=None, count=None):
        self._maybe_fail()
        prefix = (match or "*").rstrip("*")
        return iter([key for key in self.data if key.startswith(prefix)])

    def close(self):
        self.closed = True


def test_in_memory_set_get_exists() -> None:
    store = InMemoryKeyValueStore()

    store.set("sensor:101", "payload", 3600)

    assert store.get("sensor:101") == "payload"
    assert store.exists("sensor:101") is True
    assert store.get("sensor:999") is None
    assert store.exists("sensor:999") is False


def test_in_memory_overwrites_existing_value() -> None:
    store = InMemoryKeyValueStore()

    store.set("sensor:101", "old", 3600)
    store.set("sensor:101", "new", 3600)

    assert store.get("sensor:101") == "new"


def test_in_memory_entries_expire_after_ttl() -> None:
    clock = FakeClock()
    store = InMemoryKeyValueStore(clock=clock)
    store.set("sensor:101", "payload", 60)

    clock.now += 59
    assert store.exists("sensor:101")
    assert store.ttl("sensor:101") == pytest.approx(1.0)

    clock.now += 1
    assert store.get("sensor:101") is None
    assert store.exists("sensor:101") is False
    assert store.scan_keys("sensor:") == set()


def test_in_memory_scan_filters_by_prefix() -> None:
    store = InMemoryKeyValueStore()
    store.set("sensor:101", "a", 3600)
    store.set("sensor:102", "b", 3600)
    store.set("other:1", "c", 3600)

    assert store.scan_keys("sensor:") == {"sensor:101", "sensor:102"}


def test_redis_store_passes_ttl_and_reads_back() -> None:
    client = StubRedis()
    store = RedisKeyValueStore("redis://localhost:6379/0", client=client)

    store.set("sensor:101", "payload", 3600)

    assert client.set_calls == [("sensor:101", "payload", 3600)]
    assert store.get("sensor:101") == "payload"
    assert store.exists("sensor:101") is True
    assert store.scan_keys("sensor:") == {"sensor:101"}

    store.close()
    assert client.closed is True


def test_redis_store_decodes_bytes_values() -> None:
    client = StubRedis()
    client.data["sensor:101"] = b"payload"  # type: ignore[assignment]
    store = RedisKeyValueStore("redis://localhost:6379/0", client=client)

    assert store.get("sensor:101") == "payload"


def test_redis_errors_are_wrapped() -> None:
    store = RedisKeyValueStore("redis://localhost:6379/0", client=StubRedis(fail=True))

    with pytest.raises(StoreError):
        store.set("sensor:1", "x", 10)
    with pytest.raises(StoreError):
        store.get("sensor:1")
    with pytest.raises(StoreError):
        store.exists("sensor:1")
    with pytest.raises(StoreError):
        store.scan_keys("sensor:")
