from __future__ import annotations

from typing import Iterable

from datastore.kv_store import InMemoryKeyValueStore, RedisKeyValueStore, build_default_store
from messaging.channel import InMemoryChannel, KafkaChannel, build_default_channel
from services.ingestion import build_default_pipeline
from services.query import build_default_query_service
from services.simulator import build_default_engine
from settings import get_settings


def _clear_caches(caches: Iterable) -> None:
    for cache in caches:
        cache.cache_clear()


_CACHES = (
    get_settings,
    build_default_store,
    build_default_channel,
    build_default_engine,
    build_default_pipeline,
    build_default_query_service,
)


def test_defaults(monkeypatch) -> None:
    for name in (
        "SENSOR_KEY_PREFIX",
        "SENSOR_TOPIC",
        "CONSUMER_GROUP_ID",
        "SENSOR_COUNT",
        "SENSOR_INTERVAL_MS",
        "STORE_BACKEND",
        "BUS_BACKEND",
    ):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()

    try:
        settings = get_settings()
        assert settings.key_prefix == "sensor:"
        assert settings.topic == "sensor-data"
        assert settings.consumer_group_id == "sensor-consumer-group"
        assert settings.sensor_count == 5
        assert settings.sensor_interval_seconds == 1.0
        assert settings.store_backend == "memory"
        assert settings.bus_backend == "memory"
    finally:
        get_settings.cache_clear()


def test_environment_overrides_apply(monkeypatch) -> None:
    monkeypatch.setenv("SENSOR_KEY_PREFIX", "telemetry:")
    monkeypatch.setenv("SENSOR_TOPIC", "custom-topic")
    monkeypatch.setenv("SENSOR_COUNT", "3")
    monkeypatch.setenv("SENSOR_INTERVAL_MS", "250")
    monkeypatch.setenv("STORE_BACKEND", "memory")
    monkeypatch.setenv("BUS_BACKEND", "memory")
    _clear_caches(_CACHES)

    engine = build_default_engine()
    pipeline = build_default_pipeline()
    query = build_default_query_service()

    try:
        assert engine.topic == "custom-topic"
        assert engine.sensor_count == 3
        assert engine.interval_seconds == 0.25
        assert pipeline.key_prefix == "telemetry:"
        assert query.key_prefix == "telemetry:"
        assert pipeline.store is query.store
        assert isinstance(pipeline.store, InMemoryKeyValueStore)
        assert isinstance(engine.channel, InMemoryChannel)
    finally:
        engine.channel.close()
        _clear_caches(_CACHES)


def test_invalid_values_fall_back_to_defaults(monkeypatch) -> None:
    monkeypatch.setenv("SENSOR_COUNT", "-2")
    monkeypatch.setenv("SENSOR_INTERVAL_MS", "soon")
    monkeypatch.setenv("STORE_BACKEND", "cassandra")
    monkeypatch.setenv("LOG_LEVEL", " debug ")
    get_settings.cache_clear()

    try:
        settings = get_settings()
        assert settings.sensor_count == 5
        assert settings.sensor_interval_ms == 1000
        assert settings.store_backend == "memory"
        assert settings.log_level == "DEBUG"
    finally:
        get_settings.cache_clear()


def test_backend_selection_builds_remote_adapters(monkeypatch) -> None:
    monkeypatch.setenv("STORE_BACKEND", "redis")
    monkeypatch.setenv("REDIS_URL", "redis://cache:6379/1")
    monkeypatch.setenv("BUS_BACKEND", "kafka")
    monkeypatch.setenv("KAFKA_BOOTSTRAP_SERVERS", "broker-1:9092, broker-2:9092")
    _clear_caches(_CACHES)

    try:
        store = build_default_store()
        channel = build_default_channel()
        assert isinstance(store, RedisKeyValueStore)
        assert store.url == "redis://cache:6379/1"
        assert isinstance(channel, KafkaChannel)
        assert channel.bootstrap_servers == ["broker-1:9092", "broker-2:9092"]
    finally:
        _clear_caches(_CACHES)
