from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache


_KEY_PREFIX_ENV = "SENSOR_KEY_PREFIX"
_TOPIC_ENV = "SENSOR_TOPIC"
_GROUP_ID_ENV = "CONSUMER_GROUP_ID"
_SENSOR_COUNT_ENV = "SENSOR_COUNT"
_INTERVAL_ENV = "SENSOR_INTERVAL_MS"
_HTTP_PORT_ENV = "HTTP_PORT"
_STORE_BACKEND_ENV = "STORE_BACKEND"
_REDIS_URL_ENV = "REDIS_URL"
_BUS_BACKEND_ENV = "BUS_BACKEND"
_KAFKA_SERVERS_ENV = "KAFKA_BOOTSTRAP_SERVERS"
_LOG_LEVEL_ENV = "LOG_LEVEL"

_STORE_BACKENDS = {"memory", "redis"}
_BUS_BACKENDS = {"memory", "kafka"}


@dataclass(frozen=True)
class Settings:
    key_prefix: str
    topic: str
    consumer_group_id: str
    sensor_count: int
    sensor_interval_ms: int
    http_port: int
    store_backend: str
    redis_url: str
    bus_backend: str
    kafka_bootstrap_servers: str
    log_level: str

    @property
    def sensor_interval_seconds(self) -> float:
        return self.sensor_interval_ms / 1000.0


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_prefix_env(name: str, default: str) -> str:
    # Prefixes such as "sensor:" are significant verbatim, so only blank values fall back.
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value


def _read_positive_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_choice(name: str, choices: set[str], default: str) -> str:
    candidate = _read_str_env(name, default).lower()
    return candidate if candidate in choices else default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings(
        key_prefix=_read_prefix_env(_KEY_PREFIX_ENV, "sensor:"),
        topic=_read_str_env(_TOPIC_ENV, "sensor-data"),
        consumer_group_id=_read_str_env(_GROUP_ID_ENV, "sensor-consumer-group"),
        sensor_count=_read_positive_int(_SENSOR_COUNT_ENV, 5),
        sensor_interval_ms=_read_positive_int(_INTERVAL_ENV, 1000),
        http_port=_read_positive_int(_HTTP_PORT_ENV, 8000),
        store_backend=_read_choice(_STORE_BACKEND_ENV, _STORE_BACKENDS, "memory"),
        redis_url=_read_str_env(_REDIS_URL_ENV, "redis://localhost:6379/0"),
        bus_backend=_read_choice(_BUS_BACKEND_ENV, _BUS_BACKENDS, "memory"),
        kafka_bootstrap_servers=_read_str_env(_KAFKA_SERVERS_ENV, "localhost:9092"),
        log_level=_read_log_level("INFO"),
    )
