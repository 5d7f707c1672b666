"""Consumer side: persist the latest reading of each sensor."""

from __future__ import annotations

import logging
from functools import lru_cache
from threading import Lock
from typing import Optional, Union

from datastore.kv_store import KeyValueStore, StoreError, build_default_store
from models.codec import ReadingDecodeError, decode_reading, encode_reading
from models.records import SensorReading
from settings import get_settings

logger = logging.getLogger(__name__)

READING_TTL_SECONDS = 60 * 60


class IngestionPipeline:
    """Decodes bus messages and writes them to the store with a one hour TTL.

    Failures never propagate to the caller: undecodable payloads and failed
    writes are logged and dropped without touching the processed counter.
    """

    def __init__(
        self,
        store: KeyValueStore,
        key_prefix: str,
        ttl_seconds: int = READING_TTL_SECONDS,
    ) -> None:
        self.store = store
        self.key_prefix = key_prefix
        self.ttl_seconds = ttl_seconds
        self._count_lock = Lock()
        self._processed = 0

    def on_message(
        self,
        payload: Union[bytes, str],
        key: str,
        topic: str,
        partition: int,
        offset: int,
    ) -> None:
        coordinates = {"topic": topic, "partition": partition, "offset": offset}
        logger.debug("Received message with key %s", key, extra=coordinates)

        try:
            reading = decode_reading(payload)
        except ReadingDecodeError as exc:
            logger.error(
                "Discarding undecodable message: %s",
                _preview(payload),
                extra={**coordinates, "reason": str(exc)},
            )
            return

        redis_key = self.key_for(reading.sensor_id)
        try:
            self.store.set(redis_key, encode_reading(reading), self.ttl_seconds)
        except StoreError as exc:
            logger.error(
                "Failed to store sensor data",
                extra={**coordinates, "sensor_id": reading.sensor_id, "redis_key": redis_key, "reason": str(exc)},
            )
            return

        with self._count_lock:
            self._processed += 1
            processed = self._processed

        logger.info(
            "Saved sensor data: temp=%s, pressure=%s",
            reading.temperature,
            reading.pressure,
            extra={"sensor_id": reading.sensor_id, "redis_key": redis_key, "processed_count": processed},
        )

    def processed_count(self) -> int:
        with self._count_lock:
            return self._processed

    def lookup(self, sensor_id: str) -> Optional[SensorReading]:
        try:
            value = self.store.get(self.key_for(sensor_id))
        except StoreError as exc:
            logger.error("Error getting sensor data: %s", exc, extra={"sensor_id": sensor_id})
            return None
        if value is None:
            return None
        try:
            return decode_reading(value)
        except ReadingDecodeError as exc:
            logger.error("Stored reading is unreadable: %s", exc, extra={"sensor_id": sensor_id})
            return None

    def exists(self, sensor_id: str) -> bool:
        try:
            return self.store.exists(self.key_for(sensor_id))
        except StoreError as exc:
            logger.error("Error checking sensor: %s", exc, extra={"sensor_id": sensor_id})
            return False

    def key_for(self, sensor_id: str) -> str:
        return f"{self.key_prefix}{sensor_id}"


def _preview(payload: Union[bytes, str], limit: int = 200) -> str:
    text = payload.decode("utf-8", errors="replace") if isinstance(payload, bytes) else payload
    return text if len(text) <= limit else f"{text[:limit]}..."


@lru_cache
def build_default_pipeline() -> IngestionPipeline:
    """Factory that wires the pipeline with the default store."""
    settings = get_settings()
    return IngestionPipeline(store=build_default_store(), key_prefix=settings.key_prefix)
