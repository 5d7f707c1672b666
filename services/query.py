"""Read-side queries over the latest sensor readings."""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Dict, Iterable, List, Optional

from app.schemas import SensorStatistics
from datastore.kv_store import KeyValueStore, StoreError, build_default_store
from models.codec import ReadingDecodeError, decode_reading
from models.records import SensorReading
from services.aggregator import Aggregator
from settings import get_settings

logger = logging.getLogger(__name__)


class SensorQueryService:
    """Answers lookups and statistics from the key-value store.

    Every method degrades to an empty or default result when the store fails;
    errors are logged and never raised to callers.
    """

    def __init__(self, store: KeyValueStore, key_prefix: str, aggregator: Aggregator) -> None:
        self.store = store
        self.key_prefix = key_prefix
        self.aggregator = aggregator

    def get_latest(self, sensor_id: str) -> Optional[SensorReading]:
        try:
            value = self.store.get(self.key_prefix + sensor_id)
        except StoreError as exc:
            logger.error("Error getting sensor data: %s", exc, extra={"sensor_id": sensor_id})
            return None
        if value is None:
            return None
        try:
            return decode_reading(value)
        except ReadingDecodeError as exc:
            logger.warning("Failed to decode sensor data: %s", exc, extra={"sensor_id": sensor_id})
            return None

    def get_all(self) -> List[SensorReading]:
        try:
            keys = self.store.scan_keys(self.key_prefix)
        except StoreError as exc:
            logger.error("Error retrieving all sensor data: %s", exc)
            return []
        return self._read_keys(keys)

    def get_batch(self, sensor_ids: Iterable[str]) -> Dict[str, SensorReading]:
        results: Dict[str, SensorReading] = {}
        for sensor_id in sensor_ids:
            reading = self.get_latest(sensor_id)
            if reading is not None:
                results[sensor_id] = reading
        return results

    def get_statistics(self) -> SensorStatistics:
        try:
            keys = self.store.scan_keys(self.key_prefix)
        except StoreError as exc:
            logger.error("Error getting stats: %s", exc)
            return SensorStatistics(total_sensors=0, active_sensors=0)

        readings = self._read_keys(keys)
        summary = self.aggregator.aggregate(readings)
        return SensorStatistics(
            total_sensors=len(keys),
            active_sensors=summary.count,
            average_temperature=summary.average_temperature,
            average_pressure=summary.average_pressure,
            min_temperature=summary.min_temperature,
            max_temperature=summary.max_temperature,
        )

    def list_sensor_ids(self) -> List[str]:
        try:
            keys = self.store.scan_keys(self.key_prefix)
        except StoreError as exc:
            logger.error("Error getting sensor IDs: %s", exc)
            return []
        return sorted(key[len(self.key_prefix):] for key in keys)

    def sensor_exists(self, sensor_id: str) -> bool:
        try:
            return self.store.exists(self.key_prefix + sensor_id)
        except StoreError as exc:
            logger.error("Error checking sensor: %s", exc, extra={"sensor_id": sensor_id})
            return False

    def _read_keys(self, keys: Iterable[str]) -> List[SensorReading]:
        readings: List[SensorReading] = []
        for key in keys:
            try:
                value = self.store.get(key)
                if value is not None:
                    readings.append(decode_reading(value))
            except (StoreError, ReadingDecodeError) as exc:
                logger.warning("Failed to read sensor data for key %s: %s", key, exc, extra={"redis_key": key})
        readings.sort(key=lambda reading: reading.sensor_id)
        return readings


@lru_cache
def build_default_query_service() -> SensorQueryService:
    settings = get_settings()
    return SensorQueryService(
        store=build_default_store(),
        key_prefix=settings.key_prefix,
        aggregator=Aggregator(),
    )
