"""Pydantic schemas for the HTTP API layer."""

from __future__ import annotations

import time
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from models.records import SensorReading

__all__ = [
    "ControlStatus",
    "ProducerControlResponse",
    "ProducerStatus",
    "SensorExistsResponse",
    "SensorListResponse",
    "SensorReading",
    "SensorStatistics",
    "ServiceHealth",
    "now_millis",
]


def now_millis() -> int:
    return int(time.time() * 1000)


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ControlStatus(str, Enum):
    """Outcome of a producer lifecycle request."""

    started = "STARTED"
    already_running = "ALREADY_RUNNING"
    stopped = "STOPPED"
    already_stopped = "ALREADY_STOPPED"


class ProducerControlResponse(_CamelModel):
    status: ControlStatus
    message: str


class ProducerStatus(_CamelModel):
    """Snapshot of the simulation run state."""

    running: bool
    sensor_count: int = Field(..., alias="sensorCount", ge=0)
    messages_sent: int = Field(..., alias="messagesSent", ge=0)
    uptime_ms: Optional[int] = Field(
        default=None,
        alias="uptimeMs",
        description="Milliseconds since the current run started; absent while stopped.",
    )
    uptime_formatted: Optional[str] = Field(default=None, alias="uptimeFormatted")


class SensorStatistics(_CamelModel):
    """Aggregates over the latest reading of every sensor.

    The four numeric aggregates stay ``None`` (and are dropped from responses)
    when no sensor has a decodable reading.
    """

    total_sensors: int = Field(..., alias="totalSensors", ge=0)
    active_sensors: int = Field(..., alias="activeSensors", ge=0)
    average_temperature: Optional[float] = Field(default=None, alias="averageTemperature")
    average_pressure: Optional[float] = Field(default=None, alias="averagePressure")
    min_temperature: Optional[float] = Field(default=None, alias="minTemperature")
    max_temperature: Optional[float] = Field(default=None, alias="maxTemperature")
    timestamp: int = Field(default_factory=now_millis)


class SensorListResponse(_CamelModel):
    sensor_ids: List[str] = Field(default_factory=list, alias="sensorIds")
    count: int = Field(..., ge=0)
    timestamp: int = Field(default_factory=now_millis)


class SensorExistsResponse(_CamelModel):
    sensor_id: str = Field(..., alias="sensorId")
    exists: bool
    timestamp: int = Field(default_factory=now_millis)


class ServiceHealth(_CamelModel):
    status: str = "UP"
    service: str
    timestamp: int = Field(default_factory=now_millis)
    active_sensors: Optional[int] = Field(default=None, alias="activeSensors")
    messages_processed: Optional[int] = Field(default=None, alias="messagesProcessed")
