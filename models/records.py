"""Domain models shared across services."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field

SENSOR_TYPE_TEMP_PRESSURE = "TEMP_PRESSURE"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SensorReading(BaseModel):
    """Latest temperature/pressure sample reported by one sensor.

    The JSON form uses camelCase keys (``sensorId``, ``sensorType``); Python
    code may construct readings with either spelling.
    """

    # Non-finite values travel as "Infinity"/"NaN" strings instead of null.
    model_config = ConfigDict(populate_by_name=True, ser_json_inf_nan="strings")

    sensor_id: str = Field(..., alias="sensorId", min_length=1)
    sensor_type: str = Field(SENSOR_TYPE_TEMP_PRESSURE, alias="sensorType")
    temperature: float
    pressure: float
    timestamp: datetime = Field(default_factory=_utcnow)
    location: str = ""
