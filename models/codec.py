"""JSON encoding of readings for the bus and the key-value store."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from models.records import SensorReading


class ReadingDecodeError(ValueError):
    """Raised when a payload or stored value cannot be turned into a reading."""


def encode_reading(reading: SensorReading) -> str:
    return reading.model_dump_json(by_alias=True)


def decode_reading(value: Any) -> SensorReading:
    """Decode a reading from any representation a store or broker may hand back.

    Accepts an already-decoded ``SensorReading``, a mapping of its fields, or a
    JSON document as ``str``/``bytes``.
    """
    if isinstance(value, SensorReading):
        return value.model_copy(deep=True)

    try:
        if isinstance(value, Mapping):
            return SensorReading.model_validate(dict(value))
        if isinstance(value, (bytes, bytearray)):
            value = bytes(value).decode("utf-8")
        if isinstance(value, str):
            return SensorReading.model_validate_json(value)
    except (ValidationError, UnicodeDecodeError) as exc:
        raise ReadingDecodeError(f"Invalid sensor reading: {exc}") from exc

    raise ReadingDecodeError(f"Unsupported stored value type {type(value).__name__!r}.")
