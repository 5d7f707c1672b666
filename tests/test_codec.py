"""Unit tests for reading encoding and the tolerant decoder."""

from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest

from models.codec import ReadingDecodeError, decode_reading, encode_reading
from models.records import SensorReading


def _reading(**overrides) -> SensorReading:
    fields = dict(
        sensor_id="101",
        sensor_type="TEMP_PRESSURE",
        temperature=21.37,
        pressure=1009.5,
        timestamp=datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc),
        location="Location-1",
    )
    fields.update(overrides)
    return SensorReading(**fields)


def test_encode_uses_camel_case_keys() -> None:
    payload = json.loads(encode_reading(_reading()))

    assert payload["sensorId"] == "101"
    assert payload["sensorType"] == "TEMP_PRESSURE"
    assert payload["temperature"] == 21.37
    assert payload["location"] == "Location-1"
    assert "sensor_id" not in payload


def test_decode_round_trips_encoded_reading() -> None:
    original = _reading(temperature=-273.5, pressure=99999.99)

    assert decode_reading(encode_reading(original)) == original


def test_decode_accepts_bytes_mapping_and_model() -> None:
    original = _reading()
    encoded = encode_reading(original)

    assert decode_reading(encoded.encode("utf-8")) == original
    assert decode_reading(json.loads(encoded)) == original

    copied = decode_reading(original)
    assert copied == original
    assert copied is not original


def test_decode_accepts_snake_case_mapping() -> None:
    reading = decode_reading({"sensor_id": "7", "temperature": 1, "pressure": 2})

    assert reading.sensor_id == "7"
    assert reading.temperature == 1.0


def test_timestamp_defaults_to_creation_time() -> None:
    before = datetime.now(timezone.utc)
    reading = SensorReading(sensor_id="1", temperature=0.0, pressure=0.0)

    assert before <= reading.timestamp <= datetime.now(timezone.utc)


@pytest.mark.parametrize(
    "value",
    [
        "{ bad json",
        b"\xff\xfe",
        '{"sensorId": "", "temperature": 1, "pressure": 2}',
        '{"sensorId": "1", "temperature": "hot", "pressure": 2}',
        42,
    ],
)
def test_decode_rejects_invalid_values(value) -> None:
    with pytest.raises(ReadingDecodeError):
        decode_reading(value)


def test_non_finite_values_survive_encoding() -> None:
    original = _reading(temperature=float("inf"), pressure=float("-inf"))
    encoded = encode_reading(original)

    assert json.loads(encoded)["temperature"] == "Infinity"
    assert decode_reading(encoded) == original
