"""Aggregation logic for sensor readings."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable

from models.records import SensorReading


def round_half_up(value: float, places: int = 2) -> float:
    """Round ``value`` to ``places`` decimals, ties going towards positive infinity."""
    scale = 10 ** places
    return math.floor(value * scale + 0.5) / scale


@dataclass
class ReadingSummary:
    """Computed statistics for the latest reading of each sensor."""

    count: int = 0
    average_temperature: float | None = None
    average_pressure: float | None = None
    min_temperature: float | None = None
    max_temperature: float | None = None


class Aggregator:
    """Pure aggregation component that can be unit tested in isolation."""

    def aggregate(self, readings: Iterable[SensorReading]) -> ReadingSummary:
        summary = ReadingSummary()
        temperature_total = 0.0
        pressure_total = 0.0

        for reading in readings:
            summary.count += 1
            temperature = reading.temperature
            temperature_total += temperature
            pressure_total += reading.pressure

            if summary.min_temperature is None or temperature < summary.min_temperature:
                summary.min_temperature = temperature
            if summary.max_temperature is None or temperature > summary.max_temperature:
                summary.max_temperature = temperature

        if not summary.count:
            return summary

        summary.average_temperature = round_half_up(temperature_total / summary.count)
        summary.average_pressure = round_half_up(pressure_total / summary.count)
        summary.min_temperature = round_half_up(summary.min_temperature)
        summary.max_temperature = round_half_up(summary.max_temperature)
        return summary
