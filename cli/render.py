from __future__ import annotations

from typing import Any, Dict, Iterable, Mapping

import typer

_READING_FIELDS = ("sensorId", "sensorType", "temperature", "pressure", "location", "timestamp")
_STATISTICS_FIELDS = (
    "totalSensors",
    "activeSensors",
    "averageTemperature",
    "averagePressure",
    "minTemperature",
    "maxTemperature",
)


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def render_control(payload: Dict[str, Any]) -> None:
    status = payload.get("status")
    color = typer.colors.GREEN if status in {"STARTED", "STOPPED"} else typer.colors.YELLOW
    typer.secho(f"{status}: {payload.get('message')}", fg=color)


def render_status(payload: Dict[str, Any]) -> None:
    echo_heading("Producer Status")
    pairs = [
        ("running", payload.get("running")),
        ("sensorCount", payload.get("sensorCount")),
        ("messagesSent", payload.get("messagesSent")),
    ]
    if payload.get("uptimeFormatted") is not None:
        pairs.append(("uptime", payload["uptimeFormatted"]))
    echo_key_values(pairs)


def render_reading(payload: Mapping[str, Any]) -> None:
    echo_key_values((field, payload.get(field)) for field in _READING_FIELDS)


def render_readings(readings: Iterable[Mapping[str, Any]]) -> None:
    echo_heading("Latest Readings")
    rows = list(readings)
    if not rows:
        typer.echo("No readings available.")
        return
    for reading in rows:
        typer.echo(
            f"  - {reading.get('sensorId')}: "
            f"temp={reading.get('temperature')} pressure={reading.get('pressure')} "
            f"({reading.get('location')}, {reading.get('timestamp')})"
        )


def render_statistics(payload: Dict[str, Any]) -> None:
    echo_heading("Sensor Statistics")
    echo_key_values(
        (field, payload[field]) for field in _STATISTICS_FIELDS if field in payload
    )
    if not payload.get("activeSensors"):
        typer.echo("No active sensors.")
