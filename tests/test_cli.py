from __future__ import annotations

from typing import Any, Dict, List

import pytest
from typer.testing import CliRunner

from cli.app import app
from cli.config import load_config
from settings import get_settings


class StubClient:
    def __init__(self, config) -> None:
        self.config = config
        self.calls: List[tuple] = []
        self.running = False
        self.readings: Dict[str, Dict[str, Any]] = {
            "101": {
                "sensorId": "101",
                "sensorType": "TEMP_PRESSURE",
                "temperature": 21.5,
                "pressure": 1010.0,
                "location": "Location-1",
                "timestamp": "2024-01-01T00:00:00Z",
            },
        }
        self.closed = False

    def start_producer(self) -> Dict[str, Any]:
        self.calls.append(("start",))
        if self.running:
            return {"status": "ALREADY_RUNNING", "message": "Already running"}
        self.running = True
        return {"status": "STARTED", "message": "Started successfully"}

    def stop_producer(self) -> Dict[str, Any]:
        self.calls.append(("stop",))
        return {"status": "ALREADY_STOPPED", "message": "Already stopped"}

    def producer_status(self) -> Dict[str, Any]:
        return {
            "running": True,
            "sensorCount": 5,
            "messagesSent": 42,
            "uptimeMs": 61000,
            "uptimeFormatted": "0:01:01",
        }

    def list_sensors(self) -> List[str]:
        return sorted(self.readings)

    def latest_reading(self, sensor_id: str) -> Dict[str, Any]:
        return self.readings[sensor_id]

    def all_readings(self) -> List[Dict[str, Any]]:
        return [self.readings[key] for key in sorted(self.readings)]

    def batch_readings(self, sensor_ids) -> Dict[str, Any]:
        self.calls.append(("batch", list(sensor_ids)))
        return {sensor_id: self.readings[sensor_id] for sensor_id in sensor_ids if sensor_id in self.readings}

    def statistics(self) -> Dict[str, Any]:
        return {"totalSensors": 0, "activeSensors": 0, "timestamp": 1}

    def sensor_exists(self, sensor_id: str) -> bool:
        return sensor_id in self.readings

    def close(self) -> None:
        self.closed = True


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def stub(monkeypatch) -> StubClient:
    instance = StubClient(config=None)

    def factory(config):
        instance.config = config
        return instance

    monkeypatch.setattr("cli.app.ApiClient", factory)
    return instance


def test_producer_start_and_stop(runner: CliRunner, stub: StubClient) -> None:
    result = runner.invoke(app, ["producer", "start"])

    assert result.exit_code == 0
    assert "STARTED: Started successfully" in result.stdout
    assert stub.closed is True

    result = runner.invoke(app, ["producer", "stop"])
    assert result.exit_code == 0
    assert "ALREADY_STOPPED" in result.stdout
    assert stub.calls == [("start",), ("stop",)]


def test_producer_status(runner: CliRunner, stub: StubClient) -> None:
    result = runner.invoke(app, ["producer", "status"])

    assert result.exit_code == 0
    assert "Producer Status" in result.stdout
    assert "messagesSent: 42" in result.stdout
    assert "uptime: 0:01:01" in result.stdout


def test_sensors_commands(runner: CliRunner, stub: StubClient) -> None:
    listing = runner.invoke(app, ["sensors", "list"])
    assert listing.exit_code == 0
    assert listing.stdout.strip() == "101"

    latest = runner.invoke(app, ["sensors", "latest", "101"])
    assert latest.exit_code == 0
    assert "temperature: 21.5" in latest.stdout

    everything = runner.invoke(app, ["sensors", "all"])
    assert "101: temp=21.5 pressure=1010.0" in everything.stdout

    exists = runner.invoke(app, ["sensors", "exists", "999"])
    assert "exists: False" in exists.stdout


def test_sensors_batch_reports_missing_ids(runner: CliRunner, stub: StubClient) -> None:
    result = runner.invoke(app, ["sensors", "batch", "101", "999"])

    assert result.exit_code == 0
    assert stub.calls == [("batch", ["101", "999"])]
    assert "101: temp=21.5" in result.stdout
    assert "No reading for: 999" in result.stdout


def test_sensors_stats_without_active_sensors(runner: CliRunner, stub: StubClient) -> None:
    result = runner.invoke(app, ["sensors", "stats"])

    assert result.exit_code == 0
    assert "totalSensors: 0" in result.stdout
    assert "averageTemperature" not in result.stdout
    assert "No active sensors." in result.stdout


def test_base_url_option_reaches_client(runner: CliRunner, stub: StubClient) -> None:
    result = runner.invoke(app, ["--base-url", "http://telemetry:9000/", "--timeout", "3", "sensors", "list"])

    assert result.exit_code == 0
    assert stub.config.base_url == "http://telemetry:9000"
    assert stub.config.timeout == 3.0


def test_load_config_reads_environment(monkeypatch) -> None:
    monkeypatch.setenv("API_BASE_URL", "http://from-env:8000/")
    monkeypatch.setenv("CLI_REQUEST_TIMEOUT", "not-a-number")

    config = load_config()

    assert config.base_url == "http://from-env:8000"
    assert config.timeout == 10.0


def test_serve_runs_uvicorn_on_configured_port(runner: CliRunner, stub: StubClient, monkeypatch) -> None:
    calls: List[tuple] = []
    monkeypatch.setattr("cli.app.uvicorn.run", lambda target, **kwargs: calls.append((target, kwargs)))
    monkeypatch.setenv("HTTP_PORT", "8083")
    get_settings.cache_clear()
    try:
        result = runner.invoke(app, ["serve"])
    finally:
        get_settings.cache_clear()

    assert result.exit_code == 0
    assert calls and calls[0][0] == "app.main:app"
    assert calls[0][1]["port"] == 8083
