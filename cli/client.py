from __future__ import annotations

from typing import Any, Dict, List, NoReturn, Sequence

import httpx
import typer

from cli.config import CLIConfig


class ApiClient:
    """Minimal HTTP client for the telemetry service."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        self._client = httpx.Client(base_url=config.base_url, timeout=config.timeout)

    def close(self) -> None:
        self._client.close()

    def start_producer(self) -> Dict[str, Any]:
        return self._request("POST", "/api/producer/start")

    def stop_producer(self) -> Dict[str, Any]:
        return self._request("POST", "/api/producer/stop")

    def producer_status(self) -> Dict[str, Any]:
        return self._request("GET", "/api/producer/status")

    def list_sensors(self) -> List[str]:
        payload = self._request("GET", "/api/sensors/list")
        sensor_ids = payload.get("sensorIds")
        if not isinstance(sensor_ids, list):
            raise typer.BadParameter("Unexpected response payload when listing sensors.")
        return sensor_ids

    def latest_reading(self, sensor_id: str) -> Dict[str, Any]:
        try:
            response = self._client.get("/api/sensors/latest", params={"sensorId": sensor_id})
            if response.status_code == 404:
                raise typer.BadParameter(f"Sensor {sensor_id} was not found.")
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        except httpx.TransportError as exc:
            self._handle_transport_error(exc)
        return response.json()

    def all_readings(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/api/sensors/all")

    def batch_readings(self, sensor_ids: Sequence[str]) -> Dict[str, Any]:
        return self._request("POST", "/api/sensors/batch", json=list(sensor_ids))

    def statistics(self) -> Dict[str, Any]:
        return self._request("GET", "/api/sensors/statistics")

    def sensor_exists(self, sensor_id: str) -> bool:
        payload = self._request("GET", f"/api/sensors/exists/{sensor_id}")
        return bool(payload.get("exists"))

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = self._client.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        except httpx.TransportError as exc:
            self._handle_transport_error(exc)
        return response.json()

    def _handle_transport_error(self, exc: httpx.TransportError) -> NoReturn:
        typer.secho(
            f"Could not reach {self._config.base_url}: {exc}",
            fg=typer.colors.RED,
            err=True,
        )
        raise typer.Exit(code=1)

    @staticmethod
    def _handle_http_error(exc: httpx.HTTPStatusError) -> NoReturn:
        detail: str | None = None
        try:
            data = exc.response.json()
            detail = data.get("detail")
        except Exception:  # noqa: BLE001 - best effort parsing
            detail = exc.response.text.strip()
        message = (
            f"Request failed with status {exc.response.status_code}: {detail or 'no detail provided.'}"
        )
        typer.secho(message, fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
