from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

import typer
import uvicorn

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import (
    echo_key_values,
    render_control,
    render_reading,
    render_readings,
    render_statistics,
    render_status,
)
from settings import get_settings


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for running and querying the sensor telemetry service.",
    context_settings={"help_option_names": ["-h", "--help"]},
)
producer_app = typer.Typer(help="Control the sensor simulation.")
sensors_app = typer.Typer(help="Query the latest sensor readings.")
app.add_typer(producer_app, name="producer")
app.add_typer(sensors_app, name="sensors")


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=1)
    return state


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Service base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Seconds to wait for each HTTP request.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("serve")
def serve_command(
    host: str = typer.Option("0.0.0.0", "--host", help="Interface to bind."),
    port: Optional[int] = typer.Option(
        None, "--port", "-p", help="Port to listen on (defaults to HTTP_PORT env or 8000)."
    ),
) -> None:
    """Run the HTTP service."""
    settings = get_settings()
    uvicorn.run(
        "app.main:app",
        host=host,
        port=port or settings.http_port,
        log_level=settings.log_level.lower(),
    )


@producer_app.command("start")
def producer_start(ctx: typer.Context) -> None:
    """Start generating readings."""
    render_control(_get_state(ctx).client.start_producer())


@producer_app.command("stop")
def producer_stop(ctx: typer.Context) -> None:
    """Stop generating readings."""
    render_control(_get_state(ctx).client.stop_producer())


@producer_app.command("status")
def producer_status(ctx: typer.Context) -> None:
    """Show whether the simulation runs and how much it has sent."""
    render_status(_get_state(ctx).client.producer_status())


@sensors_app.command("list")
def sensors_list(ctx: typer.Context) -> None:
    """List sensor IDs with a stored reading."""
    sensor_ids = _get_state(ctx).client.list_sensors()
    if not sensor_ids:
        typer.echo("No sensors found.")
        return
    for sensor_id in sensor_ids:
        typer.echo(sensor_id)


@sensors_app.command("latest")
def sensors_latest(
    ctx: typer.Context,
    sensor_id: str = typer.Argument(..., help="Sensor identifier, e.g. 101."),
) -> None:
    """Show the latest reading of one sensor."""
    render_reading(_get_state(ctx).client.latest_reading(sensor_id))


@sensors_app.command("all")
def sensors_all(ctx: typer.Context) -> None:
    """Show the latest reading of every sensor."""
    render_readings(_get_state(ctx).client.all_readings())


@sensors_app.command("batch")
def sensors_batch(
    ctx: typer.Context,
    sensor_ids: List[str] = typer.Argument(..., help="Sensor identifiers to fetch."),
) -> None:
    """Show the latest readings of several sensors."""
    readings = _get_state(ctx).client.batch_readings(sensor_ids)
    render_readings(readings[sensor_id] for sensor_id in sorted(readings))
    missing = [sensor_id for sensor_id in sensor_ids if sensor_id not in readings]
    if missing:
        typer.secho(f"No reading for: {', '.join(missing)}", fg=typer.colors.YELLOW)


@sensors_app.command("stats")
def sensors_stats(ctx: typer.Context) -> None:
    """Show aggregate statistics over all sensors."""
    render_statistics(_get_state(ctx).client.statistics())


@sensors_app.command("exists")
def sensors_exists(
    ctx: typer.Context,
    sensor_id: str = typer.Argument(..., help="Sensor identifier."),
) -> None:
    """Check whether a sensor currently has a reading."""
    echo_key_values([("sensorId", sensor_id), ("exists", _get_state(ctx).client.sensor_exists(sensor_id))])
