"""HTTP route definitions for the service."""

from __future__ import annotations

import logging
from typing import Dict, List

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status

from app.schemas import (
    ControlStatus,
    ProducerControlResponse,
    ProducerStatus,
    SensorExistsResponse,
    SensorListResponse,
    SensorReading,
    SensorStatistics,
    ServiceHealth,
)
from services.ingestion import IngestionPipeline, build_default_pipeline
from services.query import SensorQueryService, build_default_query_service
from services.simulator import SimulationEngine, build_default_engine

logger = logging.getLogger(__name__)

router = APIRouter()
sensors_router = APIRouter(prefix="/api/sensors", tags=["sensors"])
producer_router = APIRouter(prefix="/api/producer", tags=["producer"])


def get_query_service() -> SensorQueryService:
    return build_default_query_service()


def get_engine() -> SimulationEngine:
    return build_default_engine()


def get_pipeline() -> IngestionPipeline:
    return build_default_pipeline()


# Query routes are sync so blocking store calls run in the threadpool.
@sensors_router.get(
    "/latest",
    response_model=SensorReading,
    summary="Get the latest reading of one sensor.",
)
def get_latest_reading(
    sensor_id: str = Query(..., alias="sensorId", min_length=1, description="Sensor ID"),
    service: SensorQueryService = Depends(get_query_service),
) -> SensorReading:
    logger.info("Getting data for sensor %s", sensor_id, extra={"sensor_id": sensor_id})
    reading = service.get_latest(sensor_id)
    if reading is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": "Sensor not found", "sensorId": sensor_id},
        )
    return reading


@sensors_router.get(
    "/all",
    response_model=List[SensorReading],
    summary="Get the latest reading of every sensor, ordered by sensor ID.",
)
def get_all_readings(
    service: SensorQueryService = Depends(get_query_service),
) -> List[SensorReading]:
    return service.get_all()


@sensors_router.post(
    "/batch",
    response_model=Dict[str, SensorReading],
    summary="Get the latest readings for the given sensor IDs.",
)
def get_batch_readings(
    sensor_ids: List[str] = Body(..., description="Sensor IDs to look up."),
    service: SensorQueryService = Depends(get_query_service),
) -> Dict[str, SensorReading]:
    return service.get_batch(sensor_ids)


@sensors_router.get(
    "/statistics",
    response_model=SensorStatistics,
    response_model_exclude_none=True,
    summary="Aggregate statistics over the latest readings.",
)
def get_statistics(
    service: SensorQueryService = Depends(get_query_service),
) -> SensorStatistics:
    return service.get_statistics()


@sensors_router.get(
    "/list",
    response_model=SensorListResponse,
    summary="List the IDs of sensors with a stored reading.",
)
def list_sensor_ids(
    service: SensorQueryService = Depends(get_query_service),
) -> SensorListResponse:
    sensor_ids = service.list_sensor_ids()
    return SensorListResponse(sensor_ids=sensor_ids, count=len(sensor_ids))


@sensors_router.get(
    "/exists/{sensor_id}",
    response_model=SensorExistsResponse,
    summary="Check whether a sensor has a stored reading.",
)
def sensor_exists(
    sensor_id: str,
    service: SensorQueryService = Depends(get_query_service),
) -> SensorExistsResponse:
    return SensorExistsResponse(sensor_id=sensor_id, exists=service.sensor_exists(sensor_id))


@sensors_router.get(
    "/health",
    response_model=ServiceHealth,
    response_model_exclude_none=True,
    summary="Health of the query API.",
)
def sensors_health(
    service: SensorQueryService = Depends(get_query_service),
) -> ServiceHealth:
    return ServiceHealth(service="api-service", active_sensors=len(service.list_sensor_ids()))


@producer_router.post(
    "/start",
    response_model=ProducerControlResponse,
    summary="Start the sensor simulation.",
)
async def start_producer(
    engine: SimulationEngine = Depends(get_engine),
) -> ProducerControlResponse:
    logger.info("Starting sensor data production")
    if engine.start():
        return ProducerControlResponse(status=ControlStatus.started, message="Started successfully")
    return ProducerControlResponse(status=ControlStatus.already_running, message="Already running")


@producer_router.post(
    "/stop",
    response_model=ProducerControlResponse,
    summary="Stop the sensor simulation.",
)
def stop_producer(
    engine: SimulationEngine = Depends(get_engine),
) -> ProducerControlResponse:
    # Sync route: stop() may wait out the grace period, so it runs in the threadpool.
    logger.info("Stopping sensor data production")
    if engine.stop():
        return ProducerControlResponse(status=ControlStatus.stopped, message="Stopped successfully")
    return ProducerControlResponse(status=ControlStatus.already_stopped, message="Already stopped")


@producer_router.get(
    "/status",
    response_model=ProducerStatus,
    response_model_exclude_none=True,
    summary="Current simulation state.",
)
async def producer_status(
    engine: SimulationEngine = Depends(get_engine),
) -> ProducerStatus:
    return engine.status()


@router.get(
    "/health",
    response_model=ServiceHealth,
    response_model_exclude_none=True,
    summary="Health of the ingestion consumer.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck(
    pipeline: IngestionPipeline = Depends(get_pipeline),
) -> ServiceHealth:
    return ServiceHealth(service="consumer-service", messages_processed=pipeline.processed_count())


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /health for service status."}
