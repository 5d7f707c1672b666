from __future__ import annotations
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.api import producer_router, router, sensors_router
from datastore.kv_store import build_default_store
from logging_config import configure_logging
from messaging.channel import build_default_channel
from services.ingestion import build_default_pipeline
from services.query import build_default_query_service
from services.simulator import build_default_engine
from settings import get_settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    channel = build_default_channel()
    store = build_default_store()
    pipeline = build_default_pipeline()
    engine = build_default_engine()
    channel.subscribe(settings.topic, settings.consumer_group_id, pipeline.on_message)
    logger.info(
        "Sensor data consumer initialized with key prefix %s",
        settings.key_prefix,
        extra={"topic": settings.topic},
    )
    try:
        yield
    finally:
        # Generators publish into the channel, so they stop before it closes.
        engine.shutdown()
        channel.close()
        store.close()
        for factory in (
            build_default_engine,
            build_default_pipeline,
            build_default_query_service,
            build_default_channel,
            build_default_store,
        ):
            factory.cache_clear()


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="Sensor Telemetry Hub",
        description="Simulated sensor telemetry published over a message bus and served from a key-value store.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.include_router(router)
    app.include_router(sensors_router)
    app.include_router(producer_router)
    return app

app = create_app()
