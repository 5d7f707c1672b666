"""Synthetic telemetry generation for a fleet of virtual sensors."""

from __future__ import annotations

import logging
import random
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from functools import lru_cache, partial
from threading import Event, Lock
from typing import Callable, List, Optional

from app.schemas import ProducerStatus
from messaging.channel import MessageChannel, PublishAck, PublishError, build_default_channel
from models.codec import encode_reading
from models.records import SENSOR_TYPE_TEMP_PRESSURE, SensorReading
from services.aggregator import round_half_up
from settings import get_settings

logger = logging.getLogger(__name__)

DEFAULT_BASE_OFFSET = 100
DEFAULT_GRACE_PERIOD = 5.0


def format_uptime(uptime_ms: int) -> str:
    seconds = uptime_ms // 1000
    minutes, seconds = divmod(seconds, 60)
    hours, minutes = divmod(minutes, 60)
    return f"{hours}:{minutes:02d}:{seconds:02d}"


class SimulationEngine:
    """Runs one generator thread per simulated sensor.

    Each generator builds a reading, publishes it keyed by sensor id and then
    waits for the configured interval. Publish acknowledgements arrive through
    future callbacks, so a slow broker never delays the next tick. The running
    flag and the sent counter are the only state shared between threads; each
    sits behind its own lock, and neither lock is held while publishing or
    sleeping.
    """

    def __init__(
        self,
        channel: MessageChannel,
        topic: str,
        sensor_count: int,
        interval_seconds: float,
        base_offset: int = DEFAULT_BASE_OFFSET,
        grace_period: float = DEFAULT_GRACE_PERIOD,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if sensor_count < 1:
            raise ValueError("sensor_count must be positive.")
        self.channel = channel
        self.topic = topic
        self.sensor_count = sensor_count
        self.interval_seconds = interval_seconds
        self.base_offset = base_offset
        self.grace_period = grace_period
        self._rng = rng or random.Random()
        self._clock = clock

        self._state_lock = Lock()
        self._running = False
        self._started_at: Optional[float] = None
        self._stop_event: Optional[Event] = None
        self._executor: Optional[ThreadPoolExecutor] = None
        self._futures: List[Future[None]] = []

        self._counter_lock = Lock()
        self._messages_sent = 0

    @property
    def running(self) -> bool:
        with self._state_lock:
            return self._running

    @property
    def messages_sent(self) -> int:
        with self._counter_lock:
            return self._messages_sent

    def start(self) -> bool:
        """Launch the generators; return ``False`` if a run is already active."""
        with self._state_lock:
            if self._running:
                logger.info("Sensor simulation already running")
                return False
            self._running = True
            self._started_at = self._clock()
            stop_event = Event()
            executor = ThreadPoolExecutor(
                max_workers=self.sensor_count, thread_name_prefix="sensor"
            )
            self._stop_event = stop_event
            self._executor = executor
            self._futures = [
                executor.submit(self._simulate_sensor, self.base_offset + index, stop_event)
                for index in range(1, self.sensor_count + 1)
            ]

        logger.info(
            "Started %d sensor simulation threads",
            self.sensor_count,
            extra={"sensor_count": self.sensor_count, "topic": self.topic},
        )
        return True

    def stop(self) -> bool:
        """Signal the generators and wait for them; ``False`` if nothing was running."""
        with self._state_lock:
            if not self._running:
                logger.info("Sensor simulation is not running")
                return False
            self._running = False
            self._started_at = None
            stop_event, executor, futures = self._stop_event, self._executor, self._futures
            self._stop_event = None
            self._executor = None
            self._futures = []

        if stop_event is None or executor is None:
            return True
        stop_event.set()
        _, not_done = wait(futures, timeout=self.grace_period)
        if not_done:
            logger.warning(
                "%d sensor threads did not exit within %.1fs, cancelling them",
                len(not_done),
                self.grace_period,
            )
            executor.shutdown(wait=False, cancel_futures=True)
        else:
            executor.shutdown(wait=True)

        logger.info("Stopped sensor simulation")
        return True

    def status(self) -> ProducerStatus:
        with self._state_lock:
            running = self._running
            started_at = self._started_at

        uptime_ms: Optional[int] = None
        uptime_formatted: Optional[str] = None
        if running and started_at is not None:
            uptime_ms = max(0, int((self._clock() - started_at) * 1000))
            uptime_formatted = format_uptime(uptime_ms)

        return ProducerStatus(
            running=running,
            sensor_count=self.sensor_count,
            messages_sent=self.messages_sent,
            uptime_ms=uptime_ms,
            uptime_formatted=uptime_formatted,
        )

    def shutdown(self) -> None:
        """Stop any active run during application shutdown."""
        self.stop()

    def generate_reading(self, sensor_id: str, location: str) -> SensorReading:
        temperature = round_half_up(20 + self._rng.gauss(0.0, 1.0) * 5)
        pressure = round_half_up(1013.25 + self._rng.gauss(0.0, 1.0) * 100)
        return SensorReading(
            sensor_id=sensor_id,
            sensor_type=SENSOR_TYPE_TEMP_PRESSURE,
            temperature=temperature,
            pressure=pressure,
            location=location,
        )

    def _simulate_sensor(self, sensor_number: int, stop_event: Event) -> None:
        sensor_id = str(sensor_number)
        location = f"Location-{sensor_number - self.base_offset}"

        while not stop_event.is_set():
            try:
                self._publish(self.generate_reading(sensor_id, location))
            except Exception:  # noqa: BLE001 - one bad tick must not end the sensor loop
                logger.exception(
                    "Unexpected error in sensor simulation", extra={"sensor_id": sensor_id}
                )
            if stop_event.wait(self.interval_seconds):
                break

        logger.info("Sensor %s stopped", sensor_id, extra={"sensor_id": sensor_id})

    def _publish(self, reading: SensorReading) -> None:
        try:
            payload = encode_reading(reading)
        except ValueError as exc:
            logger.error(
                "Error converting sensor data to JSON: %s",
                exc,
                extra={"sensor_id": reading.sensor_id},
            )
            return

        try:
            future = self.channel.publish(self.topic, reading.sensor_id, payload)
        except PublishError as exc:
            logger.error(
                "Failed to send data for sensor %s: %s",
                reading.sensor_id,
                exc,
                extra={"sensor_id": reading.sensor_id, "topic": self.topic},
            )
            return

        future.add_done_callback(partial(self._on_publish_done, reading))

    def _on_publish_done(self, reading: SensorReading, future: Future[PublishAck]) -> None:
        if future.cancelled():
            logger.warning("Publish cancelled", extra={"sensor_id": reading.sensor_id})
            return
        exc = future.exception()
        if exc is not None:
            logger.error(
                "Failed to send data for sensor %s: %s",
                reading.sensor_id,
                exc,
                extra={"sensor_id": reading.sensor_id, "topic": self.topic},
            )
            return

        with self._counter_lock:
            self._messages_sent += 1
        ack = future.result()
        logger.debug(
            "Sent data for sensor %s: temp=%s, pressure=%s",
            reading.sensor_id,
            reading.temperature,
            reading.pressure,
            extra={"sensor_id": reading.sensor_id, "partition": ack.partition, "offset": ack.offset},
        )


@lru_cache
def build_default_engine() -> SimulationEngine:
    """Factory that wires the engine to the default channel."""
    settings = get_settings()
    return SimulationEngine(
        channel=build_default_channel(),
        topic=settings.topic,
        sensor_count=settings.sensor_count,
        interval_seconds=settings.sensor_interval_seconds,
    )
