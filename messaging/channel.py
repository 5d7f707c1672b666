"""Publish/subscribe channels carrying encoded readings between services."""

from __future__ import annotations

import logging
import zlib
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from functools import lru_cache
from threading import Event, Lock, Thread
from typing import Callable, Dict, List, Optional, Protocol, Tuple

from kafka import KafkaConsumer, KafkaProducer
from kafka.errors import KafkaError

from settings import get_settings

logger = logging.getLogger(__name__)

MessageHandler = Callable[[bytes, str, str, int, int], None]
"""``handler(payload, key, topic, partition, offset)``."""


class PublishError(RuntimeError):
    """Raised (through the returned future) when a message cannot be published."""


@dataclass(frozen=True)
class PublishAck:
    topic: str
    partition: int
    offset: int


class MessageChannel(Protocol):

    def publish(self, topic: str, key: str, payload: str) -> Future[PublishAck]: ...

    def subscribe(self, topic: str, group_id: str, handler: MessageHandler) -> None: ...

    def close(self) -> None: ...


def _dispatch(
    handler: MessageHandler,
    payload: bytes,
    key: str,
    topic: str,
    partition: int,
    offset: int,
) -> None:
    try:
        handler(payload, key, topic, partition, offset)
    except Exception:  # noqa: BLE001 - a failing handler must not stop delivery
        logger.exception(
            "Message handler raised",
            extra={"topic": topic, "partition": partition, "offset": offset},
        )


class InMemoryChannel:
    """In-process broker with keyed partitions and consumer groups.

    Messages with the same key always land on the same partition, and each
    partition is delivered by its own single worker thread, so per-key order
    is preserved while different partitions are handled concurrently. Every
    subscribed group receives every message once.
    """

    def __init__(self, partitions: int = 3) -> None:
        if partitions < 1:
            raise ValueError("partitions must be positive.")
        self.partitions = partitions
        self._subscriptions: Dict[str, Dict[str, MessageHandler]] = {}
        self._offsets: Dict[Tuple[str, int], int] = {}
        self._executors: List[ThreadPoolExecutor] = [
            ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"partition-{index}")
            for index in range(partitions)
        ]
        self._lock = Lock()
        self._closed = False

    def partition_for(self, key: str) -> int:
        return zlib.crc32(key.encode("utf-8")) % self.partitions

    def publish(self, topic: str, key: str, payload: str) -> Future[PublishAck]:
        future: Future[PublishAck] = Future()
        data = payload.encode("utf-8")
        partition = self.partition_for(key)
        with self._lock:
            if self._closed:
                future.set_exception(PublishError("Channel is closed."))
                return future
            offset = self._offsets.get((topic, partition), 0)
            self._offsets[(topic, partition)] = offset + 1
            executor = self._executors[partition]
            for handler in self._subscriptions.get(topic, {}).values():
                executor.submit(_dispatch, handler, data, key, topic, partition, offset)
        future.set_result(PublishAck(topic=topic, partition=partition, offset=offset))
        return future

    def subscribe(self, topic: str, group_id: str, handler: MessageHandler) -> None:
        with self._lock:
            self._subscriptions.setdefault(topic, {})[group_id] = handler
        logger.info("Subscribed group %s", group_id, extra={"topic": topic})

    def flush(self, timeout: Optional[float] = None) -> None:
        """Block until every message published so far has been delivered."""

        with self._lock:
            if self._closed:
                return
            markers = [executor.submit(lambda: None) for executor in self._executors]
        for marker in markers:
            marker.result(timeout=timeout)

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        for executor in self._executors:
            executor.shutdown(wait=True)


class KafkaChannel:
    """Channel backed by a Kafka cluster through kafka-python."""

    def __init__(
        self,
        bootstrap_servers: str,
        producer: Optional[KafkaProducer] = None,
        consumer_factory: Optional[Callable[[str, str], KafkaConsumer]] = None,
        poll_timeout_ms: int = 500,
    ) -> None:
        self.bootstrap_servers = [
            server.strip() for server in bootstrap_servers.split(",") if server.strip()
        ]
        self._producer = producer
        self._producer_lock = Lock()
        self._consumer_factory = consumer_factory or self._build_consumer
        self._poll_timeout_ms = poll_timeout_ms
        self._stopping = Event()
        self._threads: List[Thread] = []

    def publish(self, topic: str, key: str, payload: str) -> Future[PublishAck]:
        future: Future[PublishAck] = Future()
        try:
            record_future = self._get_producer().send(topic, key=key, value=payload)
        except KafkaError as exc:
            future.set_exception(PublishError(f"Failed to send to {topic!r}: {exc}"))
            return future

        def _on_success(metadata) -> None:
            future.set_result(
                PublishAck(topic=metadata.topic, partition=metadata.partition, offset=metadata.offset)
            )

        def _on_error(exc: BaseException) -> None:
            future.set_exception(PublishError(f"Failed to send to {topic!r}: {exc}"))

        record_future.add_callback(_on_success)
        record_future.add_errback(_on_error)
        return future

    def subscribe(self, topic: str, group_id: str, handler: MessageHandler) -> None:
        thread = Thread(
            target=self._consume,
            args=(topic, group_id, handler),
            name=f"kafka-consumer-{group_id}",
            daemon=True,
        )
        self._threads.append(thread)
        thread.start()

    def close(self) -> None:
        self._stopping.set()
        for thread in self._threads:
            thread.join(timeout=5.0)
        self._threads.clear()
        with self._producer_lock:
            if self._producer is not None:
                self._producer.flush(timeout=5.0)
                self._producer.close(timeout=5.0)
                self._producer = None

    def _get_producer(self) -> KafkaProducer:
        with self._producer_lock:
            if self._producer is None:
                self._producer = KafkaProducer(
                    bootstrap_servers=self.bootstrap_servers,
                    key_serializer=lambda key: key.encode("utf-8"),
                    value_serializer=lambda value: value.encode("utf-8"),
                    acks="all",
                )
            return self._producer

    def _build_consumer(self, topic: str, group_id: str) -> KafkaConsumer:
        return KafkaConsumer(
            topic,
            bootstrap_servers=self.bootstrap_servers,
            group_id=group_id,
            auto_offset_reset="earliest",
            enable_auto_commit=True,
        )

    def _consume(self, topic: str, group_id: str, handler: MessageHandler) -> None:
        try:
            consumer = self._consumer_factory(topic, group_id)
        except KafkaError as exc:
            logger.error("Could not create Kafka consumer for group %s: %s", group_id, exc, extra={"topic": topic})
            return

        try:
            while not self._stopping.is_set():
                batches = consumer.poll(timeout_ms=self._poll_timeout_ms)
                for records in batches.values():
                    for record in records:
                        key = record.key.decode("utf-8") if record.key is not None else ""
                        _dispatch(handler, record.value, key, record.topic, record.partition, record.offset)
        except KafkaError as exc:
            logger.error("Kafka consumer for group %s stopped: %s", group_id, exc, extra={"topic": topic})
        finally:
            consumer.close()


@lru_cache
def build_default_channel(backend: Optional[str] = None) -> MessageChannel:
    settings = get_settings()
    selected = settings.bus_backend if backend is None else backend
    if selected == "kafka":
        logger.info("Using Kafka message bus at %s", settings.kafka_bootstrap_servers)
        return KafkaChannel(settings.kafka_bootstrap_servers)
    return InMemoryChannel()
