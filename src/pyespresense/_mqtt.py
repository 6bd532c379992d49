"""Internal MQTT runtime feeding reports into an asyncio queue."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable
from typing import Any, Protocol, cast

import paho.mqtt.client as mqtt

from pyespresense._constants import DEFAULT_TOPIC_PREFIX
from pyespresense.config import PresenceConfig
from pyespresense.exceptions import MalformedReportError, TransportUnavailableError
from pyespresense.ingestion.mqtt import parse_report_message
from pyespresense.ingestion.normalize import now_ms
from pyespresense.state.events import ReportEvent


class ReportTransport(Protocol):
    """Structural interface of a report feed.

    Implementations push parsed :class:`ReportEvent`s into the queue handed
    to :meth:`subscribe`; they must never block the event loop.
    """

    @property
    def is_ready(self) -> bool: ...

    def subscribe(self, topics: Iterable[str], queue: asyncio.Queue[ReportEvent]) -> None: ...

    def unsubscribe(self) -> None: ...


class EspresenseMqttRuntime:
    """Threaded paho-mqtt runtime that emits parsed reports onto an asyncio loop."""

    def __init__(
        self,
        *,
        loop: asyncio.AbstractEventLoop,
        host: str = "localhost",
        port: int = 1883,
        username: str | None = None,
        password: str | None = None,
        keepalive: int = 60,
        topic_prefix: str = DEFAULT_TOPIC_PREFIX,
        client_id: str = "",
        clock: Callable[[], int] = now_ms,
        logger: logging.Logger | None = None,
    ) -> None:
        self._loop = loop
        self._host = host
        self._port = port
        self._username = username
        self._password = password
        self._keepalive = keepalive
        self._topic_prefix = topic_prefix
        self._client_id = client_id
        self._clock = clock
        self._logger = logger or logging.getLogger(__name__)
        self._client: mqtt.Client | None = None
        self._running = False
        self._connected = False
        self._topics: tuple[str, ...] = ()
        self._queue: asyncio.Queue[ReportEvent] | None = None

    @classmethod
    def from_config(cls, config: PresenceConfig, *, loop: asyncio.AbstractEventLoop) -> EspresenseMqttRuntime:
        return cls(
            loop=loop,
            host=config.mqtt_host,
            port=config.mqtt_port,
            username=config.mqtt_username,
            password=config.mqtt_password,
            keepalive=config.mqtt_keepalive,
            topic_prefix=config.topic_prefix,
        )

    @property
    def is_running(self) -> bool:
        """Whether the MQTT network loop is running."""
        return self._running

    @property
    def is_ready(self) -> bool:
        """Whether the client is connected to the broker."""
        return self._running and self._connected

    def start(self) -> None:
        """Connect to the broker and start the network loop."""
        self.stop()
        self._logger.debug("MQTT runtime start requested host=%s port=%s", self._host, self._port)

        client = mqtt.Client(
            callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
            client_id=self._client_id,
        )
        client.enable_logger(self._logger)
        if self._username:
            client.username_pw_set(self._username, self._password)

        def on_connect(
            c: mqtt.Client,
            _userdata: Any,
            _flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if reason_code.value != 0:
                self._logger.warning("MQTT connect failed: %s", reason_code)
                return
            self._connected = True
            self._logger.debug("MQTT connected successfully reason=%s", reason_code)
            for topic in self._topics:
                self._logger.debug("MQTT subscribing topic=%s", topic)
                c.subscribe(topic, qos=0)

        def on_message(_c: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
            self._handle_message(msg.topic, msg.payload)

        def on_disconnect(
            _client: mqtt.Client,
            _userdata: Any,
            _disconnect_flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            self._connected = False
            if self._running:
                self._logger.debug("MQTT disconnected: %s", reason_code)

        client.on_connect = on_connect
        client.on_message = on_message
        client.on_disconnect = on_disconnect

        try:
            client.connect(self._host, self._port, keepalive=self._keepalive)
        except OSError as exc:
            raise TransportUnavailableError(f"cannot connect to {self._host}:{self._port}: {exc}") from exc
        client.loop_start()

        self._client = client
        self._running = True
        self._logger.debug("MQTT network loop started")

    def stop(self) -> None:
        """Stop and disconnect the current client if running."""
        client = self._client
        self._client = None
        was_running = self._running
        self._running = False
        self._connected = False

        if client is None:
            return
        try:
            if was_running:
                self._logger.debug("MQTT disconnect requested")
                client.disconnect()
        finally:
            client.loop_stop()
            self._logger.debug("MQTT network loop stopped")

    def subscribe(self, topics: Iterable[str], queue: asyncio.Queue[ReportEvent]) -> None:
        """Subscribe to *topics*, delivering parsed reports into *queue*."""
        self._topics = tuple(topics)
        self._queue = queue
        client = self._client
        if client is not None and self._connected:
            for topic in self._topics:
                self._logger.debug("MQTT subscribing topic=%s", topic)
                client.subscribe(topic, qos=0)

    def unsubscribe(self) -> None:
        """Drop every subscription and stop delivering reports."""
        topics = self._topics
        self._topics = ()
        self._queue = None
        client = self._client
        if client is not None and topics and self._connected:
            client.unsubscribe(list(topics))

    def _handle_message(self, topic: str, payload: bytes) -> None:
        """Parse a message on the network thread and hand it to the loop."""
        if self._queue is None:
            return
        try:
            event = parse_report_message(
                topic,
                payload,
                prefix=self._topic_prefix,
                received_at=self._clock(),
            )
        except MalformedReportError as exc:
            self._logger.debug("Dropping malformed report on %s: %s", topic, exc)
            return
        self._logger.debug("Received report topic=%s device=%s room=%s", topic, event.device_id, event.room)
        self._loop.call_soon_threadsafe(self._enqueue, event)

    def _enqueue(self, event: ReportEvent) -> None:
        queue = self._queue
        if queue is None:
            return
        try:
            queue.put_nowait(event)
        except asyncio.QueueFull:
            self._logger.warning("Report queue full, dropping report for %s", event.device_id)
