"""High-level async controller fusing room reports into presence."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable, Mapping
from typing import Any

from pyespresense._constants import MAX_RETRY_DELAY_MS, OFFLINE_AFTER_FAILURES, RESTART_ACTION, RETRY_GRACE_FAILURES
from pyespresense._mqtt import ReportTransport
from pyespresense.config import PresenceConfig
from pyespresense.exceptions import SinkError, TransportUnavailableError, UnsupportedActionError
from pyespresense.ingestion.normalize import normalize_id, now_ms
from pyespresense.models.device import TrackedDevice
from pyespresense.models.measurement import RoomMeasurement
from pyespresense.sink import PresenceSink
from pyespresense.state.arbitration import choose
from pyespresense.state.events import PresenceChange, ReportEvent
from pyespresense.state.lifecycle import LifecycleManager
from pyespresense.state.presence import apply_diff, decision_attributes, is_away, is_expired, stale_attributes
from pyespresense.state.store import MeasurementStore, is_fresh

_logger = logging.getLogger(__name__)


def retry_delay_ms(failures: int, base: int) -> int:
    """Delay before the next attempt after *failures* consecutive failures.

    The first failures retry at *base*; past the grace count the delay grows
    linearly, capped at two minutes.
    """
    return min(MAX_RETRY_DELAY_MS, base * max(1, failures - RETRY_GRACE_FAILURES))


class PresenceController:
    """Async controller for ESPresense room presence.

    Usage::

        async with PresenceController(config, sink, transports={"mqtt": runtime}) as controller:
            await stop_event.wait()
    """

    def __init__(
        self,
        config: PresenceConfig,
        sink: PresenceSink,
        *,
        transports: Mapping[str, ReportTransport] | None = None,
        clock: Callable[[], int] = now_ms,
        on_change: Callable[[PresenceChange], None] | None = None,
        on_health: Callable[[bool], None] | None = None,
    ) -> None:
        self._config = config
        self._sink = sink
        self._transports = dict(transports or {})
        self._clock = clock
        self._on_change = on_change
        self._on_health = on_health
        self._store = MeasurementStore()
        self._lifecycle = LifecycleManager(sink, config.devices)
        self._queue: asyncio.Queue[ReportEvent] = asyncio.Queue(maxsize=config.queue_size)
        self._locks: dict[str, asyncio.Lock] = {}
        self._transport: ReportTransport | None = None
        self._tick_task: asyncio.Task[None] | None = None
        self._consumer_task: asyncio.Task[None] | None = None
        self._failures = 0
        self._online = False
        self._stopping = False

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> PresenceController:
        return await self.start()

    async def __aexit__(self, *exc: Any) -> None:
        await self.stop()

    @property
    def is_online(self) -> bool:
        return self._online

    @property
    def failures(self) -> int:
        """Consecutive transport failures."""
        return self._failures

    @property
    def queue(self) -> asyncio.Queue[ReportEvent]:
        return self._queue

    @property
    def store(self) -> MeasurementStore:
        return self._store

    @property
    def lifecycle(self) -> LifecycleManager:
        return self._lifecycle

    async def start(self) -> PresenceController:
        """Sweep dead devices and start ingestion plus the periodic tick."""
        if self._tick_task is not None:
            return self
        _logger.info("ESPresense controller starting, devices: %s", ", ".join(self._config.devices) or "<none>")
        self._stopping = False
        self.sweep_dead()
        self._consumer_task = asyncio.create_task(self._consume())
        self._tick_task = asyncio.create_task(self._tick_loop())
        return self

    async def stop(self) -> None:
        """Stop ticking, unsubscribe from the transport and drain nothing further."""
        _logger.info("ESPresense controller stopping")
        self._stopping = True

        tick = self._tick_task
        self._tick_task = None
        if tick is not None:
            tick.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await tick

        self._unsubscribe()

        consumer = self._consumer_task
        self._consumer_task = None
        if consumer is not None:
            consumer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await consumer

    async def restart(self) -> None:
        """Tear down the subscription and re-establish ingestion from scratch."""
        _logger.info("ESPresense controller restart requested")
        self._unsubscribe()
        self._set_online(False)
        self._store.clear()
        while not self._queue.empty():
            self._queue.get_nowait()
            self._queue.task_done()
        self._failures = 0
        await self.run_once()

    async def perform_action(self, action: str) -> None:
        """Run an externally triggered lifecycle command."""
        _logger.info("[perform_action] %s", action)
        if action == RESTART_ACTION:
            await self.restart()
            return
        raise UnsupportedActionError(f"unsupported action {action!r}")

    # ------------------------------------------------------------------
    # Periodic run
    # ------------------------------------------------------------------

    async def _tick_loop(self) -> None:
        while not self._stopping:
            try:
                delay = await self.run_once()
            except Exception:
                _logger.error("ESPresense controller run failed", exc_info=True)
                delay = self._config.interval
            await asyncio.sleep(delay / 1000)

    async def run_once(self) -> int:
        """Register the transport if needed and re-check device staleness.

        Returns the delay in milliseconds before the next run.
        """
        _logger.debug("ESPresense controller running")
        try:
            self._register_transport()
        except TransportUnavailableError as exc:
            await self.check_devices()
            return self._on_error(exc)
        await self.check_devices()
        return self._config.interval

    def _register_transport(self) -> None:
        if self._transport is not None:
            return
        name = self._config.transport
        transport = self._transports.get(name)
        if transport is None:
            raise TransportUnavailableError(f"transport {name!r} is configured but not registered", transport=name)
        if not transport.is_ready:
            raise TransportUnavailableError(f"transport {name!r} is not ready", transport=name)

        topics = [self._config.topic_for(device) for device in self._config.devices]
        try:
            transport.subscribe(topics, self._queue)
        except TransportUnavailableError:
            raise
        except Exception as exc:
            raise TransportUnavailableError(f"subscription on {name!r} failed: {exc}", transport=name) from exc
        _logger.debug("Subscribed to %s on %s", topics, name)

        self._transport = transport
        self._failures = 0
        self._set_online(True)

    def _unsubscribe(self) -> None:
        transport = self._transport
        self._transport = None
        if transport is None:
            return
        try:
            transport.unsubscribe()
        except Exception:
            _logger.debug("Transport unsubscribe failed", exc_info=True)

    def report_error(self, exc: Exception) -> int:
        """Record a transport failure raised outside the controller.

        Drops the current subscription so the next run registers again, and
        returns the backoff delay in milliseconds.
        """
        self._unsubscribe()
        return self._on_error(exc)

    def _on_error(self, exc: Exception) -> int:
        self._failures += 1
        delay = retry_delay_ms(self._failures, self._config.error_interval)
        _logger.error("Transport error (%d consecutive): %s; retrying in %d ms", self._failures, exc, delay)
        if self._failures >= OFFLINE_AFTER_FAILURES:
            self._set_online(False)
        return delay

    def _set_online(self, online: bool) -> None:
        if self._online == online:
            return
        self._online = online
        _logger.info("ESPresense controller %s", "online" if online else "offline")
        if self._on_health is not None:
            try:
                self._on_health(online)
            except Exception:
                _logger.debug("on_health callback failed", exc_info=True)

    # ------------------------------------------------------------------
    # Device maintenance
    # ------------------------------------------------------------------

    def sweep_dead(self) -> list[str]:
        """Mark long-silent entities dead and ask the sink to purge them."""
        dead = self._lifecycle.sweep_dead(self._clock(), self._config.purge_timeout)
        for device_id in dead:
            self._store.forget(device_id)
            self._locks.pop(device_id, None)
        try:
            self._sink.purge_dead()
        except SinkError:
            _logger.error("Failed to purge dead devices", exc_info=True)
        return dead

    async def check_devices(self) -> list[PresenceChange]:
        """Expire stale room data and force silent devices away."""
        changes: list[PresenceChange] = []
        for raw_id in self._config.devices:
            try:
                device = self._lifecycle.find(raw_id)
                if device is None:
                    continue
                async with self._lock(device.device_id):
                    change = self._check_device(device, self._clock())
            except SinkError:
                _logger.error("Failed to check device %s", raw_id, exc_info=True)
                continue
            if change is not None:
                changes.append(change)
        return changes

    def _check_device(self, device: TrackedDevice, now: int) -> PresenceChange | None:
        timeout = self._config.timeout
        self._store.expire(device.device_id, now, timeout)

        expired = is_expired(device.last_update, now, timeout)
        _logger.debug("[check] %s - lastupdate: %s - expired: %s", device.device_id, device.last_update, expired)
        if not expired:
            return None

        try:
            if is_away(lambda key: self._sink.get_attribute(device.handle, key)):
                return None
            changes = apply_diff(self._sink, device.handle, stale_attributes())
        except SinkError:
            _logger.error("Failed to mark %s away", device.device_id, exc_info=True)
            return None
        return self._emit(device.device_id, changes, now, reason="stale")

    # ------------------------------------------------------------------
    # Report ingestion
    # ------------------------------------------------------------------

    def _lock(self, device_id: str) -> asyncio.Lock:
        lock = self._locks.get(device_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[device_id] = lock
        return lock

    async def _consume(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self.process_report(event)
            except Exception:
                _logger.error("Failed to process report for %s", event.device_id, exc_info=True)
            finally:
                self._queue.task_done()

    async def process_report(self, event: ReportEvent) -> PresenceChange | None:
        """Fuse one report into its device's presence.

        Returns the change written to the sink, or ``None`` when the report
        was dropped or changed nothing.
        """
        raw_id = event.device_id
        _logger.debug("[process_report] %s: %s", event.topic, event.report.payload)
        if not self._lifecycle.is_configured(raw_id):
            self._lifecycle.note_unknown(raw_id)
            return None

        async with self._lock(normalize_id(raw_id)):
            return self._apply_report(event)

    def _apply_report(self, event: ReportEvent) -> PresenceChange | None:
        report = event.report
        device = self._lifecycle.ensure_device(report.device_id, now=event.received_at, id_type=report.id_type)
        if device is None:
            return None

        measurement = RoomMeasurement.from_report(report, room=event.room, timestamp=event.received_at)
        # Staged until the sink accepts the write; a rejected report leaves no trace.
        measurements = self._store.preview(device.device_id, measurement)
        now = self._clock()
        fresh = [m for m in measurements if is_fresh(m, now, self._config.timeout)]
        decision = choose(fresh, measurement, rssi_for_home=self._config.rssi_for_home)
        _logger.debug(
            "[%s] decision room=%s home=%s rssi=%s (%d fresh of %d)",
            device.device_id,
            decision.room,
            decision.is_home,
            decision.rssi,
            len(fresh),
            len(measurements),
        )

        try:
            changes = apply_diff(self._sink, device.handle, decision_attributes(decision, measurements))
        except SinkError:
            _logger.error("Failed to update attributes of %s", device.device_id, exc_info=True)
            return None
        self._store.record(device.device_id, measurement)
        self._lifecycle.touch(device, measurement.timestamp)
        return self._emit(device.device_id, changes, now, reason="report")

    def _emit(self, device_id: str, changes: dict[str, Any], now: int, *, reason: str) -> PresenceChange | None:
        if not changes:
            return None
        change = PresenceChange(device_id=device_id, changes=changes, observed_at=now, reason=reason)
        if self._on_change is not None:
            try:
                self._on_change(change)
            except Exception:
                _logger.debug("on_change callback failed", exc_info=True)
        return change
