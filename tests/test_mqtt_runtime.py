from __future__ import annotations

import asyncio

import pytest

from pyespresense._mqtt import EspresenseMqttRuntime
from pyespresense.state.events import ReportEvent


def _runtime(loop: asyncio.AbstractEventLoop) -> EspresenseMqttRuntime:
    return EspresenseMqttRuntime(loop=loop, clock=lambda: 1_234)


@pytest.mark.asyncio
async def test_message_is_parsed_onto_queue() -> None:
    runtime = _runtime(asyncio.get_running_loop())
    queue: asyncio.Queue[ReportEvent] = asyncio.Queue(maxsize=5)
    runtime.subscribe(["espresense/devices/phone/#"], queue)

    runtime._handle_message("espresense/devices/phone/Office", b'{"id": "phone", "rssi": -70}')  # noqa: SLF001
    event = await asyncio.wait_for(queue.get(), timeout=1.0)

    assert event.room == "office"
    assert event.received_at == 1_234
    assert runtime.is_ready is False


@pytest.mark.asyncio
async def test_malformed_and_unsubscribed_messages_are_dropped() -> None:
    runtime = _runtime(asyncio.get_running_loop())
    queue: asyncio.Queue[ReportEvent] = asyncio.Queue(maxsize=5)
    runtime.subscribe(["espresense/devices/phone/#"], queue)

    runtime._handle_message("espresense/devices/phone/office", b"{broken")  # noqa: SLF001
    runtime.unsubscribe()
    runtime._handle_message("espresense/devices/phone/office", b'{"id": "phone", "rssi": -70}')  # noqa: SLF001
    await asyncio.sleep(0)

    assert queue.empty()


@pytest.mark.asyncio
async def test_full_queue_drops_report() -> None:
    runtime = _runtime(asyncio.get_running_loop())
    queue: asyncio.Queue[ReportEvent] = asyncio.Queue(maxsize=1)
    runtime.subscribe(["espresense/devices/phone/#"], queue)

    for rssi in (-70, -71):
        runtime._handle_message("espresense/devices/phone/office", f'{{"id": "phone", "rssi": {rssi}}}'.encode())  # noqa: SLF001
    await asyncio.sleep(0)

    assert queue.qsize() == 1
    assert queue.get_nowait().report.rssi == -70
