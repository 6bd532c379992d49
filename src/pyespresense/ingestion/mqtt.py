"""MQTT ingestion helpers.

This module translates raw ESPresense MQTT messages into
:class:`~pyespresense.state.events.ReportEvent`s.

Topic format: ``<prefix>/<device>/<room>``; the room is the last topic
segment. The payload is a JSON object such as
``{"id": "irk:abc", "idType": 10, "rssi": -67, "raw": -70.5, "distance": 1.9}``.
"""

from __future__ import annotations

import json
from typing import Any

from pydantic import ValidationError

from pyespresense._constants import DEFAULT_TOPIC_PREFIX
from pyespresense.exceptions import MalformedReportError
from pyespresense.ingestion.normalize import now_ms
from pyespresense.models.report import BeaconReport
from pyespresense.state.events import ReportEvent


def room_from_topic(topic: str, prefix: str = DEFAULT_TOPIC_PREFIX) -> str | None:
    """Room label of a report topic, or ``None`` for foreign topics."""
    if not topic.startswith(f"{prefix}/"):
        return None
    parts = topic[len(prefix) + 1 :].split("/")
    if len(parts) < 2 or not parts[-1].strip():
        return None
    return parts[-1].strip().lower()


def _decode_payload(payload: bytes | str | None) -> dict[str, Any]:
    if payload is None:
        raise MalformedReportError("empty payload")
    try:
        text = payload.decode("utf-8") if isinstance(payload, bytes) else payload
    except UnicodeDecodeError as exc:
        raise MalformedReportError("payload is not UTF-8") from exc
    if not text.strip():
        raise MalformedReportError("empty payload")
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedReportError(f"payload is not JSON: {exc}") from exc
    if not isinstance(parsed, dict):
        raise MalformedReportError("payload is not a JSON object")
    return parsed


def parse_report_message(
    topic: str,
    payload: bytes | str | None,
    *,
    prefix: str = DEFAULT_TOPIC_PREFIX,
    received_at: int | None = None,
) -> ReportEvent:
    """Parse one MQTT message into a report event.

    Raises :class:`MalformedReportError` when the topic is not a report
    topic or the payload lacks required fields.
    """
    room = room_from_topic(topic, prefix)
    if room is None:
        raise MalformedReportError(f"not a report topic: {topic}", topic=topic)

    try:
        data = _decode_payload(payload)
        report = BeaconReport.model_validate(data)
    except MalformedReportError as exc:
        raise MalformedReportError(str(exc), topic=topic) from exc
    except ValidationError as exc:
        raise MalformedReportError(f"invalid report: {exc.error_count()} error(s)", topic=topic) from exc

    return ReportEvent(
        topic=topic,
        room=room,
        report=report,
        received_at=received_at if received_at is not None else now_ms(),
    )
