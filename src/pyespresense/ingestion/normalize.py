"""Normalization helpers.

Centralizes defensive parsing of report payloads and device ids.
"""

from __future__ import annotations

import math
import time
from typing import Any


def now_ms() -> int:
    """Current epoch timestamp in milliseconds."""
    return int(time.time() * 1000)


def normalize_id(device_id: str) -> str:
    """Canonical key for a device id.

    Lowercases and replaces ``:`` and ``-`` separators with ``_`` so that
    ``AA:BB-cc`` and ``aa_bb_cc`` map to the same key.
    """
    return device_id.replace(":", "_").replace("-", "_").lower()


def safe_float(value: Any) -> float | None:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(result) or math.isinf(result):
        return None
    return result


def safe_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text if text else None
