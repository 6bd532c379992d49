from __future__ import annotations

import pytest
from _sinks import FlakySink


@pytest.fixture
def sink() -> FlakySink:
    return FlakySink()
