"""Base model for ESPresense payloads.

Every payload model inherits from :class:`PresenceBaseModel` which
provides:

* ``alias_generator=to_camel`` so camelCase payload keys (``idType``)
  map automatically to snake_case fields.
* A ``model_validator(mode="before")`` that strips sentinel values
  (``""``, NaN) so the field default is used.
* A ``payload`` dict that captures the original message.
"""

from __future__ import annotations

import math
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from pyespresense.ingestion.normalize import safe_float

# Sentinel strings firmware sends for "not available".
_SENTINELS = frozenset({"", "NaN", "nan"})

OptionalFloat = Annotated[float | None, BeforeValidator(safe_float)]
"""Annotated type that turns unparseable numbers into ``None``."""

RequiredFloat = Annotated[float, BeforeValidator(safe_float)]
"""Annotated type that rejects unparseable numbers."""


class PresenceBaseModel(BaseModel):
    """Base for inbound payload models."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    payload: dict[str, Any] = Field(default_factory=dict)
    """Original message dict."""

    @model_validator(mode="before")
    @classmethod
    def _clean_values(cls, values: Any) -> Any:
        """Strip sentinel values and stash the original payload."""
        if not isinstance(values, dict):
            return values
        original = dict(values)

        cleaned: dict[str, Any] = {}
        for key, value in original.items():
            if value is None:
                continue
            if isinstance(value, str) and value.strip() in _SENTINELS:
                continue
            if isinstance(value, float) and math.isnan(value):
                continue
            cleaned[key] = value

        if "payload" not in values:
            cleaned["payload"] = original
        return cleaned
