"""
Trace Capture Configuration

Defines how much of an execution the context records:
- Tracing level (from nothing at all to full parameter values)
- Bounds for the compact textual form of captured values

The level is read on every call, so changing it at runtime affects all
threads sharing the config instance from their next intercepted call.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import Any

from dotenv import dotenv_values

from narrativetrace.errors import ConfigurationError

logger = logging.getLogger(__name__)

ENV_PREFIX = "NARRATIVETRACE_"


class TracingLevel(StrEnum):
    """Verbosity of trace capture, ordered from least to most verbose."""

    OFF = "off"
    ERRORS = "errors"
    SUMMARY = "summary"
    NARRATIVE = "narrative"
    DETAIL = "detail"

    @property
    def rank(self) -> int:
        return _LEVEL_ORDER.index(self)

    def is_enabled(self, required: TracingLevel) -> bool:
        """True if this level records at least what ``required`` records."""
        return self.rank >= required.rank


_LEVEL_ORDER = [
    TracingLevel.OFF,
    TracingLevel.ERRORS,
    TracingLevel.SUMMARY,
    TracingLevel.NARRATIVE,
    TracingLevel.DETAIL,
]


@dataclass
class NarrativeTraceConfig:
    """Runtime configuration for trace capture."""

    level: TracingLevel = TracingLevel.DETAIL

    max_string_length: int = 200
    max_collection_items: int = 5
    max_object_fields: int = 5

    def set_level(self, level: TracingLevel | str) -> None:
        self.level = TracingLevel(level)
        logger.debug(f"Tracing level set to {self.level}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "level": self.level.value,
            "max_string_length": self.max_string_length,
            "max_collection_items": self.max_collection_items,
            "max_object_fields": self.max_object_fields,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "NarrativeTraceConfig":
        try:
            return cls(
                level=TracingLevel(str(data.get("level", TracingLevel.DETAIL)).lower()),
                max_string_length=int(data.get("max_string_length", 200)),
                max_collection_items=int(data.get("max_collection_items", 5)),
                max_object_fields=int(data.get("max_object_fields", 5)),
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid narrativetrace configuration: {e}") from e

    @classmethod
    def from_env(cls, env_file: str | Path | None = None) -> "NarrativeTraceConfig":
        """Build a config from ``NARRATIVETRACE_*`` variables.

        Values in the process environment win over values read from
        ``env_file``.
        """
        values: dict[str, Any] = {}
        if env_file is not None:
            values.update(
                {k: v for k, v in dotenv_values(env_file).items() if v is not None}
            )
        values.update(os.environ)

        data = {}
        for key, value in values.items():
            if key.startswith(ENV_PREFIX):
                data[key[len(ENV_PREFIX) :].lower()] = value
        return cls.from_dict(data)
