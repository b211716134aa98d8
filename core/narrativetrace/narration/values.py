"""Compact textual forms for captured values.

ValueRenderer turns arbitrary argument, result and failure values into short,
single-line text. A SummarizerRegistry lets the host register a custom
display function per type; it is consulted first, and the generic form is
the fallback.
"""

from __future__ import annotations

import dataclasses
import logging
import math
from collections.abc import Callable, Mapping, Set
from enum import Enum
from typing import Any

from pydantic import BaseModel

logger = logging.getLogger(__name__)

Summarizer = Callable[[Any], str]

ELLIPSIS = "…"

_LOG10_2 = math.log10(2)

_CONTROL_ESCAPES = {
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
}


class SummarizerRegistry:
    """Custom display functions keyed by type.

    Lookup walks the value's MRO, so a summarizer registered for a base
    class also applies to its subclasses unless a closer one is registered.
    """

    def __init__(self, summarizers: Mapping[type, Summarizer] | None = None) -> None:
        self._summarizers: dict[type, Summarizer] = dict(summarizers or {})

    def register(self, value_type: type, summarizer: Summarizer) -> None:
        self._summarizers[value_type] = summarizer

    def lookup(self, value_type: type) -> Summarizer | None:
        for klass in value_type.__mro__:
            summarizer = self._summarizers.get(klass)
            if summarizer is not None:
                return summarizer
        return None

    def merged(self, other: SummarizerRegistry | None) -> SummarizerRegistry:
        """Return a new registry where ``other`` wins on conflicting types."""
        combined = SummarizerRegistry(self._summarizers)
        if other is not None:
            combined._summarizers.update(other._summarizers)
        return combined

    def __contains__(self, value_type: type) -> bool:
        return self.lookup(value_type) is not None

    def __len__(self) -> int:
        return len(self._summarizers)


def escape_control(text: str) -> str:
    """Replace line breaks and tabs so a value always stays on one line."""
    for raw, escaped in _CONTROL_ESCAPES.items():
        text = text.replace(raw, escaped)
    return text


class ValueRenderer:
    """Renders values to bounded, single-line text.

    ``render`` is the argument-list form: strings are quoted.
    ``render_bare`` is the template form: strings appear as-is.
    """

    def __init__(
        self,
        max_string_length: int = 200,
        max_collection_items: int = 5,
        max_object_fields: int = 5,
        summarizers: SummarizerRegistry | None = None,
    ) -> None:
        self.max_string_length = max_string_length
        self.max_collection_items = max_collection_items
        self.max_object_fields = max_object_fields
        self.summarizers = summarizers or SummarizerRegistry()

    def with_summarizers(self, summarizers: SummarizerRegistry | None) -> ValueRenderer:
        if summarizers is None or len(summarizers) == 0:
            return self
        return ValueRenderer(
            max_string_length=self.max_string_length,
            max_collection_items=self.max_collection_items,
            max_object_fields=self.max_object_fields,
            summarizers=self.summarizers.merged(summarizers),
        )

    def render(self, value: Any) -> str:
        return self._safe_render(value, quote=True)

    def render_bare(self, value: Any) -> str:
        return self._safe_render(value, quote=False)

    def _safe_render(self, value: Any, quote: bool) -> str:
        """Render ``value``; never raises, whatever the value's own methods do."""
        try:
            return self._render(value, set(), quote)
        except Exception as e:
            name = type(value).__name__
            logger.warning(f"Could not render {name} value, using placeholder: {e}")
            return f"<{name}>"

    def _render(self, value: Any, seen: set[int], quote: bool) -> str:
        summary = self._summarize(value)
        if summary is not None:
            return escape_control(summary)

        if isinstance(value, int) and not isinstance(value, bool):
            return self._render_int(value)
        if value is None or isinstance(value, (bool, float, complex)):
            return str(value)
        if isinstance(value, Enum):
            return value.name
        if isinstance(value, str):
            return self._render_string(value, quote)
        if isinstance(value, (bytes, bytearray)):
            return f"<{len(value)} bytes>"

        if id(value) in seen:
            return f"<{type(value).__name__} ...>"
        seen.add(id(value))
        try:
            return self._render_complex(value, seen)
        finally:
            seen.discard(id(value))

    def _summarize(self, value: Any) -> str | None:
        summarizer = self.summarizers.lookup(type(value))
        if summarizer is None:
            return None
        try:
            return str(summarizer(value))
        except Exception as e:
            logger.warning(
                f"Summarizer for {type(value).__name__} failed, using default form: {e}"
            )
            return None

    def _render_int(self, value: int) -> str:
        # Checked on bit length first: str() of a huge int is slow or refused outright.
        estimate = value.bit_length() * _LOG10_2
        if estimate > self.max_string_length + 1:
            return f"<int, ~{int(estimate) + 1} digits>"
        text = str(value)
        digits = len(text.lstrip("-"))
        if digits > self.max_string_length:
            return f"<int, {digits} digits>"
        return text

    def _render_string(self, value: str, quote: bool) -> str:
        if len(value) > self.max_string_length:
            value = value[: self.max_string_length] + ELLIPSIS
        value = escape_control(value)
        if not quote:
            return value
        return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'

    def _render_complex(self, value: Any, seen: set[int]) -> str:
        if isinstance(value, Mapping):
            return self._render_mapping(value, seen)
        if isinstance(value, (list, tuple, Set)):
            return self._render_sequence(value, seen)
        if isinstance(value, BaseModel):
            fields = [(name, getattr(value, name)) for name in type(value).model_fields]
            return self._render_fields(type(value).__name__, fields, seen)
        if dataclasses.is_dataclass(value) and not isinstance(value, type):
            fields = [(f.name, getattr(value, f.name)) for f in dataclasses.fields(value)]
            return self._render_fields(type(value).__name__, fields, seen)
        if isinstance(value, BaseException):
            return f"{type(value).__name__}({self._render_string(str(value), True)})"
        return self._render_object(value, seen)

    def _render_mapping(self, value: Mapping, seen: set[int]) -> str:
        items = list(value.items())
        parts = [
            f"{self._render(k, seen, True)}: {self._render(v, seen, True)}"
            for k, v in items[: self.max_collection_items]
        ]
        if len(items) > self.max_collection_items:
            parts.append(f"{ELLIPSIS} ({len(items)} total)")
        return "{" + ", ".join(parts) + "}"

    def _render_sequence(self, value: Any, seen: set[int]) -> str:
        items = list(value)
        if isinstance(value, Set):
            items = sorted(items, key=repr)
        parts = [self._render(item, seen, True) for item in items[: self.max_collection_items]]
        if len(items) > self.max_collection_items:
            parts.append(f"{ELLIPSIS} ({len(items)} total)")
        return "[" + ", ".join(parts) + "]"

    def _render_fields(self, name: str, fields: list[tuple[str, Any]], seen: set[int]) -> str:
        parts = [
            f"{field}={self._render(val, seen, True)}"
            for field, val in fields[: self.max_object_fields]
        ]
        if len(fields) > self.max_object_fields:
            parts.append(ELLIPSIS)
        return f"{name}(" + ", ".join(parts) + ")"

    def _render_object(self, value: Any, seen: set[int]) -> str:
        klass = type(value)
        try:
            if klass.__str__ is not object.__str__ or klass.__repr__ is not object.__repr__:
                return self._render_string(str(value), quote=False)
        except Exception as e:
            logger.warning(f"str() of {klass.__name__} failed, using placeholder: {e}")
            return f"<{klass.__name__}>"

        attributes = getattr(value, "__dict__", None)
        if not attributes:
            return f"<{klass.__name__}>"
        fields = [(k, v) for k, v in attributes.items() if not k.startswith("_")]
        return self._render_fields(klass.__name__, fields, seen)
