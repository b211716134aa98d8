"""Narration template engine.

Turns a NarrationDirective plus the captured arguments and outcome of a call
into display text. A directive that cannot be resolved (unknown parameter,
failing attribute read, malformed braces) never raises: the engine logs a
warning and falls back to the default format, so interceptors are never
disrupted by bad metadata.

Default format:
    Type.method(arg1=v1, arg2=v2)                       (entry)
    Type.method(arg1=v1, arg2=v2) -> <result>           (success)
    Type.method(arg1=v1, arg2=v2) -> raised Kind: msg   (failure)
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

from narrativetrace.narration.directives import HIDDEN, NarrationDirective
from narrativetrace.narration.values import SummarizerRegistry, ValueRenderer

logger = logging.getLogger(__name__)

RESERVED_RESULT = "$result"
RESERVED_KIND = "$kind"
RESERVED_MESSAGE = "$message"

_PLACEHOLDER_KEY = re.compile(r"^(\$[a-z]+|[A-Za-z_]\w*(\.[A-Za-z_]\w*)*)$")


class TemplateError(ValueError):
    """A template could not be parsed or resolved."""


@dataclass(frozen=True)
class Returned:
    """A call completed normally."""

    value: Any = None


@dataclass(frozen=True)
class Raised:
    """A call raised. ``kind`` is the exception class or its name."""

    kind: type[BaseException] | str
    message: str = ""

    @property
    def kind_name(self) -> str:
        return self.kind.__name__ if isinstance(self.kind, type) else str(self.kind)


Outcome = Returned | Raised | None


@dataclass(frozen=True)
class Narration:
    """Resolved narration text; ``custom`` is False for the default format."""

    text: str
    custom: bool = False


@dataclass(frozen=True)
class Segment:
    """One piece of a parsed template: literal text or a placeholder key."""

    text: str
    is_placeholder: bool = False


@lru_cache(maxsize=1024)
def parse_template(template: str) -> tuple[Segment, ...]:
    """Split a template into literal and placeholder segments.

    ``{{`` and ``}}`` produce literal braces. Raises TemplateError on an
    unclosed or empty placeholder, or a stray closing brace.
    """
    segments: list[Segment] = []
    literal: list[str] = []
    i = 0
    while i < len(template):
        char = template[i]
        if char == "{" and template.startswith("{{", i):
            literal.append("{")
            i += 2
        elif char == "}" and template.startswith("}}", i):
            literal.append("}")
            i += 2
        elif char == "{":
            end = template.find("}", i + 1)
            if end < 0:
                raise TemplateError(f"Unclosed placeholder at offset {i} in {template!r}")
            key = template[i + 1 : end].strip()
            if not _PLACEHOLDER_KEY.match(key):
                raise TemplateError(f"Invalid placeholder {{{key}}} in {template!r}")
            if literal:
                segments.append(Segment("".join(literal)))
                literal = []
            segments.append(Segment(key, is_placeholder=True))
            i = end + 1
        elif char == "}":
            raise TemplateError(f"Stray closing brace at offset {i} in {template!r}")
        else:
            literal.append(char)
            i += 1
    if literal:
        segments.append(Segment("".join(literal)))
    return tuple(segments)


def placeholders(template: str) -> list[str]:
    """Placeholder keys used by ``template``."""
    return [s.text for s in parse_template(template) if s.is_placeholder]


class NarrationEngine:
    """Resolves narration text for a closed call."""

    def __init__(self, values: ValueRenderer | None = None) -> None:
        self.values = values or ValueRenderer()

    def resolve(
        self,
        directive: NarrationDirective | None,
        type_name: str,
        method_name: str,
        arguments: Sequence[tuple[str, Any]],
        outcome: Outcome,
        exclusions: Iterable[str] = (),
        summarizers: SummarizerRegistry | None = None,
        show_values: bool = True,
    ) -> str:
        return self.narrate(
            directive,
            type_name,
            method_name,
            arguments,
            outcome,
            exclusions=exclusions,
            summarizers=summarizers,
            show_values=show_values,
        ).text

    def narrate(
        self,
        directive: NarrationDirective | None,
        type_name: str,
        method_name: str,
        arguments: Sequence[tuple[str, Any]],
        outcome: Outcome,
        exclusions: Iterable[str] = (),
        summarizers: SummarizerRegistry | None = None,
        show_values: bool = True,
    ) -> Narration:
        """Like ``resolve``, but also reports whether a directive was used."""
        directive = directive or NarrationDirective()
        hidden = frozenset(exclusions) | directive.excluded
        values = self.values.with_summarizers(summarizers).with_summarizers(
            directive.summarizers
        )

        template = self._select_template(directive, outcome)
        if template is not None:
            try:
                text = self._interpolate(template, arguments, outcome, hidden, values)
                return Narration(text, custom=True)
            except TemplateError as e:
                logger.warning(
                    f"Narration template for {type_name}.{method_name} could not be "
                    f"resolved, using default format: {e}"
                )

        text = self.default_narration(
            type_name, method_name, arguments, outcome, hidden, values, show_values
        )
        return Narration(text)

    def default_narration(
        self,
        type_name: str,
        method_name: str,
        arguments: Sequence[tuple[str, Any]],
        outcome: Outcome,
        exclusions: Iterable[str] = (),
        values: ValueRenderer | None = None,
        show_values: bool = True,
    ) -> str:
        values = values or self.values
        hidden = frozenset(exclusions)
        rendered = [
            f"{name}={values.render(value)}" if show_values else name
            for name, value in arguments
            if name not in hidden
        ]
        text = f"{type_name}.{method_name}({', '.join(rendered)})"
        if isinstance(outcome, Returned):
            text += f" -> {values.render(outcome.value)}"
        elif isinstance(outcome, Raised):
            text += f" -> raised {outcome.kind_name}: {outcome.message}"
        return text

    @staticmethod
    def _select_template(directive: NarrationDirective, outcome: Outcome) -> str | None:
        if isinstance(outcome, Raised):
            error = directive.error_directive_for(outcome.kind)
            return error.template if error is not None else None
        return directive.template

    def _interpolate(
        self,
        template: str,
        arguments: Sequence[tuple[str, Any]],
        outcome: Outcome,
        hidden: frozenset[str],
        values: ValueRenderer,
    ) -> str:
        by_name = dict(arguments)
        parts = []
        for segment in parse_template(template):
            if segment.is_placeholder:
                parts.append(self._placeholder(segment.text, by_name, outcome, hidden, values))
            else:
                parts.append(segment.text)
        return "".join(parts)

    @staticmethod
    def _placeholder(
        key: str,
        arguments: dict[str, Any],
        outcome: Outcome,
        hidden: frozenset[str],
        values: ValueRenderer,
    ) -> str:
        if key == RESERVED_RESULT:
            if not isinstance(outcome, Returned):
                raise TemplateError("{$result} used outside a successful call")
            return values.render_bare(outcome.value)
        if key in (RESERVED_KIND, RESERVED_MESSAGE):
            if not isinstance(outcome, Raised):
                raise TemplateError(f"{{{key}}} used outside a failed call")
            return outcome.kind_name if key == RESERVED_KIND else outcome.message
        if key.startswith("$"):
            raise TemplateError(f"Unknown reserved placeholder {{{key}}}")

        name, _, path = key.partition(".")
        if name in hidden:
            return HIDDEN
        if name not in arguments:
            raise TemplateError(f"Unknown parameter {{{name}}}")

        value = arguments[name]
        for attribute in path.split(".") if path else ():
            try:
                value = getattr(value, attribute)
            except Exception as e:
                raise TemplateError(f"Cannot read {{{key}}}: {e}") from e
        return values.render_bare(value)
