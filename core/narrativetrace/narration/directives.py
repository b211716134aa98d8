"""Per-method narration directives.

Directives are plain immutable records. The host integration builds them
(from decorators, configuration, or by hand) and looks them up by
``(type_name, method_name)`` through a DirectiveRegistry; the context only
ever receives the resolved record.

Template placeholders:
    {param}          value of the named parameter
    {param.attr}     attribute of the named parameter's value
    {$result}        rendered result (success templates)
    {$kind}          failure type name (error templates)
    {$message}       failure message, verbatim (error templates)
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from narrativetrace.narration.values import SummarizerRegistry

HIDDEN = "[hidden]"


@dataclass(frozen=True)
class ErrorDirective:
    """Narration used when a call fails with a matching failure type.

    ``failure_type`` is an exception class (matched with ``issubclass``) or a
    failure kind name (matched against the kind, or any class name in the
    failure's MRO).
    """

    template: str
    failure_type: type[BaseException] | str = BaseException

    def matches(self, failure_kind: type[BaseException] | str) -> bool:
        if isinstance(failure_kind, type):
            if isinstance(self.failure_type, type):
                return issubclass(failure_kind, self.failure_type)
            return any(k.__name__ == self.failure_type for k in failure_kind.__mro__)
        if isinstance(self.failure_type, type):
            return self.failure_type is BaseException or self.failure_type.__name__ == failure_kind
        return self.failure_type == failure_kind

    def specificity(self, failure_kind: type[BaseException] | str) -> int:
        """Position of the matched type in the failure's MRO; lower is closer."""
        if not isinstance(failure_kind, type):
            return 0 if self.failure_type != BaseException else 1
        target = (
            self.failure_type.__name__
            if isinstance(self.failure_type, type)
            else self.failure_type
        )
        for position, klass in enumerate(failure_kind.__mro__):
            if klass is self.failure_type or klass.__name__ == target:
                return position
        return len(failure_kind.__mro__)


@dataclass(frozen=True)
class NarrationDirective:
    """Declarative narration metadata for one method."""

    template: str | None = None
    error_templates: tuple[ErrorDirective, ...] = ()
    excluded: frozenset[str] = field(default_factory=frozenset)
    summarizers: SummarizerRegistry | None = field(default=None, compare=False)

    @classmethod
    def build(
        cls,
        template: str | None = None,
        on_error: Iterable[ErrorDirective | tuple[str, type[BaseException] | str]] = (),
        exclude: Iterable[str] = (),
        summarizers: SummarizerRegistry | None = None,
    ) -> NarrationDirective:
        errors = tuple(
            e if isinstance(e, ErrorDirective) else ErrorDirective(*e) for e in on_error
        )
        return cls(
            template=template,
            error_templates=errors,
            excluded=frozenset(exclude),
            summarizers=summarizers,
        )

    def error_directive_for(
        self, failure_kind: type[BaseException] | str
    ) -> ErrorDirective | None:
        """Most specific error directive matching ``failure_kind``, if any."""
        candidates = [e for e in self.error_templates if e.matches(failure_kind)]
        if not candidates:
            return None
        return min(candidates, key=lambda e: e.specificity(failure_kind))

    def is_excluded(self, parameter: str) -> bool:
        return parameter in self.excluded


DEFAULT_DIRECTIVE = NarrationDirective()


class DirectiveRegistry:
    """Directives keyed by ``(type_name, method_name)``."""

    def __init__(self) -> None:
        self._directives: dict[tuple[str, str], NarrationDirective] = {}

    def register(self, type_name: str, method_name: str, directive: NarrationDirective) -> None:
        self._directives[(type_name, method_name)] = directive

    def lookup(self, type_name: str, method_name: str) -> NarrationDirective:
        return self._directives.get((type_name, method_name), DEFAULT_DIRECTIVE)

    def __contains__(self, key: tuple[str, str]) -> bool:
        return key in self._directives

    def __len__(self) -> int:
        return len(self._directives)
