"""Narration: directives, value summaries and template resolution.

- NarrationDirective / ErrorDirective: per-method narration metadata
- DirectiveRegistry: lookup of directives by (type_name, method_name)
- SummarizerRegistry / ValueRenderer: compact textual forms of values
- NarrationEngine: turns a directive plus a call's data into display text
"""

from narrativetrace.narration.directives import (
    DEFAULT_DIRECTIVE,
    HIDDEN,
    DirectiveRegistry,
    ErrorDirective,
    NarrationDirective,
)
from narrativetrace.narration.template import (
    Narration,
    NarrationEngine,
    Raised,
    Returned,
    TemplateError,
    parse_template,
    placeholders,
)
from narrativetrace.narration.values import SummarizerRegistry, ValueRenderer

__all__ = [
    "DEFAULT_DIRECTIVE",
    "HIDDEN",
    "DirectiveRegistry",
    "ErrorDirective",
    "NarrationDirective",
    "Narration",
    "NarrationEngine",
    "Raised",
    "Returned",
    "SummarizerRegistry",
    "TemplateError",
    "ValueRenderer",
    "parse_template",
    "placeholders",
]
