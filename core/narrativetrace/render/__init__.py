"""Renderers: turn a captured Trace into text.

- IndentedTextRenderer: one indented line per call
- ProseRenderer: one connected sentence per top-level call
- MarkdownRenderer: headed sections with nested call lists
- MermaidSequenceRenderer / PlantUmlSequenceRenderer: sequence diagrams
- JsonExporter: flat enter/exit events as a JSON document
"""

from narrativetrace.render.base import NarrativeRenderer, call_label, display_text, outcome_label
from narrativetrace.render.indented import IndentedTextRenderer
from narrativetrace.render.json_export import JsonExporter, TraceDocument, TraceEvent
from narrativetrace.render.markdown import MarkdownRenderer
from narrativetrace.render.prose import ProseRenderer
from narrativetrace.render.sequence import (
    MermaidSequenceRenderer,
    PlantUmlSequenceRenderer,
    SequenceDiagramRenderer,
)

RENDERERS: dict[str, type] = {
    "indented": IndentedTextRenderer,
    "prose": ProseRenderer,
    "markdown": MarkdownRenderer,
    "mermaid": MermaidSequenceRenderer,
    "plantuml": PlantUmlSequenceRenderer,
}


def render(trace, format: str = "indented") -> str:
    """Render ``trace`` with the renderer registered under ``format``."""
    try:
        renderer = RENDERERS[format]
    except KeyError:
        raise ValueError(
            f"Unknown narrative format {format!r}; expected one of {sorted(RENDERERS)}"
        ) from None
    return renderer().render(trace)


__all__ = [
    "RENDERERS",
    "IndentedTextRenderer",
    "JsonExporter",
    "MarkdownRenderer",
    "MermaidSequenceRenderer",
    "NarrativeRenderer",
    "PlantUmlSequenceRenderer",
    "ProseRenderer",
    "SequenceDiagramRenderer",
    "TraceDocument",
    "TraceEvent",
    "call_label",
    "display_text",
    "outcome_label",
    "render",
]
