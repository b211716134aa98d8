"""
narrativetrace - readable narratives of intercepted method calls.

Interceptors report calls to a NarrativeContext, which keeps a live call
stack per thread. Capturing produces an immutable Trace that any renderer
turns into text:

    from narrativetrace import NarrativeContext, TracingProxy, render

    context = NarrativeContext()
    service = TracingProxy(LendingService(), context)
    service.borrow_book("978-0-13-468599-1", "M-001")

    print(render(context.capture_trace(), "prose"))
"""

from narrativetrace.config import NarrativeTraceConfig, TracingLevel
from narrativetrace.errors import ConfigurationError, NarrativeTraceError, ProtocolViolation
from narrativetrace.interceptors import TracingProxy, narrated
from narrativetrace.narration import (
    DirectiveRegistry,
    ErrorDirective,
    NarrationDirective,
    SummarizerRegistry,
)
from narrativetrace.render import (
    IndentedTextRenderer,
    JsonExporter,
    MarkdownRenderer,
    MermaidSequenceRenderer,
    PlantUmlSequenceRenderer,
    ProseRenderer,
    render,
)
from narrativetrace.runtime import (
    ContextScope,
    ContextSnapshot,
    FrameHandle,
    NarrativeContext,
    NarrativeLogFilter,
    NoopNarrativeContext,
)
from narrativetrace.tracing import CallFrame, Failure, FrameOutcome, ParameterCapture, Trace

__version__ = "0.1.0"

__all__ = [
    "CallFrame",
    "ConfigurationError",
    "ContextScope",
    "ContextSnapshot",
    "DirectiveRegistry",
    "ErrorDirective",
    "Failure",
    "FrameHandle",
    "FrameOutcome",
    "IndentedTextRenderer",
    "JsonExporter",
    "MarkdownRenderer",
    "MermaidSequenceRenderer",
    "NarrationDirective",
    "NarrativeContext",
    "NarrativeLogFilter",
    "NarrativeTraceConfig",
    "NarrativeTraceError",
    "NoopNarrativeContext",
    "ParameterCapture",
    "PlantUmlSequenceRenderer",
    "ProseRenderer",
    "ProtocolViolation",
    "SummarizerRegistry",
    "Trace",
    "TracingLevel",
    "TracingProxy",
    "narrated",
    "render",
]
