"""Runtime: live call stacks, cross-thread propagation and the logging bridge."""

from narrativetrace.runtime.context import (
    INERT_HANDLE,
    CallEventSink,
    CallStack,
    FrameHandle,
    NarrativeContext,
    NoopNarrativeContext,
)
from narrativetrace.runtime.log_context import NarrativeLogFilter
from narrativetrace.runtime.propagation import ContextScope, ContextSnapshot

__all__ = [
    "INERT_HANDLE",
    "CallEventSink",
    "CallStack",
    "ContextScope",
    "ContextSnapshot",
    "FrameHandle",
    "NarrativeContext",
    "NarrativeLogFilter",
    "NoopNarrativeContext",
]
