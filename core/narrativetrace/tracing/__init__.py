"""Trace model: the immutable call tree produced by a capture.

- CallFrame: one intercepted invocation with its children
- Trace: the ordered forest of top-level frames captured at one point in time
- FrameOutcome / Failure / ParameterCapture: frame details
"""

from narrativetrace.tracing.schemas import (
    PENDING_NARRATION,
    CallFrame,
    Failure,
    FrameOutcome,
    ParameterCapture,
    Trace,
)

__all__ = [
    "PENDING_NARRATION",
    "CallFrame",
    "Failure",
    "FrameOutcome",
    "ParameterCapture",
    "Trace",
]
