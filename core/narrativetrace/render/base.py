"""Shared pieces for trace renderers.

Every renderer is a stateless object with ``render(trace) -> str``; it never
mutates the trace and returns the same text for equal traces.
"""

from __future__ import annotations

from typing import Protocol

from narrativetrace.narration.values import escape_control
from narrativetrace.tracing.schemas import PENDING_NARRATION, CallFrame, Trace


class NarrativeRenderer(Protocol):
    def render(self, trace: Trace) -> str: ...


def display_text(frame: CallFrame) -> str:
    """Single-line narration of a frame, with pending frames spelled out."""
    if frame.pending:
        return f"{frame.qualified_name} {PENDING_NARRATION}"
    return escape_control(frame.narration)


def call_label(frame: CallFrame) -> str:
    """Text for the call itself, without its outcome.

    A custom narration is used as-is; otherwise ``method(name=value, ...)``.
    """
    if frame.custom_narration and not frame.failed:
        return escape_control(frame.narration)
    params = ", ".join(
        f"{p.name}={p.value}" if p.value else p.name for p in frame.parameters
    )
    return escape_control(f"{frame.method_name}({params})")


def outcome_label(frame: CallFrame) -> str:
    """Text for how a frame ended: its result, or ``raised Kind: message``."""
    if frame.failure is not None:
        text = f"raised {frame.failure.kind}"
        if frame.failure.message:
            text += f": {frame.failure.message}"
        return escape_control(text)
    return escape_control(frame.result if frame.result is not None else "None")
