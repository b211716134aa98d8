"""JSON export of a trace as a flat list of enter/exit/error events.

Document format:
    {
      "version": "1.0",
      "events": [
        {"id": 1, "type": "enter", "class": "...", "method": "...",
         "params": {...}, "depth": 0, "parent_id": null},
        {"id": 2, "type": "exit", ..., "return_value": "...", "duration_ms": 3},
        ...
      ]
    }

The export is a string; writing it anywhere is left to the caller.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from narrativetrace.tracing.schemas import CallFrame, Trace

EXPORT_VERSION = "1.0"


class ErrorInfo(BaseModel):
    type: str
    message: str = ""


class TraceEvent(BaseModel):
    """One enter, exit or error event of a flattened trace."""

    model_config = ConfigDict(populate_by_name=True)

    id: int
    type: Literal["enter", "exit", "error", "pending"]
    class_name: str = Field(alias="class")
    method: str
    narration: str = ""
    params: dict[str, str] | None = None
    return_value: str | None = None
    error: ErrorInfo | None = None
    duration_ms: int | None = None
    depth: int = 0
    parent_id: int | None = None


class TraceDocument(BaseModel):
    version: str = EXPORT_VERSION
    events: list[TraceEvent] = Field(default_factory=list)


class JsonExporter:
    """Flattens a trace into enter/exit events and dumps it as JSON."""

    def __init__(self, indent: int | None = 2) -> None:
        self.indent = indent

    def export(self, trace: Trace) -> str:
        return self.document(trace).model_dump_json(
            indent=self.indent, by_alias=True, exclude_none=True
        )

    def document(self, trace: Trace) -> TraceDocument:
        events: list[TraceEvent] = []
        for root in trace.roots:
            self._flatten(root, None, events)
        return TraceDocument(events=events)

    def _flatten(self, frame: CallFrame, parent_id: int | None, events: list[TraceEvent]) -> None:
        enter_id = len(events) + 1
        events.append(
            TraceEvent(
                id=enter_id,
                type="enter",
                class_name=frame.type_name,
                method=frame.method_name,
                params={p.name: p.value for p in frame.parameters},
                depth=frame.depth,
                parent_id=parent_id,
            )
        )
        for child in frame.children:
            self._flatten(child, enter_id, events)

        exit_event = TraceEvent(
            id=len(events) + 1,
            type="pending",
            class_name=frame.type_name,
            method=frame.method_name,
            narration=frame.narration,
            depth=frame.depth,
            parent_id=parent_id,
        )
        if frame.failed and frame.failure is not None:
            exit_event.type = "error"
            exit_event.error = ErrorInfo(type=frame.failure.kind, message=frame.failure.message)
            exit_event.duration_ms = frame.duration_ms
        elif frame.succeeded:
            exit_event.type = "exit"
            exit_event.return_value = frame.result
            exit_event.duration_ms = frame.duration_ms
        events.append(exit_event)
