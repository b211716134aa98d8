"""Indented-text rendering: one line per frame, nested by depth."""

from __future__ import annotations

from narrativetrace.render.base import display_text
from narrativetrace.tracing.schemas import CallFrame, Trace


class IndentedTextRenderer:
    """Renders a trace depth-first, pre-order.

    Each frame is one line indented by its depth; failed frames carry
    ``failure_marker`` in front of their narration.
    """

    def __init__(
        self,
        indent: str = "  ",
        failure_marker: str = "!! ",
        show_durations: bool = False,
    ) -> None:
        self.indent = indent
        self.failure_marker = failure_marker
        self.show_durations = show_durations

    def render(self, trace: Trace) -> str:
        return "\n".join(self._line(frame) for frame in trace.walk())

    def _line(self, frame: CallFrame) -> str:
        marker = self.failure_marker if frame.failed else ""
        line = f"{self.indent * frame.depth}{marker}{display_text(frame)}"
        if self.show_durations and not frame.pending:
            line += f" [{frame.duration_ms}ms]"
        return line
