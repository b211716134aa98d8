"""Logging bridge: stamp narrative context onto log records.

Attach NarrativeLogFilter to a handler (or logger) and every record emitted
while intercepted calls are open carries the current nesting depth and the
innermost open frame, so ordinary log lines can be read alongside a trace:

    handler = logging.StreamHandler()
    handler.addFilter(NarrativeLogFilter(context))
    handler.setFormatter(logging.Formatter(
        "%(narrative_frame)s [%(narrative_depth)d] %(message)s"
    ))
"""

from __future__ import annotations

import logging

from narrativetrace.runtime.context import NarrativeContext, NoopNarrativeContext

NO_FRAME = "-"


class NarrativeLogFilter(logging.Filter):
    """Adds ``narrative_depth`` and ``narrative_frame`` to every record."""

    def __init__(self, context: NarrativeContext | NoopNarrativeContext, name: str = "") -> None:
        super().__init__(name)
        self.context = context

    def filter(self, record: logging.LogRecord) -> bool:
        record.narrative_depth = self.context.current_depth()
        record.narrative_frame = self.context.current_frame() or NO_FRAME
        return True
