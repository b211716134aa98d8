"""Prose rendering: each top-level call becomes one connected sentence.

    Borrowing book 978-0-13-468599-1 for member M-001; to do so, it first
    found book 978-0-13-468599-1, then looked up member M-001.

Nested calls become parenthesised subordinate clauses. A failed call ends
the chain of its parent: calls are synchronous, so nothing after it ran.
"""

from __future__ import annotations

from narrativetrace.render.base import display_text
from narrativetrace.tracing.schemas import CallFrame, Trace

STOPPED = ", and went no further"


class ProseRenderer:
    """Renders a trace as one sentence per top-level call."""

    def render(self, trace: Trace) -> str:
        return "\n".join(self._sentence(root) for root in trace.roots)

    def _sentence(self, frame: CallFrame) -> str:
        text = self._clause(frame, nested=False)
        text = text[:1].upper() + text[1:]
        return text if text.endswith(".") else text + "."

    def _clause(self, frame: CallFrame, nested: bool) -> str:
        text = display_text(frame)
        steps = self._executed_children(frame)
        if not steps:
            return text

        clauses = [self._clause(child, nested=True) for child in steps]
        chain = "first " + clauses[0] + "".join(f", then {c}" for c in clauses[1:])
        if steps[-1].failed:
            chain += STOPPED
        if nested:
            return f"{text} (to do so, it {chain})"
        return f"{text}; to do so, it {chain}"

    @staticmethod
    def _executed_children(frame: CallFrame) -> list[CallFrame]:
        """Children up to and including the first one that failed."""
        steps = []
        for child in frame.children:
            steps.append(child)
            if child.failed:
                break
        return steps
