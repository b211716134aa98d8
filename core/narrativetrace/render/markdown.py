"""Markdown rendering: a headed section per top-level call.

    ## LendingService.borrow_book

    - **LendingService.borrow_book**(isbn: `"978-0-13-468599-1"`, member_id: `"M-001"`)
      *Borrowing book 978-0-13-468599-1 for member M-001*
      - **CatalogService.find_book**(isbn: `"978-0-13-468599-1"`) → `Book(...)`
      - **MemberService.lookup_member**(member_id: `"M-001"`) → `Member(...)`
      - → `Loan(isbn="978-0-13-468599-1", member_id="M-001")`

A call without children carries its result inline; a call with children
lists them and closes with a result item. Failures are called out in a
block quote under the call that raised. ``document()`` adds YAML
frontmatter and a summary header for writing a trace to a file.
"""

from __future__ import annotations

import json
import re

from narrativetrace.narration.values import escape_control
from narrativetrace.render.base import outcome_label
from narrativetrace.tracing.schemas import CallFrame, Trace

_MARKDOWN_SPECIAL = re.compile(r"([\\`*_\[\]<>])")
_BACKTICK_RUN = re.compile(r"`+")
_YAML_UNSAFE = re.compile(r"[:#\"'\\\n]")


def markdown_text(text: str) -> str:
    """Escape characters Markdown would read as formatting."""
    return _MARKDOWN_SPECIAL.sub(r"\\\1", escape_control(text))


def code_span(text: str) -> str:
    """Wrap ``text`` in a code span long enough to hold its own backticks."""
    runs = _BACKTICK_RUN.findall(text)
    fence = "`" * (max(map(len, runs)) + 1 if runs else 1)
    pad = " " if text.startswith("`") or text.endswith("`") else ""
    return f"{fence}{pad}{escape_control(text)}{pad}{fence}"


def yaml_scalar(value: str) -> str:
    # A JSON string is a valid YAML double-quoted scalar.
    if not value or value != value.strip() or _YAML_UNSAFE.search(value):
        return json.dumps(value, ensure_ascii=False)
    return value


class MarkdownRenderer:
    """Renders a trace as Markdown sections with nested call lists.

    Durations are shown when ``show_durations`` is set; a call slower than
    ``slow_threshold_ms`` is flagged.
    """

    def __init__(
        self,
        indent: str = "  ",
        slow_threshold_ms: int = 200,
        show_durations: bool = False,
    ) -> None:
        self.indent = indent
        self.slow_threshold_ms = slow_threshold_ms
        self.show_durations = show_durations

    def render(self, trace: Trace) -> str:
        return "\n\n".join(self._section(root) for root in trace.roots)

    def document(
        self,
        trace: Trace,
        scenario: str | None = None,
        result: str | None = None,
    ) -> str:
        """Render ``trace`` as a standalone file: frontmatter, header, sections.

        ``result`` defaults to how the first top-level call ended.
        """
        frames = list(trace.walk())
        meta = ["---", "type: trace"]
        if scenario is not None:
            meta.append(f"scenario: {yaml_scalar(scenario)}")
        if trace.roots:
            entry = trace.roots[0]
            meta.append(f"entry_point: {yaml_scalar(entry.qualified_name)}")
            meta.append(f"duration_ms: {entry.duration_ms}")
        meta.append(f"method_count: {len(frames)}")
        meta.append(f"error_count: {sum(1 for f in frames if f.failed)}")
        meta.append("---")

        parts = ["\n".join(meta)]
        if trace.roots:
            entry = trace.roots[0]
            parts.append(f"# Trace: {entry.qualified_name}")
            if scenario is not None:
                parts.append(f"**Scenario:** {markdown_text(scenario)}")
            if result is None:
                result = "pending" if entry.pending else outcome_label(entry)
            parts.append(
                f"**Duration:** {entry.duration_ms}ms | **Result:** {markdown_text(result)}"
            )
            parts.append(self.render(trace))
        return "\n\n".join(parts) + "\n"

    def _section(self, root: CallFrame) -> str:
        heading = f"## {root.qualified_name}"
        if root.failed:
            heading += " (failed)"
        elif root.pending:
            heading += " (pending)"
        lines: list[str] = []
        self._item(root, 0, lines)
        return heading + "\n\n" + "\n".join(lines)

    def _item(self, frame: CallFrame, level: int, lines: list[str]) -> None:
        indent = self.indent * level
        inner = indent + self.indent
        line = f"{indent}- {self._call(frame)}"
        if not frame.children:
            if frame.succeeded:
                line += f" → {code_span(frame.result or 'None')}"
            elif frame.pending:
                line += " *(pending)*"
        lines.append(line + self._duration(frame))

        if frame.custom_narration:
            lines.append(f"{inner}*{markdown_text(frame.narration)}*")
        for child in frame.children:
            self._item(child, level + 1, lines)

        if frame.failed:
            lines.append(f"{inner}> **Failed:** {self._failure(frame)}")
        elif frame.children:
            closing = "*(pending)*" if frame.pending else f"→ {code_span(frame.result or 'None')}"
            lines.append(f"{inner}- {closing}")

    @staticmethod
    def _call(frame: CallFrame) -> str:
        params = ", ".join(
            f"{p.name}: {code_span(p.value)}" if p.value else p.name for p in frame.parameters
        )
        return f"**{frame.qualified_name}**({params})"

    @staticmethod
    def _failure(frame: CallFrame) -> str:
        text = code_span(frame.failure.kind)
        if frame.failure.message:
            text += f": {markdown_text(frame.failure.message)}"
        return text

    def _duration(self, frame: CallFrame) -> str:
        if not self.show_durations or frame.pending:
            return ""
        text = f" ({frame.duration_ms}ms"
        if frame.duration_ms > self.slow_threshold_ms:
            text += ", slow"
        return text + ")"
