"""Sequence-diagram rendering in Mermaid and PlantUML notation.

Both notations share one traversal: a lifeline per distinct owning type in
first-seen order, then for every frame, in sequence order, a call message
from its caller's lifeline, the messages of its children, and a return (or
failure return) message. A top-level call is drawn as a message from its own
type to itself. A call still pending gets no return message, but its
activation is closed so the diagram stays balanced. Only the concrete syntax
differs between the subclasses.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod

from narrativetrace.render.base import call_label, outcome_label
from narrativetrace.tracing.schemas import CallFrame, Trace

_NON_WORD = re.compile(r"\W")
_MERMAID_SPECIAL = re.compile(r"[#;]")


class SequenceDiagramRenderer(ABC):
    """Traversal shared by the sequence-diagram notations."""

    def render(self, trace: Trace) -> str:
        ids = self._participant_ids(trace.type_names())
        lines = list(self.header())
        for name, ident in ids.items():
            lines.append(self.participant(name, ident))
        for root in trace.roots:
            self._emit(root, ids[root.type_name], ids, lines)
        lines.extend(self.footer())
        return "\n".join(lines)

    def _emit(self, frame: CallFrame, caller: str, ids: dict[str, str], lines: list[str]) -> None:
        callee = ids[frame.type_name]
        lines.append(self.call(caller, callee, self.escape(call_label(frame))))
        lines.append(self.activate(callee))
        for child in sorted(frame.children, key=lambda c: c.sequence):
            self._emit(child, callee, ids, lines)
        if frame.failed:
            lines.append(self.failure(callee, caller, self.escape(outcome_label(frame))))
        elif frame.succeeded:
            lines.append(self.reply(callee, caller, self.escape(outcome_label(frame))))
        # A pending call has no return message but its activation still ends.
        lines.append(self.deactivate(callee))

    @staticmethod
    def _participant_ids(names: list[str]) -> dict[str, str]:
        ids: dict[str, str] = {}
        used: set[str] = set()
        for name in names:
            ident = _NON_WORD.sub("_", name) or "_"
            candidate, suffix = ident, 2
            while candidate in used:
                candidate = f"{ident}{suffix}"
                suffix += 1
            used.add(candidate)
            ids[name] = candidate
        return ids

    # Notation hooks

    @abstractmethod
    def header(self) -> list[str]: ...

    def footer(self) -> list[str]:
        return []

    @abstractmethod
    def participant(self, name: str, ident: str) -> str: ...

    @abstractmethod
    def call(self, source: str, target: str, text: str) -> str: ...

    @abstractmethod
    def reply(self, source: str, target: str, text: str) -> str: ...

    @abstractmethod
    def failure(self, source: str, target: str, text: str) -> str: ...

    @abstractmethod
    def activate(self, ident: str) -> str: ...

    @abstractmethod
    def deactivate(self, ident: str) -> str: ...

    def escape(self, text: str) -> str:
        return text


class MermaidSequenceRenderer(SequenceDiagramRenderer):
    """Mermaid ``sequenceDiagram`` text."""

    INDENT = "    "

    def header(self) -> list[str]:
        return ["sequenceDiagram"]

    def participant(self, name: str, ident: str) -> str:
        if name == ident:
            return f"{self.INDENT}participant {ident}"
        return f"{self.INDENT}participant {ident} as {name}"

    def call(self, source: str, target: str, text: str) -> str:
        return f"{self.INDENT}{source}->>{target}: {text}"

    def reply(self, source: str, target: str, text: str) -> str:
        return f"{self.INDENT}{source}-->>{target}: {text}"

    def failure(self, source: str, target: str, text: str) -> str:
        return f"{self.INDENT}{source}--x{target}: {text}"

    def activate(self, ident: str) -> str:
        return f"{self.INDENT}activate {ident}"

    def deactivate(self, ident: str) -> str:
        return f"{self.INDENT}deactivate {ident}"

    def escape(self, text: str) -> str:
        return _MERMAID_SPECIAL.sub(lambda m: f"#{ord(m.group())};", text)


class PlantUmlSequenceRenderer(SequenceDiagramRenderer):
    """PlantUML sequence diagram text, wrapped in ``@startuml``/``@enduml``."""

    def header(self) -> list[str]:
        return ["@startuml"]

    def footer(self) -> list[str]:
        return ["@enduml"]

    def participant(self, name: str, ident: str) -> str:
        if name == ident:
            return f"participant {ident}"
        return f'participant "{name}" as {ident}'

    def call(self, source: str, target: str, text: str) -> str:
        return f"{source} -> {target}: {text}"

    def reply(self, source: str, target: str, text: str) -> str:
        return f"{source} --> {target}: {text}"

    def failure(self, source: str, target: str, text: str) -> str:
        return f"{source} -[#red]-> {target}: {text}"

    def activate(self, ident: str) -> str:
        return f"activate {ident}"

    def deactivate(self, ident: str) -> str:
        return f"deactivate {ident}"

    def escape(self, text: str) -> str:
        return text.replace("\\", "\\\\")
