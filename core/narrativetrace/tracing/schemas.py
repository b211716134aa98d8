"""Pydantic schemas for captured call trees.

Trace format:
    Trace
    └── roots: tuple[CallFrame, ...]
        ├── type_name, method_name, sequence, depth, parent_sequence
        ├── parameters: tuple[ParameterCapture, ...]
        ├── narration, outcome, result | failure
        └── children: tuple[CallFrame, ...]

Every model is frozen: once a frame is placed in a Trace it cannot be
changed, so traces can be shared between threads without locking.
Equality is structural, which keeps test assertions simple: two frames are
equal when they record the same call, whatever their frame_id and
duration_ms.
"""

from __future__ import annotations

from collections.abc import Iterator
from enum import StrEnum
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

PENDING_NARRATION = "(pending)"

# Left out of frame equality.
RUN_SPECIFIC_FIELDS = frozenset({"frame_id", "duration_ms"})


class FrameOutcome(StrEnum):
    """How an intercepted call ended."""

    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class ParameterCapture(BaseModel):
    """A captured argument, already rendered to text."""

    model_config = ConfigDict(frozen=True)

    name: str
    value: str


class Failure(BaseModel):
    """Failure recorded for a call that raised."""

    model_config = ConfigDict(frozen=True)

    kind: str
    message: str = ""


class CallFrame(BaseModel):
    """One intercepted invocation and everything it called."""

    model_config = ConfigDict(frozen=True)

    frame_id: str = Field(default_factory=lambda: uuid4().hex[:16])
    type_name: str
    method_name: str
    sequence: int
    depth: int = 0
    parent_sequence: int | None = None

    parameters: tuple[ParameterCapture, ...] = ()
    narration: str = PENDING_NARRATION
    custom_narration: bool = False

    outcome: FrameOutcome = FrameOutcome.PENDING
    result: str | None = None
    failure: Failure | None = None

    duration_ms: int = 0

    children: tuple[CallFrame, ...] = ()

    @property
    def qualified_name(self) -> str:
        return f"{self.type_name}.{self.method_name}"

    @property
    def succeeded(self) -> bool:
        return self.outcome == FrameOutcome.SUCCEEDED

    @property
    def failed(self) -> bool:
        return self.outcome == FrameOutcome.FAILED

    @property
    def pending(self) -> bool:
        return self.outcome == FrameOutcome.PENDING

    def __eq__(self, other: object) -> bool:
        # Frame ids and timings differ between otherwise identical runs.
        if not isinstance(other, CallFrame):
            return NotImplemented
        return all(
            getattr(self, name) == getattr(other, name)
            for name in type(self).model_fields
            if name not in RUN_SPECIFIC_FIELDS
        )

    def __hash__(self) -> int:
        return hash((self.type_name, self.method_name, self.sequence, self.outcome, self.narration))

    def walk(self) -> Iterator[CallFrame]:
        """Yield this frame and its descendants, depth-first pre-order."""
        yield self
        for child in self.children:
            yield from child.walk()


class Trace(BaseModel):
    """Immutable snapshot of a captured call forest."""

    model_config = ConfigDict(frozen=True)

    roots: tuple[CallFrame, ...] = ()

    def is_empty(self) -> bool:
        return not self.roots

    def walk(self) -> Iterator[CallFrame]:
        """Yield every frame, depth-first pre-order, roots in call order."""
        for root in self.roots:
            yield from root.walk()

    def frame_count(self) -> int:
        return sum(1 for _ in self.walk())

    def children(self, frame: CallFrame) -> tuple[CallFrame, ...]:
        return frame.children

    def is_root(self, frame: CallFrame) -> bool:
        return frame.parent_sequence is None

    def depth(self, frame: CallFrame) -> int:
        return frame.depth

    def parent(self, frame: CallFrame) -> CallFrame | None:
        """Get the frame that called ``frame``, or None for a root."""
        if frame.parent_sequence is None:
            return None
        return self.find(frame.parent_sequence)

    def find(self, sequence: int) -> CallFrame | None:
        """Get a frame by its sequence index."""
        for candidate in self.walk():
            if candidate.sequence == sequence:
                return candidate
        return None

    def failed_frames(self) -> list[CallFrame]:
        return [f for f in self.walk() if f.failed]

    def type_names(self) -> list[str]:
        """Distinct owning type names in first-seen (pre-order) order."""
        seen: dict[str, None] = {}
        for frame in self.walk():
            seen.setdefault(frame.type_name, None)
        return list(seen)


CallFrame.model_rebuild()
