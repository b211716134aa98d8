"""NarrativeContext: live call stacks for intercepted method calls.

An interceptor reports every intercepted call to a context:

    handle = context.begin_call("LendingService", "borrow_book", [("isbn", isbn)])
    try:
        result = target.borrow_book(isbn)
    except Exception as e:
        context.end_call_exception(handle, e)
        raise
    context.end_call_success(handle, result)

    trace = context.capture_trace()

Each thread is bound to its own CallStack unless a ContextSnapshot shares one
across a thread boundary. Within one thread, frames close strictly
last-opened-first-closed; any other order is a ProtocolViolation. Every
mutation of a CallStack happens under that stack's lock, so threads sharing
a stack can append to the same in-flight trace concurrently.

Closed frames keep their narration; capture_trace() copies the whole live
forest into frozen CallFrame models, so a Trace never changes afterwards.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Protocol
from uuid import uuid4

from narrativetrace.config import NarrativeTraceConfig, TracingLevel
from narrativetrace.errors import ProtocolViolation
from narrativetrace.narration.directives import DEFAULT_DIRECTIVE, NarrationDirective
from narrativetrace.narration.template import NarrationEngine, Outcome, Raised, Returned
from narrativetrace.narration.values import SummarizerRegistry, ValueRenderer
from narrativetrace.runtime.propagation import ContextScope, ContextSnapshot
from narrativetrace.tracing.schemas import (
    PENDING_NARRATION,
    CallFrame,
    Failure,
    FrameOutcome,
    ParameterCapture,
    Trace,
)

logger = logging.getLogger(__name__)

Arguments = Mapping[str, Any] | Sequence[tuple[str, Any]]


class CallEventSink(Protocol):
    """What an interception strategy reports to."""

    def is_active(self) -> bool: ...

    def begin_call(
        self,
        type_name: str,
        method_name: str,
        arguments: Arguments,
        directive: NarrationDirective | None = None,
    ) -> FrameHandle: ...

    def end_call_success(self, handle: FrameHandle, result: Any = None) -> None: ...

    def end_call_error(
        self, handle: FrameHandle, failure_kind: type[BaseException] | str, message: str
    ) -> None: ...

    def end_call_exception(self, handle: FrameHandle, error: BaseException) -> None: ...


class LiveFrame:
    """A frame on a live CallStack. Mutated only under the stack's lock."""

    __slots__ = (
        "frame_id",
        "type_name",
        "method_name",
        "sequence",
        "parameters",
        "arguments",
        "directive",
        "parent",
        "children",
        "narration",
        "custom_narration",
        "outcome",
        "result",
        "failure",
        "started_at",
        "duration_ms",
        "pruned",
    )

    def __init__(
        self,
        type_name: str,
        method_name: str,
        sequence: int,
        parameters: tuple[ParameterCapture, ...],
        arguments: list[tuple[str, Any]],
        directive: NarrationDirective,
        parent: LiveFrame | None,
    ) -> None:
        self.frame_id = uuid4().hex[:16]
        self.type_name = type_name
        self.method_name = method_name
        self.sequence = sequence
        self.parameters = parameters
        self.arguments: list[tuple[str, Any]] | None = arguments
        self.directive = directive
        self.parent = parent
        self.children: list[LiveFrame] = []
        self.narration = PENDING_NARRATION
        self.custom_narration = False
        self.outcome = FrameOutcome.PENDING
        self.result: str | None = None
        self.failure: Failure | None = None
        self.started_at = time.perf_counter()
        self.duration_ms = 0
        self.pruned = False

    @property
    def qualified_name(self) -> str:
        return f"{self.type_name}.{self.method_name}"

    @property
    def closed(self) -> bool:
        return self.outcome != FrameOutcome.PENDING

    def depth(self) -> int:
        depth = 0
        node = self.parent
        while node is not None:
            depth += 1
            node = node.parent
        return depth

    def freeze(self, depth: int) -> CallFrame:
        return CallFrame(
            frame_id=self.frame_id,
            type_name=self.type_name,
            method_name=self.method_name,
            sequence=self.sequence,
            depth=depth,
            parent_sequence=self.parent.sequence if self.parent is not None else None,
            parameters=self.parameters,
            narration=self.narration,
            custom_narration=self.custom_narration,
            outcome=self.outcome,
            result=self.result,
            failure=self.failure,
            duration_ms=self.duration_ms,
            children=tuple(child.freeze(depth + 1) for child in self.children),
        )


class CallStack:
    """The live call forest of one logical trace.

    Owned by one thread unless shared through a ContextSnapshot. All reads
    and writes go through ``lock``.
    """

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.roots: list[LiveFrame] = []
        self._next_sequence = 0

    def open_frame(
        self,
        type_name: str,
        method_name: str,
        parameters: tuple[ParameterCapture, ...],
        arguments: list[tuple[str, Any]],
        directive: NarrationDirective,
        parent: LiveFrame | None,
    ) -> LiveFrame:
        with self.lock:
            parent = self._attached(parent)
            frame = LiveFrame(
                type_name=type_name,
                method_name=method_name,
                sequence=self._next_sequence,
                parameters=parameters,
                arguments=arguments,
                directive=directive,
                parent=parent,
            )
            self._next_sequence += 1
            self._siblings(parent).append(frame)
            return frame

    def prune(self, frame: LiveFrame, promote_children: bool) -> None:
        """Remove a closed frame, optionally moving its children into its place.

        The frame keeps its ``parent`` link: a thread still anchored on it
        attaches later calls to the nearest ancestor left in the tree.
        """
        siblings = self._siblings(frame.parent)
        position = next(i for i, f in enumerate(siblings) if f is frame)
        replacement = frame.children if promote_children else []
        for child in replacement:
            child.parent = frame.parent
        siblings[position : position + 1] = replacement
        frame.children = []
        frame.pruned = True

    def attached(self, frame: LiveFrame | None) -> LiveFrame | None:
        """Get ``frame``, or its nearest ancestor still in the tree."""
        with self.lock:
            return self._attached(frame)

    @staticmethod
    def _attached(frame: LiveFrame | None) -> LiveFrame | None:
        while frame is not None and frame.pruned:
            frame = frame.parent
        return frame

    def freeze(self) -> tuple[CallFrame, ...]:
        with self.lock:
            return tuple(root.freeze(0) for root in self.roots)

    def frame_count(self) -> int:
        with self.lock:
            pending = list(self.roots)
            count = 0
            while pending:
                frame = pending.pop()
                count += 1
                pending.extend(frame.children)
            return count

    def _siblings(self, parent: LiveFrame | None) -> list[LiveFrame]:
        return self.roots if parent is None else parent.children


class ExecutionBinding:
    """What one execution context sees: a stack and its own open frames.

    ``anchor`` is the frame that was innermost on the originating thread when
    the stack was handed off; calls made here nest under it.
    """

    __slots__ = ("stack", "anchor", "open_frames")

    def __init__(self, stack: CallStack | None = None, anchor: LiveFrame | None = None) -> None:
        self.stack = stack or CallStack()
        self.anchor = anchor
        self.open_frames: list[LiveFrame] = []

    def innermost(self) -> LiveFrame | None:
        if self.open_frames:
            return self.open_frames[-1]
        return self.stack.attached(self.anchor)


@dataclass(frozen=True)
class FrameHandle:
    """Identifies exactly one begun call; pass it back to close that call."""

    frame: LiveFrame | None = None
    binding: ExecutionBinding | None = None

    @property
    def inert(self) -> bool:
        return self.frame is None

    @property
    def sequence(self) -> int | None:
        return self.frame.sequence if self.frame is not None else None


INERT_HANDLE = FrameHandle()


class NarrativeContext:
    """Records intercepted calls into per-thread call stacks.

    Pass the same instance to every interceptor that should contribute to a
    trace; each thread gets an independent stack unless one is shared with
    ``snapshot()``.
    """

    def __init__(
        self,
        config: NarrativeTraceConfig | None = None,
        summarizers: SummarizerRegistry | None = None,
        engine: NarrationEngine | None = None,
    ) -> None:
        self._config = config or NarrativeTraceConfig()
        self._summarizers = summarizers or SummarizerRegistry()
        self._engine = engine or NarrationEngine(
            ValueRenderer(
                max_string_length=self._config.max_string_length,
                max_collection_items=self._config.max_collection_items,
                max_object_fields=self._config.max_object_fields,
                summarizers=self._summarizers,
            )
        )
        self._local = threading.local()

    @property
    def config(self) -> NarrativeTraceConfig:
        return self._config

    @property
    def summarizers(self) -> SummarizerRegistry:
        return self._summarizers

    @property
    def engine(self) -> NarrationEngine:
        return self._engine

    def is_active(self) -> bool:
        return self._config.level != TracingLevel.OFF

    # ------------------------------------------------------------------
    # Call events
    # ------------------------------------------------------------------

    def begin_call(
        self,
        type_name: str,
        method_name: str,
        arguments: Arguments = (),
        directive: NarrationDirective | None = None,
    ) -> FrameHandle:
        """Open a pending frame under the innermost open frame of this thread."""
        level = self._config.level
        if level == TracingLevel.OFF:
            return INERT_HANDLE

        directive = directive or DEFAULT_DIRECTIVE
        pairs = list(arguments.items()) if isinstance(arguments, Mapping) else list(arguments)
        parameters = self._capture_parameters(pairs, directive, level)

        binding = self._binding()
        frame = binding.stack.open_frame(
            type_name=type_name,
            method_name=method_name,
            parameters=parameters,
            arguments=pairs,
            directive=directive,
            parent=binding.innermost(),
        )
        binding.open_frames.append(frame)
        logger.debug(f"Begin {frame.qualified_name} #{frame.sequence}")
        return FrameHandle(frame, binding)

    def end_call_success(self, handle: FrameHandle, result: Any = None) -> None:
        """Close the innermost frame as succeeded."""
        self._close(handle, Returned(result))

    def end_call_error(
        self,
        handle: FrameHandle,
        failure_kind: type[BaseException] | str,
        message: str,
    ) -> None:
        """Close the innermost frame as failed.

        Only records the failure; re-raising it to the original caller stays
        the interceptor's job.
        """
        self._close(handle, Raised(failure_kind, "" if message is None else str(message)))

    def end_call_exception(self, handle: FrameHandle, error: BaseException) -> None:
        """Close the innermost frame with the failure described by ``error``."""
        if handle.inert:
            return
        values = self._engine.values.with_summarizers(handle.frame.directive.summarizers)
        summarizer = values.summarizers.lookup(type(error))
        try:
            message = str(error)
        except Exception as e:
            logger.warning(f"str() of {type(error).__name__} failed: {e}")
            message = ""
        if summarizer is not None:
            try:
                message = str(summarizer(error))
            except Exception as e:
                logger.warning(f"Summarizer for {type(error).__name__} failed: {e}")
        self.end_call_error(handle, type(error), message)

    # ------------------------------------------------------------------
    # Capture
    # ------------------------------------------------------------------

    def capture_trace(self) -> Trace:
        """Copy this thread's live stack into an immutable Trace.

        Frames still open appear with pending narration. The live stack is
        left untouched.
        """
        binding = self._binding()
        trace = Trace(roots=binding.stack.freeze())
        logger.debug(f"Captured trace with {len(trace.roots)} root frame(s)")
        return trace

    def reset(self) -> None:
        """Discard this thread's live stack. Captured traces are unaffected."""
        self._local.binding = ExecutionBinding()
        logger.debug("Narrative context reset")

    def snapshot(self) -> ContextSnapshot:
        """Share this thread's live stack with another thread or task."""
        binding = self._binding()
        return ContextSnapshot(self, binding.stack, binding.innermost())

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def current_depth(self) -> int:
        """Number of frames open above the next call on this thread."""
        innermost = self._binding().innermost()
        return 0 if innermost is None else innermost.depth() + 1

    def current_frame(self) -> str | None:
        """``Type.method`` of the innermost open frame on this thread."""
        innermost = self._binding().innermost()
        return innermost.qualified_name if innermost is not None else None

    def open_frames(self) -> list[str]:
        return [f.qualified_name for f in self._binding().open_frames]

    # ------------------------------------------------------------------
    # Binding management (used by ContextSnapshot)
    # ------------------------------------------------------------------

    def attach(self, stack: CallStack, anchor: LiveFrame | None) -> ExecutionBinding:
        """Bind ``stack`` to the calling thread; returns the previous binding."""
        previous = self._binding()
        self._local.binding = ExecutionBinding(stack, anchor)
        return previous

    def detach(self, previous: ExecutionBinding) -> None:
        self._local.binding = previous

    def _binding(self) -> ExecutionBinding:
        binding = getattr(self._local, "binding", None)
        if binding is None:
            binding = ExecutionBinding()
            self._local.binding = binding
        return binding

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _capture_parameters(
        self,
        pairs: list[tuple[str, Any]],
        directive: NarrationDirective,
        level: TracingLevel,
    ) -> tuple[ParameterCapture, ...]:
        show_values = level.is_enabled(TracingLevel.DETAIL)
        values = self._engine.values.with_summarizers(directive.summarizers)
        return tuple(
            ParameterCapture(name=name, value=values.render(value) if show_values else "")
            for name, value in pairs
            if not directive.is_excluded(name)
        )

    def _close(self, handle: FrameHandle, outcome: Outcome) -> None:
        if handle.inert:
            return
        frame = handle.frame
        binding = self._binding()

        if frame.closed:
            self._violation(f"{frame.qualified_name} #{frame.sequence} was already closed")
        if not binding.open_frames:
            self._violation(
                f"Cannot close {frame.qualified_name} #{frame.sequence}: "
                "no frame is open in this execution context"
            )
        if binding.open_frames[-1] is not frame:
            top = binding.open_frames[-1]
            self._violation(
                f"Cannot close {frame.qualified_name} #{frame.sequence}: "
                f"innermost open frame is {top.qualified_name} #{top.sequence}"
            )

        level = self._config.level
        narration = self._engine.narrate(
            frame.directive,
            frame.type_name,
            frame.method_name,
            frame.arguments or [],
            outcome,
            show_values=level.is_enabled(TracingLevel.DETAIL),
        )
        values = self._engine.values.with_summarizers(frame.directive.summarizers)
        result = values.render(outcome.value) if isinstance(outcome, Returned) else None
        binding.open_frames.pop()

        stack = binding.stack
        with stack.lock:
            frame.narration = narration.text
            frame.custom_narration = narration.custom
            frame.duration_ms = int((time.perf_counter() - frame.started_at) * 1000)
            frame.arguments = None
            if isinstance(outcome, Raised):
                frame.outcome = FrameOutcome.FAILED
                frame.failure = Failure(kind=outcome.kind_name, message=outcome.message)
            else:
                frame.outcome = FrameOutcome.SUCCEEDED
                frame.result = result
                self._apply_level(stack, frame, level)

        logger.debug(f"End {frame.qualified_name} #{frame.sequence}: {frame.outcome}")

    @staticmethod
    def _apply_level(stack: CallStack, frame: LiveFrame, level: TracingLevel) -> None:
        if level == TracingLevel.ERRORS:
            # Successful children are already gone; anything left leads to a failure.
            if not frame.children:
                stack.prune(frame, promote_children=False)
        elif level == TracingLevel.SUMMARY:
            is_root = frame.parent is None
            is_leaf = not frame.children
            if not (is_root or is_leaf):
                stack.prune(frame, promote_children=True)

    @staticmethod
    def _violation(message: str) -> None:
        logger.error(f"Protocol violation: {message}")
        raise ProtocolViolation(message)


class NoopNarrativeContext:
    """A context that records nothing, for disabled tracing."""

    def is_active(self) -> bool:
        return False

    def begin_call(
        self,
        type_name: str,
        method_name: str,
        arguments: Arguments = (),
        directive: NarrationDirective | None = None,
    ) -> FrameHandle:
        return INERT_HANDLE

    def end_call_success(self, handle: FrameHandle, result: Any = None) -> None:
        pass

    def end_call_error(
        self, handle: FrameHandle, failure_kind: type[BaseException] | str, message: str
    ) -> None:
        pass

    def end_call_exception(self, handle: FrameHandle, error: BaseException) -> None:
        pass

    def capture_trace(self) -> Trace:
        return Trace()

    def reset(self) -> None:
        pass

    def snapshot(self) -> ContextSnapshot:
        return ContextSnapshot(None, None, None)

    def current_depth(self) -> int:
        return 0

    def current_frame(self) -> str | None:
        return None

    def open_frames(self) -> list[str]:
        return []


__all__ = [
    "CallEventSink",
    "CallStack",
    "ContextScope",
    "ContextSnapshot",
    "ExecutionBinding",
    "FrameHandle",
    "INERT_HANDLE",
    "LiveFrame",
    "NarrativeContext",
    "NoopNarrativeContext",
]
