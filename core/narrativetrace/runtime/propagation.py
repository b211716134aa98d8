"""Cross-thread propagation of a live call stack.

A ContextSnapshot taken on the originating thread carries a reference to that
thread's CallStack (not a copy) and the frame open at that moment. Restoring
it on another thread binds the same stack there, so calls made on the
destination nest under that frame and draw sequence numbers from the same
counter:

    snapshot = context.snapshot()

    def work():
        with snapshot.restore():
            catalog.reindex(shelf)

    threading.Thread(target=work).start()

    # or, equivalently
    executor.submit(snapshot.wrap(catalog.reindex), shelf)

Closing the scope returns the destination thread to whatever it was bound
to before.
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, TypeVar

if TYPE_CHECKING:
    from narrativetrace.runtime.context import (
        CallStack,
        ExecutionBinding,
        LiveFrame,
        NarrativeContext,
    )

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ContextScope:
    """Active restoration of a snapshot; closing it restores the previous binding."""

    def __init__(
        self,
        context: NarrativeContext | None = None,
        previous: ExecutionBinding | None = None,
    ) -> None:
        self._context = context
        self._previous = previous
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._context is not None and self._previous is not None:
            self._context.detach(self._previous)
            logger.debug("Propagated narrative context cleared")

    def __enter__(self) -> ContextScope:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class ContextSnapshot:
    """Opaque handoff of a live call stack to another execution context."""

    def __init__(
        self,
        context: NarrativeContext | None,
        stack: CallStack | None,
        anchor: LiveFrame | None,
    ) -> None:
        self._context = context
        self._stack = stack
        self._anchor = anchor

    @property
    def anchor_sequence(self) -> int | None:
        """Sequence number of the frame calls will nest under, if any."""
        return self._anchor.sequence if self._anchor is not None else None

    def restore(self) -> ContextScope:
        """Bind the shared stack to the calling thread until the scope closes."""
        if self._context is None or self._stack is None:
            return ContextScope()
        previous = self._context.attach(self._stack, self._anchor)
        logger.debug(
            f"Restored narrative context under frame #{self.anchor_sequence}"
            if self._anchor is not None
            else "Restored narrative context at top level"
        )
        return ContextScope(self._context, previous)

    def wrap(self, func: Callable[..., T]) -> Callable[..., T]:
        """Wrap ``func`` so it runs with this snapshot restored."""

        @functools.wraps(func)
        def run_restored(*args: Any, **kwargs: Any) -> T:
            with self.restore():
                return func(*args, **kwargs)

        return run_restored
