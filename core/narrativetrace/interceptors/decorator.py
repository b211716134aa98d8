"""@narrated: intercept calls by decorating the function.

    class LendingService:
        @narrated(
            context,
            template="Borrowing book {isbn} for member {member_id}",
            on_error=[("Could not lend {isbn}: {$message}", NotFound)],
        )
        def borrow_book(self, isbn, member_id):
            ...

``context`` may be a context instance or a zero-argument callable returning
one, so modules can be decorated before the context is created. When the
context is inactive the function is called directly.
"""

from __future__ import annotations

import functools
import inspect
import logging
from collections.abc import Callable, Iterable
from typing import Any, TypeVar

from narrativetrace.interceptors.binding import bind_arguments, signature_of
from narrativetrace.narration.directives import ErrorDirective, NarrationDirective
from narrativetrace.narration.values import SummarizerRegistry
from narrativetrace.runtime.context import CallEventSink

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

_BOUND_NAMES = ("self", "cls")


def narrated(
    context: CallEventSink | Callable[[], CallEventSink],
    template: str | None = None,
    on_error: Iterable[ErrorDirective | tuple[str, type[BaseException] | str]] = (),
    exclude: Iterable[str] = (),
    summarizers: SummarizerRegistry | None = None,
    type_name: str | None = None,
) -> Callable[[F], F]:
    """Report every call of the decorated function to ``context``."""
    directive = NarrationDirective.build(
        template=template, on_error=on_error, exclude=exclude, summarizers=summarizers
    )

    def decorator(func: F) -> F:
        if inspect.iscoroutinefunction(func):
            raise TypeError(f"@narrated does not support coroutine function {func.__qualname__}")

        signature = signature_of(func)
        first = _first_parameter(signature)
        bound_method = first in _BOUND_NAMES
        method_name = func.__name__
        static_type = type_name or _owner_name(func)

        @functools.wraps(func)
        def traced(*args: Any, **kwargs: Any) -> Any:
            sink = _resolve(context)
            if not sink.is_active():
                return func(*args, **kwargs)

            owner = static_type
            if type_name is None and bound_method and args:
                receiver = args[0]
                owner = receiver.__name__ if first == "cls" else type(receiver).__name__

            arguments = bind_arguments(signature, args, kwargs, skip_first=bound_method)
            handle = sink.begin_call(owner, method_name, arguments, directive)
            try:
                result = func(*args, **kwargs)
            except BaseException as e:
                sink.end_call_exception(handle, e)
                raise
            sink.end_call_success(handle, result)
            return result

        traced.__narration__ = directive
        return traced  # type: ignore[return-value]

    return decorator


def _resolve(context: CallEventSink | Callable[[], CallEventSink]) -> CallEventSink:
    if hasattr(context, "begin_call"):
        return context
    return context()


def _first_parameter(signature: inspect.Signature | None) -> str | None:
    if signature is None or not signature.parameters:
        return None
    return next(iter(signature.parameters))


def _owner_name(func: Callable) -> str:
    """Enclosing class name from the qualified name, else the module's last part."""
    parts = func.__qualname__.split(".")
    if len(parts) > 1 and parts[-2] != "<locals>":
        return parts[-2]
    return func.__module__.rsplit(".", 1)[-1]
