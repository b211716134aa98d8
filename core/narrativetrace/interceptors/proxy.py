"""TracingProxy: intercept calls by wrapping an object.

    catalog = TracingProxy(CatalogService(), context, directives=registry)
    catalog.find_book("978-0-13-468599-1")   # recorded on the context

Public callable attributes are traced; everything else passes straight
through to the wrapped object. Failures are recorded and re-raised unchanged.
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Callable
from typing import Any

from narrativetrace.interceptors.binding import bind_arguments, signature_of
from narrativetrace.narration.directives import DirectiveRegistry
from narrativetrace.runtime.context import CallEventSink

logger = logging.getLogger(__name__)


class TracingProxy:
    """Wraps ``target`` so its public method calls are reported to ``context``."""

    def __init__(
        self,
        target: Any,
        context: CallEventSink,
        type_name: str | None = None,
        directives: DirectiveRegistry | None = None,
    ) -> None:
        object.__setattr__(self, "_target", target)
        object.__setattr__(self, "_context", context)
        object.__setattr__(self, "_type_name", type_name or type(target).__name__)
        object.__setattr__(self, "_directives", directives or DirectiveRegistry())
        object.__setattr__(self, "_wrappers", {})

    def __getattr__(self, name: str) -> Any:
        attribute = getattr(self._target, name)
        if name.startswith("_") or not callable(attribute):
            return attribute

        wrapper = self._wrappers.get(name)
        if wrapper is None or wrapper.__wrapped__ != attribute:
            wrapper = self._wrap(name, attribute)
            self._wrappers[name] = wrapper
        return wrapper

    def __setattr__(self, name: str, value: Any) -> None:
        setattr(self._target, name, value)

    def __repr__(self) -> str:
        return f"TracingProxy({self._target!r})"

    def _wrap(self, method_name: str, method: Callable) -> Callable:
        context = self._context
        type_name = self._type_name
        directive = self._directives.lookup(type_name, method_name)
        signature = signature_of(method)

        @functools.wraps(method)
        def traced(*args: Any, **kwargs: Any) -> Any:
            if not context.is_active():
                return method(*args, **kwargs)

            handle = context.begin_call(
                type_name, method_name, bind_arguments(signature, args, kwargs), directive
            )
            try:
                result = method(*args, **kwargs)
            except BaseException as e:
                context.end_call_exception(handle, e)
                raise
            context.end_call_success(handle, result)
            return result

        return traced
