"""Argument capture shared by the interceptors."""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)


def signature_of(func: Callable) -> inspect.Signature | None:
    try:
        return inspect.signature(func)
    except (TypeError, ValueError):
        return None


def bind_arguments(
    signature: inspect.Signature | None,
    args: tuple[Any, ...],
    kwargs: dict[str, Any],
    skip_first: bool = False,
) -> list[tuple[str, Any]]:
    """Pair call arguments with parameter names, in declaration order.

    Falls back to ``arg0, arg1, ...`` when the callable has no inspectable
    signature or the arguments do not bind (the call itself will then raise).
    """
    if signature is not None:
        try:
            bound = signature.bind(*args, **kwargs)
        except TypeError:
            logger.debug("Arguments do not bind to signature, using positional names")
        else:
            bound.apply_defaults()
            pairs = list(bound.arguments.items())
            return pairs[1:] if skip_first else pairs

    positional = args[1:] if skip_first else args
    pairs = [(f"arg{i}", value) for i, value in enumerate(positional)]
    pairs.extend(kwargs.items())
    return pairs
