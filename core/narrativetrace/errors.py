"""Exceptions raised by narrativetrace itself.

Failures of traced methods are never wrapped in these types: they are
recorded as data on the frame and re-raised unchanged by the interceptor.
"""


class NarrativeTraceError(Exception):
    """Base class for errors raised by narrativetrace."""


class ProtocolViolation(NarrativeTraceError):
    """An interceptor broke the begin/end call contract.

    Raised when a frame is closed that is not the innermost open frame of the
    current execution context, when a close arrives with nothing open, or when
    a frame is closed twice. This is an integration bug, not a runtime
    condition to recover from.
    """


class ConfigurationError(NarrativeTraceError):
    """Configuration values could not be parsed."""
