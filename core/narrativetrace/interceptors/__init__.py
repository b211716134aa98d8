"""Reference interception strategies: object proxy and function decorator."""

from narrativetrace.interceptors.decorator import narrated
from narrativetrace.interceptors.proxy import TracingProxy

__all__ = ["TracingProxy", "narrated"]
