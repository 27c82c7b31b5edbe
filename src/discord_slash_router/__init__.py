"""Serve Discord slash commands from HTTP-style route handlers."""

__version__ = "0.1.0"

from .bridge import AbortSignal, get_abort_signal
from .router import Router
from .routes import Handler, Route
from .settings import RouterSettings
from .types import ConnInfo

__all__ = [
    "AbortSignal",
    "ConnInfo",
    "Handler",
    "Route",
    "Router",
    "RouterSettings",
    "get_abort_signal",
]
