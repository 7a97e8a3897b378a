"""Error taxonomy for the signaling relay.

Only :class:`RegistryInvariantViolation` is fatal. Everything else is handled
locally on the connection that caused it.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from .routing import Endpoint


class RelayError(Exception):
    """Base class for every error raised by the relay."""


class DecodeError(RelayError):
    """An inbound payload is not a well-formed envelope for its origin."""


class RouteUnavailable(RelayError):
    """The destination of a routed envelope is not connected."""

    def __init__(self, reason: str, origin: Optional["Endpoint"] = None, envelope: Any = None):
        super().__init__(reason)
        self.reason = reason
        self.origin = origin
        self.envelope = envelope


class TransportError(RelayError):
    """Sending to or receiving from the underlying websocket failed."""


class RegistryInvariantViolation(RelayError):
    """The peer registry reached a state that must be impossible (a bug)."""


__all__ = [
    "RelayError",
    "DecodeError",
    "RouteUnavailable",
    "TransportError",
    "RegistryInvariantViolation",
]
