from __future__ import annotations

from fastapi.requests import HTTPConnection

from .lifecycle import Relay

# -----------------------------
# FastAPI dependency helpers
# -----------------------------


def get_relay(connection: HTTPConnection) -> Relay:
    """Return the relay bound to the application serving *connection*."""
    return connection.app.state.relay


__all__ = ["get_relay"]
