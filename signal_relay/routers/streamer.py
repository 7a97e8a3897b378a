from __future__ import annotations

from fastapi import APIRouter, Depends, WebSocket

from ..deps import get_relay
from ..lifecycle import Relay


async def streamer_websocket(ws: WebSocket, relay: Relay = Depends(get_relay)):
    # A second streamer is accepted and takes over; the relay closes the old one.
    await relay.run_streamer(ws)


def build_router(path: str) -> APIRouter:
    """Router serving the streamer connection on *path*."""
    router = APIRouter(prefix="", tags=["streamer"])
    router.add_api_websocket_route(path, streamer_websocket, name="streamer")
    return router
