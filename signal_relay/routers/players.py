from __future__ import annotations

from fastapi import APIRouter, Depends, WebSocket

from ..deps import get_relay
from ..lifecycle import Relay


async def player_websocket(ws: WebSocket, relay: Relay = Depends(get_relay)):
    await relay.run_player(ws)


def build_router(path: str) -> APIRouter:
    """Router serving player connections on *path*."""
    router = APIRouter(prefix="", tags=["players"])
    router.add_api_websocket_route(path, player_websocket, name="player")
    return router
