from __future__ import annotations

import logging
from typing import Iterable, Optional, Set

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import RelayConfig
from .constants import PeerKind
from .lifecycle import Relay
from .routers import players as players_router
from .routers import status as status_router
from .routers import streamer as streamer_router

logger = logging.getLogger(__name__)

# -----------------------------
# FastAPI app factory
# -----------------------------


def _default_endpoints(config: RelayConfig) -> Set[PeerKind]:
    if config.player_path != config.streamer_path:
        return {PeerKind.PLAYER, PeerKind.STREAMER}
    # Both sides on "/" only works on two listeners; this app is the player one.
    logger.warning(
        f"Player and streamer paths are both {config.player_path!r}; serving players only. "
        "The streamer needs its own listener."
    )
    return {PeerKind.PLAYER}


def create_app(
    relay: Optional[Relay] = None,
    endpoints: Optional[Iterable[PeerKind]] = None,
) -> FastAPI:
    """Build an application serving *endpoints*, all backed by *relay*.

    Several applications may share one relay: that is how the player and
    streamer listeners run on different ports in one process. Without
    *endpoints* the app serves every side whose path does not collide with
    another's, players first.
    """
    if relay is None:
        relay = Relay(RelayConfig.from_env())
    config = relay.config
    if endpoints is None:
        endpoints = _default_endpoints(config)
    endpoints = set(endpoints)
    if len(endpoints) > 1 and config.player_path == config.streamer_path:
        raise ValueError("one listener cannot serve players and the streamer on the same path")

    app = FastAPI(title="Signal Relay")
    app.state.relay = relay

    # /status is read by browser dashboards served from elsewhere.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    if PeerKind.PLAYER in endpoints:
        app.include_router(players_router.build_router(config.player_path))
    if PeerKind.STREAMER in endpoints:
        app.include_router(streamer_router.build_router(config.streamer_path))
    app.include_router(status_router.router)
    return app


__all__ = ["create_app"]
