"""Startup script for the signal relay.

Runs the player and streamer listeners in one process, sharing one relay.
"""
from __future__ import annotations

import asyncio
import logging
import sys
from typing import List, Optional

import uvicorn

from .app import create_app
from .config import RelayConfig
from .constants import PeerKind
from .lifecycle import Relay

logger = logging.getLogger("signal_relay")


def build_servers(config: RelayConfig, relay: Optional[Relay] = None) -> List[uvicorn.Server]:
    """One uvicorn server per listener described by *config*."""
    relay = relay or Relay(config)
    log_level = config.log_level

    if config.shared_listener:
        logger.warning("Players and streamer share one port; streamer_backlog does not apply")
        app = create_app(relay)
        return [uvicorn.Server(uvicorn.Config(app, host=config.host, port=config.player_port, log_level=log_level))]

    player_app = create_app(relay, endpoints=[PeerKind.PLAYER])
    streamer_app = create_app(relay, endpoints=[PeerKind.STREAMER])
    return [
        uvicorn.Server(uvicorn.Config(player_app, host=config.host, port=config.player_port, log_level=log_level)),
        uvicorn.Server(
            uvicorn.Config(
                streamer_app,
                host=config.host,
                port=config.streamer_port,
                backlog=config.streamer_backlog,
                log_level=log_level,
            )
        ),
    ]


async def serve(config: RelayConfig) -> None:
    servers = build_servers(config)
    tasks = [asyncio.create_task(server.serve()) for server in servers]
    done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
    # One listener stopping (signal or bind failure) stops the whole relay.
    for server in servers:
        server.should_exit = True
    await asyncio.gather(*pending)
    for task in done:
        task.result()


def main() -> None:
    try:
        config = RelayConfig.from_env()
    except ValueError as exc:  # includes pydantic.ValidationError
        print(f"Invalid relay configuration: {exc}", file=sys.stderr)
        sys.exit(2)

    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logger.info(f"Players on ws://{config.host}:{config.player_port}{config.player_path}")
    logger.info(f"Streamer on ws://{config.host}:{config.streamer_port}{config.streamer_path}")

    try:
        asyncio.run(serve(config))
    except KeyboardInterrupt:
        logger.info("Relay stopped by user")


if __name__ == "__main__":
    main()
