"""Connection lifecycle: admitting peers, reading their messages, tearing them down.

Membership changes (a player joining or leaving, the streamer being replaced)
are serialised by one lock together with the notifications they trigger, so
the streamer never sees ``playerConnected`` twice for the same player or a
``playerDisconnected`` for a player it was never told about. Signal routing
does not take that lock; it works from a registry snapshot.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Optional, Union

from fastapi import WebSocket, WebSocketDisconnect

from .codec import decode
from .config import RelayConfig
from .connection import PeerConnection
from .constants import (
    CLOSE_INTERNAL_ERROR,
    CLOSE_NORMAL,
    CLOSE_RELAY_RESET,
    CLOSE_STREAMER_REPLACED,
    PeerKind,
)
from .diagnostics import DECODE_ERROR, ROUTE_UNAVAILABLE, TRANSPORT_ERROR, Diagnostics
from .errors import DecodeError, RegistryInvariantViolation, RouteUnavailable
from .registry import PeerRegistry
from .routing import Endpoint, route
from .schemas import (
    DisconnectPlayer,
    ErrorMessage,
    PeerConfig,
    Ping,
    PlayerConnected,
    PlayerDisconnected,
    PlayerId,
    Pong,
    RelayStatus,
    StreamerConnected,
    StreamerDisconnected,
)

logger = logging.getLogger(__name__)


class Relay:
    """Owns every peer connection from handshake to close."""

    def __init__(
        self,
        config: Optional[RelayConfig] = None,
        registry: Optional[PeerRegistry] = None,
        diagnostics: Optional[Diagnostics] = None,
    ):
        self.config = config or RelayConfig()
        self.registry = registry or PeerRegistry()
        self.diagnostics = diagnostics or Diagnostics()
        self._membership = asyncio.Lock()

    def _new_connection(self, ws: WebSocket, kind: PeerKind) -> PeerConnection:
        return PeerConnection(
            ws,
            kind,
            outbox_size=self.config.outbox_size,
            overflow_policy=self.config.overflow_policy,
            diagnostics=self.diagnostics,
        )

    def _peer_config(self, player_id: Optional[PlayerId] = None) -> PeerConfig:
        return PeerConfig(
            player_id=player_id,
            peer_connection_options=dict(self.config.peer_connection_options),
        )

    # ---------------------------------------------------------------------
    # Connecting -> Open
    # ---------------------------------------------------------------------

    async def connect_player(self, ws: WebSocket) -> PeerConnection:
        """Accept *ws* as a player, assign its id and tell the streamer."""
        conn = self._new_connection(ws, PeerKind.PLAYER)
        await self._admit_player(conn)
        return conn

    async def connect_streamer(self, ws: WebSocket) -> PeerConnection:
        """Accept *ws* as the streamer, replacing any streamer already connected."""
        conn = self._new_connection(ws, PeerKind.STREAMER)
        await self._admit_streamer(conn)
        return conn

    async def _admit_player(self, conn: PeerConnection) -> None:
        await conn.open()
        async with self._membership:
            player_id = await self.registry.register_player(conn)
            # The id must reach the player before anything routed to it.
            conn.send(self._peer_config(player_id))
            streamer = await self.registry.get_streamer()
            if streamer is not None:
                streamer.send(PlayerConnected(player_id=player_id))
        logger.info(f"Player {player_id} connected")

    async def _admit_streamer(self, conn: PeerConnection) -> None:
        await conn.open()
        async with self._membership:
            previous = await self.registry.set_streamer(conn)
            conn.send(self._peer_config())
            snapshot = await self.registry.snapshot()
            for player_id in snapshot.players:
                conn.send(PlayerConnected(player_id=player_id))
            for player in snapshot.players.values():
                player.send(StreamerConnected())
        if previous is not None:
            logger.warning("New streamer connected; closing the previous one")
            await previous.close(CLOSE_STREAMER_REPLACED, "replaced by a new streamer")
        logger.info(f"Streamer connected ({len(snapshot.players)} player(s) waiting)")

    # ---------------------------------------------------------------------
    # Open -> Closed
    # ---------------------------------------------------------------------

    async def disconnect(
        self,
        conn: PeerConnection,
        code: int = CLOSE_NORMAL,
        reason: Optional[str] = None,
    ) -> None:
        """Release *conn*'s registry entry, notify the other side and close it.

        Idempotent: a second call for the same connection neither fails nor
        sends a second notification.
        """
        async with self._membership:
            if conn.kind is PeerKind.PLAYER:
                removed = None
                if conn.player_id is not None:
                    removed = await self.registry.remove_player(conn.player_id)
                if removed is not None:
                    logger.info(f"Player {conn.player_id} disconnected")
                    streamer = await self.registry.get_streamer()
                    if streamer is not None:
                        streamer.send(PlayerDisconnected(player_id=conn.player_id))
            elif await self.registry.clear_streamer(conn):
                logger.info("Streamer disconnected")
                snapshot = await self.registry.snapshot()
                for player in snapshot.players.values():
                    player.send(StreamerDisconnected())
        await conn.close(code, reason)

    async def reset(self) -> None:
        """Close every connection and start over with an empty registry."""
        for conn in await self.registry.reset():
            await conn.close(CLOSE_RELAY_RESET, "relay reset")

    # ---------------------------------------------------------------------
    # Message handling
    # ---------------------------------------------------------------------

    async def handle_message(self, conn: PeerConnection, raw: Union[str, bytes]) -> None:
        """Decode one frame from *conn* and act on it."""
        if not conn.is_open:
            logger.debug(f"{conn!r}: frame read after close ignored")
            return
        origin = Endpoint.of(conn)
        try:
            envelope = decode(raw, conn.kind)
        except DecodeError as exc:
            self.diagnostics.record(DECODE_ERROR, f"{origin}: {exc}")
            conn.send(ErrorMessage(message=str(exc)))
            return

        if isinstance(envelope, Ping):
            conn.send(Pong(time=envelope.time))
            return

        snapshot = await self.registry.snapshot()
        # A replaced streamer may still have frames in flight until its close lands.
        if conn.kind is PeerKind.STREAMER and snapshot.streamer is not conn:
            self.diagnostics.record(ROUTE_UNAVAILABLE, f"{origin}: {envelope.type} from a replaced streamer dropped")
            return
        if isinstance(envelope, DisconnectPlayer):
            await self._disconnect_player(envelope)
            return

        try:
            deliveries = route(origin, envelope, snapshot)
        except RouteUnavailable as exc:
            self._report_unavailable(conn, exc)
            return

        for delivery in deliveries:
            if not delivery.connection.is_open:
                self._report_unavailable(
                    conn, RouteUnavailable(f"{delivery.target} is closing", origin, delivery.envelope)
                )
                continue
            delivery.connection.send(delivery.envelope)

    def _report_unavailable(self, conn: PeerConnection, exc: RouteUnavailable) -> None:
        kind = exc.envelope.type if exc.envelope is not None else "message"
        self.diagnostics.record(ROUTE_UNAVAILABLE, f"{exc.origin}: {kind} dropped, {exc.reason}")
        if conn.kind is PeerKind.PLAYER:
            conn.send(ErrorMessage(message=exc.reason))

    async def _disconnect_player(self, request: DisconnectPlayer) -> None:
        target = await self.registry.get_player(request.player_id)
        if target is None:
            self.diagnostics.record(
                ROUTE_UNAVAILABLE, f"streamer: disconnectPlayer for unknown player {request.player_id}"
            )
            return
        logger.info(f"Streamer asked to disconnect player {request.player_id}: {request.reason}")
        try:
            await self.disconnect(target, CLOSE_INTERNAL_ERROR, request.reason)
        except Exception as exc:
            # The player is already out of the registry; only its socket misbehaved.
            logger.exception(f"Closing {target!r} for the streamer failed")
            self.diagnostics.record(TRANSPORT_ERROR, f"close of {target!r} failed: {exc!r}")

    # ---------------------------------------------------------------------
    # Per-connection task
    # ---------------------------------------------------------------------

    async def serve(self, conn: PeerConnection) -> None:
        """Handle frames from *conn* in arrival order until it goes away."""
        while conn.is_open:
            try:
                raw = await conn.receive()
            except WebSocketDisconnect as exc:
                logger.info(f"{conn!r} closed by peer (code {exc.code})")
                return
            except (RuntimeError, OSError) as exc:
                self.diagnostics.record(TRANSPORT_ERROR, f"receive from {conn!r} failed: {exc}")
                return
            await self.handle_message(conn, raw)

    async def run_player(self, ws: WebSocket) -> None:
        await self._run(self._new_connection(ws, PeerKind.PLAYER))

    async def run_streamer(self, ws: WebSocket) -> None:
        await self._run(self._new_connection(ws, PeerKind.STREAMER))

    async def _run(self, conn: PeerConnection) -> None:
        try:
            if conn.kind is PeerKind.PLAYER:
                await self._admit_player(conn)
            else:
                await self._admit_streamer(conn)
            await self.serve(conn)
        except RegistryInvariantViolation:
            logger.critical("Peer registry invariant violated; resetting the relay", exc_info=True)
            await self.reset()
            raise
        finally:
            await self.disconnect(conn)

    # ---------------------------------------------------------------------
    # Introspection
    # ---------------------------------------------------------------------

    async def status(self) -> RelayStatus:
        snapshot = await self.registry.snapshot()
        return RelayStatus(
            streamer_connected=snapshot.streamer is not None,
            player_ids=sorted(snapshot.player_ids, key=int),
            diagnostics=self.diagnostics.summary(),
        )


__all__ = ["Relay"]
