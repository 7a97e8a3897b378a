"""One websocket peer and its outbound queue.

Routing never awaits a peer's socket directly: envelopes are pushed onto a
bounded outbox that a per-connection writer task drains, so a slow player
cannot stall signaling for everyone else.
"""
from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Optional, Union

from fastapi import WebSocket, WebSocketDisconnect

from .codec import encode
from .constants import CLOSE_INTERNAL_ERROR, CLOSE_NORMAL, DROP_OLDEST, MAX_CLOSE_REASON_BYTES, PeerKind
from .diagnostics import OUTBOX_OVERFLOW, TRANSPORT_ERROR, Diagnostics
from .errors import TransportError
from .schemas import Envelope, PlayerId

logger = logging.getLogger(__name__)


def clip_close_reason(reason: Optional[str]) -> Optional[str]:
    """Shorten *reason* so it fits in a close frame, cutting on a character boundary."""
    if reason is None:
        return None
    encoded = reason.encode("utf-8")
    if len(encoded) <= MAX_CLOSE_REASON_BYTES:
        return reason
    return encoded[:MAX_CLOSE_REASON_BYTES].decode("utf-8", errors="ignore")


class ConnectionState(str, Enum):
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


class PeerConnection:
    """A streamer or player websocket owned by the relay for its connected lifetime."""

    def __init__(
        self,
        ws: WebSocket,
        kind: PeerKind,
        *,
        outbox_size: int = 64,
        overflow_policy: str = DROP_OLDEST,
        diagnostics: Optional[Diagnostics] = None,
    ):
        self.ws = ws
        self.kind = kind
        self.player_id: Optional[PlayerId] = None
        self.state = ConnectionState.CONNECTING
        self.overflow_policy = overflow_policy
        self.diagnostics = diagnostics or Diagnostics()
        self._outbox: asyncio.Queue[str] = asyncio.Queue(maxsize=outbox_size)
        self._writer: Optional[asyncio.Task] = None

    def __repr__(self) -> str:
        if self.kind is PeerKind.PLAYER:
            return f"<player {self.player_id or '?'} {self.state.value}>"
        return f"<streamer {id(self):#x} {self.state.value}>"

    @property
    def is_open(self) -> bool:
        return self.state is ConnectionState.OPEN

    # ---------------------------------------------------------------------
    # Transport handshake / teardown
    # ---------------------------------------------------------------------

    async def open(self) -> None:
        """Complete the websocket handshake and start draining the outbox."""
        await self.ws.accept()
        self.state = ConnectionState.OPEN
        self._writer = asyncio.create_task(self._drain())

    async def close(self, code: int = CLOSE_NORMAL, reason: Optional[str] = None) -> None:
        """Move to ``closed`` and close the socket. Safe to call repeatedly."""
        if self.state is ConnectionState.CLOSED:
            return
        self.state = ConnectionState.CLOSED
        writer = self._writer
        if writer is not None and writer is not asyncio.current_task():
            writer.cancel()
            await asyncio.wait({writer})
        await self._close_transport(code, clip_close_reason(reason))

    async def _close_transport(self, code: int, reason: Optional[str]) -> None:
        try:
            await self.ws.close(code=code, reason=reason)
        except (RuntimeError, OSError, WebSocketDisconnect) as exc:
            # Peer already went away; nothing left to close.
            logger.debug(f"{self!r}: close ignored ({exc})")

    # -------------------- Inbound -------------------- #

    async def receive(self) -> Union[str, bytes]:
        """Wait for the next frame from the peer.

        Raises ``WebSocketDisconnect`` once the peer has gone.
        """
        message: Any = await self.ws.receive()
        if message["type"] == "websocket.disconnect":
            raise WebSocketDisconnect(code=message.get("code", CLOSE_NORMAL), reason=message.get("reason"))
        text = message.get("text")
        if text is not None:
            return text
        return message.get("bytes") or b""

    # -------------------- Outbound -------------------- #

    def send(self, envelope: Envelope) -> bool:
        """Queue *envelope* for delivery without blocking.

        Returns *False* if the connection is not open or the envelope was
        dropped by the overflow policy.
        """
        if self.state is not ConnectionState.OPEN:
            return False
        payload = encode(envelope)
        try:
            self._outbox.put_nowait(payload)
        except asyncio.QueueFull:
            if self.overflow_policy != DROP_OLDEST:
                self.diagnostics.record(OUTBOX_OVERFLOW, f"{self!r}: outbox full, dropped {envelope.type!r}")
                return False
            discarded = self._outbox.get_nowait()
            self._outbox.put_nowait(payload)
            self.diagnostics.record(OUTBOX_OVERFLOW, f"{self!r}: outbox full, dropped oldest ({len(discarded)} bytes)")
        return True

    async def _write(self, payload: str) -> None:
        try:
            await self.ws.send_text(payload)
        except (RuntimeError, OSError, WebSocketDisconnect) as exc:
            raise TransportError(f"send to {self!r} failed: {exc}") from exc

    async def _drain(self) -> None:
        while True:
            payload = await self._outbox.get()
            try:
                await self._write(payload)
            except TransportError as exc:
                self.diagnostics.record(TRANSPORT_ERROR, str(exc))
                await self.close(CLOSE_INTERNAL_ERROR, "send failed")
                return


__all__ = ["ConnectionState", "PeerConnection", "clip_close_reason"]
