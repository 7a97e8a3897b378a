"""Signal routing between the streamer and its players.

``route`` is a pure function of the origin, the envelope and a registry
snapshot; it never touches sockets. The lifecycle manager hands the returned
deliveries to each destination's outbox.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from .connection import PeerConnection
from .constants import SIGNAL_TYPES, PeerKind
from .errors import RouteUnavailable
from .registry import RegistrySnapshot
from .schemas import Envelope, PlayerId


@dataclass(frozen=True)
class Endpoint:
    """Logical address of a peer: the streamer, or one player by id."""

    kind: PeerKind
    player_id: Optional[PlayerId] = None

    @classmethod
    def streamer(cls) -> "Endpoint":
        return cls(PeerKind.STREAMER)

    @classmethod
    def player(cls, player_id: PlayerId) -> "Endpoint":
        return cls(PeerKind.PLAYER, player_id)

    @classmethod
    def of(cls, conn: PeerConnection) -> "Endpoint":
        return cls(conn.kind, conn.player_id)

    def __str__(self) -> str:
        if self.kind is PeerKind.PLAYER:
            return f"player {self.player_id}"
        return "streamer"


@dataclass(frozen=True)
class Delivery:
    target: Endpoint
    connection: PeerConnection
    envelope: Envelope


def route(origin: Endpoint, envelope: Envelope, snapshot: RegistrySnapshot) -> List[Delivery]:
    """Return where *envelope* from *origin* must go, given *snapshot*.

    Player signals go to the streamer stamped with the sender's id (whatever
    id the client put in the payload is overwritten). Streamer signals go to
    the player they name, or to every player when ``broadcast`` is set.

    Raises
    ------
    RouteUnavailable
        If the destination is not connected. The envelope is dropped, never
        buffered.
    ValueError
        If *envelope* is a control message rather than a signal.
    """
    if envelope.type not in SIGNAL_TYPES:
        raise ValueError(f"{envelope.type!r} messages are not routed between peers")

    if origin.kind is PeerKind.PLAYER:
        if origin.player_id is None:
            raise ValueError("player origin without a player id")
        streamer = snapshot.streamer
        if streamer is None:
            raise RouteUnavailable("no streamer connected", origin, envelope)
        stamped = envelope.model_copy(update={"player_id": origin.player_id, "broadcast": None})
        return [Delivery(Endpoint.streamer(), streamer, stamped)]

    if envelope.broadcast:
        return [
            Delivery(Endpoint.player(player_id), conn, envelope)
            for player_id, conn in snapshot.players.items()
        ]

    target = snapshot.players.get(envelope.player_id)
    if target is None:
        raise RouteUnavailable(f"player {envelope.player_id} is not connected", origin, envelope)
    return [Delivery(Endpoint.player(envelope.player_id), target, envelope)]


__all__ = ["Endpoint", "Delivery", "route"]
