from __future__ import annotations

import asyncio
import itertools
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, FrozenSet, List, Mapping, Optional

from .connection import PeerConnection
from .constants import PeerKind
from .errors import RegistryInvariantViolation
from .schemas import PlayerId

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegistrySnapshot:
    """Immutable view of who was connected at one instant."""

    streamer: Optional[PeerConnection] = None
    players: Mapping[PlayerId, PeerConnection] = field(default_factory=lambda: MappingProxyType({}))

    @property
    def player_ids(self) -> FrozenSet[PlayerId]:
        return frozenset(self.players)


class PeerRegistry:
    """Tracks the single streamer slot and every connected player.

    All mutation goes through one ``asyncio.Lock`` and nothing awaits I/O
    while holding it, so concurrent connects and disconnects never observe a
    half-updated registry.
    """

    def __init__(self) -> None:
        self._players: Dict[PlayerId, PeerConnection] = {}
        self._streamer: Optional[PeerConnection] = None
        # Ids are never handed out twice for the lifetime of the registry.
        self._ids = itertools.count(1)
        self._lock = asyncio.Lock()

    # -------------------- Player management -------------------- #

    async def register_player(self, conn: PeerConnection) -> PlayerId:
        """Allocate a fresh id for *conn* and make it visible to lookups."""
        async with self._lock:
            player_id = str(next(self._ids))
            if player_id in self._players:
                raise RegistryInvariantViolation(f"player id {player_id} is already assigned")
            conn.player_id = player_id
            self._players[player_id] = conn
            return player_id

    async def remove_player(self, player_id: PlayerId) -> Optional[PeerConnection]:
        """Forget *player_id*. Returns the removed connection, or *None* if absent."""
        async with self._lock:
            return self._players.pop(player_id, None)

    async def get_player(self, player_id: PlayerId) -> Optional[PeerConnection]:
        async with self._lock:
            return self._players.get(player_id)

    async def list_player_ids(self) -> FrozenSet[PlayerId]:
        async with self._lock:
            return frozenset(self._players)

    # -------------------- Streamer slot -------------------- #

    async def set_streamer(self, conn: PeerConnection) -> Optional[PeerConnection]:
        """Put *conn* in the streamer slot and return whoever it displaced."""
        if conn.kind is not PeerKind.STREAMER:
            raise RegistryInvariantViolation(f"{conn!r} cannot occupy the streamer slot")
        async with self._lock:
            previous, self._streamer = self._streamer, conn
            return previous

    async def clear_streamer(self, conn: PeerConnection) -> bool:
        """Empty the slot if *conn* still holds it."""
        async with self._lock:
            if self._streamer is not conn:
                return False
            self._streamer = None
            return True

    async def get_streamer(self) -> Optional[PeerConnection]:
        async with self._lock:
            return self._streamer

    # -------------------- Whole-registry helpers -------------------- #

    async def snapshot(self) -> RegistrySnapshot:
        async with self._lock:
            return RegistrySnapshot(streamer=self._streamer, players=MappingProxyType(dict(self._players)))

    async def reset(self) -> List[PeerConnection]:
        """Drop every entry and return the connections that were registered."""
        async with self._lock:
            dropped = list(self._players.values())
            if self._streamer is not None:
                dropped.append(self._streamer)
            self._players.clear()
            self._streamer = None
        logger.warning(f"Registry reset, {len(dropped)} connection(s) dropped")
        return dropped


__all__ = ["PeerRegistry", "RegistrySnapshot"]
