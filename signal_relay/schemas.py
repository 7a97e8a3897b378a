"""Pydantic data schemas used across the relay.

Every message that crosses a websocket is one of the envelope variants below,
discriminated by its ``type`` key. Field names are snake_case in Python and
camelCase on the wire (``playerId``, ``peerConnectionOptions``) so existing
browser players and streaming engines keep working unchanged.
"""
from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, SerializerFunctionWrapHandler, model_serializer

PlayerId = str

# -----------------------------
# Envelope base classes
# -----------------------------

class _Envelope(BaseModel):
    # Engines send numeric player ids; keep them as strings internally.
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    type: str

    @model_serializer(mode="wrap")
    def _omit_empty_fields(self, handler: SerializerFunctionWrapHandler) -> Dict[str, Any]:
        """Leave out declared fields that are ``None``; extra keys go out as received."""
        data = handler(self)
        for name, field in type(self).model_fields.items():
            if getattr(self, name) is None:
                data.pop(field.alias or name, None)
                data.pop(name, None)
        return data


class _Signal(_Envelope):
    """Offer, answer or ICE candidate: the messages that get routed between peers.

    Unknown keys are kept and forwarded verbatim since peers may attach their
    own metadata next to the SDP / candidate.
    """

    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True, extra="allow")

    player_id: Optional[PlayerId] = Field(default=None, alias="playerId")
    # Streamer-only: deliver to every connected player instead of one.
    broadcast: Optional[bool] = None


# -----------------------------
# Routed signals
# -----------------------------

class Offer(_Signal):
    type: Literal["offer"] = "offer"
    sdp: str


class Answer(_Signal):
    type: Literal["answer"] = "answer"
    sdp: str


class IceCandidate(_Signal):
    type: Literal["iceCandidate"] = "iceCandidate"
    candidate: Union[Dict[str, Any], str]


# -----------------------------
# Relay notifications & control
# -----------------------------

class PlayerConnected(_Envelope):
    type: Literal["playerConnected"] = "playerConnected"
    player_id: PlayerId = Field(alias="playerId")


class PlayerDisconnected(_Envelope):
    type: Literal["playerDisconnected"] = "playerDisconnected"
    player_id: PlayerId = Field(alias="playerId")


class StreamerConnected(_Envelope):
    """Sent to players whenever a (new) streamer takes the slot; players renegotiate."""

    type: Literal["streamerConnected"] = "streamerConnected"


class StreamerDisconnected(_Envelope):
    type: Literal["streamerDisconnected"] = "streamerDisconnected"


class PeerConfig(_Envelope):
    """First message on every connection. Players learn their id from it."""

    type: Literal["config"] = "config"
    player_id: Optional[PlayerId] = Field(default=None, alias="playerId")
    peer_connection_options: Optional[Dict[str, Any]] = Field(default=None, alias="peerConnectionOptions")


class ErrorMessage(_Envelope):
    type: Literal["error"] = "error"
    message: str


class Ping(_Envelope):
    type: Literal["ping"] = "ping"
    time: Optional[Union[int, float]] = None


class Pong(_Envelope):
    type: Literal["pong"] = "pong"
    time: Optional[Union[int, float]] = None


class DisconnectPlayer(_Envelope):
    """Streamer asks the relay to drop one player (e.g. it failed to negotiate)."""

    type: Literal["disconnectPlayer"] = "disconnectPlayer"
    player_id: PlayerId = Field(alias="playerId")
    reason: Optional[str] = None


Envelope = Annotated[
    Union[
        Offer,
        Answer,
        IceCandidate,
        PlayerConnected,
        PlayerDisconnected,
        StreamerConnected,
        StreamerDisconnected,
        PeerConfig,
        ErrorMessage,
        Ping,
        Pong,
        DisconnectPlayer,
    ],
    Field(discriminator="type"),
]

# -----------------------------
# HTTP status models
# -----------------------------

class DiagnosticEvent(BaseModel):
    kind: str
    detail: str
    at: datetime


class DiagnosticsSummary(BaseModel):
    counts: Dict[str, int] = {}
    recent: List[DiagnosticEvent] = []


class RelayStatus(BaseModel):
    """Snapshot returned by ``GET /status``."""

    streamer_connected: bool
    player_ids: List[PlayerId]
    diagnostics: DiagnosticsSummary


__all__ = [
    "PlayerId",
    # signals
    "Offer",
    "Answer",
    "IceCandidate",
    # notifications / control
    "PlayerConnected",
    "PlayerDisconnected",
    "StreamerConnected",
    "StreamerDisconnected",
    "PeerConfig",
    "ErrorMessage",
    "Ping",
    "Pong",
    "DisconnectPlayer",
    "Envelope",
    # status
    "DiagnosticEvent",
    "DiagnosticsSummary",
    "RelayStatus",
]
