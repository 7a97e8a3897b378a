"""Message envelope codec.

Turns raw websocket frames into envelope models and back. SDP and ICE
payloads are never inspected, only carried.
"""
from __future__ import annotations

from typing import Optional, Union

from pydantic import TypeAdapter, ValidationError

from .constants import PLAYER_INBOUND_TYPES, SIGNAL_TYPES, STREAMER_INBOUND_TYPES, PeerKind
from .errors import DecodeError
from .schemas import Envelope

_envelope_adapter: TypeAdapter[Envelope] = TypeAdapter(Envelope)

_ALLOWED_INBOUND = {
    PeerKind.PLAYER: PLAYER_INBOUND_TYPES,
    PeerKind.STREAMER: STREAMER_INBOUND_TYPES,
}


def _describe(exc: ValidationError) -> str:
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    if location:
        return f"{location}: {first['msg']}"
    return first["msg"]


def decode(raw: Union[str, bytes], origin: Optional[PeerKind] = None) -> Envelope:
    """Parse *raw* into an envelope that *origin* is allowed to send.

    With no *origin* any variant is accepted, which is how outbound relay
    messages are read back.

    Raises
    ------
    DecodeError
        If *raw* is not JSON, lacks a known ``type``, misses a field required
        by that type, or is a message *origin* may not send.
    """
    try:
        envelope = _envelope_adapter.validate_json(raw)
    except ValidationError as exc:
        raise DecodeError(f"malformed envelope ({_describe(exc)})") from exc

    if origin is None:
        return envelope

    if envelope.type not in _ALLOWED_INBOUND[origin]:
        raise DecodeError(f"{origin.value} may not send {envelope.type!r} messages")

    if (
        origin is PeerKind.STREAMER
        and envelope.type in SIGNAL_TYPES
        and envelope.player_id is None
        and not envelope.broadcast
    ):
        raise DecodeError(f"{envelope.type!r} from the streamer must name a playerId or set broadcast")

    return envelope


def encode(envelope: Envelope) -> str:
    """Serialise *envelope* to the compact camelCase JSON peers expect."""
    return envelope.model_dump_json(by_alias=True)


__all__ = ["decode", "encode"]
