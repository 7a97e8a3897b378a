from enum import Enum


class PeerKind(str, Enum):
    """Which listener a connection arrived on."""

    STREAMER = "streamer"
    PLAYER = "player"


# Wire ``type`` tags. Key names must stay byte-identical to what browser
# players and the streaming engine already send.
OFFER = "offer"
ANSWER = "answer"
ICE_CANDIDATE = "iceCandidate"
PLAYER_CONNECTED = "playerConnected"
PLAYER_DISCONNECTED = "playerDisconnected"
STREAMER_CONNECTED = "streamerConnected"
STREAMER_DISCONNECTED = "streamerDisconnected"
CONFIG = "config"
ERROR = "error"
PING = "ping"
PONG = "pong"
DISCONNECT_PLAYER = "disconnectPlayer"

SIGNAL_TYPES = frozenset({OFFER, ANSWER, ICE_CANDIDATE})

# Message types each side is allowed to send to the relay.
PLAYER_INBOUND_TYPES = frozenset({OFFER, ANSWER, ICE_CANDIDATE, PING})
STREAMER_INBOUND_TYPES = frozenset({OFFER, ANSWER, ICE_CANDIDATE, PING, DISCONNECT_PLAYER})

# Websocket close codes.
CLOSE_NORMAL = 1000
CLOSE_INTERNAL_ERROR = 1011
CLOSE_STREAMER_REPLACED = 4000
CLOSE_RELAY_RESET = 4001

# A close frame carries at most 125 payload bytes, two of them the code.
MAX_CLOSE_REASON_BYTES = 123

DROP_OLDEST = "drop_oldest"
DROP_NEWEST = "drop_newest"

__all__ = [
    "PeerKind",
    "OFFER",
    "ANSWER",
    "ICE_CANDIDATE",
    "PLAYER_CONNECTED",
    "PLAYER_DISCONNECTED",
    "STREAMER_CONNECTED",
    "STREAMER_DISCONNECTED",
    "CONFIG",
    "ERROR",
    "PING",
    "PONG",
    "DISCONNECT_PLAYER",
    "SIGNAL_TYPES",
    "PLAYER_INBOUND_TYPES",
    "STREAMER_INBOUND_TYPES",
    "CLOSE_NORMAL",
    "CLOSE_INTERNAL_ERROR",
    "CLOSE_STREAMER_REPLACED",
    "CLOSE_RELAY_RESET",
    "MAX_CLOSE_REASON_BYTES",
    "DROP_OLDEST",
    "DROP_NEWEST",
]
