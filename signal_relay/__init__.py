"""WebRTC signaling relay between one streamer and many players."""
from .app import create_app
from .config import RelayConfig
from .lifecycle import Relay

__all__ = ["create_app", "Relay", "RelayConfig"]
