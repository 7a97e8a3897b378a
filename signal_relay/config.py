"""Runtime configuration for the relay.

Values come from ``SIGNAL_RELAY_*`` environment variables so the relay can be
dropped next to an existing streaming setup without a config file.
"""
from __future__ import annotations

import json
import os
from typing import Any, Dict, Literal, Mapping, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .constants import DROP_OLDEST

ENV_PREFIX = "SIGNAL_RELAY_"


class RelayConfig(BaseModel):
    """Listener layout and per-connection limits."""

    host: str = "0.0.0.0"
    player_port: int = Field(default=80, ge=0, le=65535)
    streamer_port: int = Field(default=8888, ge=0, le=65535)
    player_path: str = "/"
    streamer_path: str = "/"

    # Only one streamer may be waiting in the accept queue at a time.
    streamer_backlog: int = Field(default=1, ge=1)

    outbox_size: int = Field(default=64, ge=1)
    overflow_policy: Literal["drop_oldest", "drop_newest"] = DROP_OLDEST

    # Forwarded untouched to every peer in its ``config`` message.
    peer_connection_options: Dict[str, Any] = Field(default_factory=dict)

    log_level: Literal["critical", "error", "warning", "info", "debug"] = "info"

    @field_validator("log_level", mode="before")
    @classmethod
    def _lowercase_level(cls, value: Any) -> Any:
        return value.lower() if isinstance(value, str) else value

    @model_validator(mode="after")
    def _check_listeners(self) -> "RelayConfig":
        for path in (self.player_path, self.streamer_path):
            if not path.startswith("/"):
                raise ValueError(f"websocket path must start with '/': {path!r}")
        if self.shared_listener and self.player_path == self.streamer_path:
            raise ValueError(
                "player and streamer share a port, so player_path and streamer_path must differ"
            )
        return self

    @property
    def shared_listener(self) -> bool:
        """*True* when players and the streamer connect to the same port."""
        return self.player_port == self.streamer_port

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "RelayConfig":
        """Build a config from ``SIGNAL_RELAY_*`` variables, falling back to defaults."""
        env = os.environ if environ is None else environ
        values: Dict[str, Any] = {}
        for name in cls.model_fields:
            raw = env.get(ENV_PREFIX + name.upper())
            if raw is None:
                continue
            if name == "peer_connection_options":
                values[name] = json.loads(raw)
            else:
                values[name] = raw
        return cls(**values)


__all__ = ["ENV_PREFIX", "RelayConfig"]
