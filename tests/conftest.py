import asyncio
import json
from typing import Any, List, Optional, Tuple

import pytest

from signal_relay.config import RelayConfig
from signal_relay.lifecycle import Relay


class FakeWebSocket:
    """In-memory stand-in for a FastAPI websocket.

    ``feed`` plays the remote peer sending a frame, ``sent`` collects what the
    relay wrote (decoded from JSON).
    """

    def __init__(self) -> None:
        self.inbox: asyncio.Queue = asyncio.Queue()
        self.sent: asyncio.Queue = asyncio.Queue()
        self.accepted = False
        self.closed_with: Optional[Tuple[int, Optional[str]]] = None
        self.gate = asyncio.Event()
        self.gate.set()
        self.fail_sends = False
        self.fail_close: Optional[Exception] = None

    async def accept(self) -> None:
        self.accepted = True

    async def receive(self) -> dict:
        return await self.inbox.get()

    async def send_text(self, data: str) -> None:
        await self.gate.wait()
        if self.fail_sends:
            raise OSError("connection reset by peer")
        if self.closed_with is not None:
            raise RuntimeError('Cannot call "send" once a close message has been sent.')
        await self.sent.put(json.loads(data))

    async def close(self, code: int = 1000, reason: Optional[str] = None) -> None:
        if self.fail_close is not None:
            raise self.fail_close
        if self.closed_with is not None:
            raise RuntimeError("websocket already closed")
        if reason is not None and len(reason.encode("utf-8")) > 123:
            # Servers refuse close frames longer than 125 bytes.
            raise ValueError("control frame too long")
        self.closed_with = (code, reason)
        # The remote side acknowledges the close handshake.
        self.inbox.put_nowait({"type": "websocket.disconnect", "code": code})

    # -------------------- test helpers -------------------- #

    def feed(self, payload: Any) -> None:
        text = payload if isinstance(payload, str) else json.dumps(payload)
        self.inbox.put_nowait({"type": "websocket.receive", "text": text})

    def hang_up(self, code: int = 1001) -> None:
        self.inbox.put_nowait({"type": "websocket.disconnect", "code": code})

    async def next_sent(self, timeout: float = 1.0) -> dict:
        return await asyncio.wait_for(self.sent.get(), timeout)

    def drain(self) -> List[dict]:
        messages = []
        while not self.sent.empty():
            messages.append(self.sent.get_nowait())
        return messages


async def settle(rounds: int = 10) -> None:
    """Let writer tasks flush whatever is queued."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def make_ws():
    return FakeWebSocket


@pytest.fixture
def flush():
    return settle


@pytest.fixture
def config():
    return RelayConfig(player_port=8080, streamer_port=8080, player_path="/", streamer_path="/streamer")


@pytest.fixture
def relay(config):
    return Relay(config)
