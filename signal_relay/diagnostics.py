"""Non-fatal conditions the relay reports instead of raising.

Dropped signals, rejected payloads and outbox overflows are logged and
counted here so ``GET /status`` can show what the relay had to discard.
"""
from __future__ import annotations

import logging
from collections import Counter, deque
from datetime import datetime, timezone
from typing import Deque

from .schemas import DiagnosticEvent, DiagnosticsSummary

logger = logging.getLogger(__name__)

DECODE_ERROR = "decode_error"
ROUTE_UNAVAILABLE = "route_unavailable"
OUTBOX_OVERFLOW = "outbox_overflow"
TRANSPORT_ERROR = "transport_error"


class Diagnostics:
    """Counts every diagnostic kind and keeps the most recent events."""

    def __init__(self, history: int = 50):
        self.counts: Counter = Counter()
        self.recent: Deque[DiagnosticEvent] = deque(maxlen=history)

    def record(self, kind: str, detail: str) -> None:
        self.counts[kind] += 1
        self.recent.append(DiagnosticEvent(kind=kind, detail=detail, at=datetime.now(timezone.utc)))
        logger.warning(f"[{kind}] {detail}")

    def summary(self) -> DiagnosticsSummary:
        return DiagnosticsSummary(counts=dict(self.counts), recent=list(self.recent))


__all__ = [
    "Diagnostics",
    "DECODE_ERROR",
    "ROUTE_UNAVAILABLE",
    "OUTBOX_OVERFLOW",
    "TRANSPORT_ERROR",
]
