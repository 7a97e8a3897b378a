from __future__ import annotations

from fastapi import APIRouter, Depends

from ..deps import get_relay
from ..lifecycle import Relay
from ..schemas import RelayStatus

router = APIRouter(prefix="", tags=["status"])


@router.get("/status", response_model=RelayStatus)
async def get_status(relay: Relay = Depends(get_relay)):
    return await relay.status()
