"""Pin management proxied to the node."""

from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends

from ...models import PinInfo, PinRequest, SuccessResponse, UnpinRequest
from ...runtime import AgentRuntime
from ..deps import get_runtime

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/pin", response_model=SuccessResponse)
def pin_content(request: PinRequest, runtime: AgentRuntime = Depends(get_runtime)):
    with runtime.lock.write():
        runtime.supervisor.pin(request.cid)
    if request.name:
        logger.debug(f"Pinned {request.cid} as '{request.name}'")
    return SuccessResponse()


@router.post("/unpin", response_model=SuccessResponse)
def unpin_content(request: UnpinRequest, runtime: AgentRuntime = Depends(get_runtime)):
    with runtime.lock.write():
        runtime.supervisor.unpin(request.cid)
    return SuccessResponse()


@router.get("/pins", response_model=List[PinInfo])
def get_pins(runtime: AgentRuntime = Depends(get_runtime)):
    with runtime.lock.read():
        return runtime.supervisor.list_pins()
