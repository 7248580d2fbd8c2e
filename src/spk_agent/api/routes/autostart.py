"""Run-at-login toggles. The resulting flag is mirrored into AgentConfig."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from ...errors import ConfigWriteError
from ...models import AgentConfig, AutostartStatusResponse, AutostartToggleResponse
from ...runtime import AgentRuntime
from ..deps import get_runtime

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/autostart")


def _persist_flag(runtime: AgentRuntime, enabled: bool) -> None:
    def apply(config: AgentConfig) -> None:
        config.auto_start = enabled

    try:
        runtime.store.mutate(apply)
    except ConfigWriteError as e:
        logger.warning(f"[Autostart] Could not persist auto_start={enabled}: {e}")


@router.get("/status", response_model=AutostartStatusResponse)
def get_autostart_status(runtime: AgentRuntime = Depends(get_runtime)):
    return AutostartStatusResponse(enabled=runtime.autostart.is_enabled())


@router.post("/enable", response_model=AutostartToggleResponse)
def enable_autostart(runtime: AgentRuntime = Depends(get_runtime)):
    runtime.autostart.enable()
    _persist_flag(runtime, True)
    return AutostartToggleResponse(enabled=True)


@router.post("/disable", response_model=AutostartToggleResponse)
def disable_autostart(runtime: AgentRuntime = Depends(get_runtime)):
    runtime.autostart.disable()
    _persist_flag(runtime, False)
    return AutostartToggleResponse(enabled=False)
