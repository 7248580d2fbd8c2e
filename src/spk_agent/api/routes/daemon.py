"""Explicit daemon start/stop."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from ...models import DaemonResponse
from ...runtime import AgentRuntime
from ..deps import get_runtime

router = APIRouter(prefix="/daemon")


@router.post("/start", response_model=DaemonResponse)
def start_daemon(runtime: AgentRuntime = Depends(get_runtime)):
    """Initialize if needed and start the node. `running` may be false if it is slow to come up."""
    runtime.start_node()
    supervisor = runtime.supervisor
    return DaemonResponse(running=supervisor.is_running(), peer_id=supervisor.peer_id)


@router.post("/stop", response_model=DaemonResponse)
def stop_daemon(runtime: AgentRuntime = Depends(get_runtime)):
    runtime.stop_node()
    return DaemonResponse(running=False, peer_id=runtime.supervisor.peer_id)
