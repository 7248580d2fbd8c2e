"""Agent settings endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from ...models import AgentConfigUpdate, AgentConfigView, ConfigUpdateResponse
from ...runtime import AgentRuntime
from ..deps import get_runtime

router = APIRouter()


@router.get("/config", response_model=AgentConfigView)
def get_config(runtime: AgentRuntime = Depends(get_runtime)):
    return AgentConfigView.from_config(runtime.store.load())


@router.post("/config", response_model=ConfigUpdateResponse)
def update_config(update: AgentConfigUpdate, runtime: AgentRuntime = Depends(get_runtime)):
    """Partially update settings. Omitted fields are unchanged."""
    config = runtime.store.update(update)
    return ConfigUpdateResponse(config=AgentConfigView.from_config(config))
