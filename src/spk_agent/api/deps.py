"""FastAPI dependencies."""

from __future__ import annotations

from fastapi import Request

from ..runtime import AgentRuntime


def get_runtime(request: Request) -> AgentRuntime:
    """The AgentRuntime attached to the app by create_app()."""
    return request.app.state.runtime
