"""FastAPI application for the local control plane."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from ..config import Settings, get_settings
from ..errors import AgentError, error_payload
from ..runtime import AgentRuntime
from .routes import router

logger = logging.getLogger(__name__)


# =============================================================================
# Lifespan Management
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Bring the node up on startup and tear it down on shutdown."""
    runtime: AgentRuntime = app.state.runtime

    if runtime.manage_node:
        logger.info("Starting storage node...")
        try:
            ready = await asyncio.to_thread(runtime.start_node)
            logger.info(f"Storage node started (ready: {ready})")
        except AgentError as e:
            # Keep serving so the companion app can report the failure
            logger.exception(f"Storage node failed to start: {e}")

    yield

    if runtime.manage_node:
        logger.info("Stopping storage node...")
        await asyncio.to_thread(runtime.shutdown)
        logger.info("Storage node stopped")


# =============================================================================
# Error handlers
# =============================================================================

async def agent_error_handler(request: Request, exc: AgentError):
    """Render any AgentError as {success: false, error}."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(status_code=exc.status_code, content=error_payload(exc))


async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg", "")}
        for error in exc.errors()
    ]
    message = "; ".join(
        f"{'.'.join(str(part) for part in e['loc'])}: {e['msg']}" for e in errors
    )
    content = {"success": False, "error": message or "Invalid request", "detail": errors}
    if request.url.path.endswith("/challenge"):
        # Challenge responses always carry a proof and a latency
        content.update(proof="", latency_ms=0)
    return JSONResponse(status_code=422, content=content)


# =============================================================================
# FastAPI Application
# =============================================================================

def create_app(
    runtime: Optional[AgentRuntime] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """
    Build the control-plane app.

    Args:
        runtime: Pre-built runtime (tests inject one). Built from settings when omitted.
        settings: Settings used to build the runtime. Defaults to get_settings().
    """
    if runtime is None:
        runtime = AgentRuntime.from_settings(settings or get_settings())

    app = FastAPI(
        title="SPK Desktop Agent",
        description="Local control plane for the SPK storage node",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.runtime = runtime

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(AgentError, agent_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    app.include_router(router)
    app.include_router(router, prefix="/api", include_in_schema=False)

    return app


__all__ = ["create_app", "lifespan"]
