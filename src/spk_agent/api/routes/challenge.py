"""Proof-of-storage challenge endpoint."""

from __future__ import annotations

import time

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ...errors import AgentError, BlockFetchError, NotRunningError
from ...models import ChallengeRequest, ChallengeResponse
from ...runtime import AgentRuntime
from ..deps import get_runtime

router = APIRouter()


def _failure(exc: AgentError, latency_ms: int) -> JSONResponse:
    body = ChallengeResponse(success=False, proof="", latency_ms=latency_ms, error=str(exc))
    return JSONResponse(status_code=exc.status_code, content=body.model_dump())


@router.post("/challenge", response_model=ChallengeResponse)
def handle_challenge(request: ChallengeRequest, runtime: AgentRuntime = Depends(get_runtime)):
    """
    Answer a challenge with SHA-256(salt || block_0 || ... || block_n).

    503 when the daemon is not running, 404 when any block is unavailable.
    latency_ms is always present.
    """
    start = time.monotonic()
    try:
        with runtime.lock.read():
            result = runtime.challenges.respond(request.cid, request.salt, request.block_indices)
    except (NotRunningError, BlockFetchError) as e:
        return _failure(e, e.latency_ms)
    except AgentError as e:
        return _failure(e, int((time.monotonic() - start) * 1000))

    return ChallengeResponse(success=True, proof=result.proof, latency_ms=result.latency_ms)
