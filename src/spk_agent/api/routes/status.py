"""Status, health and storage usage."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from ... import __version__
from ...errors import AgentError
from ...ledger import format_hbd
from ...models import RepoStats, StatusResponse, StorageInfo
from ...runtime import AgentRuntime
from ..deps import get_runtime

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/status", response_model=StatusResponse)
def get_status(runtime: AgentRuntime = Depends(get_runtime)):
    """
    Agent and node status for the companion app.

    Repository figures fall back to zero when the stats query fails so the
    caller can still see whether the daemon is up.
    """
    config = runtime.store.load()

    with runtime.lock.read():
        supervisor = runtime.supervisor
        try:
            stats = supervisor.repo_stats()
        except AgentError as e:
            logger.warning(f"[Status] Repo stats unavailable: {e}")
            stats = RepoStats()

        return StatusResponse(
            running=supervisor.is_running(),
            version=__version__,
            peer_id=supervisor.peer_id,
            hive_username=config.hive_username,
            ipfs_repo_size=stats.repo_size,
            num_pinned_files=stats.num_pins,
            total_earned=format_hbd(config.total_earned_hbd),
            uptime=runtime.uptime_seconds,
        )


@router.get("/storage", response_model=StorageInfo)
def get_storage(runtime: AgentRuntime = Depends(get_runtime)):
    """Repository usage against the configured quota."""
    with runtime.lock.read():
        return runtime.supervisor.storage_info()


@router.get("/health")
def health():
    return {"status": "healthy"}
