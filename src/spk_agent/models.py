"""Pydantic models for node state, agent settings and control-plane payloads."""

from __future__ import annotations

from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


# =============================================================================
# Node
# =============================================================================

class RepoStats(BaseModel):
    """Snapshot of repository size and pin count."""

    model_config = ConfigDict(frozen=True)

    repo_size: int = Field(default=0, ge=0, description="Repository size in bytes")
    num_pins: int = Field(default=0, ge=0, description="Number of recursive pins")


class PinInfo(BaseModel):
    """A pinned CID. The node's pin listing does not surface name or size."""

    cid: str
    name: str = ""
    size: int = 0


class StorageInfo(BaseModel):
    """Repository usage against the configured quota."""

    used_bytes: int
    max_bytes: int
    used_formatted: str
    max_formatted: str
    percentage: int


# =============================================================================
# Agent settings
# =============================================================================

class AgentConfig(BaseModel):
    """User settings and the accumulated earnings ledger, persisted as JSON."""

    model_config = ConfigDict(extra="ignore")

    hive_username: Optional[str] = None
    hive_posting_key_hash: Optional[str] = None
    auto_pin: bool = True
    max_storage_gb: int = Field(default=50, ge=1)
    auto_start: bool = False
    total_earned_hbd: float = Field(default=0.0, ge=0.0)
    challenge_count: int = Field(default=0, ge=0)
    last_challenge_at: Optional[int] = Field(
        default=None,
        description="Unix timestamp (seconds) of the last recorded challenge",
    )
    notify_on_challenge: bool = True
    notify_on_milestone: bool = True
    notify_daily_summary: bool = True


class AgentConfigView(BaseModel):
    """Public projection of AgentConfig (no key hash, no ledger)."""

    hive_username: Optional[str] = None
    auto_pin: bool
    max_storage_gb: int
    auto_start: bool
    notify_on_challenge: bool
    notify_on_milestone: bool
    notify_daily_summary: bool

    @classmethod
    def from_config(cls, config: AgentConfig) -> "AgentConfigView":
        return cls(
            hive_username=config.hive_username,
            auto_pin=config.auto_pin,
            max_storage_gb=config.max_storage_gb,
            auto_start=config.auto_start,
            notify_on_challenge=config.notify_on_challenge,
            notify_on_milestone=config.notify_on_milestone,
            notify_daily_summary=config.notify_daily_summary,
        )


class AgentConfigUpdate(BaseModel):
    """Partial update; omitted fields are left unchanged.

    An empty string clears hive_username / hive_posting_key_hash.
    """

    hive_username: Optional[str] = None
    hive_posting_key_hash: Optional[str] = None
    auto_pin: Optional[bool] = None
    max_storage_gb: Optional[int] = Field(default=None, ge=1)
    auto_start: Optional[bool] = None
    notify_on_challenge: Optional[bool] = None
    notify_on_milestone: Optional[bool] = None
    notify_daily_summary: Optional[bool] = None


class ConfigUpdateResponse(BaseModel):
    success: bool = True
    config: AgentConfigView


# =============================================================================
# Earnings
# =============================================================================

class AddEarningsRequest(BaseModel):
    amount: float = Field(validation_alias=AliasChoices("amount", "amount_hbd"))
    timestamp: Optional[int] = Field(
        default=None,
        validation_alias=AliasChoices("timestamp", "challenge_timestamp"),
    )


class AddEarningsResponse(BaseModel):
    success: bool = True
    total_earned_hbd: float
    challenge_count: int


class EarningsResponse(BaseModel):
    total_earned_hbd: float
    total_earned_formatted: str
    challenge_count: int
    last_challenge_at: Optional[int] = None
    avg_per_challenge: float


# =============================================================================
# Pins
# =============================================================================

class PinRequest(BaseModel):
    cid: str
    name: Optional[str] = None


class UnpinRequest(BaseModel):
    cid: str


class SuccessResponse(BaseModel):
    success: bool = True


# =============================================================================
# Challenge
# =============================================================================

class ChallengeRequest(BaseModel):
    """Proof-of-storage challenge. Order of block_indices affects the proof."""

    cid: str
    salt: str
    block_indices: List[int] = Field(default_factory=list)


class ChallengeResponse(BaseModel):
    success: bool
    proof: str
    latency_ms: int
    error: Optional[str] = None


# =============================================================================
# Status
# =============================================================================

class StatusResponse(BaseModel):
    running: bool
    version: str
    peer_id: Optional[str] = None
    hive_username: Optional[str] = None
    ipfs_repo_size: int
    num_pinned_files: int
    total_earned: str
    uptime: int


class DaemonResponse(BaseModel):
    success: bool = True
    running: bool
    peer_id: Optional[str] = None


class AutostartStatusResponse(BaseModel):
    enabled: bool


class AutostartToggleResponse(BaseModel):
    success: bool = True
    enabled: bool
