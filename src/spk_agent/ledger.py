"""Earnings ledger kept in the agent settings record."""

from __future__ import annotations

import logging
import math
import time
from typing import Callable, List, Optional, Sequence

from .errors import ValidationError
from .models import AgentConfig, EarningsResponse
from .notifications import Notifier
from .store import AgentConfigStore

logger = logging.getLogger(__name__)

# Cumulative HBD breakpoints, ascending
MILESTONES: tuple[float, ...] = (1, 5, 10, 25, 50, 100, 250, 500, 1000)


def crossed_milestones(
    old_total: float,
    new_total: float,
    milestones: Sequence[float] = MILESTONES,
) -> List[float]:
    """Every breakpoint m with old_total < m <= new_total, ascending."""
    return [m for m in milestones if old_total < m <= new_total]


def format_hbd(amount: float) -> str:
    return f"{amount:.3f} HBD"


class EarningsLedger:
    """
    Records challenge rewards and raises milestone notifications.

    One addition that jumps across several breakpoints notifies once per
    breakpoint crossed, in ascending order.
    """

    def __init__(
        self,
        store: AgentConfigStore,
        notifier: Notifier,
        milestones: Sequence[float] = MILESTONES,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.notifier = notifier
        self.milestones = tuple(sorted(milestones))
        self._clock = clock

    def add_earnings(self, amount: float, timestamp: Optional[int] = None) -> AgentConfig:
        """
        Add `amount` HBD for one passed challenge.

        Args:
            amount: Reward; must be a non-negative number.
            timestamp: Challenge time (unix seconds). The later of this and
                the current time is recorded.

        Raises:
            ValidationError: Negative or non-finite amount. Nothing is changed.
            ConfigWriteError: The updated record could not be saved.
        """
        if not math.isfinite(amount) or amount < 0:
            raise ValidationError("Amount cannot be negative")

        now = int(self._clock())
        recorded_at = max(timestamp, now) if timestamp is not None else now
        old_total = 0.0

        def apply(config: AgentConfig) -> None:
            nonlocal old_total
            old_total = config.total_earned_hbd
            config.total_earned_hbd = old_total + amount
            config.challenge_count += 1
            config.last_challenge_at = recorded_at

        config = self.store.mutate(apply)
        logger.info(
            f"[Earnings] Added {amount:.3f} HBD, total: {config.total_earned_hbd:.3f} HBD"
        )

        if config.notify_on_challenge:
            self._notify("challenge", {"amount": amount, "total": config.total_earned_hbd})

        if config.notify_on_milestone:
            for milestone in crossed_milestones(old_total, config.total_earned_hbd, self.milestones):
                self._notify(
                    "milestone",
                    {"milestone": milestone, "total": config.total_earned_hbd},
                )

        return config

    def _notify(self, event: str, payload: dict) -> None:
        try:
            self.notifier.notify(event, payload)
        except Exception as e:
            logger.warning(f"[Earnings] Notification '{event}' failed: {e}")

    def summary(self) -> EarningsResponse:
        config = self.store.load()
        avg = config.total_earned_hbd / config.challenge_count if config.challenge_count else 0.0
        return EarningsResponse(
            total_earned_hbd=config.total_earned_hbd,
            total_earned_formatted=format_hbd(config.total_earned_hbd),
            challenge_count=config.challenge_count,
            last_challenge_at=config.last_challenge_at,
            avg_per_challenge=avg,
        )
