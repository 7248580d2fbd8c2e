"""Unit tests for the earnings ledger and milestone notifications."""

import math

import pytest

from spk_agent.errors import ValidationError
from spk_agent.ledger import MILESTONES, EarningsLedger, crossed_milestones, format_hbd


class FailingNotifier:
    def notify(self, event, payload):
        raise RuntimeError("display unavailable")


@pytest.fixture
def ledger(store, notifier):
    return EarningsLedger(store, notifier, clock=lambda: 1_700_000_000)


class TestCrossedMilestones:
    """Test breakpoint detection."""

    def test_single_crossing(self):
        assert crossed_milestones(0.9, 1.2) == [1]

    def test_multiple_crossings_ascending(self):
        """One jump across several breakpoints reports each one."""
        assert crossed_milestones(0.0, 30.0) == [1, 5, 10, 25]

    def test_landing_exactly_on_breakpoint(self):
        """Reaching a breakpoint exactly counts as crossing it."""
        assert crossed_milestones(4.0, 5.0) == [5]

    def test_starting_on_breakpoint_does_not_recross(self):
        assert crossed_milestones(5.0, 6.0) == []

    def test_no_crossing(self):
        assert crossed_milestones(1.1, 4.9) == []

    def test_default_milestones(self):
        assert MILESTONES == (1, 5, 10, 25, 50, 100, 250, 500, 1000)


class TestAddEarnings:
    """Test recording earnings."""

    def test_accumulates_total_and_count(self, ledger, store):
        ledger.add_earnings(0.5)
        ledger.add_earnings(0.25)

        config = store.load()
        assert config.total_earned_hbd == pytest.approx(0.75)
        assert config.challenge_count == 2
        assert config.last_challenge_at == 1_700_000_000

    def test_later_timestamp_wins(self, ledger):
        """A challenge timestamp in the future of the clock is recorded."""
        config = ledger.add_earnings(0.1, timestamp=1_800_000_000)
        assert config.last_challenge_at == 1_800_000_000

    def test_earlier_timestamp_uses_now(self, ledger):
        config = ledger.add_earnings(0.1, timestamp=1_000)
        assert config.last_challenge_at == 1_700_000_000

    def test_zero_amount_counts_challenge(self, ledger):
        config = ledger.add_earnings(0.0)
        assert config.challenge_count == 1
        assert config.total_earned_hbd == 0.0

    @pytest.mark.parametrize("amount", [-0.001, -5.0, math.nan, math.inf])
    def test_invalid_amount_rejected(self, ledger, store, notifier, amount):
        """Negative or non-finite amounts change nothing."""
        with pytest.raises(ValidationError) as exc_info:
            ledger.add_earnings(amount)

        assert exc_info.value.status_code == 400
        assert store.load().challenge_count == 0
        assert not store.path.exists()
        assert notifier.events == []


class TestNotifications:
    """Test challenge and milestone notifications."""

    def test_challenge_notification(self, ledger, notifier):
        ledger.add_earnings(0.2)
        assert notifier.of("challenge") == [{"amount": 0.2, "total": pytest.approx(0.2)}]

    def test_one_notification_per_crossed_milestone(self, ledger, notifier):
        """Jumping from 0.5 to 12 crosses 1, 5 and 10."""
        ledger.add_earnings(0.5)
        ledger.add_earnings(11.5)

        assert [p["milestone"] for p in notifier.of("milestone")] == [1, 5, 10]

    def test_no_milestone_without_crossing(self, ledger, notifier):
        ledger.add_earnings(0.3)
        ledger.add_earnings(0.3)
        assert notifier.of("milestone") == []

    def test_milestones_respect_preference(self, ledger, store, notifier):
        def disable(config):
            config.notify_on_milestone = False
            config.notify_on_challenge = False

        store.mutate(disable)
        ledger.add_earnings(100)

        assert notifier.events == []

    def test_notifier_failure_does_not_fail_addition(self, store):
        """Earnings are recorded even when notifications break."""
        ledger = EarningsLedger(store, FailingNotifier())

        config = ledger.add_earnings(2.0)

        assert config.total_earned_hbd == 2.0
        assert store.load().challenge_count == 1


class TestSummary:
    """Test the earnings summary."""

    def test_empty_summary(self, ledger):
        summary = ledger.summary()
        assert summary.total_earned_hbd == 0.0
        assert summary.total_earned_formatted == "0.000 HBD"
        assert summary.avg_per_challenge == 0.0
        assert summary.last_challenge_at is None

    def test_average(self, ledger):
        ledger.add_earnings(1.0)
        ledger.add_earnings(2.0)

        summary = ledger.summary()
        assert summary.avg_per_challenge == pytest.approx(1.5)
        assert summary.total_earned_formatted == "3.000 HBD"

    def test_format_hbd(self):
        assert format_hbd(1.23456) == "1.235 HBD"
