"""Tests for the escalation policy."""

import pytest

from clientops.scheduler.escalation import (
    INVOICE_REMINDER_TIERS,
    NO_ESCALATION,
    approval_thresholds,
    is_stalled,
    next_approval_reminder,
    required_priority,
    series_from_tiers,
    should_escalate,
    tier_for,
    tier_rank,
)


class TestTierFor:
    def test_below_first_threshold(self):
        assert tier_for(-10, INVOICE_REMINDER_TIERS) == NO_ESCALATION

    @pytest.mark.parametrize(
        "elapsed, label",
        [(-3, "upcoming"), (-1, "upcoming"), (0, "due"), (3, "overdue_3"), (13, "overdue_7"), (45, "overdue_30")],
    )
    def test_invoice_tiers(self, elapsed, label):
        assert tier_for(elapsed, INVOICE_REMINDER_TIERS) == label

    def test_monotonic(self):
        ranks = [
            tier_rank(tier_for(days, INVOICE_REMINDER_TIERS), INVOICE_REMINDER_TIERS)
            for days in range(-10, 60)
        ]
        assert ranks == sorted(ranks)

    def test_deterministic(self):
        assert tier_for(7, INVOICE_REMINDER_TIERS) == tier_for(7, INVOICE_REMINDER_TIERS)

    def test_unsorted_thresholds_rejected(self):
        with pytest.raises(ValueError):
            tier_for(5, [(7, "b"), (3, "a")])

    def test_empty_thresholds(self):
        assert tier_for(100, []) == NO_ESCALATION

    def test_series_from_tiers(self):
        assert series_from_tiers(INVOICE_REMINDER_TIERS)[0] == ("upcoming", -3)


class TestTaskPriority:
    @pytest.mark.parametrize(
        "days_until_due, priority",
        [(10, "low"), (7, "medium"), (4, "medium"), (3, "high"), (2, "high"), (1, "urgent"), (0, "urgent"), (-5, "urgent")],
    )
    def test_required_priority(self, days_until_due, priority):
        assert required_priority(days_until_due) == priority

    def test_only_escalates_upward(self):
        assert should_escalate("low", "high")
        assert not should_escalate("urgent", "medium")
        assert not should_escalate("high", "high")
        assert should_escalate(None, "medium")


class TestApprovalPolicy:
    def test_thresholds_from_intervals(self):
        assert approval_thresholds([1, 3, 7]) == ((1, "reminder_1"), (3, "reminder_2"), (7, "reminder_3"))

    def test_only_next_interval_is_due(self):
        # 8 days pending, nothing sent yet: one reminder, the first
        assert next_approval_reminder(8, 0, [1, 3, 7]) == "reminder_1"

    def test_next_after_some_sent(self):
        assert next_approval_reminder(4, 1, [1, 3, 7], days_since_last=2) == "reminder_2"

    def test_interval_not_reached(self):
        assert next_approval_reminder(2, 1, [1, 3, 7], days_since_last=1) is None

    def test_minimum_one_day_between_reminders(self):
        assert next_approval_reminder(8, 1, [1, 3, 7], days_since_last=0) is None

    def test_all_intervals_used(self):
        assert next_approval_reminder(30, 3, [1, 3, 7], days_since_last=10) is None

    def test_stall_threshold(self):
        assert is_stalled(14, 14)
        assert not is_stalled(13, 14)
