"""
Escalation policy

Pure mapping from elapsed days to a tier label. The same function drives
invoice reminder tiers, task priority escalation and approval reminders, so
every pass re-evaluates to the same answer for the same inputs.
"""

from typing import Optional, Sequence

NO_ESCALATION = "none"

Threshold = tuple[int, str]

# Days relative to the invoice due date (negative = before due)
INVOICE_REMINDER_TIERS: tuple[Threshold, ...] = (
    (-3, "upcoming"),
    (0, "due"),
    (3, "overdue_3"),
    (7, "overdue_7"),
    (14, "overdue_14"),
    (30, "overdue_30"),
)

CONTRACT_REMINDER_TIERS: tuple[Threshold, ...] = (
    (0, "initial"),
    (3, "followup_3"),
    (7, "followup_7"),
    (14, "final_14"),
)

# Priority levels in ascending order of urgency
PRIORITY_LEVELS = ("low", "medium", "high", "urgent")
PRIORITY_RANK = {level: rank for rank, level in enumerate(PRIORITY_LEVELS, start=1)}

# Keyed on negated days-until-due: ≤ 7 days medium, ≤ 3 high, ≤ 1 (or overdue) urgent
PRIORITY_THRESHOLDS: tuple[Threshold, ...] = (
    (-7, "medium"),
    (-3, "high"),
    (-1, "urgent"),
)


def _validate(thresholds: Sequence[Threshold]) -> None:
    previous = None
    for min_days, _label in thresholds:
        if previous is not None and min_days <= previous:
            raise ValueError(f"Thresholds must be strictly ascending: {list(thresholds)}")
        previous = min_days


def tier_for(elapsed_days: int, thresholds: Sequence[Threshold]) -> str:
    """
    Return the label of the last threshold whose min_days <= elapsed_days.

    Returns NO_ESCALATION when elapsed_days is below the first threshold.
    Thresholds must be sorted ascending by min_days.
    """
    _validate(thresholds)

    label = NO_ESCALATION
    for min_days, candidate in thresholds:
        if min_days > elapsed_days:
            break
        label = candidate
    return label


def tier_rank(label: str, thresholds: Sequence[Threshold]) -> int:
    """Position of a label in the threshold list; 0 for NO_ESCALATION"""
    if label == NO_ESCALATION:
        return 0
    for index, (_min_days, candidate) in enumerate(thresholds, start=1):
        if candidate == label:
            return index
    raise ValueError(f"Unknown tier label: {label}")


def series_from_tiers(thresholds: Sequence[Threshold]) -> list[tuple[str, int]]:
    """Turn a tier list into a (kind, offset_days) reminder series"""
    _validate(thresholds)
    return [(label, min_days) for min_days, label in thresholds]


# ============================================
# Task priority
# ============================================


def required_priority(days_until_due: int) -> str:
    """Minimum priority a task needs given how close its due date is"""
    label = tier_for(-days_until_due, PRIORITY_THRESHOLDS)
    return "low" if label == NO_ESCALATION else label


def should_escalate(current_priority: Optional[str], target_priority: str) -> bool:
    """Only escalates up, never downgrades"""
    current_rank = PRIORITY_RANK.get(current_priority or "low", 1)
    return PRIORITY_RANK[target_priority] > current_rank


# ============================================
# Approval reminders
# ============================================


def approval_thresholds(intervals: Sequence[int]) -> tuple[Threshold, ...]:
    """Build reminder_1..reminder_N tiers from the configured day intervals"""
    thresholds = tuple(
        (days, f"reminder_{number}") for number, days in enumerate(intervals, start=1)
    )
    _validate(thresholds)
    return thresholds


def next_approval_reminder(
    elapsed_days: int,
    reminder_count: int,
    intervals: Sequence[int],
    days_since_last: Optional[int] = None,
) -> Optional[str]:
    """
    Kind of the next approval reminder to send, or None when nothing is due.

    Only the first unsent interval is considered, so at most one reminder goes
    out per pass even when several intervals have elapsed.
    """
    if reminder_count >= len(intervals):
        return None
    if days_since_last is not None and days_since_last < 1:
        return None

    thresholds = approval_thresholds(intervals)
    reached = tier_rank(tier_for(elapsed_days, thresholds), thresholds)
    if reached <= reminder_count:
        return None
    return thresholds[reminder_count][1]


def is_stalled(elapsed_days: int, stall_days: int) -> bool:
    return tier_for(elapsed_days, ((stall_days, "stalled"),)) == "stalled"
