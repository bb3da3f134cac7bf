"""
Scheduling primitives. The orchestrator lives in scheduler.orchestrator and is
imported from there, since it depends on the domain services.
"""

from .clock import Clock, SystemClock, utcnow
from .cron import CronExpression, CronTrigger
from .escalation import NO_ESCALATION, tier_for
from .registry import JobRegistry, ScheduledJob

__all__ = [
    "Clock",
    "CronExpression",
    "CronTrigger",
    "JobRegistry",
    "NO_ESCALATION",
    "ScheduledJob",
    "SystemClock",
    "tier_for",
    "utcnow",
]
