"""
Job registry

Named recurring jobs with their cron expression and run bookkeeping.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Iterator, Optional

from ..errors import DuplicateJobError, NotFoundError
from .cron import CronExpression, CronTrigger

RunFn = Callable[[], Awaitable[Any]]


@dataclass
class ScheduledJob:
    name: str
    trigger_expression: str
    run_fn: RunFn
    enabled: bool = True
    expression: CronExpression = field(init=False)

    # Bookkeeping
    is_running: bool = False
    last_run_at: Optional[datetime] = None
    last_manual_run_at: Optional[datetime] = None
    last_result: Any = None
    last_error: Optional[str] = None
    run_count: int = 0
    trigger: Optional[CronTrigger] = field(default=None, repr=False)

    def __post_init__(self):
        self.expression = CronExpression.parse(self.trigger_expression)

    @property
    def armed(self) -> bool:
        return self.trigger is not None and self.trigger.armed

    def snapshot(self) -> dict:
        return {
            "name": self.name,
            "trigger": self.trigger_expression,
            "enabled": self.enabled,
            "armed": self.armed,
            "is_running": self.is_running,
            "last_run_at": self.last_run_at,
            "last_manual_run_at": self.last_manual_run_at,
            "last_error": self.last_error,
            "run_count": self.run_count,
        }


class JobRegistry:
    def __init__(self):
        self._jobs: dict[str, ScheduledJob] = {}

    def register(
        self, name: str, trigger_expression: str, run_fn: RunFn, enabled: bool = True
    ) -> ScheduledJob:
        if name in self._jobs:
            raise DuplicateJobError(name)
        job = ScheduledJob(
            name=name, trigger_expression=trigger_expression, run_fn=run_fn, enabled=enabled
        )
        self._jobs[name] = job
        return job

    def get(self, name: str) -> ScheduledJob:
        job = self._jobs.get(name)
        if job is None:
            raise NotFoundError("Job", name)
        return job

    def names(self) -> list[str]:
        return list(self._jobs)

    def __contains__(self, name: str) -> bool:
        return name in self._jobs

    def __iter__(self) -> Iterator[ScheduledJob]:
        return iter(list(self._jobs.values()))

    def __len__(self) -> int:
        return len(self._jobs)
