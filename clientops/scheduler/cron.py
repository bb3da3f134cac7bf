"""
Cron expressions and triggers

Five-field cron (minute hour day-of-month month day-of-week), evaluated in UTC.
Next fire times are computed with arq's cron arithmetic so the in-process
scheduler and the arq worker agree on when a job is due.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable, Optional

from arq.cron import next_cron

from .clock import Clock

logger = logging.getLogger(__name__)

# (name, min, max)
FIELDS = (
    ("minute", 0, 59),
    ("hour", 0, 23),
    ("day", 1, 31),
    ("month", 1, 12),
    ("weekday", 0, 7),
)

MAX_DAYS_IN_MONTH = {1: 31, 2: 29, 3: 31, 4: 30, 5: 31, 6: 30, 7: 31, 8: 31, 9: 30, 10: 31, 11: 30, 12: 31}


def _parse_int(text: str, name: str, token: str) -> int:
    try:
        return int(text)
    except ValueError:
        raise ValueError(f"Invalid cron {name} field: {token!r}") from None


def _parse_field(token: str, name: str, low: int, high: int) -> Optional[frozenset]:
    """Parse one field; None means "any value"."""
    if token == "*":
        return None

    values = set()
    for part in token.split(","):
        step = 1
        stepped = "/" in part
        if stepped:
            part, step_text = part.split("/", 1)
            step = _parse_int(step_text, name, token)
            if step < 1:
                raise ValueError(f"Invalid cron {name} step: {token!r}")

        if part == "*":
            start, end = low, high
        elif "-" in part:
            start_text, end_text = part.split("-", 1)
            start = _parse_int(start_text, name, token)
            end = _parse_int(end_text, name, token)
        else:
            start = _parse_int(part, name, token)
            end = high if stepped else start

        if start < low or end > high or start > end:
            raise ValueError(f"Cron {name} field out of range ({low}-{high}): {token!r}")
        values.update(range(start, end + 1, step))

    if name == "weekday" and 7 in values:
        # 7 and 0 are both Sunday
        values.discard(7)
        values.add(0)
    return frozenset(values)


@dataclass(frozen=True)
class CronExpression:
    source: str
    minute: Optional[frozenset] = None
    hour: Optional[frozenset] = None
    day: Optional[frozenset] = None
    month: Optional[frozenset] = None
    weekday: Optional[frozenset] = None  # cron numbering, 0 = Sunday

    @classmethod
    def parse(cls, expression: str) -> "CronExpression":
        parts = expression.split()
        if len(parts) != 5:
            raise ValueError(f"Cron expression must have 5 fields: {expression!r}")

        fields = {
            name: _parse_field(token, name, low, high)
            for token, (name, low, high) in zip(parts, FIELDS)
        }

        if fields["day"] is not None:
            months = fields["month"] or MAX_DAYS_IN_MONTH.keys()
            if min(fields["day"]) > max(MAX_DAYS_IN_MONTH[m] for m in months):
                raise ValueError(f"Cron expression can never fire: {expression!r}")

        return cls(source=expression, **fields)

    @property
    def python_weekdays(self) -> Optional[frozenset]:
        """Day-of-week set in datetime.weekday() numbering (0 = Monday)"""
        if self.weekday is None:
            return None
        return frozenset((d - 1) % 7 for d in self.weekday)

    def matches(self, dt: datetime) -> bool:
        """True when dt falls in a minute this expression fires on"""
        checks = (
            (self.minute, dt.minute),
            (self.hour, dt.hour),
            (self.day, dt.day),
            (self.month, dt.month),
            (self.python_weekdays, dt.weekday()),
        )
        return all(allowed is None or value in allowed for allowed, value in checks)

    def next_after(self, dt: datetime) -> datetime:
        """First matching minute strictly after dt"""
        return next_cron(
            dt,
            month=self._as_set(self.month),
            day=self._as_set(self.day),
            weekday=self._as_set(self.python_weekdays),
            hour=self._as_set(self.hour),
            minute=self._as_set(self.minute),
            second=0,
            microsecond=0,
        )

    def arq_kwargs(self) -> dict:
        """Keyword arguments for arq.cron.cron()"""
        return {
            "month": self._as_set(self.month),
            "day": self._as_set(self.day),
            "weekday": self._as_set(self.python_weekdays),
            "hour": self._as_set(self.hour),
            "minute": self._as_set(self.minute),
            "second": 0,
        }

    @staticmethod
    def _as_set(values: Optional[frozenset]) -> Optional[set]:
        return None if values is None else set(values)

    def __str__(self) -> str:
        return self.source


class CronTrigger:
    """
    Fires a callback on every minute matching a cron expression.

    Fires at most once per matching minute. Ticks missed while the process was
    paused are not replayed. Exceptions raised by the callback are logged and
    never stop the trigger.
    """

    def __init__(
        self,
        expression: CronExpression,
        callback: Callable[[], Awaitable[None]],
        clock: Clock,
        name: str = "",
    ):
        self.expression = expression
        self.callback = callback
        self.clock = clock
        self.name = name or expression.source
        self.last_fired_minute: Optional[datetime] = None
        self._task: Optional[asyncio.Task] = None
        self._in_flight: set[asyncio.Task] = set()

    @property
    def armed(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def busy(self) -> bool:
        return bool(self._in_flight)

    def arm(self) -> None:
        """Start waiting for matching minutes; requires a running event loop"""
        if self.armed:
            return
        loop = asyncio.get_running_loop()
        self._task = loop.create_task(self._run(), name=f"cron:{self.name}")

    def disarm(self) -> None:
        """Stop future firings. Callbacks already running are left to finish."""
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def wait_idle(self) -> None:
        """Wait for callbacks that have already fired to finish"""
        if self._in_flight:
            await asyncio.gather(*list(self._in_flight), return_exceptions=True)

    def next_fire_time(self) -> datetime:
        return self.expression.next_after(self.clock.now())

    async def tick(self, now: datetime) -> bool:
        """Fire for `now` if it matches and this minute has not fired yet"""
        if not self._claim(now):
            return False
        await self._fire()
        return True

    def _claim(self, now: datetime) -> bool:
        minute = now.replace(second=0, microsecond=0)
        if not self.expression.matches(minute) or minute == self.last_fired_minute:
            return False
        self.last_fired_minute = minute
        return True

    async def _fire(self) -> None:
        try:
            await self.callback()
        except Exception as e:
            logger.error(f"❌ Trigger {self.name} callback failed: {e}", exc_info=True)

    async def _run(self) -> None:
        while True:
            now = self.clock.now()
            fire_at = self.expression.next_after(now)
            await self.clock.sleep((fire_at - now).total_seconds())

            if self._claim(self.clock.now()):
                task = asyncio.get_running_loop().create_task(self._fire())
                self._in_flight.add(task)
                task.add_done_callback(self._in_flight.discard)
