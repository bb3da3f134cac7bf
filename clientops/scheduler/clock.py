"""
Tick sources for the scheduler

The orchestrator and every pass read time through a Clock so tests can
freeze or advance it.
"""

import asyncio
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the DateTime columns"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Clock:
    def now(self) -> datetime:
        raise NotImplementedError

    async def sleep(self, seconds: float) -> None:
        raise NotImplementedError


class SystemClock(Clock):
    """Wall clock in naive UTC"""

    def now(self) -> datetime:
        return utcnow()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(max(seconds, 0))
