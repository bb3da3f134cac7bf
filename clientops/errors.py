"""
Scheduler and reminder error taxonomy
"""

from typing import Optional


class SchedulerError(Exception):
    """Base class for orchestrator and reminder errors"""


class DuplicateJobError(SchedulerError):
    """A job with the same name is already registered"""

    def __init__(self, name: str):
        super().__init__(f"Job already registered: {name}")
        self.name = name


class NotFoundError(SchedulerError):
    """Reminder record or job does not exist"""

    def __init__(self, what: str, identifier):
        super().__init__(f"{what} not found: {identifier}")
        self.what = what
        self.identifier = identifier


class InvalidTransitionError(SchedulerError):
    """Transition attempted from a non-pending state"""

    def __init__(self, record_id: int, current_status: str, target_status: str):
        super().__init__(
            f"Reminder {record_id} cannot move {current_status} → {target_status}"
        )
        self.record_id = record_id
        self.current_status = current_status
        self.target_status = target_status


class SendFailure(SchedulerError):
    """Email or notification dispatch failed"""


class SweepError(SchedulerError):
    """Permanent-delete cascade failed for a single entity"""

    def __init__(self, kind: str, entity_id: Optional[int], message: str):
        super().__init__(f"{kind} {entity_id}: {message}")
        self.kind = kind
        self.entity_id = entity_id
        self.message = message
