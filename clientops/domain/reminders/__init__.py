from .kinds import (
    ApprovalReminderKind,
    ContractReminderKind,
    InvoiceReminderKind,
    OutboundEmail,
    ReminderKind,
    WelcomeSequenceKind,
)
from .repository import ReminderRepository
from .state_machine import ReminderStateMachine

__all__ = [
    "ApprovalReminderKind",
    "ContractReminderKind",
    "InvoiceReminderKind",
    "OutboundEmail",
    "ReminderKind",
    "ReminderRepository",
    "ReminderStateMachine",
    "WelcomeSequenceKind",
]
