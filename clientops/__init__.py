"""ClientOps background scheduler: reminders, escalation and retention jobs"""

__version__ = "1.0.0"
