"""Welcome sequence - onboarding drip emails for new clients"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...errors import NotFoundError
from ...models import Client, WelcomeSequenceTemplate
from ...scheduler.clock import utcnow
from ..reminders.kinds import WelcomeSequenceKind
from ..reminders.state_machine import ReminderStateMachine

logger = logging.getLogger(__name__)

# (email_type, days_after_signup)
DEFAULT_WELCOME_TEMPLATES = (
    ("welcome", 0),
    ("getting_started", 1),
    ("tips", 3),
    ("check_in", 7),
)


class WelcomeSequenceService:
    def __init__(self, kind: Optional[WelcomeSequenceKind] = None):
        self.reminders = ReminderStateMachine(kind or WelcomeSequenceKind())

    @staticmethod
    def seed_default_templates(db: Session) -> int:
        """Insert the default templates that are missing. Returns how many were added."""
        existing = {row.email_type for row in db.query(WelcomeSequenceTemplate.email_type).all()}
        added = 0
        for sort_order, (email_type, days) in enumerate(DEFAULT_WELCOME_TEMPLATES):
            if email_type in existing:
                continue
            db.add(
                WelcomeSequenceTemplate(
                    email_type=email_type, days_after_signup=days, sort_order=sort_order
                )
            )
            added += 1
        db.commit()
        return added

    @staticmethod
    def get_series(db: Session) -> list[tuple[str, int]]:
        templates = (
            db.query(WelcomeSequenceTemplate)
            .filter(WelcomeSequenceTemplate.is_active.is_(True))
            .order_by(WelcomeSequenceTemplate.sort_order, WelcomeSequenceTemplate.id)
            .all()
        )
        if not templates:
            return list(DEFAULT_WELCOME_TEMPLATES)
        return [(t.email_type, t.days_after_signup) for t in templates]

    def start_sequence(self, db: Session, client_id: int, now: Optional[datetime] = None) -> list:
        """Schedule the welcome emails; a client only ever gets one sequence"""
        client = db.query(Client).filter(Client.id == client_id).first()
        if not client:
            raise NotFoundError("Client", client_id)
        if client.welcome_sequence_started_at is not None:
            logger.info(f"Welcome sequence already started for client {client_id}")
            return []

        now = now or utcnow()
        client.welcome_sequence_started_at = now
        client.welcome_sequence_completed = False
        db.commit()

        return self.reminders.schedule_series(db, client.id, self.get_series(db), anchor=now.date())

    def cancel_sequence(self, db: Session, client_id: int) -> int:
        return self.reminders.cancel_series(db, client_id, reason="cancelled")

    async def process_pending(self, db: Session, sender, now: Optional[datetime] = None) -> dict:
        return await self.reminders.run_pass(db, sender, now)
