"""
Reminder state machine

One engine for every reminder family. Records start pending and move exactly
once to sent, skipped or failed. Each transition is a conditional UPDATE on
status = 'pending', so concurrent passes cannot both move the same record.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Optional, Sequence

from sqlalchemy.orm import Session

from ...errors import InvalidTransitionError, NotFoundError
from ...scheduler.clock import utcnow
from .kinds import ReminderKind
from .repository import ReminderRepository

logger = logging.getLogger(__name__)


class ReminderStateMachine:
    def __init__(self, kind: ReminderKind):
        self.kind = kind
        self.model = kind.model

    # ============================================
    # Queries
    # ============================================

    def get(self, db: Session, record_id: int):
        record = ReminderRepository.get_by_id(db, self.model, record_id)
        if record is None:
            raise NotFoundError(f"{self.kind.name} reminder", record_id)
        return record

    def find_due(self, db: Session, now: datetime) -> list:
        """Pending records due by now, excluding those whose subject is closed"""
        return ReminderRepository.find_due(
            db,
            self.model,
            self.kind.subject_model,
            now.date(),
            self.kind.open_subject_criteria(),
        )

    # ============================================
    # Transitions
    # ============================================

    def _transition(self, db: Session, record_id: int, target: str, values: dict) -> None:
        updated = ReminderRepository.update_if_pending(
            db, self.model, record_id, {"status": target, **values}
        )
        if updated == 0:
            db.rollback()
            record = ReminderRepository.get_by_id(db, self.model, record_id)
            if record is None:
                raise NotFoundError(f"{self.kind.name} reminder", record_id)
            raise InvalidTransitionError(record_id, record.status, target)
        db.commit()

    def mark_sent(self, db: Session, record_id: int, now: Optional[datetime] = None) -> None:
        self._transition(db, record_id, "sent", {"sent_at": now or utcnow()})

    def mark_skipped(self, db: Session, record_id: int, reason: Optional[str] = None) -> None:
        self._transition(db, record_id, "skipped", {"skip_reason": reason})

    def mark_failed(self, db: Session, record_id: int) -> None:
        self._transition(db, record_id, "failed", {})

    # ============================================
    # Series
    # ============================================

    def schedule_series(
        self,
        db: Session,
        subject_id: int,
        series: Sequence[tuple[str, int]],
        anchor: date,
        not_before: Optional[date] = None,
    ) -> list:
        """
        Replace the subject's pending records with one record per (kind, offset_days).

        Offsets landing before `not_before` are dropped. Sent, skipped and failed
        records are history and are never touched.
        """
        ReminderRepository.delete_pending(db, self.model, subject_id)

        records = []
        for kind, offset_days in series:
            scheduled_at = anchor + timedelta(days=offset_days)
            if not_before is not None and scheduled_at < not_before:
                continue
            record = self.model(
                subject_id=subject_id, kind=kind, scheduled_at=scheduled_at, status="pending"
            )
            db.add(record)
            records.append(record)

        db.commit()
        for record in records:
            db.refresh(record)

        logger.info(
            f"🔄 Scheduled {len(records)} {self.kind.name} reminders for subject {subject_id}"
        )
        return records

    def cancel_series(self, db: Session, subject_id: int, reason: str = "cancelled") -> int:
        """Move every pending record of the subject to skipped"""
        count = ReminderRepository.skip_pending(db, self.model, subject_id, reason)
        db.commit()
        if count:
            logger.info(f"Cancelled {count} {self.kind.name} reminders for subject {subject_id}")
        return count

    # ============================================
    # Pass
    # ============================================

    async def run_pass(self, db: Session, sender, now: Optional[datetime] = None) -> dict:
        """
        Dispatch every due record.

        Each record is handled on its own: a failed send marks only that record
        failed and the pass moves on. A record already moved by a concurrent
        pass is ignored.
        """
        now = now or utcnow()
        due = self.find_due(db, now)
        summary = {"due": len(due), "sent": 0, "skipped": 0, "failed": 0, "ignored": 0, "errors": 0}

        for record in due:
            record_id = record.id
            try:
                outcome = await self._dispatch(db, record, sender, now)
                summary[outcome] += 1
            except InvalidTransitionError as e:
                logger.warning(f"⚠️ {self.kind.name} reminder {record_id} already handled: {e}")
                summary["ignored"] += 1
            except Exception as e:
                db.rollback()
                logger.error(f"❌ Error processing {self.kind.name} reminder {record_id}: {e}")
                summary["errors"] += 1

        try:
            self.kind.after_pass(db, now)
        except Exception as e:
            db.rollback()
            logger.error(f"❌ {self.kind.name} post-pass step failed: {e}")

        if summary["due"]:
            logger.info(
                f"✅ {self.kind.name} reminder pass: {summary['sent']} sent, "
                f"{summary['skipped']} skipped, {summary['failed']} failed"
            )
        return summary

    async def _dispatch(self, db: Session, record, sender, now: datetime) -> str:
        record_id = record.id

        try:
            message = self.kind.build_message(db, record, now)
        except Exception as e:
            logger.error(f"❌ Could not build {self.kind.name} reminder {record_id}: {e}")
            self.mark_failed(db, record_id)
            return "failed"

        if message is None:
            self.mark_skipped(db, record_id, "No recipient email")
            return "skipped"

        try:
            await sender.send(message.to, message.subject, message.text_body, message.html_body)
        except Exception as e:
            logger.error(f"❌ Failed to send {self.kind.name} reminder {record_id} to {message.to}: {e}")
            self.mark_failed(db, record_id)
            return "failed"

        self.mark_sent(db, record_id, now)
        logger.info(f"📧 Sent {self.kind.name} reminder ({record.kind}) to {message.to}")

        try:
            self.kind.after_sent(db, record, now)
        except Exception as e:
            db.rollback()
            logger.error(f"❌ Post-send step failed for {self.kind.name} reminder {record_id}: {e}")
        return "sent"
