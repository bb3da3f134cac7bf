"""
Approval reminder service

Nudges approvers on pending requests at the configured day intervals and
escalates requests that stay undecided past the stall threshold.
"""

import logging
from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy.orm import Session

from ... import config
from ...email_templates import approval_stalled_email
from ...models import ApprovalRequest
from ...models_reminders import ApprovalReminder
from ...scheduler.clock import utcnow
from ...scheduler.escalation import is_stalled, next_approval_reminder
from ..reminders.kinds import ApprovalReminderKind, render_email
from ..reminders.state_machine import ReminderStateMachine

logger = logging.getLogger(__name__)


def _days_between(later: datetime, earlier: Optional[datetime]) -> Optional[int]:
    if earlier is None:
        return None
    return (later.date() - earlier.date()).days


class ApprovalReminderService:
    def __init__(
        self,
        intervals: Optional[Sequence[int]] = None,
        stall_days: Optional[int] = None,
        admin_email: Optional[str] = None,
        kind: Optional[ApprovalReminderKind] = None,
    ):
        self.intervals = list(intervals if intervals is not None else config.APPROVAL_REMINDER_INTERVALS)
        self.stall_days = stall_days if stall_days is not None else config.APPROVAL_STALL_DAYS
        self.admin_email = admin_email if admin_email is not None else config.ADMIN_EMAIL
        self.kind = kind or ApprovalReminderKind()
        self.reminders = ReminderStateMachine(self.kind)

    def plan_due_reminders(self, db: Session, now: datetime) -> int:
        """
        Create the next pending reminder for each request that has reached its
        next interval. A kind is created once per request; failed or skipped
        reminders are not recreated. A request that cannot be planned is rolled
        back and logged without stopping the others.
        """
        requests = (
            db.query(ApprovalRequest)
            .filter(
                ApprovalRequest.status == "pending",
                ApprovalRequest.reminder_count < len(self.intervals),
            )
            .all()
        )

        planned = 0
        for request in requests:
            request_id = request.id
            try:
                self.sync_reminder_progress(db, request)
                if self._plan_next(db, request, now):
                    planned += 1
                db.commit()
            except Exception as e:
                db.rollback()
                logger.error(f"❌ Failed to plan approval reminder for request {request_id}: {e}")

        return planned

    def sync_reminder_progress(self, db: Session, request: ApprovalRequest) -> None:
        """Raise reminder_count and last_reminder_at to match the sent reminder rows"""
        sent = (
            db.query(ApprovalReminder.kind, ApprovalReminder.sent_at)
            .filter(ApprovalReminder.subject_id == request.id, ApprovalReminder.status == "sent")
            .all()
        )
        if not sent:
            return

        highest = max(self.kind.reminder_number(kind) for kind, _ in sent)
        if highest <= request.reminder_count:
            return

        latest = max((sent_at for _, sent_at in sent if sent_at is not None), default=None)
        logger.warning(
            f"⚠️ Approval {request.id} reminder_count {request.reminder_count} behind sent reminders, raising to {highest}"
        )
        request.reminder_count = highest
        if latest is not None and (request.last_reminder_at is None or latest > request.last_reminder_at):
            request.last_reminder_at = latest

    def _plan_next(self, db: Session, request: ApprovalRequest, now: datetime) -> bool:
        kind = next_approval_reminder(
            elapsed_days=_days_between(now, request.created_at) or 0,
            reminder_count=request.reminder_count,
            intervals=self.intervals,
            days_since_last=_days_between(now, request.last_reminder_at),
        )
        if kind is None:
            return False

        exists = (
            db.query(ApprovalReminder.id)
            .filter(ApprovalReminder.subject_id == request.id, ApprovalReminder.kind == kind)
            .first()
        )
        if exists:
            return False

        db.add(ApprovalReminder(subject_id=request.id, kind=kind, scheduled_at=now.date(), status="pending"))
        return True

    async def escalate_stalled(self, db: Session, sender, now: datetime) -> int:
        """Flag requests pending past the stall threshold and alert the admin once"""
        candidates = (
            db.query(ApprovalRequest)
            .filter(ApprovalRequest.status == "pending", ApprovalRequest.stalled_at.is_(None))
            .all()
        )

        escalated = 0
        for request in candidates:
            days_pending = _days_between(now, request.created_at) or 0
            if not is_stalled(days_pending, self.stall_days):
                continue

            claimed = (
                db.query(ApprovalRequest)
                .filter(ApprovalRequest.id == request.id, ApprovalRequest.stalled_at.is_(None))
                .update({"stalled_at": now}, synchronize_session=False)
            )
            db.commit()
            if not claimed:
                continue
            escalated += 1

            if not self.admin_email:
                logger.warning(f"⚠️ Approval {request.id} stalled but ADMIN_EMAIL is not set")
                continue

            try:
                content = approval_stalled_email(
                    entity_type=request.entity_type,
                    entity_id=request.entity_id,
                    approver_email=request.approver_email,
                    days_pending=days_pending,
                    review_url=self.kind.review_url(request),
                )
                message = render_email(self.admin_email, content)
                await sender.send(message.to, message.subject, message.text_body, message.html_body)
                logger.info(f"📧 Stalled approval {request.id} escalated to {self.admin_email}")
            except Exception as e:
                logger.error(f"❌ Failed to escalate stalled approval {request.id}: {e}")

        return escalated

    async def process_approval_reminders(self, db: Session, sender, now: Optional[datetime] = None) -> dict:
        now = now or utcnow()
        planned = self.plan_due_reminders(db, now)
        summary = await self.reminders.run_pass(db, sender, now)
        summary["planned"] = planned
        summary["stalled"] = await self.escalate_stalled(db, sender, now)
        return summary
