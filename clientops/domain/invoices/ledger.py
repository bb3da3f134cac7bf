"""Invoice ledger - invoice lookups, overdue marking and the reminder series"""

import logging
from datetime import date, datetime, time
from typing import Optional

from sqlalchemy.orm import Session

from ...errors import NotFoundError
from ...models_invoice import Invoice
from ...scheduler.clock import utcnow
from ...scheduler.escalation import INVOICE_REMINDER_TIERS, series_from_tiers, tier_for
from ..reminders.kinds import InvoiceReminderKind
from ..reminders.state_machine import ReminderStateMachine

logger = logging.getLogger(__name__)

# Invoices in these states are flipped to overdue once past due
OVERDUE_ELIGIBLE_STATUSES = ("sent", "viewed", "partial")


class InvoiceLedger:
    def __init__(self, kind: Optional[InvoiceReminderKind] = None):
        self.reminders = ReminderStateMachine(kind or InvoiceReminderKind())

    @staticmethod
    def get_invoice_by_id(db: Session, invoice_id: int) -> Invoice:
        invoice = db.query(Invoice).filter(Invoice.id == invoice_id).first()
        if not invoice:
            raise NotFoundError("Invoice", invoice_id)
        return invoice

    def list_due_reminders(self, db: Session, now: datetime) -> list:
        return self.reminders.find_due(db, now)

    @staticmethod
    def reminder_tier(invoice: Invoice, today: date) -> str:
        """Current reminder tier of an invoice relative to its due date"""
        if invoice.due_date is None:
            return tier_for(0, INVOICE_REMINDER_TIERS)
        elapsed = (today - invoice.due_date.date()).days
        return tier_for(elapsed, INVOICE_REMINDER_TIERS)

    @staticmethod
    def mark_overdue_invoices(db: Session, now: datetime) -> int:
        """Move sent/viewed/partial invoices whose due date has passed to overdue"""
        start_of_today = datetime.combine(now.date(), time.min)
        count = (
            db.query(Invoice)
            .filter(
                Invoice.status.in_(OVERDUE_ELIGIBLE_STATUSES),
                Invoice.due_date.isnot(None),
                Invoice.due_date < start_of_today,
                Invoice.deleted_at.is_(None),
            )
            .update({"status": "overdue"}, synchronize_session=False)
        )
        db.commit()

        if count:
            logger.info(f"⚠️ Marked {count} invoice(s) as overdue")
        return count

    def schedule_invoice_reminders(self, db: Session, invoice_id: int, now: Optional[datetime] = None) -> list:
        """
        (Re)build the reminder series from the invoice due date.

        Offsets that already fall in the past are not scheduled.
        """
        invoice = self.get_invoice_by_id(db, invoice_id)
        if invoice.due_date is None:
            logger.warning(f"⚠️ Invoice {invoice.invoice_number} has no due date - no reminders scheduled")
            return []

        today = (now or utcnow()).date()
        return self.reminders.schedule_series(
            db,
            invoice.id,
            series_from_tiers(INVOICE_REMINDER_TIERS),
            anchor=invoice.due_date.date(),
            not_before=today,
        )

    def cancel_invoice_reminders(self, db: Session, invoice_id: int, reason: str = "cancelled") -> int:
        return self.reminders.cancel_series(db, invoice_id, reason)

    def mark_invoice_paid(self, db: Session, invoice_id: int, now: Optional[datetime] = None) -> Invoice:
        """Record full payment and stop any pending reminders"""
        invoice = self.get_invoice_by_id(db, invoice_id)
        invoice.status = "paid"
        invoice.paid_at = now or utcnow()
        invoice.amount_paid = invoice.amount_total
        db.commit()

        self.cancel_invoice_reminders(db, invoice_id, reason="paid")
        db.refresh(invoice)
        logger.info(f"✅ Invoice {invoice.invoice_number} marked paid")
        return invoice

    async def process_reminders(self, db: Session, sender, now: Optional[datetime] = None) -> dict:
        return await self.reminders.run_pass(db, sender, now)
