"""
Reminder record models

Every reminder table shares one shape: a pending row per (subject, kind) that
the scheduler moves to sent, skipped or failed exactly once.
"""

from sqlalchemy import Column, Date, DateTime, ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import declared_attr, relationship
from sqlalchemy.sql import func

from .database import Base

REMINDER_STATUSES = ("pending", "sent", "skipped", "failed")


class ReminderRecordMixin:
    """Columns shared by all reminder tables"""

    __subject_table__ = None

    id = Column(Integer, primary_key=True, index=True)
    kind = Column(String(50), nullable=False)  # Tier label, e.g. upcoming, overdue_7, followup_3
    scheduled_at = Column(Date, nullable=False, index=True)
    sent_at = Column(DateTime, nullable=True)
    status = Column(String(20), default="pending", nullable=False, index=True)
    skip_reason = Column(String(255), nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    @declared_attr
    def subject_id(cls):
        return Column(
            Integer,
            ForeignKey(f"{cls.__subject_table__}.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        )

    @declared_attr
    def __table_args__(cls):
        # At most one pending record per (subject, kind)
        pending_only = text("status = 'pending'")
        return (
            Index(
                f"uq_{cls.__tablename__}_pending",
                "subject_id",
                "kind",
                unique=True,
                sqlite_where=pending_only,
                postgresql_where=pending_only,
            ),
        )


class InvoiceReminder(ReminderRecordMixin, Base):
    __tablename__ = "invoice_reminders"
    __subject_table__ = "invoices"

    subject = relationship("Invoice", back_populates="reminders")


class ContractReminder(ReminderRecordMixin, Base):
    __tablename__ = "contract_reminders"
    __subject_table__ = "contracts"

    subject = relationship("Contract", back_populates="reminders")


class WelcomeSequenceEmail(ReminderRecordMixin, Base):
    __tablename__ = "welcome_sequence_emails"
    __subject_table__ = "clients"

    subject = relationship("Client", back_populates="welcome_emails")


class ApprovalReminder(ReminderRecordMixin, Base):
    __tablename__ = "approval_reminders"
    __subject_table__ = "approval_requests"

    subject = relationship("ApprovalRequest", back_populates="reminders")
