"""
Reminder kinds

Each reminder family plugs into the shared state machine through a small
capability object: which table holds its records, what makes its subject
still open, how to build the outgoing email, and what to do after a send.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ... import config
from ...email_service import compile_mjml_to_html
from ...email_templates import (
    EmailContent,
    approval_reminder_email,
    contract_reminder_email,
    invoice_reminder_email,
    welcome_sequence_email,
)
from ...models import ApprovalRequest, Client, Contract, ContractSignatureLog
from ...models_invoice import Invoice
from ...models_reminders import (
    ApprovalReminder,
    ContractReminder,
    InvoiceReminder,
    WelcomeSequenceEmail,
)

# Statuses after which an invoice no longer gets reminders
CLOSED_INVOICE_STATUSES = ("paid", "cancelled")
# Clients that can still receive welcome emails
WELCOME_CLIENT_STATUSES = ("active", "pending")


@dataclass
class OutboundEmail:
    to: str
    subject: str
    text_body: str
    html_body: str


def render_email(to: str, content: EmailContent) -> OutboundEmail:
    return OutboundEmail(
        to=to,
        subject=content.subject,
        text_body=content.text,
        html_body=compile_mjml_to_html(content.mjml),
    )


def display_name(client: Optional[Client]) -> str:
    if client is None:
        return "there"
    return client.contact_name or client.company_name or "there"


class ReminderKind:
    name = ""
    model = None
    subject_model = None

    def open_subject_criteria(self) -> list:
        """Filters on subject_model; due records whose subject fails them are left alone"""
        return []

    def build_message(self, db: Session, record, now: datetime) -> Optional[OutboundEmail]:
        """Outgoing email for a record, or None when there is nobody to send to"""
        raise NotImplementedError

    def after_sent(self, db: Session, record, now: datetime) -> None:
        pass

    def after_pass(self, db: Session, now: datetime) -> None:
        pass


class InvoiceReminderKind(ReminderKind):
    name = "invoice"
    model = InvoiceReminder
    subject_model = Invoice

    def __init__(self, portal_url: Optional[str] = None):
        self.portal_url = portal_url or config.CLIENT_PORTAL_URL

    def open_subject_criteria(self) -> list:
        return [
            Invoice.status.notin_(CLOSED_INVOICE_STATUSES),
            Invoice.paid_at.is_(None),
            Invoice.deleted_at.is_(None),
        ]

    def build_message(self, db, record, now):
        invoice = record.subject
        client = invoice.client
        if client is None or not client.email:
            return None

        due_date = invoice.due_date.strftime("%B %d, %Y") if invoice.due_date else "upon receipt"
        content = invoice_reminder_email(
            reminder_kind=record.kind,
            client_name=display_name(client),
            invoice_number=invoice.invoice_number,
            amount_due=invoice.amount_due,
            due_date=due_date,
            portal_url=f"{self.portal_url}#invoices",
        )
        return render_email(client.email, content)


class ContractReminderKind(ReminderKind):
    name = "contract"
    model = ContractReminder
    subject_model = Contract

    def __init__(self, signing_url: Optional[str] = None):
        self.signing_url = signing_url or config.CONTRACT_SIGNING_URL

    def open_subject_criteria(self) -> list:
        return [
            Contract.signed_at.is_(None),
            Contract.signature_token.isnot(None),
            Contract.reminders_enabled.is_(True),
            Contract.status != "cancelled",
        ]

    def build_message(self, db, record, now):
        contract = record.subject
        project = contract.project
        client = project.client if project else None
        if client is None or not client.email:
            return None

        content = contract_reminder_email(
            reminder_kind=record.kind,
            client_name=display_name(client),
            project_name=project.project_name,
            signing_url=f"{self.signing_url}/{contract.signature_token}",
        )
        return render_email(client.email, content)

    def after_sent(self, db, record, now):
        client = record.subject.project.client
        db.add(
            ContractSignatureLog(
                contract_id=record.subject_id,
                action="reminder_sent",
                actor_email=client.email,
                details={"reminder_type": record.kind},
                created_at=now,
            )
        )
        db.commit()


class WelcomeSequenceKind(ReminderKind):
    name = "welcome"
    model = WelcomeSequenceEmail
    subject_model = Client

    def __init__(self, portal_url: Optional[str] = None):
        self.portal_url = portal_url or config.CLIENT_PORTAL_URL

    def open_subject_criteria(self) -> list:
        return [Client.status.in_(WELCOME_CLIENT_STATUSES), Client.deleted_at.is_(None)]

    def build_message(self, db, record, now):
        client = record.subject
        if not client.email:
            return None

        content = welcome_sequence_email(
            email_type=record.kind,
            client_name=display_name(client),
            company_name=client.company_name,
            portal_url=self.portal_url,
        )
        return render_email(client.email, content)

    def after_pass(self, db, now):
        """Flag sequences with nothing left pending as completed"""
        pending = select(WelcomeSequenceEmail.subject_id).where(
            WelcomeSequenceEmail.status == "pending"
        )
        db.query(Client).filter(
            Client.welcome_sequence_started_at.isnot(None),
            Client.welcome_sequence_completed.is_(False),
            Client.id.notin_(pending),
        ).update({"welcome_sequence_completed": True}, synchronize_session=False)
        db.commit()


class ApprovalReminderKind(ReminderKind):
    name = "approval"
    model = ApprovalReminder
    subject_model = ApprovalRequest

    def __init__(self, portal_url: Optional[str] = None):
        self.portal_url = portal_url or config.CLIENT_PORTAL_URL

    def open_subject_criteria(self) -> list:
        return [ApprovalRequest.status == "pending"]

    @staticmethod
    def reminder_number(kind: str) -> int:
        return int(kind.rsplit("_", 1)[-1])

    def review_url(self, request: ApprovalRequest) -> str:
        return f"{self.portal_url}#approvals/{request.id}"

    def build_message(self, db, record, now):
        request = record.subject
        if not request.approver_email:
            return None

        days_pending = (now.date() - request.created_at.date()).days if request.created_at else 0
        content = approval_reminder_email(
            entity_type=request.entity_type,
            entity_id=request.entity_id,
            reminder_number=self.reminder_number(record.kind),
            days_pending=days_pending,
            review_url=self.review_url(request),
        )
        return render_email(request.approver_email, content)

    def after_sent(self, db, record, now):
        # reminder_count only ever increases
        number = self.reminder_number(record.kind)
        db.query(ApprovalRequest).filter(
            ApprovalRequest.id == record.subject_id,
            ApprovalRequest.reminder_count < number,
        ).update(
            {"reminder_count": number, "last_reminder_at": now},
            synchronize_session=False,
        )
        db.commit()
