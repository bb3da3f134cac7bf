"""Pytest configuration and shared fixtures.

Run with:
    pytest tests/                        # Run all tests
    pytest tests/test_cron.py -v         # Run specific test file
"""

import asyncio
from datetime import date, datetime, timedelta
from typing import Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from clientops import models, models_invoice, models_reminders  # noqa: F401
from clientops.database import Base
from clientops.errors import SendFailure
from clientops.models import ApprovalRequest, Client, Contract, Project, ProjectTask
from clientops.models_invoice import Invoice
from clientops.scheduler.clock import Clock

NOW = datetime(2025, 3, 10, 9, 30)


# ─────────────────────────────────────────────────────────────────────────────
# Test doubles
# ─────────────────────────────────────────────────────────────────────────────

class FakeClock(Clock):
    """Frozen clock. sleep() parks until the clock is advanced."""

    def __init__(self, now: datetime = NOW):
        self._now = now
        self._wake = asyncio.Event()
        self.sleeps: list[float] = []

    def now(self) -> datetime:
        return self._now

    def set(self, now: datetime) -> None:
        self._now = now
        self._wake.set()
        self._wake = asyncio.Event()

    def advance(self, **delta) -> None:
        self.set(self._now + timedelta(**delta))

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        await self._wake.wait()


class RecordingEmailSender:
    """Collects sent emails; raises SendFailure for addresses in fail_for."""

    def __init__(self, fail_for=()):
        self.fail_for = set(fail_for)
        self.sent: list[dict] = []

    async def send(self, to, subject, text_body, html_body):
        if to in self.fail_for:
            raise SendFailure(f"Mailbox unavailable: {to}")
        self.sent.append({"to": to, "subject": subject, "text": text_body, "html": html_body})
        return {"success": True}

    @property
    def recipients(self) -> list[str]:
        return [email["to"] for email in self.sent]


# ─────────────────────────────────────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def engine():
    """In-memory SQLite shared across sessions of one test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def sender():
    return RecordingEmailSender()


@pytest.fixture(autouse=True)
def plain_html(monkeypatch):
    """Skip MJML compilation; templates are exercised as text."""
    monkeypatch.setattr(
        "clientops.domain.reminders.kinds.compile_mjml_to_html",
        lambda mjml: f"<html>{mjml}</html>",
    )


# ─────────────────────────────────────────────────────────────────────────────
# Factories
# ─────────────────────────────────────────────────────────────────────────────

def make_client(db, email: Optional[str] = "client@example.com", **fields) -> Client:
    fields.setdefault("company_name", "Acme Co")
    fields.setdefault("contact_name", "Jordan Lee")
    fields.setdefault("status", "active")
    client = Client(email=email, **fields)
    db.add(client)
    db.commit()
    db.refresh(client)
    return client


def make_project(db, client: Client, **fields) -> Project:
    fields.setdefault("project_name", "Website Redesign")
    fields.setdefault("status", "in_progress")
    project = Project(client_id=client.id, **fields)
    db.add(project)
    db.commit()
    db.refresh(project)
    return project


_invoice_seq = iter(range(1000, 100000))


def make_invoice(db, client: Client, due_date: Optional[datetime] = None, **fields) -> Invoice:
    fields.setdefault("status", "sent")
    fields.setdefault("amount_total", 1500.0)
    invoice = Invoice(
        client_id=client.id,
        invoice_number=f"INV-{next(_invoice_seq)}",
        due_date=due_date,
        **fields,
    )
    db.add(invoice)
    db.commit()
    db.refresh(invoice)
    return invoice


def make_contract(db, project: Project, **fields) -> Contract:
    fields.setdefault("title", "Service Agreement")
    fields.setdefault("status", "sent")
    fields.setdefault("signature_token", f"tok-{project.id}-{len(project.contracts)}")
    contract = Contract(project_id=project.id, **fields)
    db.add(contract)
    db.commit()
    db.refresh(contract)
    return contract


def make_task(db, project: Project, due_date: Optional[date], **fields) -> ProjectTask:
    fields.setdefault("title", "Deliver mockups")
    fields.setdefault("status", "pending")
    fields.setdefault("priority", "low")
    task = ProjectTask(project_id=project.id, due_date=due_date, **fields)
    db.add(task)
    db.commit()
    db.refresh(task)
    return task


def make_approval(db, created_at: datetime, **fields) -> ApprovalRequest:
    fields.setdefault("entity_type", "proposal")
    fields.setdefault("entity_id", 1)
    fields.setdefault("approver_email", "approver@example.com")
    request = ApprovalRequest(created_at=created_at, **fields)
    db.add(request)
    db.commit()
    db.refresh(request)
    return request
