import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


def generate_public_id():
    """Generate a unique public ID for secure public access"""
    return str(uuid.uuid4())


class Client(Base):
    __tablename__ = "clients"

    id = Column(Integer, primary_key=True, index=True)
    public_id = Column(
        String(36), unique=True, nullable=True, index=True, default=generate_public_id
    )
    company_name = Column(String(255), nullable=True)
    contact_name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    # Status workflow: pending → active → inactive
    status = Column(String(50), default="pending")

    # Welcome sequence tracking
    welcome_sequence_started_at = Column(DateTime, nullable=True)
    welcome_sequence_completed = Column(Boolean, default=False, nullable=False)

    # Soft delete - purged permanently after the retention period
    deleted_at = Column(DateTime, nullable=True, index=True)
    deleted_by = Column(String(255), nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    projects = relationship("Project", back_populates="client", cascade="all, delete-orphan")
    invoices = relationship("Invoice", back_populates="client", cascade="all, delete-orphan")
    contacts = relationship("ClientContact", back_populates="client", cascade="all, delete-orphan")
    notes = relationship("ClientNote", back_populates="client", cascade="all, delete-orphan")
    welcome_emails = relationship(
        "WelcomeSequenceEmail", back_populates="subject", cascade="all, delete-orphan"
    )


class ClientContact(Base):
    __tablename__ = "client_contacts"

    id = Column(Integer, primary_key=True, index=True)
    client_id = Column(Integer, ForeignKey("clients.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    client = relationship("Client", back_populates="contacts")


class ClientNote(Base):
    __tablename__ = "client_notes"

    id = Column(Integer, primary_key=True, index=True)
    client_id = Column(Integer, ForeignKey("clients.id", ondelete="CASCADE"), nullable=False)
    body = Column(Text, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    client = relationship("Client", back_populates="notes")


class Project(Base):
    __tablename__ = "projects"

    id = Column(Integer, primary_key=True, index=True)
    client_id = Column(Integer, ForeignKey("clients.id", ondelete="CASCADE"), nullable=False)
    project_name = Column(String(255), nullable=False)
    # Leads are projects still in pending/new
    status = Column(String(50), default="new")

    deleted_at = Column(DateTime, nullable=True, index=True)
    deleted_by = Column(String(255), nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    client = relationship("Client", back_populates="projects")
    tasks = relationship("ProjectTask", back_populates="project", cascade="all, delete-orphan")
    contracts = relationship("Contract", back_populates="project", cascade="all, delete-orphan")
    invoices = relationship("Invoice", back_populates="project", cascade="all, delete-orphan")


class ProjectTask(Base):
    __tablename__ = "project_tasks"

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    title = Column(String(255), nullable=False)
    due_date = Column(Date, nullable=True)
    priority = Column(String(20), default="low", nullable=False)  # low, medium, high, urgent
    status = Column(String(50), default="pending")  # pending, in_progress, completed, cancelled
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    project = relationship("Project", back_populates="tasks")


class Contract(Base):
    __tablename__ = "contracts"

    id = Column(Integer, primary_key=True, index=True)
    public_id = Column(
        String(36), unique=True, nullable=True, index=True, default=generate_public_id
    )
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    title = Column(String(255), nullable=False)
    # Status workflow: draft → sent → signed | cancelled
    status = Column(String(50), default="draft")
    signature_token = Column(String(64), nullable=True, unique=True)
    sent_at = Column(DateTime, nullable=True)
    signed_at = Column(DateTime, nullable=True)
    reminders_enabled = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    project = relationship("Project", back_populates="contracts")
    reminders = relationship(
        "ContractReminder", back_populates="subject", cascade="all, delete-orphan"
    )
    signature_log = relationship(
        "ContractSignatureLog", back_populates="contract", cascade="all, delete-orphan"
    )


class ContractSignatureLog(Base):
    """Audit trail for contract signature events"""

    __tablename__ = "contract_signature_log"

    id = Column(Integer, primary_key=True, index=True)
    contract_id = Column(Integer, ForeignKey("contracts.id", ondelete="CASCADE"), nullable=False)
    action = Column(String(50), nullable=False)  # sent, reminder_sent, signed
    actor_email = Column(String(255), nullable=False)
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), index=True)

    contract = relationship("Contract", back_populates="signature_log")


class Proposal(Base):
    __tablename__ = "proposals"

    id = Column(Integer, primary_key=True, index=True)
    client_id = Column(Integer, ForeignKey("clients.id", ondelete="SET NULL"), nullable=True)
    title = Column(String(255), nullable=False)
    status = Column(String(50), default="pending")

    deleted_at = Column(DateTime, nullable=True, index=True)
    deleted_by = Column(String(255), nullable=True)

    created_at = Column(DateTime, server_default=func.now())


class ApprovalRequest(Base):
    """Pending approval awaiting a decision from a single approver"""

    __tablename__ = "approval_requests"

    id = Column(Integer, primary_key=True, index=True)
    entity_type = Column(String(50), nullable=False)  # proposal, invoice, contract, deliverable
    entity_id = Column(Integer, nullable=False)
    approver_email = Column(String(255), nullable=False, index=True)
    status = Column(String(20), default="pending", nullable=False)  # pending, approved, rejected
    decision_at = Column(DateTime, nullable=True)
    decision_comment = Column(Text, nullable=True)
    # Only ever increases - one per configured reminder interval
    reminder_count = Column(Integer, default=0, nullable=False)
    last_reminder_at = Column(DateTime, nullable=True)
    stalled_at = Column(DateTime, nullable=True)  # Set once when escalated to an admin
    created_at = Column(DateTime, server_default=func.now())

    reminders = relationship(
        "ApprovalReminder", back_populates="subject", cascade="all, delete-orphan"
    )


class WelcomeSequenceTemplate(Base):
    __tablename__ = "welcome_sequence_templates"

    id = Column(Integer, primary_key=True, index=True)
    email_type = Column(String(50), nullable=False, unique=True)
    days_after_signup = Column(Integer, nullable=False)
    sort_order = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)


class PageView(Base):
    __tablename__ = "page_views"

    id = Column(Integer, primary_key=True, index=True)
    path = Column(String(500), nullable=False)
    visitor_id = Column(String(64), nullable=True)
    created_at = Column(DateTime, server_default=func.now(), index=True)


class InteractionEvent(Base):
    __tablename__ = "interaction_events"

    id = Column(Integer, primary_key=True, index=True)
    event_type = Column(String(100), nullable=False)
    visitor_id = Column(String(64), nullable=True)
    payload = Column(JSON, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), index=True)
