"""
Invoice Models for Client Invoicing
"""

import uuid

from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


def generate_public_id():
    """Generate a unique public ID for secure public access"""
    return str(uuid.uuid4())


class Invoice(Base):
    """Invoice model for client billing"""

    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True, index=True)
    public_id = Column(
        String(36), unique=True, nullable=True, index=True, default=generate_public_id
    )
    client_id = Column(Integer, ForeignKey("clients.id", ondelete="CASCADE"), nullable=False)
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=True)

    # Invoice details
    invoice_number = Column(String(50), unique=True, nullable=False, index=True)
    notes = Column(Text, nullable=True)

    # Amounts
    amount_total = Column(Float, nullable=False)
    amount_paid = Column(Float, default=0, nullable=False)
    currency = Column(String(10), default="USD")

    # Status: draft, sent, viewed, partial, paid, overdue, cancelled
    status = Column(String(50), default="draft")

    # Dates
    issue_date = Column(DateTime, server_default=func.now())
    due_date = Column(DateTime, nullable=True)
    paid_at = Column(DateTime, nullable=True)

    # Soft delete
    deleted_at = Column(DateTime, nullable=True, index=True)
    deleted_by = Column(String(255), nullable=True)

    # Audit
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    client = relationship("Client", back_populates="invoices")
    project = relationship("Project", back_populates="invoices")
    items = relationship("InvoiceItem", back_populates="invoice", cascade="all, delete-orphan")
    reminders = relationship(
        "InvoiceReminder", back_populates="subject", cascade="all, delete-orphan"
    )

    @property
    def amount_due(self) -> float:
        return (self.amount_total or 0) - (self.amount_paid or 0)


class InvoiceItem(Base):
    __tablename__ = "invoice_items"

    id = Column(Integer, primary_key=True, index=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False)
    description = Column(String(500), nullable=False)
    quantity = Column(Float, default=1)
    unit_price = Column(Float, nullable=False)

    invoice = relationship("Invoice", back_populates="items")
