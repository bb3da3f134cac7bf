"""
Retention sweeper

Deletes analytics rows past their retention window and permanently removes
soft-deleted entities once their grace period has expired.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ...errors import SweepError
from ...models import Client, ContractSignatureLog, InteractionEvent, PageView, Project, Proposal
from ...models_invoice import Invoice
from ...scheduler.clock import utcnow

logger = logging.getLogger(__name__)

# Tables that may be purged by age, keyed by table name
RETENTION_TABLES = {
    "page_views": PageView,
    "interaction_events": InteractionEvent,
    "contract_signature_log": ContractSignatureLog,
}

LEAD_STATUSES = ("pending", "new")

# Deletion order: children before parents so counts reflect rows removed directly
SOFT_DELETE_ORDER = (
    ("proposals", Proposal),
    ("invoices", Invoice),
    ("projects", Project),
    ("clients", Client),
)


class RetentionSweeper:
    @staticmethod
    def purge_older_than(db: Session, table_name: str, cutoff: datetime) -> int:
        """Delete rows created strictly before cutoff. Running it twice deletes nothing new."""
        model = RETENTION_TABLES.get(table_name)
        if model is None:
            raise ValueError(f"Table is not registered for retention: {table_name}")

        count = (
            db.query(model)
            .filter(model.created_at < cutoff)
            .delete(synchronize_session=False)
        )
        db.commit()

        if count:
            logger.info(f"🗑️ Purged {count} row(s) from {table_name} older than {cutoff:%Y-%m-%d}")
        return count

    def purge_analytics(self, db: Session, retention_days: int, now: Optional[datetime] = None) -> dict:
        cutoff = (now or utcnow()) - timedelta(days=retention_days)
        page_views = self.purge_older_than(db, "page_views", cutoff)
        events = self.purge_older_than(db, "interaction_events", cutoff)
        return {"page_views": page_views, "interaction_events": events, "total": page_views + events}

    def _delete_entity(self, db: Session, entity) -> None:
        # ORM cascades remove children (items, tasks, contracts, reminders, contacts, notes)
        db.delete(entity)
        db.flush()

    def purge_expired_soft_deletes(
        self, db: Session, grace_period_days: int, now: Optional[datetime] = None
    ) -> dict:
        """
        Permanently delete entities soft-deleted more than grace_period_days ago.

        Each entity is removed inside its own savepoint; a failure is collected
        as a SweepError and the sweep moves on.
        """
        cutoff = (now or utcnow()) - timedelta(days=grace_period_days)
        deleted = {"clients": 0, "projects": 0, "leads": 0, "invoices": 0, "proposals": 0, "total": 0}
        errors: list[SweepError] = []

        for kind, model in SOFT_DELETE_ORDER:
            expired = (
                db.query(model)
                .filter(model.deleted_at.isnot(None), model.deleted_at < cutoff)
                .order_by(model.id)
                .all()
            )
            for entity in expired:
                entity_id = entity.id
                is_lead = kind == "projects" and entity.status in LEAD_STATUSES
                try:
                    with db.begin_nested():
                        self._delete_entity(db, entity)
                except Exception as e:
                    logger.error(f"❌ Failed to purge {kind} {entity_id}: {e}")
                    errors.append(SweepError(kind, entity_id, str(e)))
                    continue

                deleted[kind] += 1
                if is_lead:
                    deleted["leads"] += 1
            db.commit()

        # Leads are projects, so they are already part of the projects count
        deleted["total"] = sum(deleted[kind] for kind, _ in SOFT_DELETE_ORDER)

        if deleted["total"] or errors:
            logger.info(
                f"🗑️ Soft-delete purge: {deleted['total']} item(s) removed, {len(errors)} error(s)"
            )
        return {"deleted": deleted, "errors": errors}
