"""Reminder repository - Database operations shared by every reminder table"""

from datetime import date

from sqlalchemy.orm import Session


class ReminderRepository:
    """Queries parameterised by the reminder model and its subject model"""

    @staticmethod
    def get_by_id(db: Session, model, record_id: int):
        return db.query(model).filter(model.id == record_id).first()

    @staticmethod
    def find_due(db: Session, model, subject_model, today: date, subject_criteria: list) -> list:
        """Pending records scheduled on or before today whose subject is still open"""
        return (
            db.query(model)
            .join(subject_model, model.subject_id == subject_model.id)
            .filter(
                model.status == "pending",
                model.scheduled_at <= today,
                *subject_criteria,
            )
            .order_by(model.scheduled_at, model.id)
            .all()
        )

    @staticmethod
    def update_if_pending(db: Session, model, record_id: int, values: dict) -> int:
        """Conditional update guarded on status = 'pending'. Returns affected row count."""
        return (
            db.query(model)
            .filter(model.id == record_id, model.status == "pending")
            .update(values, synchronize_session=False)
        )

    @staticmethod
    def delete_pending(db: Session, model, subject_id: int) -> int:
        return (
            db.query(model)
            .filter(model.subject_id == subject_id, model.status == "pending")
            .delete(synchronize_session=False)
        )

    @staticmethod
    def skip_pending(db: Session, model, subject_id: int, reason: str) -> int:
        return (
            db.query(model)
            .filter(model.subject_id == subject_id, model.status == "pending")
            .update({"status": "skipped", "skip_reason": reason}, synchronize_session=False)
        )
