"""Task priority escalation - raises task priority as due dates approach"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...models import ProjectTask
from ...scheduler.clock import utcnow
from ...scheduler.escalation import PRIORITY_LEVELS, required_priority, should_escalate

logger = logging.getLogger(__name__)

EXCLUDED_TASK_STATUSES = ("completed", "cancelled")


class PriorityEscalationService:
    @staticmethod
    def _open_tasks(db: Session, project_id: Optional[int] = None):
        query = db.query(ProjectTask).filter(ProjectTask.status.notin_(EXCLUDED_TASK_STATUSES))
        if project_id is not None:
            query = query.filter(ProjectTask.project_id == project_id)
        return query

    def _plan(self, db: Session, today, project_id: Optional[int]) -> list[tuple[ProjectTask, dict]]:
        planned = []
        tasks = self._open_tasks(db, project_id).filter(ProjectTask.due_date.isnot(None)).all()
        for task in tasks:
            days_until_due = (task.due_date - today).days
            target = required_priority(days_until_due)
            if should_escalate(task.priority, target):
                planned.append(
                    (
                        task,
                        {
                            "task_id": task.id,
                            "project_id": task.project_id,
                            "title": task.title,
                            "old_priority": task.priority,
                            "new_priority": target,
                            "days_until_due": days_until_due,
                        },
                    )
                )
        return planned

    def escalate_task_priorities(
        self, db: Session, now: Optional[datetime] = None, project_id: Optional[int] = None
    ) -> dict:
        """Raise priorities where the due date calls for it; never downgrades"""
        today = (now or utcnow()).date()
        planned = self._plan(db, today, project_id)

        for task, change in planned:
            task.priority = change["new_priority"]
        db.commit()

        if planned:
            scope = f"project {project_id}" if project_id is not None else "all projects"
            logger.info(f"🔄 Escalated {len(planned)} task(s) for {scope}")

        return {"updated_count": len(planned), "escalated_tasks": [change for _, change in planned]}

    def preview_escalation(
        self, db: Session, now: Optional[datetime] = None, project_id: Optional[int] = None
    ) -> dict:
        """Dry run of escalate_task_priorities"""
        today = (now or utcnow()).date()
        planned = self._plan(db, today, project_id)
        return {"updated_count": len(planned), "escalated_tasks": [change for _, change in planned]}

    def get_escalation_summary(
        self, db: Session, now: Optional[datetime] = None, project_id: Optional[int] = None
    ) -> dict:
        today = (now or utcnow()).date()
        week_end = today + timedelta(days=7)

        by_priority = {level: 0 for level in PRIORITY_LEVELS}
        rows = (
            self._open_tasks(db, project_id)
            .with_entities(ProjectTask.priority, func.count(ProjectTask.id))
            .group_by(ProjectTask.priority)
            .all()
        )
        for priority, count in rows:
            by_priority[priority] = count

        open_tasks = self._open_tasks(db, project_id)
        return {
            "total_tasks": sum(by_priority.values()),
            "by_priority": by_priority,
            "overdue": open_tasks.filter(ProjectTask.due_date < today).count(),
            "due_today": open_tasks.filter(ProjectTask.due_date == today).count(),
            "due_this_week": open_tasks.filter(
                ProjectTask.due_date > today, ProjectTask.due_date <= week_end
            ).count(),
            "would_escalate": len(self._plan(db, today, project_id)),
        }
