"""
Scheduler orchestrator

Owns the job registry, arms a cron trigger per enabled job and runs each
pass against a fresh database session. Runs of the same job never overlap;
different jobs may run concurrently on the event loop.
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from sqlalchemy.orm import Session

from .. import config
from ..domain.approvals.service import ApprovalReminderService
from ..domain.clients.welcome import WelcomeSequenceService
from ..domain.contracts.service import ContractReminderService
from ..domain.invoices.ledger import InvoiceLedger
from ..domain.retention.sweeper import RetentionSweeper
from ..domain.tasks.escalation_service import PriorityEscalationService
from .clock import Clock, SystemClock
from .cron import CronTrigger
from .registry import JobRegistry, RunFn, ScheduledJob

logger = logging.getLogger(__name__)


@dataclass
class SchedulerConfig:
    enable_invoice_reminders: bool = True
    enable_contract_reminders: bool = True
    enable_welcome_sequences: bool = True
    enable_approval_reminders: bool = True
    enable_priority_escalation: bool = True
    enable_overdue_check: bool = True
    enable_soft_delete_cleanup: bool = True
    enable_analytics_cleanup: bool = True

    reminder_check_cron: str = "0 * * * *"
    approval_reminder_cron: str = "30 9 * * *"
    priority_escalation_cron: str = "0 6 * * *"
    overdue_check_cron: str = "0 1 * * *"
    soft_delete_cleanup_cron: str = "0 2 * * *"
    analytics_cleanup_cron: str = "0 3 * * *"

    analytics_retention_days: int = 365
    soft_delete_retention_days: int = 30
    approval_reminder_intervals: list[int] = field(default_factory=lambda: [1, 3, 7])
    approval_stall_days: int = 14
    admin_email: Optional[str] = None

    @classmethod
    def from_env(cls) -> "SchedulerConfig":
        return cls(
            enable_invoice_reminders=config.SCHEDULER_ENABLE_INVOICE_REMINDERS,
            enable_contract_reminders=config.SCHEDULER_ENABLE_CONTRACT_REMINDERS,
            enable_welcome_sequences=config.SCHEDULER_ENABLE_WELCOME_SEQUENCES,
            enable_approval_reminders=config.SCHEDULER_ENABLE_APPROVAL_REMINDERS,
            enable_priority_escalation=config.SCHEDULER_ENABLE_PRIORITY_ESCALATION,
            enable_overdue_check=config.SCHEDULER_ENABLE_OVERDUE_CHECK,
            enable_soft_delete_cleanup=config.SCHEDULER_ENABLE_SOFT_DELETE_CLEANUP,
            enable_analytics_cleanup=config.SCHEDULER_ENABLE_ANALYTICS_CLEANUP,
            reminder_check_cron=config.REMINDER_CHECK_CRON,
            approval_reminder_cron=config.APPROVAL_REMINDER_CRON,
            priority_escalation_cron=config.PRIORITY_ESCALATION_CRON,
            overdue_check_cron=config.OVERDUE_CHECK_CRON,
            soft_delete_cleanup_cron=config.SOFT_DELETE_CLEANUP_CRON,
            analytics_cleanup_cron=config.ANALYTICS_CLEANUP_CRON,
            analytics_retention_days=config.ANALYTICS_RETENTION_DAYS,
            soft_delete_retention_days=config.SOFT_DELETE_RETENTION_DAYS,
            approval_reminder_intervals=list(config.APPROVAL_REMINDER_INTERVALS),
            approval_stall_days=config.APPROVAL_STALL_DAYS,
            admin_email=config.ADMIN_EMAIL,
        )


class SchedulerOrchestrator:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        email_sender,
        scheduler_config: Optional[SchedulerConfig] = None,
        clock: Optional[Clock] = None,
    ):
        self.session_factory = session_factory
        self.email_sender = email_sender
        self.config = scheduler_config or SchedulerConfig()
        self.clock = clock or SystemClock()
        self.registry = JobRegistry()
        self.is_running = False

        self.invoices = InvoiceLedger()
        self.contracts = ContractReminderService()
        self.welcome = WelcomeSequenceService()
        self.approvals = ApprovalReminderService(
            intervals=self.config.approval_reminder_intervals,
            stall_days=self.config.approval_stall_days,
            admin_email=self.config.admin_email or "",
        )
        self.priorities = PriorityEscalationService()
        self.sweeper = RetentionSweeper()

    # ============================================
    # Registration
    # ============================================

    def register(
        self, name: str, trigger_expression: str, run_fn: RunFn, enabled: bool = True
    ) -> ScheduledJob:
        job = self.registry.register(name, trigger_expression, run_fn, enabled)
        if self.is_running and enabled:
            self._arm(job)
        return job

    def register_default_jobs(self) -> None:
        cfg = self.config
        jobs = (
            ("invoice_reminders", cfg.reminder_check_cron, self.run_invoice_reminders, cfg.enable_invoice_reminders),
            ("contract_reminders", cfg.reminder_check_cron, self.run_contract_reminders, cfg.enable_contract_reminders),
            ("welcome_sequences", cfg.reminder_check_cron, self.run_welcome_sequences, cfg.enable_welcome_sequences),
            ("approval_reminders", cfg.approval_reminder_cron, self.run_approval_reminders, cfg.enable_approval_reminders),
            ("priority_escalation", cfg.priority_escalation_cron, self.run_priority_escalation, cfg.enable_priority_escalation),
            ("invoice_overdue_check", cfg.overdue_check_cron, self.run_overdue_check, cfg.enable_overdue_check),
            ("soft_delete_cleanup", cfg.soft_delete_cleanup_cron, self.run_soft_delete_cleanup, cfg.enable_soft_delete_cleanup),
            ("analytics_cleanup", cfg.analytics_cleanup_cron, self.run_analytics_cleanup, cfg.enable_analytics_cleanup),
        )
        for name, expression, run_fn, enabled in jobs:
            self.register(name, expression, run_fn, enabled)

    # ============================================
    # Lifecycle
    # ============================================

    def _arm(self, job: ScheduledJob) -> None:
        if job.trigger is None:
            job.trigger = CronTrigger(
                job.expression,
                callback=lambda name=job.name: self.run_job(name),
                clock=self.clock,
                name=job.name,
            )
        job.trigger.arm()
        next_run = job.trigger.next_fire_time()
        logger.info(f"⏰ {job.name} scheduled ({job.trigger_expression}), next run {next_run:%Y-%m-%d %H:%M} UTC")

    def start(self) -> bool:
        """Arm every enabled job. Must be called with a running event loop."""
        asyncio.get_running_loop()
        if self.is_running:
            logger.info("Scheduler already running")
            return False

        for job in self.registry:
            if job.enabled:
                self._arm(job)
        self.is_running = True
        logger.info(f"🚀 Scheduler started with {sum(1 for j in self.registry if j.armed)} job(s)")
        return True

    def stop(self) -> bool:
        """Disarm all triggers. Passes already running are left to finish."""
        if not self.is_running:
            return False
        for job in self.registry:
            if job.trigger is not None:
                job.trigger.disarm()
        self.is_running = False
        logger.info("🛑 Scheduler stopped")
        return True

    async def drain(self) -> None:
        """Wait for passes started by triggers to finish. Call after stop()."""
        triggers = [job.trigger for job in self.registry if job.trigger is not None]
        busy = [t.name for t in triggers if t.busy]
        if busy:
            logger.info(f"⏳ Waiting for running passes to finish: {', '.join(busy)}")
        await asyncio.gather(*(t.wait_idle() for t in triggers))

    def start_job(self, name: str) -> ScheduledJob:
        job = self.registry.get(name)
        job.enabled = True
        if self.is_running:
            self._arm(job)
        return job

    def stop_job(self, name: str) -> ScheduledJob:
        job = self.registry.get(name)
        job.enabled = False
        if job.trigger is not None:
            job.trigger.disarm()
        return job

    def status(self) -> dict:
        jobs = {}
        for job in self.registry:
            snapshot = job.snapshot()
            snapshot["next_run_at"] = job.trigger.next_fire_time() if job.armed else None
            jobs[job.name] = snapshot
        return {"is_running": self.is_running, "jobs": jobs}

    # ============================================
    # Execution
    # ============================================

    async def _invoke(self, job: ScheduledJob, scheduled: bool) -> dict:
        if job.is_running:
            logger.warning(f"⏰ {job.name} is still running - skipping this run")
            return {"job": job.name, "ran": False, "result": None, "error": None}

        job.is_running = True
        started_at = self.clock.now()
        error = None
        result = None
        try:
            result = await job.run_fn()
            job.last_result = result
            job.last_error = None
            logger.info(f"✅ {job.name} completed: {result}")
        except Exception as e:
            error = str(e)
            job.last_error = error
            logger.exception(f"❌ {job.name} failed: {e}")
        finally:
            job.is_running = False
            if scheduled:
                job.last_run_at = started_at
                job.run_count += 1
            else:
                job.last_manual_run_at = started_at

        return {"job": job.name, "ran": True, "result": result, "error": error}

    async def run_job(self, name: str) -> dict:
        """Scheduled run: records last_run_at"""
        return await self._invoke(self.registry.get(name), scheduled=True)

    async def trigger_now(self, name: str) -> dict:
        """Run a job outside its schedule without touching last_run_at"""
        job = self.registry.get(name)
        logger.info(f"🔄 Manually triggering {name}")
        return await self._invoke(job, scheduled=False)

    async def _in_session(self, work: Callable[[Session], Any]) -> Any:
        db = self.session_factory()
        try:
            result = work(db)
            if inspect.isawaitable(result):
                result = await result
            return result
        finally:
            db.close()

    # ============================================
    # Passes
    # ============================================

    async def run_invoice_reminders(self) -> dict:
        return await self._in_session(
            lambda db: self.invoices.process_reminders(db, self.email_sender, self.clock.now())
        )

    async def run_contract_reminders(self) -> dict:
        return await self._in_session(
            lambda db: self.contracts.process_reminders(db, self.email_sender, self.clock.now())
        )

    async def run_welcome_sequences(self) -> dict:
        return await self._in_session(
            lambda db: self.welcome.process_pending(db, self.email_sender, self.clock.now())
        )

    async def run_approval_reminders(self) -> dict:
        return await self._in_session(
            lambda db: self.approvals.process_approval_reminders(db, self.email_sender, self.clock.now())
        )

    async def run_priority_escalation(self) -> dict:
        return await self._in_session(
            lambda db: self.priorities.escalate_task_priorities(db, self.clock.now())
        )

    async def run_overdue_check(self) -> dict:
        count = await self._in_session(
            lambda db: self.invoices.mark_overdue_invoices(db, self.clock.now())
        )
        return {"marked_overdue": count}

    async def run_soft_delete_cleanup(self) -> dict:
        outcome = await self._in_session(
            lambda db: self.sweeper.purge_expired_soft_deletes(
                db, self.config.soft_delete_retention_days, self.clock.now()
            )
        )
        return {
            "deleted": outcome["deleted"],
            "errors": [str(error) for error in outcome["errors"]],
        }

    async def run_analytics_cleanup(self) -> dict:
        return await self._in_session(
            lambda db: self.sweeper.purge_analytics(
                db, self.config.analytics_retention_days, self.clock.now()
            )
        )


def create_orchestrator(
    session_factory: Optional[Callable[[], Session]] = None,
    email_sender=None,
    scheduler_config: Optional[SchedulerConfig] = None,
    clock: Optional[Clock] = None,
    register_defaults: bool = True,
) -> SchedulerOrchestrator:
    """Build an orchestrator wired to the application database and email service"""
    if session_factory is None:
        from ..database import SessionLocal

        session_factory = SessionLocal
    if email_sender is None:
        from ..email_service import EmailService

        email_sender = EmailService()

    orchestrator = SchedulerOrchestrator(
        session_factory,
        email_sender,
        scheduler_config or SchedulerConfig.from_env(),
        clock,
    )
    if register_defaults:
        orchestrator.register_default_jobs()
    return orchestrator
