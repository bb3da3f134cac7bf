"""Tests for the scheduler orchestrator lifecycle and job execution."""

import asyncio
from datetime import datetime, timedelta

import pytest

from clientops.domain.invoices.ledger import InvoiceLedger
from clientops.domain.reminders.kinds import InvoiceReminderKind
from clientops.errors import DuplicateJobError, NotFoundError
from clientops.models_reminders import InvoiceReminder
from clientops.scheduler.orchestrator import SchedulerConfig, SchedulerOrchestrator, create_orchestrator

from .conftest import NOW, FakeClock, RecordingEmailSender, make_client, make_invoice


def make_orchestrator(session_factory, clock=None, **config_overrides) -> SchedulerOrchestrator:
    return SchedulerOrchestrator(
        session_factory,
        RecordingEmailSender(),
        SchedulerConfig(**config_overrides),
        clock or FakeClock(),
    )


class GatedEmailSender(RecordingEmailSender):
    """Holds every send until released."""

    def __init__(self):
        super().__init__()
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def send(self, to, subject, text_body, html_body):
        self.started.set()
        await self.release.wait()
        return await super().send(to, subject, text_body, html_body)


# ─────────────────────────────────────────────────────────────────────────────
# Registration
# ─────────────────────────────────────────────────────────────────────────────

class TestRegistration:
    def test_default_jobs(self, session_factory):
        orchestrator = make_orchestrator(session_factory)
        orchestrator.register_default_jobs()
        assert set(orchestrator.registry.names()) == {
            "invoice_reminders",
            "contract_reminders",
            "welcome_sequences",
            "approval_reminders",
            "priority_escalation",
            "invoice_overdue_check",
            "soft_delete_cleanup",
            "analytics_cleanup",
        }

    def test_disabled_flag_carried_to_job(self, session_factory):
        orchestrator = make_orchestrator(session_factory, enable_analytics_cleanup=False)
        orchestrator.register_default_jobs()
        assert orchestrator.registry.get("analytics_cleanup").enabled is False

    def test_duplicate_registration(self, session_factory):
        orchestrator = make_orchestrator(session_factory)

        async def run():
            return {}

        orchestrator.register("job", "* * * * *", run)
        with pytest.raises(DuplicateJobError):
            orchestrator.register("job", "0 * * * *", run)

    def test_factory_registers_defaults(self, session_factory):
        orchestrator = create_orchestrator(
            session_factory=session_factory,
            email_sender=RecordingEmailSender(),
            scheduler_config=SchedulerConfig(),
            clock=FakeClock(),
        )
        assert len(orchestrator.registry) == 8
        assert orchestrator.is_running is False


# ─────────────────────────────────────────────────────────────────────────────
# Lifecycle
# ─────────────────────────────────────────────────────────────────────────────

class TestLifecycle:
    @pytest.mark.asyncio
    async def test_start_is_idempotent_and_stop_disarms(self, session_factory):
        orchestrator = make_orchestrator(session_factory, enable_analytics_cleanup=False)
        orchestrator.register_default_jobs()

        assert orchestrator.start() is True
        assert orchestrator.start() is False

        status = orchestrator.status()
        assert status["is_running"] is True
        assert status["jobs"]["invoice_reminders"]["armed"] is True
        assert status["jobs"]["analytics_cleanup"]["armed"] is False
        assert status["jobs"]["invoice_reminders"]["next_run_at"] is not None

        assert orchestrator.stop() is True
        assert orchestrator.stop() is False
        status = orchestrator.status()
        assert status["is_running"] is False
        assert not any(job["armed"] for job in status["jobs"].values())

    def test_start_requires_event_loop(self, session_factory):
        orchestrator = make_orchestrator(session_factory)
        with pytest.raises(RuntimeError):
            orchestrator.start()

    @pytest.mark.asyncio
    async def test_stop_and_start_single_job(self, session_factory):
        orchestrator = make_orchestrator(session_factory)
        orchestrator.register_default_jobs()
        orchestrator.start()

        orchestrator.stop_job("priority_escalation")
        assert orchestrator.status()["jobs"]["priority_escalation"]["armed"] is False

        orchestrator.start_job("priority_escalation")
        assert orchestrator.status()["jobs"]["priority_escalation"]["armed"] is True
        orchestrator.stop()

    @pytest.mark.asyncio
    async def test_drain_waits_for_fired_pass_after_stop(self, session_factory):
        clock = FakeClock(datetime(2025, 3, 10, 9, 59, 30))
        orchestrator = make_orchestrator(session_factory, clock=clock)
        release = asyncio.Event()
        events = []

        async def slow():
            events.append("started")
            await release.wait()
            events.append("finished")
            return {}

        orchestrator.register("slow", "0 * * * *", slow)
        orchestrator.start()
        await asyncio.sleep(0)

        clock.set(datetime(2025, 3, 10, 10, 0))
        for _ in range(5):
            await asyncio.sleep(0)
        assert events == ["started"]

        orchestrator.stop()
        drained = asyncio.create_task(orchestrator.drain())
        await asyncio.sleep(0)
        assert not drained.done()

        release.set()
        await drained

        assert events == ["started", "finished"]
        job = orchestrator.registry.get("slow")
        assert job.run_count == 1
        assert job.is_running is False

    @pytest.mark.asyncio
    async def test_drain_without_running_passes_returns(self, session_factory):
        orchestrator = make_orchestrator(session_factory)
        orchestrator.register_default_jobs()
        orchestrator.start()
        orchestrator.stop()

        await asyncio.wait_for(orchestrator.drain(), timeout=1)


# ─────────────────────────────────────────────────────────────────────────────
# Execution
# ─────────────────────────────────────────────────────────────────────────────

class TestExecution:
    @pytest.mark.asyncio
    async def test_trigger_now_unknown_job(self, session_factory):
        orchestrator = make_orchestrator(session_factory)
        with pytest.raises(NotFoundError):
            await orchestrator.trigger_now("missing")

    @pytest.mark.asyncio
    async def test_trigger_now_leaves_last_run_at_alone(self, session_factory):
        orchestrator = make_orchestrator(session_factory)

        async def run():
            return {"processed": 3}

        orchestrator.register("job", "0 * * * *", run)
        outcome = await orchestrator.trigger_now("job")

        job = orchestrator.registry.get("job")
        assert outcome == {"job": "job", "ran": True, "result": {"processed": 3}, "error": None}
        assert job.last_run_at is None
        assert job.last_manual_run_at == NOW
        assert job.run_count == 0

    @pytest.mark.asyncio
    async def test_scheduled_run_records_last_run_at(self, session_factory):
        orchestrator = make_orchestrator(session_factory)

        async def run():
            return {}

        orchestrator.register("job", "0 * * * *", run)
        await orchestrator.run_job("job")

        job = orchestrator.registry.get("job")
        assert job.last_run_at == NOW
        assert job.run_count == 1

    @pytest.mark.asyncio
    async def test_failing_job_still_updates_last_run_at(self, session_factory):
        orchestrator = make_orchestrator(session_factory)

        async def run():
            raise RuntimeError("database unavailable")

        orchestrator.register("job", "0 * * * *", run)
        outcome = await orchestrator.run_job("job")

        job = orchestrator.registry.get("job")
        assert outcome["error"] == "database unavailable"
        assert job.last_error == "database unavailable"
        assert job.last_run_at == NOW
        assert job.is_running is False

    @pytest.mark.asyncio
    async def test_same_job_does_not_overlap(self, session_factory):
        orchestrator = make_orchestrator(session_factory)
        release = asyncio.Event()
        runs = []

        async def slow():
            runs.append(1)
            await release.wait()
            return {}

        orchestrator.register("slow", "* * * * *", slow)
        first = asyncio.create_task(orchestrator.run_job("slow"))
        await asyncio.sleep(0)

        skipped = await orchestrator.trigger_now("slow")
        assert skipped["ran"] is False
        assert runs == [1]

        release.set()
        completed = await first
        assert completed["ran"] is True

    @pytest.mark.asyncio
    async def test_invoice_pass_sends_once_while_overlapping(self, db, session_factory):
        invoice = make_invoice(db, make_client(db), due_date=NOW + timedelta(days=3))
        ledger = InvoiceLedger(InvoiceReminderKind(portal_url="https://portal.test"))
        ledger.schedule_invoice_reminders(db, invoice.id, NOW)

        sender = GatedEmailSender()
        orchestrator = SchedulerOrchestrator(session_factory, sender, SchedulerConfig(), FakeClock())
        orchestrator.register_default_jobs()

        first = asyncio.create_task(orchestrator.run_job("invoice_reminders"))
        await asyncio.wait_for(sender.started.wait(), timeout=1)

        skipped = await orchestrator.trigger_now("invoice_reminders")
        assert skipped == {"job": "invoice_reminders", "ran": False, "result": None, "error": None}

        sender.release.set()
        completed = await first

        assert completed["ran"] is True
        assert completed["result"]["sent"] == 1
        assert sender.recipients == ["client@example.com"]
        db.expire_all()
        statuses = [r.status for r in db.query(InvoiceReminder).filter_by(subject_id=invoice.id)]
        assert statuses.count("sent") == 1

        rerun = await orchestrator.trigger_now("invoice_reminders")
        assert rerun["result"]["sent"] == 0
        assert len(sender.sent) == 1

    @pytest.mark.asyncio
    async def test_different_jobs_run_concurrently(self, session_factory):
        orchestrator = make_orchestrator(session_factory)
        release = asyncio.Event()

        async def slow():
            await release.wait()
            return {}

        async def fast():
            return {"done": True}

        orchestrator.register("slow", "* * * * *", slow)
        orchestrator.register("fast", "* * * * *", fast)
        pending = asyncio.create_task(orchestrator.run_job("slow"))
        await asyncio.sleep(0)

        outcome = await orchestrator.run_job("fast")
        assert outcome["ran"] is True
        release.set()
        await pending

    @pytest.mark.asyncio
    async def test_default_passes_run_on_empty_database(self, session_factory):
        orchestrator = make_orchestrator(session_factory)
        orchestrator.register_default_jobs()

        for name in orchestrator.registry.names():
            outcome = await orchestrator.trigger_now(name)
            assert outcome["error"] is None, name
            assert outcome["ran"] is True
