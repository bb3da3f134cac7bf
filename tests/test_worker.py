"""Tests for the arq worker wiring."""

import pytest

from clientops.scheduler.orchestrator import SchedulerConfig, create_orchestrator
from clientops.worker import build_cron_jobs, make_job_task

from .conftest import NOW, FakeClock, RecordingEmailSender


def make_orchestrator(session_factory, **config_overrides):
    return create_orchestrator(
        session_factory=session_factory,
        email_sender=RecordingEmailSender(),
        scheduler_config=SchedulerConfig(**config_overrides),
        clock=FakeClock(),
    )


class TestCronJobs:
    def test_one_cron_job_per_enabled_job(self, session_factory):
        cron_jobs = build_cron_jobs(make_orchestrator(session_factory, enable_welcome_sequences=False))

        names = {job.name for job in cron_jobs}
        assert len(cron_jobs) == 7
        assert "clientops:welcome_sequences" not in names
        assert "clientops:invoice_reminders" in names

    def test_schedule_matches_registry(self, session_factory):
        cron_jobs = build_cron_jobs(make_orchestrator(session_factory, soft_delete_cleanup_cron="15 4 * * 1"))

        job = next(j for j in cron_jobs if j.name == "clientops:soft_delete_cleanup")
        assert job.minute == {15}
        assert job.hour == {4}
        assert job.weekday == {0}
        assert job.unique is True

    @pytest.mark.asyncio
    async def test_task_runs_as_scheduled(self, session_factory):
        orchestrator = make_orchestrator(session_factory)
        task = make_job_task(orchestrator, "invoice_overdue_check")

        outcome = await task({})

        assert outcome["result"] == {"marked_overdue": 0}
        assert orchestrator.registry.get("invoice_overdue_check").last_run_at == NOW
