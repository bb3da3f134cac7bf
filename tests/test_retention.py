"""Tests for analytics retention and the soft-delete sweep."""

from datetime import timedelta

import pytest

from clientops.domain.retention.sweeper import RetentionSweeper
from clientops.errors import SweepError
from clientops.models import Client, InteractionEvent, PageView, Project, Proposal
from clientops.models_invoice import Invoice

from .conftest import NOW, make_client, make_invoice, make_project


@pytest.fixture
def sweeper():
    return RetentionSweeper()


def add_page_view(db, age_days: int) -> PageView:
    view = PageView(path="/pricing", visitor_id="v-1", created_at=NOW - timedelta(days=age_days))
    db.add(view)
    db.commit()
    return view


# ─────────────────────────────────────────────────────────────────────────────
# Analytics retention
# ─────────────────────────────────────────────────────────────────────────────

class TestAnalyticsRetention:
    def test_purges_rows_older_than_cutoff(self, db, sweeper):
        add_page_view(db, 400)
        add_page_view(db, 366)
        add_page_view(db, 10)

        assert sweeper.purge_older_than(db, "page_views", NOW - timedelta(days=365)) == 2
        assert db.query(PageView).count() == 1

    def test_second_run_deletes_nothing(self, db, sweeper):
        add_page_view(db, 400)
        cutoff = NOW - timedelta(days=365)
        sweeper.purge_older_than(db, "page_views", cutoff)
        assert sweeper.purge_older_than(db, "page_views", cutoff) == 0

    def test_unregistered_table_rejected(self, db, sweeper):
        with pytest.raises(ValueError):
            sweeper.purge_older_than(db, "clients", NOW)

    def test_purge_analytics_covers_both_tables(self, db, sweeper):
        add_page_view(db, 400)
        db.add(InteractionEvent(event_type="click", created_at=NOW - timedelta(days=500)))
        db.add(InteractionEvent(event_type="click", created_at=NOW - timedelta(days=5)))
        db.commit()

        result = sweeper.purge_analytics(db, retention_days=365, now=NOW)

        assert result == {"page_views": 1, "interaction_events": 1, "total": 2}


# ─────────────────────────────────────────────────────────────────────────────
# Soft-delete sweep
# ─────────────────────────────────────────────────────────────────────────────

@pytest.fixture
def soft_deleted(db):
    expired = NOW - timedelta(days=40)
    old_client = make_client(db, email="gone@example.com", deleted_at=expired)
    client = make_client(db)
    lead = make_project(db, client, project_name="Lead", status="new", deleted_at=expired)
    project = make_project(db, client, project_name="Old", deleted_at=NOW - timedelta(days=35))
    recent = make_project(db, client, project_name="Recent", deleted_at=NOW - timedelta(days=5))
    live = make_project(db, client, project_name="Live")
    invoice = make_invoice(db, client, due_date=NOW, deleted_at=expired)
    proposal = Proposal(client_id=client.id, title="Retainer", deleted_at=expired)
    db.add(proposal)
    db.commit()
    return {
        "old_client": old_client.id,
        "client": client.id,
        "lead": lead.id,
        "project": project.id,
        "recent": recent.id,
        "live": live.id,
        "invoice": invoice.id,
        "proposal": proposal.id,
    }


class TestSoftDeleteSweep:
    def test_counts_by_entity(self, db, sweeper, soft_deleted):
        result = sweeper.purge_expired_soft_deletes(db, grace_period_days=30, now=NOW)

        assert result["errors"] == []
        assert result["deleted"] == {
            "clients": 1,
            "projects": 2,
            "leads": 1,
            "invoices": 1,
            "proposals": 1,
            "total": 5,
        }

    def test_only_expired_rows_removed(self, db, sweeper, soft_deleted):
        sweeper.purge_expired_soft_deletes(db, grace_period_days=30, now=NOW)

        assert db.get(Client, soft_deleted["old_client"]) is None
        assert db.get(Client, soft_deleted["client"]) is not None
        assert db.get(Project, soft_deleted["lead"]) is None
        assert db.get(Project, soft_deleted["recent"]) is not None
        assert db.get(Project, soft_deleted["live"]) is not None
        assert db.get(Invoice, soft_deleted["invoice"]) is None
        assert db.get(Proposal, soft_deleted["proposal"]) is None

    def test_second_sweep_is_empty(self, db, sweeper, soft_deleted):
        sweeper.purge_expired_soft_deletes(db, grace_period_days=30, now=NOW)
        result = sweeper.purge_expired_soft_deletes(db, grace_period_days=30, now=NOW)
        assert result["deleted"]["total"] == 0

    def test_failure_is_collected_and_sweep_continues(self, db, soft_deleted):
        class FailingSweeper(RetentionSweeper):
            def _delete_entity(self, db, entity):
                if isinstance(entity, Project) and entity.id == soft_deleted["lead"]:
                    raise RuntimeError("foreign key violation")
                super()._delete_entity(db, entity)

        result = FailingSweeper().purge_expired_soft_deletes(db, grace_period_days=30, now=NOW)

        assert len(result["errors"]) == 1
        error = result["errors"][0]
        assert isinstance(error, SweepError)
        assert (error.kind, error.entity_id) == ("projects", soft_deleted["lead"])
        assert result["deleted"]["projects"] == 1
        assert result["deleted"]["leads"] == 0
        assert result["deleted"]["clients"] == 1
        assert db.get(Project, soft_deleted["lead"]) is not None
