from datetime import datetime, timedelta, timezone

import pytest
from sqlmodel import Session, select

from lostfound.models.claim import Claim
from lostfound.models.item import Item
from lostfound.services import scheduler as scheduler_module
from lostfound.services.scheduler import JOB_ID, CleanupScheduler, build_scheduler


def test_disabled_without_interval(engine):
    assert build_scheduler(engine) is None


def test_built_from_environment(engine, monkeypatch):
    monkeypatch.setenv("CLEANUP_INTERVAL_HOURS", "6")
    monkeypatch.setenv("CLEANUP_RETENTION_DAYS", "3")

    cleanup_scheduler = build_scheduler(engine)

    assert cleanup_scheduler.interval == timedelta(hours=6)
    assert cleanup_scheduler.retention == timedelta(days=3)


@pytest.mark.parametrize("hours", ["0", "-2"])
def test_non_positive_interval_is_rejected(engine, monkeypatch, hours):
    monkeypatch.setenv("CLEANUP_INTERVAL_HOURS", hours)

    with pytest.raises(ValueError):
        build_scheduler(engine)


def test_run_sweep_purges_expired_items(engine):
    old = datetime.now(timezone.utc) - timedelta(days=10)
    with Session(engine) as session:
        item = Item(title="Headphones", status="found", claimed=True, claimed_by="alice-uid")
        session.add(item)
        session.commit()
        session.add(Claim(
            item_id=item.id,
            item_title=item.title,
            claimed_by="alice-uid",
            message="proof",
            status="received",
            received_at=old,
        ))
        session.commit()

    result = CleanupScheduler(engine, timedelta(hours=1)).run_sweep()

    assert result.deleted_items == 1
    assert result.deleted_claims == 1
    with Session(engine) as session:
        assert session.exec(select(Item)).all() == []


def test_run_sweep_logs_and_survives_failures(engine, monkeypatch):
    def broken_sweep(session, retention, now):
        raise RuntimeError("database went away")

    monkeypatch.setattr(scheduler_module, "sweep", broken_sweep)

    assert CleanupScheduler(engine, timedelta(hours=1)).run_sweep() is None


def test_start_registers_single_job_and_shutdown_stops(engine):
    cleanup_scheduler = CleanupScheduler(engine, timedelta(hours=12))

    cleanup_scheduler.start()
    cleanup_scheduler.start()
    try:
        jobs = cleanup_scheduler.scheduler.get_jobs()
        assert [job.id for job in jobs] == [JOB_ID]
        assert cleanup_scheduler.is_running
    finally:
        cleanup_scheduler.shutdown()

    assert not cleanup_scheduler.is_running
