import uuid
from datetime import timedelta

import pytest
from sqlmodel import select

from lostfound.models.claim import Claim
from lostfound.models.item import Item
from lostfound.models.notification import Notification
from lostfound.services import cleanup
from lostfound.services import claims as claim_service

from conftest import T0


@pytest.fixture
def received_item(session, add_item, finder, alice, bob):
    """A found item whose approved claim was received at T0, plus a rejected sibling."""
    item = add_item(title="Calculator", status="found", reported_by=finder.user_id)
    winner = claim_service.create_claim(session, alice, item.id, "my initials are on the back", now=T0 - timedelta(days=2))
    claim_service.create_claim(session, bob, item.id, "looks like mine", now=T0 - timedelta(days=2))
    claim_service.decide_claim(session, finder, winner.id, "approved", "Library Rm 204", now=T0 - timedelta(days=1))
    claim_service.mark_received(session, alice, winner.id, now=T0)
    return item


def claims_for(session, item_id):
    return session.exec(select(Claim).where(Claim.item_id == item_id)).all()


def test_nothing_is_removed_inside_the_window(session, received_item):
    result = cleanup.sweep(session, now=T0 + timedelta(days=6))

    assert result == cleanup.SweepResult(deleted_items=0, deleted_claims=0)
    assert session.get(Item, received_item.id) is not None
    assert len(claims_for(session, received_item.id)) == 2


def test_item_and_all_claims_removed_after_the_window(session, received_item):
    item_id = received_item.id

    result = cleanup.sweep(session, now=T0 + timedelta(days=8))

    assert result.deleted_items == 1
    assert result.deleted_claims == 2

    session.expire_all()
    assert session.get(Item, item_id) is None
    assert claims_for(session, item_id) == []


def test_sweep_is_idempotent(session, received_item):
    cleanup.sweep(session, now=T0 + timedelta(days=8))

    again = cleanup.sweep(session, now=T0 + timedelta(days=8))

    assert again == cleanup.SweepResult()


def test_custom_retention(session, received_item):
    result = cleanup.sweep(session, retention=timedelta(days=1), now=T0 + timedelta(days=2))

    assert result.deleted_items == 1


def test_notifications_survive_cleanup(session, received_item):
    before = len(session.exec(select(Notification)).all())

    cleanup.sweep(session, now=T0 + timedelta(days=8))

    assert len(session.exec(select(Notification)).all()) == before


def test_pending_and_approved_claims_are_never_swept(session, add_item, finder, alice, bob):
    item = add_item(status="found", reported_by=finder.user_id)
    approved = claim_service.create_claim(session, alice, item.id, "mine", now=T0 - timedelta(days=30))
    claim_service.decide_claim(session, finder, approved.id, "approved", "Gate 3", now=T0 - timedelta(days=30))

    other = add_item(status="found", reported_by=finder.user_id)
    claim_service.create_claim(session, bob, other.id, "mine", now=T0 - timedelta(days=30))

    assert cleanup.sweep(session, now=T0) == cleanup.SweepResult()


def test_legacy_received_claim_uses_created_at(session, add_item):
    item = add_item(status="found")
    session.add(Claim(
        item_id=item.id,
        item_title=item.title,
        claimed_by="alice-uid",
        message="legacy",
        status="received",
        created_at=T0 - timedelta(days=10),
    ))
    session.commit()

    result = cleanup.sweep(session, now=T0)

    assert result == cleanup.SweepResult(deleted_items=1, deleted_claims=1)


def test_recent_legacy_claim_is_kept(session, add_item):
    item = add_item(status="found")
    session.add(Claim(
        item_id=item.id,
        item_title=item.title,
        claimed_by="alice-uid",
        message="legacy",
        status="received",
        created_at=T0 - timedelta(days=3),
    ))
    session.commit()

    assert cleanup.sweep(session, now=T0) == cleanup.SweepResult()


def test_orphaned_claims_are_swept(session):
    session.add(Claim(
        item_id=uuid.uuid4(),
        item_title="Gone",
        claimed_by="alice-uid",
        message="proof",
        status="received",
        received_at=T0 - timedelta(days=9),
    ))
    session.commit()

    result = cleanup.sweep(session, now=T0)

    assert result == cleanup.SweepResult(deleted_items=0, deleted_claims=1)


def test_one_failing_item_does_not_stop_the_sweep(session, add_item, monkeypatch):
    items = []
    for title in ("Mug", "Scarf"):
        item = add_item(title=title, status="found")
        session.add(Claim(
            item_id=item.id,
            item_title=title,
            claimed_by="alice-uid",
            message="proof",
            status="received",
            received_at=T0 - timedelta(days=9),
        ))
        items.append(item.id)
    session.commit()

    broken, healthy = items
    real_purge = cleanup._purge_item

    def flaky_purge(session, item_id):
        if item_id == broken:
            raise RuntimeError("connection reset")
        return real_purge(session, item_id)

    monkeypatch.setattr(cleanup, "_purge_item", flaky_purge)

    result = cleanup.sweep(session, now=T0)

    assert result == cleanup.SweepResult(deleted_items=1, deleted_claims=1)
    session.expire_all()
    assert session.get(Item, broken) is not None
    assert session.get(Item, healthy) is None

    # the failed item is retried by the next run
    monkeypatch.setattr(cleanup, "_purge_item", real_purge)
    assert cleanup.sweep(session, now=T0).deleted_items == 1


def test_preview_reports_pending_work(session, received_item):
    assert cleanup.preview(session, now=T0 + timedelta(days=6)).count == 0

    preview = cleanup.preview(session, now=T0 + timedelta(days=8))

    assert preview.count == 1
    assert preview.oldest_claim_date is not None


def test_preview_counts_items_separately_from_claims(session, add_item):
    item = add_item(status="found")
    for claimant in ("alice-uid", "bob-uid"):
        session.add(Claim(
            item_id=item.id,
            item_title=item.title,
            claimed_by=claimant,
            message="legacy",
            status="received",
            received_at=T0 - timedelta(days=9),
        ))
    session.commit()

    preview = cleanup.preview(session, now=T0)

    assert preview.count == 2
    assert preview.item_count == 1
