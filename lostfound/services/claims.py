"""
Claim lifecycle: creation, finder decisions and receipt confirmation.

Claim states move only along::

    pending -> approved -> received
    pending -> rejected

Approval touches the claim, its item, every sibling claim and several
notifications. It runs in one transaction and every write that could race
another approval is a conditional UPDATE, backed by the partial unique index
on approved claims.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import exists, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from lostfound.models.claim import Claim
from lostfound.models.item import Item
from lostfound.models.notification import Notification
from lostfound.utils.auth_helper import CallerIdentity, is_item_reporter
from lostfound.utils.errors import Conflict, Forbidden, InvalidState, NotFound, ValidationError

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    "pending": {"approved", "rejected"},
    "approved": {"received"},
}

DECISIONS = ("approved", "rejected")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_transition(current: str, target: str):
    if target not in ALLOWED_TRANSITIONS.get(current, set()):
        raise InvalidState(f"Claim cannot move from '{current}' to '{target}'")


def get_item_or_404(session: Session, item_id: uuid.UUID, for_update: bool = False) -> Item:
    query = select(Item).where(Item.id == item_id)
    if for_update:
        # row lock on backends that support it, no-op on SQLite
        query = query.with_for_update()

    item = session.exec(query).first()
    if not item:
        raise NotFound("Item not found")
    return item


def get_claim_or_404(session: Session, claim_id: uuid.UUID) -> Claim:
    claim = session.get(Claim, claim_id)
    if not claim:
        raise NotFound("Claim not found")
    return claim


def _notify(
    session: Session,
    user_id: str,
    type: str,
    title: str,
    message: str,
    claim: Claim,
    created_at: datetime,
    meetup_address: Optional[str] = None,
):
    session.add(Notification(
        user_id=user_id,
        type=type,
        title=title,
        message=message,
        item_id=claim.item_id,
        item_title=claim.item_title,
        claim_id=claim.id,
        meetup_address=meetup_address,
        created_at=created_at,
    ))


def _notify_rejected(session: Session, claim: Claim, now: datetime):
    _notify(
        session,
        user_id=claim.claimed_by,
        type="claim_rejected",
        title="Your claim has been rejected",
        message=f"Your claim for {claim.item_title} was rejected",
        claim=claim,
        created_at=now,
    )


def create_claim(
    session: Session,
    caller: CallerIdentity,
    item_id: uuid.UUID,
    message: Optional[str],
    now: Optional[datetime] = None,
) -> Claim:
    message = (message or "").strip()
    if not message:
        raise ValidationError("A proof message is required")

    now = now or _utcnow()
    item = get_item_or_404(session, item_id, for_update=True)

    if item.status != "found":
        raise InvalidState("Can only claim found items")

    if item.claimed:
        raise InvalidState("Item has already been claimed")

    # Prevent self-claim
    if is_item_reporter(item, caller):
        raise Forbidden("You cannot claim your own item")

    # Prevent duplicate claim by same user
    existing = session.exec(
        select(Claim)
        .where(Claim.item_id == item.id)
        .where(Claim.claimed_by == caller.user_id)
        .where(Claim.status == "pending")
    ).first()

    if existing:
        raise Conflict("You already have a pending claim for this item")

    # Re-check claimed inside the write transaction; an approval may have
    # committed since the read above. On SQLite this also takes the write lock.
    result = session.execute(
        update(Item)
        .where(Item.id == item.id)
        .where(Item.claimed == False)
        .values(claimed=Item.claimed)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        session.rollback()
        raise InvalidState("Item has already been claimed")

    claim = Claim(
        item_id=item.id,
        item_title=item.title,
        claimed_by=caller.user_id,
        message=message,
        status="pending",
        created_at=now,
    )
    session.add(claim)

    # Notify finder
    if item.reported_by:
        _notify(
            session,
            user_id=item.reported_by,
            type="claim_created",
            title="New claim received",
            message=f"Someone has requested to claim your found item '{item.title}'",
            claim=claim,
            created_at=now,
        )

    try:
        session.commit()
    except IntegrityError:
        # lost a race against an identical request
        session.rollback()
        raise Conflict("You already have a pending claim for this item")

    session.refresh(claim)
    logger.info("Claim %s created on item %s by %s", claim.id, item.id, caller.user_id)
    return claim


def decide_claim(
    session: Session,
    caller: CallerIdentity,
    claim_id: uuid.UUID,
    decision: str,
    meetup_address: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Claim:
    if decision not in DECISIONS:
        raise ValidationError("decision must be 'approved' or 'rejected'")

    meetup_address = (meetup_address or "").strip()
    if decision == "approved" and not meetup_address:
        raise ValidationError("A meetup address is required when approving a claim")

    now = now or _utcnow()
    claim = get_claim_or_404(session, claim_id)
    item = get_item_or_404(session, claim.item_id, for_update=True)

    if not is_item_reporter(item, caller):
        logger.warning("User %s tried to decide claim %s on an item they did not report", caller.user_id, claim.id)
        raise Forbidden("Only the item finder can approve or reject claims")

    if decision == "approved":
        return _approve(session, claim, item, meetup_address, now)

    return _reject(session, claim, now)


def _approve(session: Session, claim: Claim, item: Item, meetup_address: str, now: datetime) -> Claim:
    competing = session.exec(
        select(Claim)
        .where(Claim.item_id == claim.item_id)
        .where(Claim.status == "approved")
        .where(Claim.id != claim.id)
    ).first()

    if competing:
        raise InvalidState("Another claim has already been approved for this item")

    ensure_transition(claim.status, "approved")

    approved_claims = Claim.__table__.alias("approved_claims")
    no_other_approval = ~exists().where(
        approved_claims.c.item_id == claim.item_id,
        approved_claims.c.status == "approved",
    )

    try:
        result = session.execute(
            update(Claim)
            .where(Claim.id == claim.id)
            .where(Claim.status == "pending")
            .where(no_other_approval)
            .values(status="approved", meetup_address=meetup_address, decided_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise InvalidState("Another claim has already been approved for this item")

        result = session.execute(
            update(Item)
            .where(Item.id == item.id)
            .where(Item.claimed == False)
            .values(claimed=True, claimed_by=claim.claimed_by, approved=True)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise InvalidState("Item has already been claimed")

        # Reject all other pending claims for this item
        siblings = session.exec(
            select(Claim)
            .where(Claim.item_id == claim.item_id)
            .where(Claim.status == "pending")
            .where(Claim.id != claim.id)
        ).all()

        for sibling in siblings:
            sibling.status = "rejected"
            sibling.decided_at = now
            session.add(sibling)
            _notify_rejected(session, sibling, now)

        _notify(
            session,
            user_id=claim.claimed_by,
            type="claim_approved",
            title="Your claim has been approved",
            message=f"Your claim for {claim.item_title} was approved. Meetup address: {meetup_address}",
            claim=claim,
            created_at=now,
            meetup_address=meetup_address,
        )

        session.commit()
    except InvalidState:
        session.rollback()
        raise
    except IntegrityError:
        session.rollback()
        raise InvalidState("Another claim has already been approved for this item")

    session.refresh(claim)
    logger.info("Claim %s approved, %d competing claim(s) rejected", claim.id, len(siblings))
    return claim


def _reject(session: Session, claim: Claim, now: datetime) -> Claim:
    ensure_transition(claim.status, "rejected")

    result = session.execute(
        update(Claim)
        .where(Claim.id == claim.id)
        .where(Claim.status == "pending")
        .values(status="rejected", decided_at=now)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        session.rollback()
        raise InvalidState("Claim has already been decided")

    # Do NOT modify the item
    _notify_rejected(session, claim, now)
    session.commit()

    session.refresh(claim)
    logger.info("Claim %s rejected", claim.id)
    return claim


def mark_received(
    session: Session,
    caller: CallerIdentity,
    claim_id: uuid.UUID,
    now: Optional[datetime] = None,
) -> Claim:
    now = now or _utcnow()
    claim = get_claim_or_404(session, claim_id)

    if claim.claimed_by != caller.user_id:
        raise Forbidden("Only the claimant can mark this claim as received")

    ensure_transition(claim.status, "received")

    result = session.execute(
        update(Claim)
        .where(Claim.id == claim.id)
        .where(Claim.status == "approved")
        .values(status="received", received_at=now)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        session.rollback()
        raise InvalidState("Only approved claims can be marked as received")

    # The item stays listed until the cleanup sweep removes it
    session.commit()

    session.refresh(claim)
    logger.info("Claim %s marked received", claim.id)
    return claim


def list_claims_for_item(session: Session, caller: CallerIdentity, item_id: uuid.UUID) -> List[Claim]:
    item = get_item_or_404(session, item_id)

    if not is_item_reporter(item, caller):
        raise Forbidden("Only the item finder can view claims")

    return session.exec(
        select(Claim)
        .where(Claim.item_id == item.id)
        .order_by(Claim.created_at.desc())
    ).all()


def list_my_claims(session: Session, caller: CallerIdentity) -> List[Claim]:
    return session.exec(
        select(Claim)
        .where(Claim.claimed_by == caller.user_id)
        .order_by(Claim.created_at.desc())
    ).all()
