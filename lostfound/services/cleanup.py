"""
Removes items (and all of their claims) once the claimant confirmed receipt
more than a retention window ago.

Deleting the item and deleting its claims are separate commits. A crash in
between leaves claims without an item; they still match the retention query
and are picked up again by the next sweep.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from pydantic import BaseModel
from sqlalchemy import and_, delete, or_
from sqlmodel import Session, select

from lostfound.models.claim import Claim
from lostfound.models.item import Item

logger = logging.getLogger(__name__)

DEFAULT_RETENTION = timedelta(days=7)


class SweepResult(BaseModel):
    deleted_items: int = 0
    deleted_claims: int = 0


class SweepPreview(BaseModel):
    count: int
    item_count: int = 0
    oldest_claim_date: Optional[datetime] = None


def expired_received_claims(retention: timedelta, now: datetime):
    cutoff = now - retention

    return (
        select(Claim)
        .where(Claim.status == "received")
        .where(
            or_(
                and_(Claim.received_at != None, Claim.received_at < cutoff),
                # claims received before received_at was recorded
                and_(Claim.received_at == None, Claim.created_at < cutoff),
            )
        )
        .order_by(Claim.created_at)
    )


def _purge_item(session: Session, item_id: uuid.UUID) -> Tuple[int, int]:
    item_result = session.execute(
        delete(Item)
        .where(Item.id == item_id)
        .execution_options(synchronize_session=False)
    )
    session.commit()

    claims_result = session.execute(
        delete(Claim)
        .where(Claim.item_id == item_id)
        .execution_options(synchronize_session=False)
    )
    session.commit()

    return item_result.rowcount, claims_result.rowcount


def sweep(
    session: Session,
    retention: timedelta = DEFAULT_RETENTION,
    now: Optional[datetime] = None,
) -> SweepResult:
    now = now or datetime.now(timezone.utc)
    expired = session.exec(expired_received_claims(retention, now)).all()

    # one pass per item, even if several of its claims qualify
    item_ids = list(dict.fromkeys(claim.item_id for claim in expired))

    result = SweepResult()
    for item_id in item_ids:
        try:
            deleted_items, deleted_claims = _purge_item(session, item_id)
        except Exception:
            session.rollback()
            logger.exception("Cleanup failed for item %s, will retry on next sweep", item_id)
            continue

        result.deleted_items += deleted_items
        result.deleted_claims += deleted_claims

    logger.info(
        "Cleanup removed %d item(s) and %d claim(s) older than %s",
        result.deleted_items,
        result.deleted_claims,
        retention,
    )
    return result


def preview(
    session: Session,
    retention: timedelta = DEFAULT_RETENTION,
    now: Optional[datetime] = None,
) -> SweepPreview:
    now = now or datetime.now(timezone.utc)
    expired = session.exec(expired_received_claims(retention, now)).all()

    return SweepPreview(
        count=len(expired),
        item_count=len({claim.item_id for claim in expired}),
        oldest_claim_date=expired[0].created_at if expired else None,
    )
