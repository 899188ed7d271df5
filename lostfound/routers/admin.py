"""
Operator-only maintenance routes.
"""

import logging
import os
import secrets
from datetime import datetime, timedelta
from typing import List, Literal, Optional
from fastapi import APIRouter, Depends, Header, Query
from pydantic import BaseModel
from sqlmodel import Session, select

from lostfound.db.db import get_session
from lostfound.models.claim import Claim
from lostfound.services import cleanup
from lostfound.utils.errors import Forbidden, Unauthenticated

logger = logging.getLogger(__name__)

router = APIRouter()


# Response Models
class CleanupResult(BaseModel):
    ok: bool
    deleted_items: int
    deleted_claims: int
    message: str


class CleanupPreview(BaseModel):
    count: int
    items_to_delete: int
    oldest_claim_date: Optional[datetime]


class ClaimDetail(BaseModel):
    id: str
    item_id: str
    item_title: str
    claimed_by: str
    status: str
    message: str
    meetup_address: Optional[str]
    received_at: Optional[datetime]
    decided_at: Optional[datetime]
    created_at: datetime


def require_operator(x_operator_key: Optional[str] = Header(default=None)):
    expected = os.getenv("OPERATOR_API_KEY")

    if not x_operator_key:
        raise Unauthenticated("Operator key required")

    # no key configured means no operator access at all
    if not expected or not secrets.compare_digest(x_operator_key.encode(), expected.encode()):
        logger.warning("Rejected operator request")
        raise Forbidden("Operator access required")

    return True


@router.post("/cleanup", response_model=CleanupResult)
def run_cleanup(
    retention_days: float = Query(7, gt=0),
    session: Session = Depends(get_session),
    operator: bool = Depends(require_operator),
):
    """Delete items received more than ``retention_days`` ago, with all their claims"""
    result = cleanup.sweep(session, retention=timedelta(days=retention_days))

    return CleanupResult(
        ok=True,
        deleted_items=result.deleted_items,
        deleted_claims=result.deleted_claims,
        message=(
            f"Cleaned up {result.deleted_items} items and {result.deleted_claims} claims "
            f"received more than {retention_days:g} days ago"
        ),
    )


@router.get("/cleanup", response_model=CleanupPreview)
def preview_cleanup(
    retention_days: float = Query(7, gt=0),
    session: Session = Depends(get_session),
    operator: bool = Depends(require_operator),
):
    """What the next cleanup would remove"""
    preview = cleanup.preview(session, retention=timedelta(days=retention_days))

    return CleanupPreview(
        count=preview.count,
        items_to_delete=preview.item_count,
        oldest_claim_date=preview.oldest_claim_date,
    )


@router.get("/claims", response_model=List[ClaimDetail])
def get_all_claims(
    status: Optional[Literal["pending", "approved", "rejected", "received"]] = None,
    limit: int = Query(100, ge=1, le=500),
    session: Session = Depends(get_session),
    operator: bool = Depends(require_operator),
):
    """All claims, newest first, for debugging"""
    query = select(Claim).order_by(Claim.created_at.desc()).limit(limit)

    if status:
        query = query.where(Claim.status == status)

    return [
        ClaimDetail(
            id=str(claim.id),
            item_id=str(claim.item_id),
            item_title=claim.item_title,
            claimed_by=claim.claimed_by,
            status=claim.status,
            message=claim.message,
            meetup_address=claim.meetup_address,
            received_at=claim.received_at,
            decided_at=claim.decided_at,
            created_at=claim.created_at,
        )
        for claim in session.exec(query).all()
    ]
