import uuid
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlmodel import Session, select

from lostfound.db.db import get_session
from lostfound.models.claim import Claim
from lostfound.models.item import Item
from lostfound.services.matching import find_candidates
from lostfound.utils.auth_helper import CallerIdentity, get_current_user_optional, get_current_user_required, is_item_reporter
from lostfound.utils.errors import NotFound, ValidationError
from lostfound.utils.form_validator import ITEM_STATUSES, ItemCreateRequest, validate_create_item


router = APIRouter()


@router.post("/create", status_code=201)
async def add_item(
    payload: ItemCreateRequest,
    session: Session = Depends(get_session),
    current_user: CallerIdentity = Depends(get_current_user_required),
):
    data = validate_create_item(payload)

    # create DB item
    db_item = Item(
        reported_by=current_user.user_id,
        reporter_name=data.reporter_name,
        reporter_email=current_user.email,
        title=data.title,
        description=data.description,
        status=data.status,
        category=data.category,
        location=data.location,
        image_url=data.image_url,
    )

    session.add(db_item)
    session.commit()
    session.refresh(db_item)

    return {"id": str(db_item.id)}


@router.get("/all")
async def get_all_items(
    status: str = "all",
    session: Session = Depends(get_session),
):
    if status != "all" and status not in ITEM_STATUSES:
        raise ValidationError("status must be 'lost', 'found' or 'all'")

    query = select(Item).order_by(Item.created_at.desc())

    if status != "all":
        query = query.where(Item.status == status)

    return {"items": session.exec(query).all()}


@router.get("/matched")
async def get_matched_items(
    limit: int = Query(6, ge=1, le=50),
    session: Session = Depends(get_session),
):
    """
    Recently matched found items. Received claims stay here until the
    cleanup sweep removes the item.
    """
    rows = session.exec(
        select(Claim, Item)
        .join(Item, Claim.item_id == Item.id)
        .where(Claim.status.in_(["approved", "received"]))
        .where(Item.status == "found")
        .order_by(Claim.decided_at.desc(), Claim.created_at.desc())
        .limit(limit)
    ).all()

    matched = []
    for claim, item in rows:
        data = item.model_dump()
        data["matched_at"] = claim.decided_at or claim.created_at
        data["claimer_id"] = claim.claimed_by
        data["meetup_address"] = claim.meetup_address
        data["claim_status"] = claim.status
        matched.append(data)

    return {"items": matched}


@router.get("/{item_id}")
async def get_item(
    item_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: Optional[CallerIdentity] = Depends(get_current_user_optional),
):
    item = session.get(Item, item_id)
    if not item:
        raise NotFound("Item not found")

    # check for existing claim
    claim_status = "none"

    claim = session.exec(
        select(Claim)
        .where(Claim.item_id == item.id)
        .where(Claim.status != "rejected") # don't send rejection info
        .order_by(Claim.created_at.desc())
    ).first()

    if claim:
        claim_status = claim.status

    return {
        "item": item,
        "claim_status": claim_status,
        "is_reporter": bool(current_user and is_item_reporter(item, current_user)),
    }


@router.get("/{item_id}/matches")
async def get_item_matches(
    item_id: uuid.UUID,
    session: Session = Depends(get_session),
):
    found_item = session.get(Item, item_id)
    if not found_item:
        raise NotFound("Item not found")

    if found_item.status != "found":
        raise ValidationError("Matches are only available for found items")

    query = (
        select(Item)
        .where(Item.status == "lost")
        .where(Item.claimed == False)
    )

    if found_item.category:
        query = query.where(Item.category == found_item.category)

    lost_pool = session.exec(query).all()

    return {"items": find_candidates(found_item, lost_pool)}
