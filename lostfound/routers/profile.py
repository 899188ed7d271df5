from fastapi import APIRouter
from fastapi.params import Depends
from sqlmodel import Session, or_, select

from lostfound.db.db import get_session
from lostfound.models.item import Item
from lostfound.utils.auth_helper import CallerIdentity, get_current_user_required


router = APIRouter()


@router.get("/me")
async def get_my_profile(
    current_user: CallerIdentity = Depends(get_current_user_required),
):
    return current_user


@router.get("/items")
async def get_my_items(
    session: Session = Depends(get_session),
    current_user: CallerIdentity = Depends(get_current_user_required),
):
    # Match by user id, or by email for items reported under another credential
    owner_filter = Item.reported_by == current_user.user_id
    if current_user.email:
        owner_filter = or_(owner_filter, Item.reporter_email == current_user.email)

    items = session.exec(
        select(Item)
        .where(owner_filter)
        .order_by(Item.created_at.desc())
    ).all()

    # Separate by status
    lost_items = [item for item in items if item.status == "lost"]
    found_items = [item for item in items if item.status == "found"]

    return {
        "lost_items": lost_items,
        "found_items": found_items,
    }
