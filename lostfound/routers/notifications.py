import uuid
from fastapi import APIRouter, Depends, Query
from sqlalchemy import update
from sqlmodel import Session, func, select

from lostfound.db.db import get_session
from lostfound.models.notification import Notification
from lostfound.utils.auth_helper import CallerIdentity, get_current_user_required
from lostfound.utils.errors import Forbidden, NotFound


router = APIRouter()

@router.get("/")
async def get_my_notifications(
    limit: int = Query(20, ge=1, le=100),
    unread_only: bool = False,
    session: Session = Depends(get_session),
    current_user: CallerIdentity = Depends(get_current_user_required),
):
    query = (
        select(Notification)
        .where(Notification.user_id == current_user.user_id)
        .order_by(Notification.created_at.desc())
        .limit(limit)
    )

    if unread_only:
        query = query.where(Notification.read == False)

    notifications = session.exec(query).all()

    return {"notifications": notifications}

@router.get("/count")
async def get_unread_notifications_count(
    session: Session = Depends(get_session),
    current_user: CallerIdentity = Depends(get_current_user_required),
):
    count = session.exec(
        select(func.count(Notification.id))
        .where(Notification.user_id == current_user.user_id)
        .where(Notification.read == False)
    ).one()

    return { "count": count }

@router.post("/{notification_id}/mark-read")
async def mark_notification_read(
    notification_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: CallerIdentity = Depends(get_current_user_required),
):
    notif = session.get(Notification, notification_id)

    if not notif:
        raise NotFound("Notification not found")

    if notif.user_id != current_user.user_id:
        raise Forbidden("Not authorized to update this notification")

    notif.read = True
    session.add(notif)
    session.commit()

    return {"ok": True}

@router.post("/mark-all-read")
async def mark_all_notifications_read(
    session: Session = Depends(get_session),
    current_user: CallerIdentity = Depends(get_current_user_required),
):
    result = session.execute(
        update(Notification)
        .where(Notification.user_id == current_user.user_id)
        .where(Notification.read == False)
        .values(read=True)
        .execution_options(synchronize_session=False)
    )
    session.commit()

    return {"ok": True, "updated": result.rowcount}
