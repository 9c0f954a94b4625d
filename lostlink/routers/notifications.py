import uuid
from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session

from lostlink.db.db import get_session
from lostlink.db.repositories import NotificationRepository
from lostlink.utils.auth_helper import get_current_user_id


router = APIRouter()

@router.get("/")
async def get_my_notifications(
    limit: int = 20,
    unread_only: bool = False,
    session: Session = Depends(get_session),
    user_id: str = Depends(get_current_user_id),
):
    notifications = NotificationRepository(session).find_for_user(
        user_id, limit=limit, unread_only=unread_only
    )

    return {"notifications": notifications}

@router.get("/count")
async def get_unread_notifications_count(
    session: Session = Depends(get_session),
    user_id: str = Depends(get_current_user_id),
):
    count = NotificationRepository(session).count_unread(user_id)

    return { "count": count }

@router.post("/mark-all-read")
async def mark_all_notifications_read(
    session: Session = Depends(get_session),
    user_id: str = Depends(get_current_user_id),
):
    updated = NotificationRepository(session).mark_all_read(user_id)

    return {"ok": True, "updated": updated}

@router.post("/{id}/mark-read")
async def mark_notification_read(
    id: uuid.UUID,
    session: Session = Depends(get_session),
    user_id: str = Depends(get_current_user_id),
):
    notif = NotificationRepository(session).update_read_flag(id, user_id, True)

    if not notif:
        raise HTTPException(
            status_code=404,
            detail="Notification not found"
        )

    return {"ok": True}

@router.delete("/{id}")
async def delete_notification(
    id: uuid.UUID,
    session: Session = Depends(get_session),
    user_id: str = Depends(get_current_user_id),
):
    if not NotificationRepository(session).delete_by_id(id, user_id):
        raise HTTPException(
            status_code=404,
            detail="Notification not found"
        )

    return {"ok": True}
