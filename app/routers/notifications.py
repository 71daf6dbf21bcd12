import uuid
from fastapi import APIRouter, Depends
from sqlmodel import Session

from app.db.db import get_session
from app.services import notification_dispatcher
from app.utils.auth_helper import Identity, get_current_identity_required


router = APIRouter()

@router.get("/")
async def get_my_notifications(
    limit: int = 20,
    unread_only: bool = False,
    session: Session = Depends(get_session),
    current_user: Identity = Depends(get_current_identity_required),
):
    notifications = notification_dispatcher.list_for(
        session,
        current_user.user_id,
        unread_only=unread_only,
        limit=limit,
    )

    return {"notifications": notifications}

@router.get("/count")
async def get_unread_notifications_count(
    session: Session = Depends(get_session),
    current_user: Identity = Depends(get_current_identity_required),
):
    return {"count": notification_dispatcher.unread_count(session, current_user.user_id)}

@router.post("/{id}/mark-read")
async def mark_notification_read(
    id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: Identity = Depends(get_current_identity_required),
):
    notification_dispatcher.mark_read(session, id, current_user)

    return {"ok": True}

@router.post("/mark-all-read")
async def mark_all_notifications_read(
    session: Session = Depends(get_session),
    current_user: Identity = Depends(get_current_identity_required),
):
    updated = notification_dispatcher.mark_all_read(session, current_user)

    return {"ok": True, "updated": updated}
