import logging
import uuid
from datetime import datetime, timezone
from typing import List, Optional
from sqlmodel import Session, col, func, select

from app.db.db import commit
from app.models.notification import Notification
from app.utils.auth_helper import Identity
from app.utils.errors import NotFound

logger = logging.getLogger(__name__)

NOTIFICATION_TYPES = ("claim_approved", "claim_rejected", "general")


def notify(
    session: Session,
    recipient_id: str,
    kind: str,
    payload: dict,
    title: str,
    message: str,
) -> Optional[Notification]:
    """
    Store a notification for `recipient_id`.

    Best-effort: any failure is logged and None is returned, the caller's
    already committed transition is left untouched.
    """
    if kind not in NOTIFICATION_TYPES:
        logger.error("Dropping notification for %s: unknown type '%s'", recipient_id, kind)
        return None

    try:
        notification = Notification(
            user_id=recipient_id,
            type=kind,
            title=title,
            message=message,
            payload={k: str(v) if isinstance(v, uuid.UUID) else v for k, v in payload.items()},
        )
        session.add(notification)
        session.commit()
        session.refresh(notification)
    except Exception:
        session.rollback()
        logger.exception("Failed to notify %s (%s)", recipient_id, kind)
        return None

    return notification


def list_for(
    session: Session,
    recipient_id: str,
    unread_only: bool = False,
    limit: int = 20,
) -> List[Notification]:
    query = (
        select(Notification)
        .where(Notification.user_id == recipient_id)
        .order_by(col(Notification.created_at).desc())
        .limit(limit)
    )

    if unread_only:
        query = query.where(col(Notification.read_at).is_(None))

    return session.exec(query).all()


def unread_count(session: Session, recipient_id: str) -> int:
    return session.exec(
        select(func.count(Notification.id))
        .where(Notification.user_id == recipient_id)
        .where(col(Notification.read_at).is_(None))
    ).one()


def mark_read(session: Session, notification_id: uuid.UUID, recipient: Identity) -> Notification:
    notif = session.exec(
        select(Notification)
        .where(Notification.id == notification_id)
        .where(Notification.user_id == recipient.user_id)
    ).first()

    if not notif:
        raise NotFound("Notification not found")

    if notif.read_at is None:
        notif.read_at = datetime.now(timezone.utc)
        session.add(notif)
        commit(session, "mark notification read")
        session.refresh(notif)

    return notif


def mark_all_read(session: Session, recipient: Identity) -> int:
    notifications = session.exec(
        select(Notification)
        .where(Notification.user_id == recipient.user_id)
        .where(col(Notification.read_at).is_(None))
    ).all()

    now = datetime.now(timezone.utc)
    for notif in notifications:
        notif.read_at = now
        session.add(notif)

    commit(session, "mark notifications read")

    return len(notifications)
