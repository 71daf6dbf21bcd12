import logging
import uuid
from datetime import datetime, timezone
from typing import Iterator, Optional
from pydantic import BaseModel
from sqlmodel import Session, col, func, or_, select

from app.db.db import commit
from app.models.item import Item
from app.utils.auth_helper import Identity, get_profile, is_admin
from app.utils.errors import Forbidden, NotFound, ValidationError
from app.utils.form_validator import ValidatedCreateItem, validate_create_item_form
from app.utils.s3_service import delete_s3_object

logger = logging.getLogger(__name__)

TERMINAL_CAUSES = ("returned", "verified")

UPDATABLE_FIELDS = {
    "title",
    "description",
    "category",
    "location",
    "date",
    "reward",
    "commission",
}


class ItemFilter(BaseModel):
    owner_id: Optional[str] = None
    kind: Optional[str] = None
    category: Optional[str] = None
    status: Optional[str] = None
    search: Optional[str] = None


class ItemListing:
    """Re-runs its query on every iteration."""

    def __init__(self, session: Session, query):
        self.session = session
        self.query = query

    def __iter__(self) -> Iterator[Item]:
        return iter(self.session.exec(self.query).all())


def create_item(
    session: Session,
    draft: ValidatedCreateItem,
    owner: Identity,
    image_key: Optional[str] = None,
) -> Item:
    # profile values are newer than the token claims
    profile = get_profile(session, owner)
    phone = (profile.phone if profile else "") or owner.phone
    name = (profile.name if profile else "") or owner.name

    item = Item(
        user_id=owner.user_id,
        reporter_name=name or "",
        reporter_phone=phone or "",
        title=draft.title,
        description=draft.description,
        category=draft.category,
        location=draft.location,
        type=draft.item_type,
        date=draft.date,
        image=image_key,
        reward=draft.reward,
        commission=draft.commission,
    )

    session.add(item)
    commit(session, "create item")
    session.refresh(item)

    logger.info("Item %s (%s) reported by %s", item.id, item.type, owner.user_id)
    return item


def list_items(session: Session, filters: Optional[ItemFilter] = None) -> ItemListing:
    filters = filters or ItemFilter()

    query = select(Item).order_by(col(Item.created_at).desc())

    if filters.owner_id:
        query = query.where(Item.user_id == filters.owner_id)

    if filters.kind:
        query = query.where(Item.type == filters.kind)

    if filters.category:
        query = query.where(func.lower(Item.category) == filters.category.strip().lower())

    if filters.status:
        query = query.where(Item.status == filters.status)

    if filters.search and filters.search.strip():
        term = filters.search.strip()
        query = query.where(
            or_(
                col(Item.title).icontains(term, autoescape=True),
                col(Item.description).icontains(term, autoescape=True),
                col(Item.location).icontains(term, autoescape=True),
            )
        )

    return ItemListing(session, query)


def get_item(session: Session, item_id: uuid.UUID) -> Item:
    item = session.get(Item, item_id)
    if not item:
        raise NotFound("Item not found")
    return item


def update_item(session: Session, item_id: uuid.UUID, updates: dict, requestor: Identity) -> Item:
    item = get_item(session, item_id)

    if item.user_id != requestor.user_id:
        raise Forbidden("Unauthorized to edit this item")

    for field in updates:
        if field not in UPDATABLE_FIELDS:
            raise ValidationError(f"Field '{field}' cannot be updated")

    current = item.model_dump(include=UPDATABLE_FIELDS)
    current.update(updates)

    # re-run the create rules on the merged record
    validated = validate_create_item_form(item_type=item.type, **current)

    for field in UPDATABLE_FIELDS:
        setattr(item, field, getattr(validated, field))

    item.updated_at = datetime.now(timezone.utc)

    session.add(item)
    commit(session, "update item")
    session.refresh(item)

    return item


def mark_terminal(session: Session, item_id: uuid.UUID, cause: str = "returned") -> Item:
    if cause not in TERMINAL_CAUSES:
        raise ValidationError(f"Invalid terminal status '{cause}'")

    item = get_item(session, item_id)

    if item.is_terminal:
        return item

    item.status = cause
    item.verified = True
    item.updated_at = datetime.now(timezone.utc)

    session.add(item)
    commit(session, "update item status")
    session.refresh(item)

    logger.info("Item %s marked %s", item.id, cause)
    return item


def mark_paid(session: Session, item_id: uuid.UUID) -> Item:
    item = get_item(session, item_id)

    if item.payment_status != "paid":
        item.payment_status = "paid"
        item.updated_at = datetime.now(timezone.utc)
        session.add(item)
        commit(session, "update item payment status")
        session.refresh(item)

    return item


def delete_item(session: Session, item_id: uuid.UUID, requestor: Identity):
    item = get_item(session, item_id)

    if item.user_id != requestor.user_id and not is_admin(session, requestor):
        raise Forbidden("Unauthorized to delete this item")

    image = item.image

    session.delete(item)
    commit(session, "delete item")

    delete_s3_object(image)
    logger.info("Item %s deleted by %s", item_id, requestor.user_id)
