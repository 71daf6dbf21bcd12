import uuid
from typing import Optional
from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlmodel import Session

from app.db.db import get_session
from app.services import claim_engine, item_registry, payments
from app.services.item_registry import ItemFilter
from app.services.visibility import resolve_contact, winning_claim
from app.utils.auth_helper import Identity, get_current_identity_optional, get_current_identity_required
from app.utils.form_validator import validate_create_item_form
from app.utils.s3_service import get_all_urls, item_response, store_photo


router = APIRouter()


@router.post("/create")
async def add_item(
    item_type: str = Form(...),
    title: str = Form(""),
    description: str = Form(""),
    category: str = Form(""),
    date: str = Form(""),
    location: str = Form(""),
    reward: Optional[int] = Form(None),
    commission: Optional[int] = Form(None),
    image: Optional[UploadFile] = File(None),
    session: Session = Depends(get_session),
    current_user: Identity = Depends(get_current_identity_required),
):
    draft = validate_create_item_form(
        item_type=item_type,
        title=title,
        description=description,
        category=category,
        date=date,
        location=location,
        reward=reward,
        commission=commission,
    )

    image_key = None
    if image is not None and image.filename:
        raw_bytes = await image.read()
        image_key = store_photo(raw_bytes, image.filename, folder="items")

    item = item_registry.create_item(session, draft, current_user, image_key=image_key)

    return {"ok": True, "item_id": str(item.id)}


@router.get("/all")
async def get_all_items(
    type: Optional[str] = None,
    category: Optional[str] = None,
    status: Optional[str] = None,
    q: Optional[str] = None,
    session: Session = Depends(get_session),
):
    listing = item_registry.list_items(
        session,
        ItemFilter(kind=type, category=category, status=status, search=q),
    )

    return {
        "items": get_all_urls(list(listing)),
    }


@router.get("/{item_id}")
async def get_item(
    item_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: Optional[Identity] = Depends(get_current_identity_optional),
):
    item = item_registry.get_item(session, item_id)
    claims = claim_engine.claims_for_item(session, item.id)

    # contact disclosure is derived on every read
    approved = winning_claim(item, claims)
    payment_status = payments.status_for_claim(session, approved.id) if approved else None
    contact = resolve_contact(item, claims, current_user, payment_status)

    # don't send rejection info
    claim_status = "none"
    if approved:
        claim_status = "approved"
    elif any(c.status == "pending" for c in claims):
        claim_status = "pending"

    return {
        "item": item_response(item),
        "contact": contact.model_dump(),
        "claim_status": claim_status,
    }


@router.patch("/{item_id}")
async def update_item(
    item_id: uuid.UUID,
    updates: dict,
    session: Session = Depends(get_session),
    current_user: Identity = Depends(get_current_identity_required),
):
    item = item_registry.update_item(session, item_id, updates, current_user)
    return item_response(item)


@router.delete("/{item_id}")
async def delete_item(
    item_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: Identity = Depends(get_current_identity_required),
):
    item_registry.delete_item(session, item_id, current_user)
    return {"ok": True}
