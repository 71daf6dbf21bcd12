from fastapi import APIRouter
from fastapi.params import Depends
from pydantic import BaseModel
from sqlmodel import Session

from app.db.db import commit, get_session
from app.models.user import User
from app.services import claim_engine, item_registry
from app.services.item_registry import ItemFilter
from app.utils.auth_helper import Identity, get_current_identity_required, get_profile, resolve_role
from app.utils.errors import NotFound
from app.utils.form_validator import validate_display_name, validate_phone
from app.utils.s3_service import claim_response, get_all_urls


router = APIRouter()


class PhoneUpdateRequest(BaseModel):
    phone: str


class NameUpdateRequest(BaseModel):
    name: str


def _require_profile(session: Session, identity: Identity) -> User:
    user = get_profile(session, identity)

    if not user:
        raise NotFound("User not found")

    return user


@router.post("/phone")
async def set_phone(
    payload: PhoneUpdateRequest,
    session: Session = Depends(get_session),
    current_user: Identity = Depends(get_current_identity_required),
):
    user = _require_profile(session, current_user)

    user.phone = validate_phone(payload.phone)

    session.add(user)
    commit(session, "update phone")
    session.refresh(user)

    return {"ok": True, "phone": user.phone}


@router.post("/name")
async def set_name(
    payload: NameUpdateRequest,
    session: Session = Depends(get_session),
    current_user: Identity = Depends(get_current_identity_required),
):
    user = _require_profile(session, current_user)

    user.name = validate_display_name(payload.name)

    session.add(user)
    commit(session, "update name")
    session.refresh(user)

    return {"ok": True, "name": user.name}


@router.get("/me")
async def get_my_profile(
    session: Session = Depends(get_session),
    current_user: Identity = Depends(get_current_identity_required),
):
    user = _require_profile(session, current_user)

    data = user.model_dump()
    data["role"] = resolve_role(session, current_user)
    return data


@router.get("/items")
async def get_my_items(
    session: Session = Depends(get_session),
    current_user: Identity = Depends(get_current_identity_required),
):
    items = list(item_registry.list_items(session, ItemFilter(owner_id=current_user.user_id)))

    # Separate by type
    lost_items = [item for item in items if item.type == "lost"]
    found_items = [item for item in items if item.type == "found"]

    return {
        "lost_items": get_all_urls(lost_items),
        "found_items": get_all_urls(found_items),
    }


@router.get("/claims")
async def get_my_claims(
    session: Session = Depends(get_session),
    current_user: Identity = Depends(get_current_identity_required),
):
    claims = claim_engine.list_mine(session, current_user.user_id)

    return {
        "pending": [claim_response(c) for c in claims if c.status == "pending"],
        "approved": [claim_response(c) for c in claims if c.status == "approved"],
        "rejected": [claim_response(c) for c in claims if c.status == "rejected"],
    }
