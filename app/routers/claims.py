import uuid
from typing import Optional
from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlmodel import Session

from app.db.db import get_session
from app.services import claim_engine, payments
from app.utils.auth_helper import Identity, get_current_identity_required, require_admin
from app.utils.s3_service import claim_response, store_photo


router = APIRouter()


@router.post("/create")
async def create_claim(
    description: str = Form(...),
    item_id: Optional[uuid.UUID] = Form(None),
    item_name: Optional[str] = Form(None),
    owner_name: Optional[str] = Form(None),
    full_name: Optional[str] = Form(None),
    phone: Optional[str] = Form(None),
    photo: Optional[UploadFile] = File(None),
    session: Session = Depends(get_session),
    current_user: Identity = Depends(get_current_identity_required),
):
    draft = claim_engine.build_draft(
        item_id=item_id,
        item_name=item_name,
        owner_name=owner_name,
        claimant_name=full_name,
        claimant_phone=phone,
        description=description,
    )

    photo_key = None
    if photo is not None and photo.filename:
        raw_bytes = await photo.read()
        photo_key = store_photo(raw_bytes, photo.filename, folder="claims")

    claim = claim_engine.submit_claim(session, current_user, draft, photo_key=photo_key)

    return {
        "ok": True,
        "claim_id": str(claim.id),
        "status": claim.status,
    }


@router.get("/my")
def get_my_claims(
    session: Session = Depends(get_session),
    current_user: Identity = Depends(get_current_identity_required),
):
    claims = claim_engine.list_mine(session, current_user.user_id)
    return {"claims": [claim_response(c) for c in claims]}


@router.get("/pending")
def get_pending_claims(
    session: Session = Depends(get_session),
    admin: Identity = Depends(require_admin),
):
    claims = claim_engine.list_pending(session, admin)
    return {"claims": [claim_response(c) for c in claims]}


@router.get("/{claim_id}")
def get_claim(
    claim_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: Identity = Depends(get_current_identity_required),
):
    """
    Get claim by ID - accessible by the claimant and admins.
    """
    claim = claim_engine.get_claim_for_viewer(session, claim_id, current_user)

    return {
        "claim": claim_response(claim),
        "payment_status": payments.status_for_claim(session, claim.id),
    }


@router.post("/{claim_id}/approve")
def approve_claim(
    claim_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: Identity = Depends(get_current_identity_required),
):
    claim = claim_engine.approve_claim(session, claim_id, current_user)
    return {"ok": True, "claim": claim_response(claim)}


@router.post("/{claim_id}/reject")
def reject_claim(
    claim_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: Identity = Depends(get_current_identity_required),
):
    claim = claim_engine.reject_claim(session, claim_id, current_user)
    return {"ok": True, "claim": claim_response(claim)}
