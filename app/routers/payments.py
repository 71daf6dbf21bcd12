import uuid
from typing import Literal, Optional
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlmodel import Session

from app.db.db import get_session
from app.services import payments
from app.utils.auth_helper import Identity, get_current_identity_required


router = APIRouter()


class PaymentCreateRequest(BaseModel):
    claim_id: uuid.UUID
    method: str
    phone: str


class PaymentStatusRequest(BaseModel):
    status: Literal["completed", "failed"]
    transaction_id: Optional[str] = None


@router.post("/create")
def create_payment(
    payload: PaymentCreateRequest,
    session: Session = Depends(get_session),
    current_user: Identity = Depends(get_current_identity_required),
):
    record = payments.initiate(session, payload.claim_id, current_user, payload.method, payload.phone)
    return {"ok": True, "payment": record}


@router.get("/my")
def get_my_payments(
    session: Session = Depends(get_session),
    current_user: Identity = Depends(get_current_identity_required),
):
    return {"payments": payments.list_mine(session, current_user.user_id)}


@router.put("/{payment_id}/status")
def update_payment_status(
    payment_id: uuid.UUID,
    payload: PaymentStatusRequest,
    session: Session = Depends(get_session),
    current_user: Identity = Depends(get_current_identity_required),
):
    """Provider outcome, relayed by an admin."""
    record = payments.update_status(
        session,
        payment_id,
        payload.status,
        current_user,
        transaction_id=payload.transaction_id,
    )
    return {"ok": True, "payment": record}
