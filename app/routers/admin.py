import uuid
from typing import Literal, Optional
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlmodel import Session, select, func, col

from app.db.db import get_session
from app.models.claim import Claim
from app.models.item import TERMINAL_STATUSES, Item
from app.models.payment import PaymentRecord
from app.services import claim_engine
from app.utils.auth_helper import Identity, require_admin
from app.utils.s3_service import claim_response

router = APIRouter()


# Response Models
class OverviewStats(BaseModel):
    total_items: int
    lost_items: int
    found_items: int
    returned_items: int
    claims_pending: int
    claims_approved: int
    claims_rejected: int
    claims_needing_reconcile: int
    payments_completed: int
    revenue_completed: int


def _count(session: Session, query) -> int:
    return session.exec(query).one()


@router.get("/stats", response_model=OverviewStats)
def get_overview_stats(
    session: Session = Depends(get_session),
    admin: Identity = Depends(require_admin),
):
    """Get overview statistics for the admin dashboard"""
    def claims_with(status):
        return _count(session, select(func.count(Claim.id)).where(Claim.status == status))

    revenue = session.exec(
        select(func.coalesce(func.sum(PaymentRecord.amount), 0))
        .where(PaymentRecord.status == "completed")
    ).one()

    return OverviewStats(
        total_items=_count(session, select(func.count(Item.id))),
        lost_items=_count(session, select(func.count(Item.id)).where(Item.type == "lost")),
        found_items=_count(session, select(func.count(Item.id)).where(Item.type == "found")),
        returned_items=_count(
            session,
            select(func.count(Item.id)).where(col(Item.status).in_(TERMINAL_STATUSES)),
        ),
        claims_pending=claims_with("pending"),
        claims_approved=claims_with("approved"),
        claims_rejected=claims_with("rejected"),
        claims_needing_reconcile=_count(
            session,
            select(func.count(Claim.id)).where(col(Claim.needs_reconcile).is_(True)),
        ),
        payments_completed=_count(
            session,
            select(func.count(PaymentRecord.id)).where(PaymentRecord.status == "completed"),
        ),
        revenue_completed=revenue,
    )


@router.get("/claims")
def get_claims_for_moderation(
    status: Optional[Literal["pending", "approved", "rejected"]] = None,
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    session: Session = Depends(get_session),
    admin: Identity = Depends(require_admin),
):
    """Get claims for moderation"""
    claims = claim_engine.list_by_status(session, admin, status=status, limit=limit, offset=offset)
    return {"claims": [claim_response(c) for c in claims]}


@router.get("/claims/reconcile")
def get_claims_needing_reconcile(
    session: Session = Depends(get_session),
    admin: Identity = Depends(require_admin),
):
    """Approved claims whose item update did not go through"""
    claims = claim_engine.list_needing_reconcile(session, admin)
    return {"claims": [claim_response(c) for c in claims]}


@router.post("/claims/{claim_id}/reconcile")
def reconcile_claim(
    claim_id: uuid.UUID,
    session: Session = Depends(get_session),
    admin: Identity = Depends(require_admin),
):
    claim = claim_engine.reconcile_claim(session, claim_id, admin)
    return {"ok": True, "claim": claim_response(claim)}
