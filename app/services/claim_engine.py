"""
Claim lifecycle.

A claim starts ``pending`` and moves once, to ``approved`` or ``rejected``.
Approval is a short saga: the claim row is the source of truth and is
committed first, then the item is marked terminal, sibling pending claims are
rejected and the claimant is notified. Failures after the first step never
undo it; a failed item update flags the claim with ``needs_reconcile``.
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import List, Optional
from pydantic import BaseModel, Field, ValidationError as PydanticValidationError
from sqlalchemy import exists, update
from sqlalchemy.orm import aliased
from sqlmodel import Session, col, select

from app.db.db import commit
from app.models.claim import Claim
from app.services import item_registry, notification_dispatcher
from app.utils.auth_helper import Identity, ensure_admin, get_profile, is_admin
from app.utils.errors import (
    ExternalServiceError,
    Forbidden,
    InvalidState,
    NotFound,
    Unauthorized,
    ValidationError,
)
from app.utils.form_validator import format_errors, validate_phone

logger = logging.getLogger(__name__)

CLAIM_STATUSES = ("pending", "approved", "rejected")


class ClaimDraft(BaseModel):
    item_id: Optional[uuid.UUID] = None
    item_name: Optional[str] = Field(default=None, max_length=60)
    owner_name: Optional[str] = None
    claimant_name: Optional[str] = None
    claimant_phone: Optional[str] = None
    description: str = Field(min_length=20, max_length=1000)


def build_draft(**fields) -> ClaimDraft:
    try:
        return ClaimDraft(**fields)
    except PydanticValidationError as e:
        raise ValidationError(format_errors(e))


def _now():
    return datetime.now(timezone.utc)


def get_claim(session: Session, claim_id: uuid.UUID) -> Claim:
    claim = session.get(Claim, claim_id)
    if not claim:
        raise NotFound("Claim not found")
    return claim


def submit_claim(
    session: Session,
    claimant: Optional[Identity],
    draft: ClaimDraft,
    photo_key: Optional[str] = None,
) -> Claim:
    if claimant is None:
        raise Unauthorized("Sign in to submit a claim")

    profile = get_profile(session, claimant)
    name = (draft.claimant_name or (profile.name if profile else "") or claimant.name).strip()
    phone = draft.claimant_phone or (profile.phone if profile else "") or claimant.phone

    if not name:
        raise ValidationError("Claimant name is required")
    phone = validate_phone(phone)

    if draft.item_id is not None:
        item = item_registry.get_item(session, draft.item_id)

        if item.type != "lost":
            raise ValidationError("Only lost items can be claimed")

        if item.user_id == claimant.user_id:
            raise ValidationError("You cannot claim your own item")

        if item.is_terminal:
            raise InvalidState("This item has already been resolved")

        existing = session.exec(
            select(Claim)
            .where(Claim.item_id == item.id)
            .where(Claim.claimant_id == claimant.user_id)
            .where(Claim.status == "pending")
        ).first()

        if existing:
            raise InvalidState("You already have a pending claim for this item")

        item_name = item.title
        item_photo = item.image
        owner_name = item.reporter_name
    else:
        # item not persisted on the platform; caller supplies the display fields
        if not draft.item_name or not draft.item_name.strip():
            raise ValidationError("Item name is required when no item is referenced")

        item_name = draft.item_name.strip()
        item_photo = None
        owner_name = (draft.owner_name or "").strip()

    claim = Claim(
        item_id=draft.item_id,
        item_name=item_name,
        item_photo=item_photo,
        owner_name=owner_name,
        claimant_id=claimant.user_id,
        claimant_name=name,
        claimant_phone=phone,
        description=draft.description.strip(),
        photo=photo_key,
    )

    session.add(claim)
    commit(session, "submit claim")
    session.refresh(claim)

    logger.info("Claim %s submitted by %s for item %s", claim.id, claimant.user_id, claim.item_id)
    return claim


def _transition(session: Session, claim: Claim, status: str, reviewer: Identity) -> Claim:
    """Move a pending claim to `status`, guarded on the stored status."""
    now = _now()

    stmt = (
        update(Claim)
        .where(Claim.id == claim.id)
        .where(Claim.status == "pending")
        .values(status=status, reviewed_by=reviewer.user_id, reviewed_at=now, updated_at=now)
        .execution_options(synchronize_session=False)
    )

    if status == "approved" and claim.item_id is not None:
        sibling = aliased(Claim)
        stmt = stmt.where(
            ~exists(
                select(sibling.id)
                .where(sibling.item_id == claim.item_id)
                .where(sibling.status == "approved")
            )
        )

    result = session.exec(stmt)
    if result.rowcount == 0:
        session.rollback()
        raise InvalidState("Claim is no longer pending")

    commit(session, f"mark claim {status}")
    session.refresh(claim)

    logger.info("Claim %s %s by %s", claim.id, status, reviewer.user_id)
    return claim


def _payload(claim: Claim) -> dict:
    return {
        "claim_id": claim.id,
        "item_id": claim.item_id,
        "item_name": claim.item_name,
    }


def _notify_rejected(session: Session, claim: Claim):
    notification_dispatcher.notify(
        session,
        claim.claimant_id,
        "claim_rejected",
        _payload(claim),
        title="Your claim has been rejected",
        message=f"Your claim for the item '{claim.item_name}' was not approved by the admin.",
    )


def _settle_item(session: Session, claim: Claim):
    try:
        item_registry.mark_terminal(session, claim.item_id, "returned")
    except NotFound:
        logger.warning("Claim %s approved but item %s no longer exists", claim.id, claim.item_id)
        return
    except ExternalServiceError:
        logger.error(
            "Claim %s approved but item %s could not be updated; flagged for manual review",
            claim.id, claim.item_id,
        )
        claim.needs_reconcile = True
        session.add(claim)
        try:
            commit(session, "flag claim for reconciliation")
        except ExternalServiceError:
            logger.error("Could not flag claim %s for reconciliation", claim.id)


def _reject_siblings(session: Session, claim: Claim, reviewer: Identity):
    siblings = session.exec(
        select(Claim)
        .where(Claim.item_id == claim.item_id)
        .where(Claim.status == "pending")
        .where(Claim.id != claim.id)
    ).all()

    for sibling in siblings:
        try:
            _transition(session, sibling, "rejected", reviewer)
        except (InvalidState, ExternalServiceError) as e:
            logger.warning("Could not auto-reject sibling claim %s: %s", sibling.id, e)
            continue
        _notify_rejected(session, sibling)


def approve_claim(session: Session, claim_id: uuid.UUID, reviewer: Optional[Identity]) -> Claim:
    ensure_admin(session, reviewer)

    claim = get_claim(session, claim_id)
    if claim.status != "pending":
        raise InvalidState(f"Claim is already {claim.status}")

    if claim.item_id is not None:
        already = session.exec(
            select(Claim)
            .where(Claim.item_id == claim.item_id)
            .where(Claim.status == "approved")
        ).first()
        if already:
            raise InvalidState("This item already has an approved claim")

    claim = _transition(session, claim, "approved", reviewer)

    if claim.item_id is not None:
        _settle_item(session, claim)
        _reject_siblings(session, claim, reviewer)

    notification_dispatcher.notify(
        session,
        claim.claimant_id,
        "claim_approved",
        _payload(claim),
        title="Your claim has been approved",
        message=(
            f"Your claim for the item '{claim.item_name}' has been approved by the admin. "
            "Complete the payment to see the contact details."
        ),
    )

    # the saga commits again after the transition
    session.refresh(claim)
    return claim


def reject_claim(session: Session, claim_id: uuid.UUID, reviewer: Optional[Identity]) -> Claim:
    ensure_admin(session, reviewer)

    claim = get_claim(session, claim_id)
    if claim.status != "pending":
        raise InvalidState(f"Claim is already {claim.status}")

    claim = _transition(session, claim, "rejected", reviewer)
    _notify_rejected(session, claim)

    session.refresh(claim)
    return claim


def reconcile_claim(session: Session, claim_id: uuid.UUID, reviewer: Optional[Identity]) -> Claim:
    """Retry the item update of an approval that failed half-way."""
    ensure_admin(session, reviewer)

    claim = get_claim(session, claim_id)
    if claim.status != "approved" or not claim.needs_reconcile:
        raise InvalidState("Claim does not need reconciliation")

    if claim.item_id is not None:
        try:
            item_registry.mark_terminal(session, claim.item_id, "returned")
        except NotFound:
            logger.warning("Item %s gone while reconciling claim %s", claim.item_id, claim.id)

    claim.needs_reconcile = False
    claim.updated_at = _now()
    session.add(claim)
    commit(session, "reconcile claim")
    session.refresh(claim)

    return claim


def list_pending(session: Session, reviewer: Optional[Identity]) -> List[Claim]:
    """Every pending claim, newest first."""
    return list_by_status(session, reviewer, "pending", limit=None)


def list_by_status(
    session: Session,
    reviewer: Optional[Identity],
    status: Optional[str] = None,
    limit: Optional[int] = 100,
    offset: int = 0,
) -> List[Claim]:
    ensure_admin(session, reviewer)

    query = select(Claim).order_by(col(Claim.created_at).desc()).offset(offset)
    if limit is not None:
        query = query.limit(limit)

    if status:
        if status not in CLAIM_STATUSES:
            raise ValidationError(f"Unknown claim status '{status}'")
        query = query.where(Claim.status == status)

    return session.exec(query).all()


def list_needing_reconcile(session: Session, reviewer: Optional[Identity]) -> List[Claim]:
    ensure_admin(session, reviewer)

    return session.exec(
        select(Claim)
        .where(col(Claim.needs_reconcile).is_(True))
        .order_by(col(Claim.reviewed_at).desc())
    ).all()


def list_mine(session: Session, claimant_id: str) -> List[Claim]:
    return session.exec(
        select(Claim)
        .where(Claim.claimant_id == claimant_id)
        .order_by(col(Claim.created_at).desc())
    ).all()


def claims_for_item(session: Session, item_id: uuid.UUID) -> List[Claim]:
    return session.exec(
        select(Claim)
        .where(Claim.item_id == item_id)
        .order_by(col(Claim.created_at).asc())
    ).all()


def get_claim_for_viewer(session: Session, claim_id: uuid.UUID, viewer: Identity) -> Claim:
    claim = get_claim(session, claim_id)

    if claim.claimant_id != viewer.user_id and not is_admin(session, viewer):
        raise Forbidden("Not authorized to view this claim")

    return claim
