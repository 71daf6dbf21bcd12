import os
import logging
import uuid
from datetime import datetime, timezone
from typing import List, Optional
from sqlmodel import Session, col, select

from app.db.db import commit
from app.models.claim import Claim
from app.models.item import Item
from app.models.payment import PaymentRecord
from app.services import claim_engine, item_registry, notification_dispatcher
from app.utils.auth_helper import Identity, ensure_admin
from app.utils.errors import ExternalServiceError, Forbidden, InvalidState, NotFound, ValidationError
from app.utils.form_validator import validate_phone

logger = logging.getLogger(__name__)

PAYMENT_METHODS = ("mtn", "airtel")


def platform_commission() -> int:
    return int(os.getenv("PLATFORM_COMMISSION_RWF", "1000"))


def amount_due(item: Optional[Item]) -> int:
    reward = item.reward if item is not None and item.reward else 0
    return reward + platform_commission()


def status_for_claim(session: Session, claim_id: uuid.UUID) -> Optional[str]:
    """'completed' once any payment for the claim completed, else the latest status."""
    records = session.exec(
        select(PaymentRecord)
        .where(PaymentRecord.claim_id == claim_id)
        .order_by(col(PaymentRecord.created_at).desc())
    ).all()

    if any(r.status == "completed" for r in records):
        return "completed"

    return records[0].status if records else None


def initiate(
    session: Session,
    claim_id: uuid.UUID,
    payer: Identity,
    method: str,
    phone: str,
) -> PaymentRecord:
    claim = claim_engine.get_claim(session, claim_id)

    if claim.claimant_id != payer.user_id:
        raise Forbidden("Only the claimant can pay for this claim")

    if claim.status != "approved":
        raise InvalidState("Payment is only possible once the claim is approved")

    if method not in PAYMENT_METHODS:
        raise ValidationError(f"Payment method must be one of: {', '.join(PAYMENT_METHODS)}")

    phone = validate_phone(phone)

    if status_for_claim(session, claim.id) == "completed":
        raise InvalidState("This claim has already been paid")

    item = session.get(Item, claim.item_id) if claim.item_id else None

    record = PaymentRecord(
        claim_id=claim.id,
        payer_id=payer.user_id,
        payer_phone=phone,
        amount=amount_due(item),
        method=method,
    )

    session.add(record)
    commit(session, "initiate payment")
    session.refresh(record)

    logger.info("Payment %s initiated for claim %s (%s RWF)", record.id, claim.id, record.amount)
    return record


def update_status(
    session: Session,
    payment_id: uuid.UUID,
    status: str,
    reviewer: Optional[Identity],
    transaction_id: Optional[str] = None,
) -> PaymentRecord:
    """Apply the provider's outcome to a pending payment."""
    ensure_admin(session, reviewer)

    if status not in ("completed", "failed"):
        raise ValidationError("Status must be 'completed' or 'failed'")

    record = session.get(PaymentRecord, payment_id)
    if not record:
        raise NotFound("Payment not found")

    if record.status != "pending":
        raise InvalidState(f"Payment is already {record.status}")

    claim = session.get(Claim, record.claim_id)
    if status == "completed" and (claim is None or claim.status != "approved"):
        raise InvalidState("Payment can only complete for an approved claim")

    record.status = status
    record.transaction_id = transaction_id
    if status == "completed":
        record.completed_at = datetime.now(timezone.utc)

    session.add(record)
    commit(session, "update payment")
    session.refresh(record)

    logger.info("Payment %s %s", record.id, status)

    if status == "completed":
        if claim.item_id is not None:
            try:
                item_registry.mark_paid(session, claim.item_id)
            except NotFound:
                logger.warning("Payment %s completed for deleted item %s", record.id, claim.item_id)
            except ExternalServiceError:
                logger.error("Payment %s completed but item %s was not marked paid", record.id, claim.item_id)

        notification_dispatcher.notify(
            session,
            claim.claimant_id,
            "general",
            {"claim_id": claim.id, "item_id": claim.item_id, "item_name": claim.item_name},
            title="Payment received",
            message=f"Your payment for '{claim.item_name}' is complete. The contact details are now visible.",
        )
        session.refresh(record)

    return record


def list_mine(session: Session, payer_id: str) -> List[PaymentRecord]:
    return session.exec(
        select(PaymentRecord)
        .where(PaymentRecord.payer_id == payer_id)
        .order_by(col(PaymentRecord.created_at).desc())
    ).all()
