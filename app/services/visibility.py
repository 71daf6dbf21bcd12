"""
Contact disclosure rules.

Contact details are what the platform sells, so they are only released once an
admin has verified a claim and, for lost items, once the claimant has paid.
Nothing here touches the store: callers pass the current item, its claims and
the payment status, and the disclosure is derived again on every read.
"""
from datetime import datetime, timezone
from typing import Iterable, Literal, Optional
from pydantic import BaseModel

from app.models.claim import Claim
from app.models.item import Item
from app.utils.auth_helper import Identity

DisclosureState = Literal[
    "visible",
    "payment_required",
    "already_claimed",
    "awaiting_verification",
]


class ContactDisclosure(BaseModel):
    state: DisclosureState
    name: Optional[str] = None
    phone: Optional[str] = None

    @property
    def is_visible(self) -> bool:
        return self.state == "visible"


def _ts(value: Optional[datetime]) -> datetime:
    if value is None:
        return datetime.max.replace(tzinfo=timezone.utc)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def winning_claim(item: Item, claims: Iterable[Claim]) -> Optional[Claim]:
    """The first approved claim on the item, by review time then submission time."""
    approved = [c for c in claims if c.status == "approved" and c.item_id == item.id]
    if not approved:
        return None

    return min(approved, key=lambda c: (_ts(c.reviewed_at), _ts(c.created_at)))


def _reveal(item: Item) -> ContactDisclosure:
    return ContactDisclosure(state="visible", name=item.reporter_name, phone=item.reporter_phone)


def resolve_contact(
    item: Item,
    claims_for_item: Iterable[Claim],
    viewer: Optional[Identity],
    payment_status: Optional[str],
) -> ContactDisclosure:
    # finder contact is public
    if item.type == "found":
        return _reveal(item)

    claim = winning_claim(item, claims_for_item)
    if claim is None:
        return ContactDisclosure(state="awaiting_verification")

    if viewer is None or viewer.user_id != claim.claimant_id:
        return ContactDisclosure(state="already_claimed")

    if payment_status == "completed":
        return _reveal(item)

    return ContactDisclosure(state="payment_required")
