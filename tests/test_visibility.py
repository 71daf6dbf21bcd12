import uuid
from datetime import datetime, timedelta, timezone

import pytest

from app.models.claim import Claim
from app.models.item import Item
from app.services.visibility import resolve_contact, winning_claim
from app.utils.auth_helper import Identity

T0 = datetime(2026, 10, 1, 9, 0, tzinfo=timezone.utc)

REPORTER = Identity(user_id="user-a", name="Alice", phone="0788 111 111")
CLAIMANT = Identity(user_id="user-b", name="Bob", phone="0788 222 222")
OTHER = Identity(user_id="user-c", name="Claire", phone="0788 333 333")


def make_item(kind="lost"):
    return Item(
        id=uuid.uuid4(),
        user_id=REPORTER.user_id,
        reporter_name=REPORTER.name,
        reporter_phone=REPORTER.phone,
        title="Black Wallet",
        category="wallet",
        description="Leather wallet with two bank cards inside",
        location="Kigali bus park",
        type=kind,
        date=T0,
        reward=5000 if kind == "lost" else None,
        commission=None if kind == "lost" else 5000,
    )


def make_claim(item, claimant, status="pending", created=T0, reviewed=None):
    return Claim(
        id=uuid.uuid4(),
        item_id=item.id,
        item_name=item.title,
        claimant_id=claimant.user_id,
        claimant_name=claimant.name,
        claimant_phone=claimant.phone,
        description="It has my national ID card in the inner pocket",
        status=status,
        created_at=created,
        reviewed_at=reviewed,
    )


# ==================================================================
# FOUND ITEMS
# ==================================================================

class TestFoundItems:

    @pytest.mark.parametrize("viewer", [None, REPORTER, CLAIMANT, OTHER])
    @pytest.mark.parametrize("payment_status", [None, "pending", "completed"])
    def test_reporter_phone_always_shown(self, viewer, payment_status):
        item = make_item("found")
        claims = [make_claim(item, CLAIMANT, status="approved", reviewed=T0)]

        disclosure = resolve_contact(item, claims, viewer, payment_status)

        assert disclosure.state == "visible"
        assert disclosure.phone == REPORTER.phone


# ==================================================================
# LOST ITEMS
# ==================================================================

class TestLostItems:

    def test_no_approved_claim_awaits_verification(self):
        item = make_item()
        claims = [make_claim(item, CLAIMANT), make_claim(item, OTHER, status="rejected")]

        disclosure = resolve_contact(item, claims, CLAIMANT, None)

        assert disclosure.state == "awaiting_verification"
        assert disclosure.phone is None

    def test_approved_claimant_without_payment(self):
        item = make_item()
        claims = [make_claim(item, CLAIMANT, status="approved", reviewed=T0)]

        disclosure = resolve_contact(item, claims, CLAIMANT, "pending")

        assert disclosure.state == "payment_required"
        assert disclosure.phone is None

    def test_payment_completion_reveals_phone(self):
        item = make_item()
        claims = [make_claim(item, CLAIMANT, status="approved", reviewed=T0)]

        before = resolve_contact(item, claims, CLAIMANT, "pending")
        first = resolve_contact(item, claims, CLAIMANT, "completed")
        second = resolve_contact(item, claims, CLAIMANT, "completed")

        assert before.state == "payment_required"
        assert first.state == "visible"
        assert first.phone == REPORTER.phone
        assert first == second

    @pytest.mark.parametrize("viewer", [None, OTHER, REPORTER])
    def test_non_party_sees_already_claimed(self, viewer):
        item = make_item()
        claims = [make_claim(item, CLAIMANT, status="approved", reviewed=T0)]

        disclosure = resolve_contact(item, claims, viewer, "completed")

        assert disclosure.state == "already_claimed"
        assert disclosure.phone is None

    @pytest.mark.parametrize("second_status", ["pending", "rejected", "approved"])
    def test_first_approval_wins(self, second_status):
        item = make_item()
        first = make_claim(item, CLAIMANT, status="approved", created=T0, reviewed=T0 + timedelta(hours=1))
        second = make_claim(
            item,
            OTHER,
            status=second_status,
            created=T0 + timedelta(minutes=5),
            reviewed=T0 + timedelta(hours=2) if second_status != "pending" else None,
        )

        disclosure = resolve_contact(item, [second, first], OTHER, "completed")

        assert disclosure.state == "already_claimed"
        assert disclosure.phone is None

    def test_claims_for_other_items_are_ignored(self):
        item = make_item()
        elsewhere = make_item()
        claims = [make_claim(elsewhere, CLAIMANT, status="approved", reviewed=T0)]

        assert resolve_contact(item, claims, CLAIMANT, "completed").state == "awaiting_verification"


def test_winning_claim_handles_naive_timestamps():
    item = make_item()
    early = make_claim(item, CLAIMANT, status="approved", reviewed=datetime(2026, 10, 1, 8, 0))
    late = make_claim(item, OTHER, status="approved", reviewed=T0 + timedelta(days=1))

    assert winning_claim(item, [late, early]) is early
