from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from app.utils.auth_helper import (
    ALGORITHM,
    Identity,
    create_access_token,
    ensure_admin,
    resolve_role,
)
from app.utils.errors import Forbidden, Unauthorized

from conftest import TEST_SECRET, auth_header, make_user


class TestResolveRole:

    def test_token_claim_checked_first(self, session):
        assert resolve_role(session, Identity(user_id="nobody", role_claim="admin")) == "admin"

    def test_token_claim_is_case_insensitive(self, session):
        assert resolve_role(session, Identity(user_id="nobody", role_claim=" Admin")) == "admin"

    def test_recognised_token_claim_wins_over_profile(self, session):
        make_user(session, "promoted", "Promoted", "0788 444 444", role="admin")
        assert resolve_role(session, Identity(user_id="promoted", role_claim="user")) == "user"

    @pytest.mark.parametrize("claim", [None, "", "legacy-moderator"])
    def test_profile_used_when_claim_missing_or_legacy(self, session, claim):
        make_user(session, "staff", "Staff", "0788 444 444", role="ADMIN")
        assert resolve_role(session, Identity(user_id="staff", role_claim=claim)) == "admin"

    @pytest.mark.parametrize("profile_role", [None, "", "superuser"])
    def test_default_is_user(self, session, profile_role):
        make_user(session, "plain", "Plain", "0788 444 444", role=profile_role)
        assert resolve_role(session, Identity(user_id="plain")) == "user"

    def test_no_profile_is_user(self, session):
        assert resolve_role(session, Identity(user_id="ghost")) == "user"

    def test_ensure_admin(self, session):
        with pytest.raises(Unauthorized):
            ensure_admin(session, None)
        with pytest.raises(Forbidden):
            ensure_admin(session, Identity(user_id="ghost"))


class TestBearerToken:

    def test_missing_token_is_unauthorized(self, client):
        response = client.get("/claims/my")
        assert response.status_code == 401

    def test_garbage_token_is_unauthorized(self, client):
        response = client.get("/claims/my", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid or expired token"

    def test_expired_token_is_unauthorized(self, client):
        past = datetime.now(timezone.utc) - timedelta(days=2)
        token = jwt.encode(
            {"sub": "user-b", "iat": past, "exp": past + timedelta(hours=1)},
            TEST_SECRET,
            algorithm=ALGORITHM,
        )
        response = client.get("/claims/my", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401

    def test_me_reports_resolved_role(self, client, session):
        make_user(session, "staff", "Staff", "0788 444 444", role="Admin")

        # the token carries no role, the profile row is consulted
        now = datetime.now(timezone.utc)
        token = jwt.encode(
            {"sub": "staff", "iat": now, "exp": now + timedelta(hours=1)},
            TEST_SECRET,
            algorithm=ALGORITHM,
        )
        response = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 200
        assert response.json()["role"] == "admin"

    def test_me_for_plain_user(self, client, claimant):
        response = client.get("/auth/me", headers=auth_header(claimant))

        assert response.json() == {
            "user_id": "user-b",
            "name": "Bob Mugisha",
            "phone": "0788 222 222",
            "role": "user",
        }

    def test_issued_token_carries_no_role(self, admin):
        claims = jwt.decode(create_access_token(admin), TEST_SECRET, algorithms=[ALGORITHM])

        assert claims["sub"] == "admin-1"
        assert "role" not in claims

    def test_demoted_admin_loses_access_with_old_token(self, client, session, admin):
        headers = auth_header(admin)
        assert client.get("/admin/stats", headers=headers).status_code == 200

        admin.role = "user"
        session.add(admin)
        session.commit()

        assert client.get("/admin/stats", headers=headers).status_code == 403
