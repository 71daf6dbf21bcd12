import os
from datetime import datetime, timedelta, timezone
from typing import Optional
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import jwt, JWTError
from pydantic import BaseModel
from sqlmodel import Session

from app.db.db import get_session
from app.models.user import User
from app.utils.errors import Forbidden, Unauthorized

ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 24 * 60  # 1 day

ROLES = ("admin", "user")


class Identity(BaseModel):
    user_id: str
    name: str = ""
    phone: str = ""
    # raw role claim carried by the token, if any
    role_claim: Optional[str] = None


def _secret() -> str:
    secret = os.getenv("JWT_SECRET")
    if not secret:
        raise ValueError("JWT_SECRET not set")
    return secret


def create_access_token(user: User) -> str:
    now = datetime.now(timezone.utc)

    payload = {
        "sub": user.id,
        "name": user.name,
        "phone": user.phone,
        "iat": now,
        "exp": now + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES),
    }

    return jwt.encode(payload, _secret(), algorithm=ALGORITHM)


def identity_from_claims(payload: dict) -> Optional[Identity]:
    sub = payload.get("sub")
    if not sub:
        return None

    return Identity(
        user_id=str(sub),
        name=payload.get("name") or "",
        phone=payload.get("phone") or "",
        role_claim=payload.get("role"),
    )


bearer_scheme = HTTPBearer(auto_error=False)


def get_current_identity_optional(
    token: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Optional[Identity]:
    if not token:
        return None

    try:
        payload = jwt.decode(token.credentials, _secret(), algorithms=[ALGORITHM])
    except JWTError:
        return None

    return identity_from_claims(payload)


def get_current_identity_required(
    token: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Identity:
    if not token:
        raise Unauthorized("Authentication required")

    try:
        payload = jwt.decode(token.credentials, _secret(), algorithms=[ALGORITHM])
    except JWTError:
        raise Unauthorized("Invalid or expired token")

    identity = identity_from_claims(payload)
    if identity is None:
        raise Unauthorized("Token has no subject")

    return identity


def _normalize_role(value) -> Optional[str]:
    if not isinstance(value, str):
        return None

    role = value.strip().lower()
    return role if role in ROLES else None


def resolve_role(session: Session, identity: Identity) -> str:
    """
    Role precedence: the token's role claim first, then the profile row.
    Missing, empty or unknown values fall through; the default is "user".
    """
    role = _normalize_role(identity.role_claim)
    if role:
        return role

    profile = session.get(User, identity.user_id)
    if profile:
        role = _normalize_role(profile.role)

    return role or "user"


def is_admin(session: Session, identity: Optional[Identity]) -> bool:
    return identity is not None and resolve_role(session, identity) == "admin"


def ensure_admin(session: Session, identity: Optional[Identity]) -> Identity:
    if identity is None:
        raise Unauthorized("Authentication required")

    if not is_admin(session, identity):
        raise Forbidden("Admin access required")

    return identity


def require_admin(
    session: Session = Depends(get_session),
    identity: Identity = Depends(get_current_identity_required),
) -> Identity:
    return ensure_admin(session, identity)


def get_profile(session: Session, identity: Identity) -> Optional[User]:
    return session.get(User, identity.user_id)
