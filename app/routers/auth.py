import os
import logging
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlmodel import Session
from google.oauth2 import id_token
from google.auth.exceptions import TransportError
from google.auth.transport import requests as grequests

from app.db.db import commit, get_session
from app.models.user import User
from app.utils.auth_helper import Identity, create_access_token, get_current_identity_required, get_profile, resolve_role
from app.utils.errors import ExternalServiceError, Unauthorized

logger = logging.getLogger(__name__)

router = APIRouter()


class GoogleIDToken(BaseModel):
    id_token: str


class TokenResponse(BaseModel):
    access_token: str
    user_id: str
    role: str


@router.post("/google", response_model=TokenResponse)
def google_auth(payload: GoogleIDToken, session: Session = Depends(get_session)):
    client_id = os.getenv("GOOGLE_CLIENT_ID")
    if not client_id:
        raise ExternalServiceError("Google sign-in is not configured")

    try:
        idinfo = id_token.verify_oauth2_token(payload.id_token, grequests.Request(), client_id)
    except ValueError:
        raise Unauthorized("Invalid Google ID token")
    except TransportError as e:
        logger.error("Google token verification failed: %s", e)
        raise ExternalServiceError("Sign-in provider unavailable, try again")

    # idinfo now trusted and parsed by Google libs
    google_id = idinfo["sub"]

    db_user = session.get(User, google_id)
    if not db_user:
        db_user = User(
            id=google_id,
            name=idinfo.get("name") or "",
            image=idinfo.get("picture"),
            email=idinfo.get("email") or "",
            role="user",
        )
        session.add(db_user)
        commit(session, "create profile")
        session.refresh(db_user)

    token = create_access_token(db_user)

    return TokenResponse(
        access_token=token,
        user_id=db_user.id,
        role=resolve_role(session, Identity(user_id=db_user.id)),
    )


@router.get("/me")
def who_am_i(
    session: Session = Depends(get_session),
    current_user: Identity = Depends(get_current_identity_required),
):
    profile = get_profile(session, current_user)

    return {
        "user_id": current_user.user_id,
        "name": (profile.name if profile else "") or current_user.name,
        "phone": (profile.phone if profile else "") or current_user.phone,
        "role": resolve_role(session, current_user),
    }
