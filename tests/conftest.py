import os

TEST_SECRET = "test-secret"
os.environ["JWT_SECRET"] = TEST_SECRET
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from app.db.db import get_session, init_db
from app.main import app
from app.models.user import User
from app.services import item_registry
from app.utils.auth_helper import Identity, create_access_token
from app.utils.form_validator import validate_create_item_form


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def client(engine):
    def override_get_session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    yield TestClient(app)
    app.dependency_overrides.clear()


def make_user(session, user_id, name, phone, role="user"):
    user = User(id=user_id, name=name, phone=phone, email=f"{user_id}@example.com", role=role)
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def as_identity(user: User) -> Identity:
    return Identity(user_id=user.id, name=user.name, phone=user.phone, role_claim=user.role)


def auth_header(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user)}"}


def report_item(session, owner: User, item_type="lost", title="Black Wallet", **overrides):
    fields = dict(
        item_type=item_type,
        title=title,
        description="Leather wallet with two bank cards inside",
        category="wallet",
        date=datetime(2026, 10, 1, tzinfo=timezone.utc),
        location="Kigali bus park",
    )
    if item_type == "lost":
        fields["reward"] = 5000
    fields.update(overrides)

    draft = validate_create_item_form(**fields)
    return item_registry.create_item(session, draft, as_identity(owner))


@pytest.fixture
def reporter(session):
    return make_user(session, "user-a", "Alice Uwase", "0788 111 111")


@pytest.fixture
def claimant(session):
    return make_user(session, "user-b", "Bob Mugisha", "0788 222 222")


@pytest.fixture
def bystander(session):
    return make_user(session, "user-c", "Claire Ineza", "0788 333 333")


@pytest.fixture
def admin(session):
    return make_user(session, "admin-1", "Platform Admin", "0788 999 999", role="admin")
