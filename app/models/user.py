from typing import Optional
from sqlmodel import Field, SQLModel
from datetime import datetime, timezone


class User(SQLModel, table=True):
    """Profile row, keyed by the identity provider's subject."""

    __tablename__ = "users"

    id: str = Field(primary_key=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    name: str
    email: str = Field(default="")
    image: Optional[str] = Field(default=None)
    phone: str = Field(default="")

    role: Optional[str] = Field(default="user")  # Possible roles: user, admin
