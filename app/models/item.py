from typing import Optional
import uuid
from sqlmodel import Field, SQLModel
from datetime import datetime, timezone


TERMINAL_STATUSES = ("claimed", "returned", "verified")


class Item(SQLModel, table=True):
    __tablename__ = "items"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    # Reporter info
    user_id: str = Field(index=True)
    reporter_name: str
    reporter_phone: str = Field(default="")

    # Item fields
    title: str
    category: str = Field(index=True)
    description: str
    location: str
    type: str = Field(index=True)  # "lost" or "found"
    date: datetime
    image: Optional[str] = Field(default=None)

    # Incentive: reward for lost items, commission for found items
    reward: Optional[int] = Field(default=None)
    commission: Optional[int] = Field(default=None)

    status: str = Field(default="active", index=True)  # active/claimed/returned/verified
    verified: bool = Field(default=False)
    payment_status: str = Field(default="unpaid")  # unpaid/paid

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES
