from typing import Optional
import uuid
from sqlalchemy import Column, JSON
from sqlmodel import Field, SQLModel
from datetime import datetime, timezone

class Notification(SQLModel, table=True):
    __tablename__ = "notifications"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    # Recipient
    user_id: str = Field(index=True)

    # Notification fields
    type: str = Field(index=True) # values: "claim_approved", "claim_rejected", "general"

    title: str
    message: str

    # claim_id, item_id, item_name
    payload: dict = Field(default_factory=dict, sa_column=Column(JSON))

    read_at: Optional[datetime] = Field(default=None)
