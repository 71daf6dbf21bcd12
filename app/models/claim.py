from typing import Optional
import uuid
from sqlmodel import Field, SQLModel
from datetime import datetime, timezone


class Claim(SQLModel, table=True):
    __tablename__ = "claims"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    # Target item. No FK: claims outlive deleted items.
    item_id: Optional[uuid.UUID] = Field(default=None, index=True)

    # Snapshot of the item at submission time
    item_name: str
    item_photo: Optional[str] = Field(default=None)
    owner_name: str = Field(default="")

    # Claimant
    claimant_id: str = Field(index=True)
    claimant_name: str
    claimant_phone: str

    # Content
    description: str
    photo: Optional[str] = Field(default=None)

    status: str = Field(default="pending", index=True)  # values: "pending", "approved", "rejected"
    reviewed_by: Optional[str] = Field(default=None)
    reviewed_at: Optional[datetime] = Field(default=None)

    # Set when the item update after approval failed
    needs_reconcile: bool = Field(default=False, index=True)
