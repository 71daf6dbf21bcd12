from typing import Optional
import uuid
from sqlmodel import Field, SQLModel
from datetime import datetime, timezone


class PaymentRecord(SQLModel, table=True):
    __tablename__ = "payment_records"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    claim_id: uuid.UUID = Field(foreign_key="claims.id", index=True)

    # Payer
    payer_id: str = Field(index=True)
    payer_phone: str

    amount: int
    method: str  # "mtn" or "airtel"
    status: str = Field(default="pending", index=True)  # values: "pending", "completed", "failed"
    transaction_id: Optional[str] = Field(default=None)

    completed_at: Optional[datetime] = Field(default=None)
