from typing import Optional
import uuid
from sqlalchemy import Index, text
from sqlmodel import Field, SQLModel
from datetime import datetime, timezone

APPROVED = text("status = 'approved'")
PENDING = text("status = 'pending'")


class Claim(SQLModel, table=True):
    __tablename__ = "claims"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), index=True)

    # Plain reference, not a foreign key: cleanup removes the item before its claims
    item_id: uuid.UUID = Field(index=True)
    item_title: str

    # Claimant
    claimed_by: str = Field(index=True)

    # Proof of ownership
    message: str

    status: str = Field(default="pending", index=True)  # values: "pending", "approved", "rejected", "received"

    meetup_address: Optional[str] = None
    decided_at: Optional[datetime] = None
    received_at: Optional[datetime] = None

    __table_args__ = (
        # One approved claim per item
        Index(
            "uq_claims_item_approved",
            "item_id",
            unique=True,
            sqlite_where=APPROVED,
            postgresql_where=APPROVED,
        ),
        # One pending claim per claimant per item
        Index(
            "uq_claims_item_claimant_pending",
            "item_id",
            "claimed_by",
            unique=True,
            sqlite_where=PENDING,
            postgresql_where=PENDING,
        ),
    )
