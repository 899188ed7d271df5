from typing import Optional
import uuid
from sqlmodel import Field, SQLModel
from datetime import datetime, timezone

class Notification(SQLModel, table=True):
    __tablename__ = "notifications"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), index=True)

    # Recipient
    user_id: str = Field(index=True)

    # Notification fields
    type: str = Field(index=True) # values: "claim_created", "claim_approved", "claim_rejected"

    title: str
    message: str

    item_id: Optional[uuid.UUID] = Field(default=None, index=True)
    item_title: Optional[str] = None
    claim_id: Optional[uuid.UUID] = Field(default=None, index=True)

    # Only on "claim_approved"
    meetup_address: Optional[str] = None

    read: bool = Field(default=False)
