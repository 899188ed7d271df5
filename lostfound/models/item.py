import uuid
from typing import Optional
from sqlmodel import Field, SQLModel
from datetime import datetime, timezone


class Item(SQLModel, table=True):
    __tablename__ = "items"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), index=True)

    # Reporter info (snapshot taken at creation)
    reported_by: Optional[str] = Field(default=None, index=True)
    reporter_name: Optional[str] = None
    reporter_email: Optional[str] = Field(default=None, index=True)

    # Item fields
    title: str
    description: Optional[str] = None
    status: str = Field(index=True)  # "lost" or "found", never changes
    category: Optional[str] = Field(default=None, index=True)
    location: Optional[str] = None
    image_url: Optional[str] = None

    # Set together when the finder approves a claim
    claimed: bool = Field(default=False)
    claimed_by: Optional[str] = None
    approved: bool = Field(default=False)
