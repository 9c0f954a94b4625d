from typing import Optional
import uuid
from sqlmodel import Field, SQLModel
from datetime import datetime, timezone

MATCH_FOUND = "MATCH_FOUND"


class NotificationBase(SQLModel):
    # Ownership
    user_id: str = Field(index=True)

    # Notification fields
    type: str = Field(index=True)  # values: "MATCH_FOUND"

    title: str
    message: str

    match_id: Optional[uuid.UUID] = Field(
        default=None,
        foreign_key="matches.id",
        index=True
    )

    is_read: bool = Field(default=False)


class Notification(NotificationBase, table=True):
    __tablename__ = "notifications"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class NotificationRead(NotificationBase):
    id: uuid.UUID
    created_at: datetime
