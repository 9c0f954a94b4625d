import uuid
from sqlmodel import Field, SQLModel
from datetime import datetime, timezone

# in delivery order
MESSAGE_STATUSES = ("sent", "delivered", "read")


class ChatMessage(SQLModel, table=True):
    __tablename__ = "chat_messages"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), index=True)

    match_id: uuid.UUID = Field(foreign_key="matches.id", index=True)
    sender_id: str = Field(index=True)
    receiver_id: str = Field(index=True)

    content: str
    status: str = Field(default="sent")  # "sent", "delivered", "read"
