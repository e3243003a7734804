"""Message value types shared by the delivery backends and the aggregator."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal

from app.errors import ValidationError
from app.models.message import Message

Role = Literal["student", "teacher", "alumni"]


@dataclass(frozen=True)
class MessageDraft:
    """A message as submitted by the sender, before a store accepts it."""

    sender_id: str
    receiver_id: str
    sender_role: Role
    receiver_role: Role
    content: str

    def validated(self) -> "MessageDraft":
        """Return a copy with trimmed content, or raise ValidationError."""
        content = self.content.strip() if self.content else ""
        if not content:
            raise ValidationError("Message content cannot be empty")
        if not self.sender_id or not self.receiver_id:
            raise ValidationError("Sender and receiver are required")
        if self.sender_id == self.receiver_id:
            raise ValidationError("Cannot send a message to yourself")
        return MessageDraft(
            sender_id=self.sender_id,
            receiver_id=self.receiver_id,
            sender_role=self.sender_role,
            receiver_role=self.receiver_role,
            content=content,
        )

    def as_payload(self) -> dict[str, str]:
        return {
            "sender_id": self.sender_id,
            "receiver_id": self.receiver_id,
            "sender_role": self.sender_role,
            "receiver_role": self.receiver_role,
            "content": self.content,
        }


@dataclass(frozen=True)
class MessageRecord:
    """A stored message."""

    id: str
    sender_id: str
    receiver_id: str
    sender_role: str
    receiver_role: str
    content: str
    read: bool
    created_at: datetime

    @classmethod
    def from_model(cls, message: Message) -> "MessageRecord":
        return cls(
            id=str(message.id),
            sender_id=message.sender_id,
            receiver_id=message.receiver_id,
            sender_role=message.sender_role,
            receiver_role=message.receiver_role,
            content=message.content,
            read=bool(message.read),
            created_at=message.created_at,
        )

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> "MessageRecord":
        """Build a record from the REST façade's JSON representation."""
        return cls(
            id=str(data["id"]),
            sender_id=data["sender_id"],
            receiver_id=data["receiver_id"],
            sender_role=data["sender_role"],
            receiver_role=data["receiver_role"],
            content=data["content"],
            read=bool(data.get("read", False)),
            created_at=datetime.fromisoformat(data["created_at"]),
        )

    def involves(self, user_id: str) -> bool:
        return user_id in (self.sender_id, self.receiver_id)

    def other_party(self, user_id: str) -> str:
        return self.receiver_id if self.sender_id == user_id else self.sender_id
