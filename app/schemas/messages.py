"""Message-related Pydantic schemas."""

from typing import Literal

from pydantic import BaseModel, field_validator

Role = Literal["student", "teacher", "alumni"]


class SendMessageRequest(BaseModel):
    """Request to send a direct message."""

    sender_id: str
    receiver_id: str
    sender_role: Role
    receiver_role: Role
    content: str

    @field_validator("content")
    @classmethod
    def validate_content(cls, v: str) -> str:
        """Validate message length."""
        if len(v) > 10000:
            raise ValueError("Message must be 10000 characters or less")
        return v


class MessageItem(BaseModel):
    """Single stored message."""

    id: str
    sender_id: str
    receiver_id: str
    sender_role: str
    receiver_role: str
    content: str
    read: bool
    created_at: str


class ConversationResponse(BaseModel):
    """Messages between two users, oldest first."""

    items: list[MessageItem]


class MarkReadResponse(BaseModel):
    """Response for marking a conversation as read."""

    marked_count: int


class LastMessageItem(BaseModel):
    content: str
    created_at: str
    sender_id: str


class ConversationSummaryItem(BaseModel):
    """One row of the directory's conversation list."""

    peer_user_id: str
    display_name: str
    role: str | None
    last_message: LastMessageItem | None
    unread_count: int


class ConversationListResponse(BaseModel):
    """Response for the conversation list."""

    items: list[ConversationSummaryItem]
