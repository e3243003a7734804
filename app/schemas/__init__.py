"""Pydantic schemas for request/response validation."""

from app.schemas.messages import (
    ConversationListResponse,
    ConversationResponse,
    MessageItem,
    SendMessageRequest,
)
from app.schemas.notifications import ListNotificationsResponse, NotificationItem
from app.schemas.postings import CreatePostingRequest, CreatePostingResponse

__all__ = [
    "SendMessageRequest",
    "MessageItem",
    "ConversationResponse",
    "ConversationListResponse",
    "NotificationItem",
    "ListNotificationsResponse",
    "CreatePostingRequest",
    "CreatePostingResponse",
]
