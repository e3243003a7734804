"""Notification-related Pydantic schemas."""

from pydantic import BaseModel


class NotificationSummaryResponse(BaseModel):
    """Unread and total notification counts."""

    unread_count: int
    total_count: int


class NotificationItem(BaseModel):
    """Single notification item."""

    id: str
    title: str
    message: str
    type: str
    item_id: str | None
    read: bool
    created_by: str
    created_at: str


class ListNotificationsResponse(BaseModel):
    """Response for listing notifications."""

    items: list[NotificationItem]


class MarkReadResponse(BaseModel):
    """Response for marking a notification as read."""

    id: str
    read: bool


class MarkAllReadResponse(BaseModel):
    """Response for marking all notifications as read."""

    marked_count: int
