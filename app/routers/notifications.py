"""Notifications router for the caller's inbox."""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_identity
from app.auth.providers import Identity
from app.database import get_db
from app.models.notification import Notification
from app.schemas.notifications import (
    ListNotificationsResponse,
    MarkAllReadResponse,
    MarkReadResponse,
    NotificationItem,
    NotificationSummaryResponse,
)
from app.services.notifications import NotificationService

router = APIRouter(prefix="/api/v1/notifications", tags=["Notifications"])


def _notification_item(n: Notification) -> NotificationItem:
    return NotificationItem(
        id=str(n.id),
        title=n.title,
        message=n.message,
        type=n.notification_type,
        item_id=n.item_id,
        read=bool(n.read),
        created_by=n.created_by,
        created_at=n.created_at.isoformat(),
    )


# --- List Notifications ---


@router.get(
    "",
    response_model=ListNotificationsResponse,
    status_code=status.HTTP_200_OK,
)
async def list_notifications(
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
    unread_only: bool = Query(default=False, description="Show only unread notifications"),
    limit: int = Query(default=50, ge=1, le=200, description="Maximum items"),
) -> ListNotificationsResponse:
    """List the caller's notifications, newest first."""
    notifications = await NotificationService(db).list_for_user(
        identity.uid, unread_only=unread_only, limit=limit
    )
    return ListNotificationsResponse(items=[_notification_item(n) for n in notifications])


# --- Summary ---


@router.get(
    "/summary",
    response_model=NotificationSummaryResponse,
    status_code=status.HTTP_200_OK,
)
async def get_notification_summary(
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
) -> NotificationSummaryResponse:
    """Unread and total counts for the notification badge."""
    unread, total = await NotificationService(db).counts(identity.uid)
    return NotificationSummaryResponse(unread_count=unread, total_count=total)


# --- Mark All as Read ---
# Registered before /{notification_id}/read


@router.put(
    "/mark-all-read",
    response_model=MarkAllReadResponse,
    status_code=status.HTTP_200_OK,
)
async def mark_all_notifications_read(
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
) -> MarkAllReadResponse:
    """Mark all of the caller's unread notifications as read."""
    marked = await NotificationService(db).mark_all_as_read(identity.uid)
    return MarkAllReadResponse(marked_count=marked)


# --- Mark Notification as Read ---


@router.put(
    "/{notification_id}/read",
    response_model=MarkReadResponse,
    status_code=status.HTTP_200_OK,
)
async def mark_notification_read(
    notification_id: str,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
) -> MarkReadResponse:
    """Mark a single notification as read. Only its owner may do this."""
    notification = await NotificationService(db).mark_as_read(notification_id, identity.uid)
    return MarkReadResponse(id=str(notification.id), read=True)


# --- Delete Notification ---


@router.delete(
    "/{notification_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_notification(
    notification_id: str,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
) -> None:
    """Delete a notification. Only its owner may do this."""
    await NotificationService(db).delete(notification_id, identity.uid)
