"""Read-state operations on a user's notifications."""

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.errors import ForbiddenError, NotFoundError
from app.models.notification import Notification


class NotificationService:
    """Owner-checked access to notifications."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_for_user(
        self, user_id: str, unread_only: bool = False, limit: int | None = None
    ) -> list[Notification]:
        query = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            query = query.where(Notification.read.is_(False))
        query = query.order_by(Notification.created_at.desc(), Notification.id.desc())
        if limit is not None:
            query = query.limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def counts(self, user_id: str) -> tuple[int, int]:
        """Return (unread, total) notification counts for ``user_id``."""
        unread = await self.db.execute(
            select(func.count(Notification.id)).where(
                Notification.user_id == user_id,
                Notification.read.is_(False),
            )
        )
        total = await self.db.execute(
            select(func.count(Notification.id)).where(Notification.user_id == user_id)
        )
        return unread.scalar() or 0, total.scalar() or 0

    async def _get_owned(self, notification_id: str, requesting_user_id: str) -> Notification:
        notification = await self.db.get(Notification, notification_id)
        if notification is None:
            raise NotFoundError(f"Notification '{notification_id}' not found")
        if notification.user_id != requesting_user_id:
            raise ForbiddenError("Not authorized to modify this notification")
        return notification

    async def mark_as_read(self, notification_id: str, requesting_user_id: str) -> Notification:
        """
        Mark one notification as read.

        Raises:
            NotFoundError: no such notification
            ForbiddenError: notification belongs to another user
        """
        notification = await self._get_owned(notification_id, requesting_user_id)
        if not notification.read:
            notification.read = True
            await self.db.commit()
        return notification

    async def mark_all_as_read(self, user_id: str) -> int:
        """Mark every unread notification of ``user_id`` as read; return the count."""
        result = await self.db.execute(
            update(Notification)
            .where(
                Notification.user_id == user_id,
                Notification.read.is_(False),
            )
            .values(read=True)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        return result.rowcount or 0

    async def delete(self, notification_id: str, requesting_user_id: str) -> None:
        """Delete one notification, with the same checks as ``mark_as_read``."""
        notification = await self._get_owned(notification_id, requesting_user_id)
        await self.db.delete(notification)
        await self.db.commit()
