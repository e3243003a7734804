"""Notify every user of an audience role about a newly created item."""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal, Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.errors import PartialFanoutError
from app.models.notification import Notification
from app.models.user import User
from app.services.conversations import DirectoryUser

logger = logging.getLogger(__name__)

NotificationType = Literal["event", "job", "course", "mentorship", "generic"]

# (title, message template, detail key for the "at"/"by" clause)
_TEMPLATES: dict[str, tuple[str, str, str | None]] = {
    "event": ("New Event Available", 'A new event "{title}" has been added.{suffix} Check it out!', "organizer"),
    "job": ("New Job Opportunity", 'A new job "{title}"{suffix} has been posted. Apply now!', "company"),
    "course": (
        "New Course Available",
        'A new course "{title}"{suffix} is now available for enrollment.',
        "teacher_name",
    ),
    "mentorship": (
        "New Mentorship Opportunity",
        'A new mentorship program "{title}"{suffix} is now available.',
        "mentor_name",
    ),
    "generic": ("New Update", '"{title}" has been posted.{suffix}', None),
}

_SUFFIX_FORMATS = {
    "organizer": " Hosted by {}.",
    "company": " at {}",
    "teacher_name": " by {}",
    "mentor_name": " by {}",
}


@dataclass(frozen=True)
class FanoutResource:
    """The item the audience is told about."""

    id: str
    title: str
    created_by: str | None = None
    details: Mapping[str, Any] = field(default_factory=dict)


@dataclass
class FanoutResult:
    """Outcome of one fan-out run."""

    created: list[Notification] = field(default_factory=list)
    failed: int = 0
    error: PartialFanoutError | None = None

    @property
    def created_count(self) -> int:
        return len(self.created)


class UserDirectory(Protocol):
    async def find_by_role(self, role: str) -> list[DirectoryUser]: ...


class NotificationStore(Protocol):
    async def insert(self, notification: Notification) -> Notification: ...


class SqlUserDirectory:
    """Directory lookups against the users table."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_by_role(self, role: str) -> list[DirectoryUser]:
        return await self.find_by_roles((role,))

    async def find_by_roles(self, roles: tuple[str, ...]) -> list[DirectoryUser]:
        if not roles:
            return []
        result = await self.db.execute(
            select(User).where(User.role.in_(roles)).order_by(User.display_name, User.id)
        )
        return [
            DirectoryUser(id=user.id, role=user.role, display_name=user.display_name)
            for user in result.scalars().all()
        ]


class SqlNotificationStore:
    """Inserts each notification in its own transaction."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def insert(self, notification: Notification) -> Notification:
        self.db.add(notification)
        try:
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        return notification


def render_notification(
    kind: str, resource: FanoutResource
) -> tuple[str, str]:
    """Return the (title, message) shown for ``resource`` of ``kind``."""
    title, template, detail_key = _TEMPLATES.get(kind, _TEMPLATES["generic"])
    suffix = ""
    if detail_key is not None and resource.details.get(detail_key):
        suffix = _SUFFIX_FORMATS[detail_key].format(resource.details[detail_key])
    return title, template.format(title=resource.title, suffix=suffix)


class NotificationFanout:
    """Write one notification per member of an audience role."""

    def __init__(self, directory: UserDirectory, store: NotificationStore):
        self.directory = directory
        self.store = store

    async def fan_out(
        self,
        resource: FanoutResource,
        kind: NotificationType,
        audience_role: str,
    ) -> FanoutResult:
        """
        Notify every user with ``audience_role`` about ``resource``.

        Insert failures are logged and counted; the run always continues to
        the last recipient. Repeated calls for the same resource insert
        repeated notifications.
        """
        recipients = await self.directory.find_by_role(audience_role)
        result = FanoutResult()
        if not recipients:
            logger.info("No %s users to notify about %s %s", audience_role, kind, resource.id)
            return result

        title, message = render_notification(kind, resource)
        created_by = resource.created_by or "system"

        for recipient in recipients:
            notification = Notification(
                user_id=recipient.id,
                title=title,
                message=message,
                notification_type=kind,
                item_id=resource.id,
                read=False,
                created_by=created_by,
                created_at=datetime.now(timezone.utc),
            )
            try:
                result.created.append(await self.store.insert(notification))
            except Exception as exc:
                result.failed += 1
                logger.warning("Notification for user %s failed: %r", recipient.id, exc)

        if result.failed:
            result.error = PartialFanoutError(result.failed, len(recipients))
        logger.info(
            "Fan-out of %s %s to %ss: %d created, %d failed",
            kind,
            resource.id,
            audience_role,
            result.created_count,
            result.failed,
        )
        return result
