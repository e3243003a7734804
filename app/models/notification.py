"""Notification model for the inbox system."""

import uuid

from sqlalchemy import (
    TIMESTAMP,
    Boolean,
    Column,
    Index,
    String,
    Text,
    false,
)

from app.database import Base

NOTIFICATION_TYPES = ("event", "job", "course", "mentorship", "generic")


class Notification(Base):
    """User notification model."""

    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(128), nullable=False)
    title = Column(Text, nullable=False)
    message = Column(Text, nullable=False)
    notification_type = Column("type", String(16), nullable=False)  # e.g., "job", "event"
    item_id = Column(String(128))
    read = Column(Boolean, nullable=False, default=False, server_default=false())
    created_by = Column(String(128), nullable=False, default="system")
    created_at = Column(TIMESTAMP(timezone=True), nullable=False)

    __table_args__ = (
        Index("idx_notifications_user", user_id, created_at.desc()),
        Index("idx_notifications_user_unread", user_id, read),
    )
