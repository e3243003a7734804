"""Chat message model."""

import uuid

from sqlalchemy import (
    TIMESTAMP,
    Boolean,
    CheckConstraint,
    Column,
    Index,
    String,
    Text,
    false,
)

from app.database import Base


class Message(Base):
    """Direct message between two directory users."""

    __tablename__ = "messages"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    sender_id = Column(String(128), nullable=False)
    receiver_id = Column(String(128), nullable=False)
    sender_role = Column(String(16), nullable=False)
    receiver_role = Column(String(16), nullable=False)
    content = Column(Text, nullable=False)
    read = Column(Boolean, nullable=False, default=False, server_default=false())
    # Assigned by the store at write time
    created_at = Column(TIMESTAMP(timezone=True), nullable=False)

    __table_args__ = (
        CheckConstraint("sender_id <> receiver_id", name="ck_messages_distinct_parties"),
        Index("idx_messages_pair", sender_id, receiver_id, created_at),
        Index("idx_messages_receiver_unread", receiver_id, read),
    )
