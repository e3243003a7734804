"""Postings (jobs, events, courses, mentorships) that students are notified about."""

import uuid

from sqlalchemy import JSON, TIMESTAMP, CheckConstraint, Column, Index, String, Text

from app.database import Base

POSTING_KINDS = ("job", "event", "course", "mentorship")


class Posting(Base):
    """A job, event, course, or mentorship published by a teacher or alumnus."""

    __tablename__ = "postings"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    kind = Column(String(16), nullable=False)
    title = Column(Text, nullable=False)
    description = Column(Text)
    # Kind-specific fields: company, organizer, teacher_name, mentor_name, ...
    details = Column(JSON, nullable=False, default=dict)
    created_by = Column(String(128))
    created_at = Column(TIMESTAMP(timezone=True), nullable=False)

    __table_args__ = (
        CheckConstraint(
            "kind IN ('job', 'event', 'course', 'mentorship')", name="ck_postings_kind"
        ),
        Index("idx_postings_kind_created", kind, created_at.desc()),
    )
