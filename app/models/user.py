"""User directory model."""

from sqlalchemy import TIMESTAMP, CheckConstraint, Column, Index, String, Text, func

from app.database import Base

USER_ROLES = ("student", "teacher", "alumni")


class User(Base):
    """Directory entry for a student, teacher, or alumnus."""

    __tablename__ = "users"

    # Opaque uid issued by the identity provider
    id = Column(String(128), primary_key=True)
    email = Column(String, unique=True)
    display_name = Column(Text)
    role = Column(String(16), nullable=False)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())

    __table_args__ = (
        CheckConstraint("role IN ('student', 'teacher', 'alumni')", name="ck_users_role"),
        Index("idx_users_role", role),
    )
