"""Database models for the Alumni Connect API."""

from app.models.message import Message
from app.models.notification import Notification
from app.models.posting import Posting
from app.models.user import User

__all__ = [
    "User",
    "Message",
    "Notification",
    "Posting",
]
