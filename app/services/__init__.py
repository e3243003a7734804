"""Services for the Alumni Connect API."""

from app.services.conversations import aggregate_conversations, directory_roles_for
from app.services.delivery import DeliveryMode, DeliveryRouter
from app.services.fanout import FanoutResource, FanoutResult, NotificationFanout
from app.services.hub import MessageHub, message_hub
from app.services.notifications import NotificationService

__all__ = [
    "DeliveryMode",
    "DeliveryRouter",
    "FanoutResource",
    "FanoutResult",
    "MessageHub",
    "NotificationFanout",
    "NotificationService",
    "aggregate_conversations",
    "directory_roles_for",
    "message_hub",
]
