"""Conversation summaries for the directory view."""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime

from app.services.messages import MessageRecord

# Which roles each role may browse and message in the directory
DIRECTORY_VISIBILITY: dict[str, tuple[str, ...]] = {
    "student": ("teacher",),
    "teacher": ("student",),
    "alumni": ("student", "teacher"),
}


@dataclass(frozen=True)
class DirectoryUser:
    """A user as listed in the directory."""

    id: str
    role: str
    display_name: str | None = None


@dataclass(frozen=True)
class LastMessage:
    content: str
    created_at: datetime
    sender_id: str


@dataclass(frozen=True)
class ConversationSummary:
    """Most recent message and unread count between the caller and one peer."""

    peer_user_id: str
    display_name: str
    role: str | None
    last_message: LastMessage | None
    unread_count: int


def directory_roles_for(role: str) -> tuple[str, ...]:
    """Return the roles a user with ``role`` sees in the directory."""
    return DIRECTORY_VISIBILITY.get(role, ())


def aggregate_conversations(
    self_id: str,
    messages: Iterable[MessageRecord],
    candidates: Iterable[DirectoryUser],
) -> list[ConversationSummary]:
    """
    Build the ordered conversation list for ``self_id``.

    Peers with message history come first, newest conversation first.
    Candidates without history follow, alphabetically by display name.
    ``self_id`` never appears, even if the directory returns it.
    """
    directory = {user.id: user for user in candidates if user.id != self_id}

    latest: dict[str, MessageRecord] = {}
    unread: dict[str, int] = {}
    for message in messages:
        if not message.involves(self_id) or message.sender_id == message.receiver_id:
            continue
        peer_id = message.other_party(self_id)
        current = latest.get(peer_id)
        if current is None or message.created_at > current.created_at:
            latest[peer_id] = message
        if message.receiver_id == self_id and not message.read:
            unread[peer_id] = unread.get(peer_id, 0) + 1

    with_history = []
    for peer_id, message in latest.items():
        user = directory.get(peer_id)
        if user is not None:
            role = user.role
        else:
            # Peer fell outside the directory filter; recover the role from the message
            role = message.receiver_role if message.sender_id == self_id else message.sender_role
        with_history.append(
            ConversationSummary(
                peer_user_id=peer_id,
                display_name=_display_name(user, peer_id),
                role=role,
                last_message=LastMessage(
                    content=message.content,
                    created_at=message.created_at,
                    sender_id=message.sender_id,
                ),
                unread_count=unread.get(peer_id, 0),
            )
        )
    with_history.sort(key=lambda s: s.peer_user_id)
    with_history.sort(key=lambda s: s.last_message.created_at, reverse=True)

    without_history = [
        ConversationSummary(
            peer_user_id=user.id,
            display_name=_display_name(user, user.id),
            role=user.role,
            last_message=None,
            unread_count=0,
        )
        for user in directory.values()
        if user.id not in latest
    ]
    without_history.sort(key=lambda s: (s.display_name.casefold(), s.peer_user_id))

    return with_history + without_history


def _display_name(user: DirectoryUser | None, fallback: str) -> str:
    if user is None or not user.display_name:
        return fallback
    return user.display_name
