"""Storage backends the delivery router can send through.

Three paths exist, tried in this order by ``DeliveryRouter``:

- ``SqlMessageBackend``: direct insert into the primary database.
- ``LiveMessageBackend``: the live-update store, which also pushes fresh
  conversation snapshots to hub subscribers.
- ``RestMessageBackend``: the authenticated HTTP façade of the API.
"""

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Protocol

import httpx
from sqlalchemy import and_, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.message import Message
from app.services.hub import ErrorHandler, MessageHub, Subscription, pair_key
from app.services.messages import MessageDraft, MessageRecord

logger = logging.getLogger(__name__)

SnapshotListener = Callable[[list[MessageRecord]], Awaitable[None] | None]


class MessageBackend(Protocol):
    """Operations every delivery path supports."""

    name: str

    async def insert(self, draft: MessageDraft) -> MessageRecord: ...

    async def conversation(self, user_a: str, user_b: str) -> list[MessageRecord]: ...

    async def mark_read(self, sender_id: str, receiver_id: str) -> int: ...


class LiveBackend(MessageBackend, Protocol):
    """A backend that can also hold a standing subscription."""

    async def subscribe(
        self,
        user_a: str,
        user_b: str,
        listener: SnapshotListener,
        on_error: ErrorHandler,
    ) -> tuple[list[MessageRecord], Subscription]: ...


def _between(user_a: str, user_b: str):
    return or_(
        and_(Message.sender_id == user_a, Message.receiver_id == user_b),
        and_(Message.sender_id == user_b, Message.receiver_id == user_a),
    )


class SqlMessageBackend:
    """Messages stored in a SQL database through one session."""

    def __init__(self, session: AsyncSession, name: str = "primary"):
        self.session = session
        self.name = name

    async def insert(self, draft: MessageDraft) -> MessageRecord:
        message = Message(
            sender_id=draft.sender_id,
            receiver_id=draft.receiver_id,
            sender_role=draft.sender_role,
            receiver_role=draft.receiver_role,
            content=draft.content,
            read=False,
            created_at=datetime.now(timezone.utc),
        )
        self.session.add(message)
        try:
            await self.session.commit()
        except BaseException:
            # Includes cancellation by a timeout: the row must not survive into
            # a later commit on this session
            try:
                await self.session.rollback()
            finally:
                if message in self.session:
                    self.session.expunge(message)
            raise
        return MessageRecord.from_model(message)

    async def conversation(self, user_a: str, user_b: str) -> list[MessageRecord]:
        result = await self.session.execute(
            select(Message)
            .where(_between(user_a, user_b))
            .order_by(Message.created_at.asc(), Message.id.asc())
        )
        return [MessageRecord.from_model(m) for m in result.scalars().all()]

    async def messages_for(self, user_id: str) -> list[MessageRecord]:
        """All messages sent or received by ``user_id``, newest first."""
        result = await self.session.execute(
            select(Message)
            .where(or_(Message.sender_id == user_id, Message.receiver_id == user_id))
            .order_by(Message.created_at.desc())
        )
        return [MessageRecord.from_model(m) for m in result.scalars().all()]

    async def mark_read(self, sender_id: str, receiver_id: str) -> int:
        try:
            result = await self.session.execute(
                update(Message)
                .where(
                    Message.sender_id == sender_id,
                    Message.receiver_id == receiver_id,
                    Message.read.is_(False),
                )
                .values(read=True)
                .execution_options(synchronize_session=False)
            )
            await self.session.commit()
        except BaseException:
            await self.session.rollback()
            raise
        return result.rowcount or 0


async def publish_conversation(
    hub: MessageHub, store: MessageBackend, user_a: str, user_b: str
) -> None:
    """Push the current conversation from ``store`` to its live subscribers, if any.

    A failed snapshot read is logged; the write it follows has already succeeded.
    """
    key = pair_key(user_a, user_b)
    if not hub.subscriber_count(key):
        return
    try:
        snapshot = await store.conversation(user_a, user_b)
    except Exception as exc:
        logger.warning("Snapshot for %s via %s failed: %r", key, store.name, exc)
        return
    await hub.publish(key, snapshot)


class LiveMessageBackend:
    """Live-update store: writes through to a store and publishes snapshots."""

    name = "live"

    def __init__(self, store: MessageBackend, hub: MessageHub):
        self.store = store
        self.hub = hub

    async def insert(self, draft: MessageDraft) -> MessageRecord:
        record = await self.store.insert(draft)
        await publish_conversation(self.hub, self.store, draft.sender_id, draft.receiver_id)
        return record

    async def conversation(self, user_a: str, user_b: str) -> list[MessageRecord]:
        return await self.store.conversation(user_a, user_b)

    async def mark_read(self, sender_id: str, receiver_id: str) -> int:
        count = await self.store.mark_read(sender_id, receiver_id)
        if count:
            await publish_conversation(self.hub, self.store, sender_id, receiver_id)
        return count

    async def subscribe(
        self,
        user_a: str,
        user_b: str,
        listener: SnapshotListener,
        on_error: ErrorHandler,
    ) -> tuple[list[MessageRecord], Subscription]:
        """Return the current snapshot and a subscription for later ones."""
        snapshot = await self.store.conversation(user_a, user_b)
        subscription = self.hub.subscribe(pair_key(user_a, user_b), listener, on_error)
        return snapshot, subscription


class RestMessageBackend:
    """The API's own HTTP endpoints, called with a bearer token."""

    name = "rest"

    def __init__(
        self,
        client: httpx.AsyncClient,
        token: str | Callable[[], Awaitable[str]],
        *,
        owns_client: bool = False,
    ):
        self.client = client
        self._token = token
        self.owns_client = owns_client

    async def aclose(self) -> None:
        """Close the HTTP client if this backend created it."""
        if self.owns_client:
            await self.client.aclose()

    async def _headers(self) -> dict[str, str]:
        token = self._token if isinstance(self._token, str) else await self._token()
        return {"Authorization": f"Bearer {token}"}

    async def insert(self, draft: MessageDraft) -> MessageRecord:
        response = await self.client.post(
            "messages/send",
            json=draft.as_payload(),
            headers=await self._headers(),
        )
        response.raise_for_status()
        return MessageRecord.from_payload(response.json())

    async def conversation(self, user_a: str, user_b: str) -> list[MessageRecord]:
        response = await self.client.get(
            f"messages/{user_a}/{user_b}",
            headers=await self._headers(),
        )
        response.raise_for_status()
        return [MessageRecord.from_payload(item) for item in response.json()["items"]]

    async def mark_read(self, sender_id: str, receiver_id: str) -> int:
        response = await self.client.put(
            f"messages/mark-read/{sender_id}/{receiver_id}",
            headers=await self._headers(),
        )
        response.raise_for_status()
        return response.json()["marked_count"]

    async def conversations(self, self_id: str) -> list[dict]:
        """Fetch the caller's conversation summaries as raw JSON items."""
        response = await self.client.get(
            f"messages/conversations/{self_id}",
            headers=await self._headers(),
        )
        response.raise_for_status()
        return response.json()["items"]
