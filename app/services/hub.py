"""In-process publish/subscribe hub for live message snapshots."""

import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable
from typing import Any

from fastapi import WebSocket, WebSocketDisconnect

logger = logging.getLogger(__name__)

Listener = Callable[[Any], Awaitable[None] | None]
ErrorHandler = Callable[[Exception], None]


def pair_key(user_a: str, user_b: str) -> str:
    """Channel key for the conversation between two users, order-insensitive."""
    first, second = sorted((user_a, user_b))
    return f"chat:{first}:{second}"


def user_key(user_id: str) -> str:
    """Channel key for conversation-list refreshes of one user."""
    return f"conversations:{user_id}"


class Subscription:
    """A standing listener on one hub channel."""

    def __init__(
        self,
        hub: "MessageHub",
        key: str,
        listener: Listener,
        on_error: ErrorHandler | None = None,
    ) -> None:
        self.key = key
        self._hub = hub
        self._listener = listener
        self._on_error = on_error
        self.closed = False

    async def deliver(self, payload: Any) -> None:
        if self.closed:
            return
        try:
            result = self._listener(payload)
            if result is not None:
                await result
        except Exception as exc:
            self.fail(exc)

    def fail(self, exc: Exception) -> None:
        """Close the subscription and report ``exc`` to its error handler."""
        if self.closed:
            return
        logger.warning("Live subscription on %s failed: %s", self.key, exc)
        self.close()
        if self._on_error is not None:
            self._on_error(exc)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._hub._discard(self)


class MessageHub:
    """Fan live payloads out to subscriptions grouped by channel key."""

    def __init__(self) -> None:
        self._subscriptions: defaultdict[str, set[Subscription]] = defaultdict(set)

    def subscribe(
        self,
        key: str,
        listener: Listener,
        on_error: ErrorHandler | None = None,
    ) -> Subscription:
        subscription = Subscription(self, key, listener, on_error)
        self._subscriptions[key].add(subscription)
        return subscription

    async def publish(self, key: str, payload: Any) -> int:
        """Deliver ``payload`` to every subscription on ``key``; return the count."""
        subscriptions = list(self._subscriptions.get(key, ()))
        for subscription in subscriptions:
            await subscription.deliver(payload)
        return len(subscriptions)

    async def announce_conversation_change(self, user_id: str) -> None:
        """Tell ``user_id``'s directory view to refresh its conversation list."""
        await self.publish(user_key(user_id), {"type": "conversations_changed"})

    async def stream(
        self,
        websocket: WebSocket,
        key: str,
        serialize: Callable[[Any], dict[str, Any]],
        greeting: dict[str, Any] | None = None,
    ) -> None:
        """
        Accept ``websocket`` and forward every payload published on ``key``.

        ``greeting`` is sent first when given. Client ``{"type": "ping"}``
        frames are answered with a pong; anything else is ignored. Returns
        when the client disconnects.
        """
        await websocket.accept()

        async def forward(payload: Any) -> None:
            await websocket.send_json(serialize(payload))

        subscription = self.subscribe(key, forward)
        try:
            if greeting is not None:
                await websocket.send_json(greeting)
            while True:
                try:
                    message = await websocket.receive_json()
                except (ValueError, KeyError):
                    # Not JSON text
                    continue
                if isinstance(message, dict) and message.get("type") == "ping":
                    await websocket.send_json({"type": "pong"})
        except WebSocketDisconnect:
            logger.debug("Live stream on %s closed by client", key)
        finally:
            subscription.close()

    def subscriber_count(self, key: str) -> int:
        return len(self._subscriptions.get(key, ()))

    def _discard(self, subscription: Subscription) -> None:
        subscriptions = self._subscriptions.get(subscription.key)
        if subscriptions is None:
            return
        subscriptions.discard(subscription)
        if not subscriptions:
            self._subscriptions.pop(subscription.key, None)


message_hub = MessageHub()
