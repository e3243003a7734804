"""Chat delivery with ordered backend fallback.

A ``DeliveryRouter`` serves one chat view. Sends try the primary store, then
the live store (live mode only), then the REST façade, stopping at the first
success. Backend failures are logged and never surfaced unless every path is
exhausted.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any

import httpx
from sqlalchemy.exc import DisconnectionError, OperationalError

from app.errors import DeliveryCause, DeliveryError
from app.services.backends import LiveBackend, MessageBackend
from app.services.hub import Subscription
from app.services.messages import MessageDraft, MessageRecord

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 5.0

RefreshHook = Callable[[str], Awaitable[Any]]
MessagesListener = Callable[[list[MessageRecord]], Any]


class DeliveryMode(str, Enum):
    """How conversations are read: one-shot REST fetches or a live subscription."""

    REST = "rest"
    LIVE = "live"


class RouterState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


class RouterEvent(str, Enum):
    LOAD = "load"
    LOADED = "loaded"
    ERROR = "error"
    PEER_CHANGED = "peer_changed"
    RETRY = "retry"


class InvalidTransition(ValueError):
    """Event is not allowed in the router's current state."""


_TRANSITIONS: dict[tuple[RouterState, RouterEvent], RouterState] = {
    (RouterState.IDLE, RouterEvent.LOAD): RouterState.LOADING,
    (RouterState.LOADING, RouterEvent.LOAD): RouterState.LOADING,
    (RouterState.LOADING, RouterEvent.PEER_CHANGED): RouterState.LOADING,
    (RouterState.LOADING, RouterEvent.LOADED): RouterState.READY,
    (RouterState.LOADING, RouterEvent.ERROR): RouterState.FAILED,
    (RouterState.READY, RouterEvent.LOAD): RouterState.LOADING,
    (RouterState.READY, RouterEvent.PEER_CHANGED): RouterState.LOADING,
    (RouterState.FAILED, RouterEvent.RETRY): RouterState.LOADING,
    (RouterState.FAILED, RouterEvent.PEER_CHANGED): RouterState.LOADING,
}


def transition(state: RouterState, event: RouterEvent) -> RouterState:
    """Return the state reached from ``state`` on ``event``."""
    try:
        return _TRANSITIONS[(state, event)]
    except KeyError:
        raise InvalidTransition(f"Cannot handle {event.value!r} while {state.value}") from None


def fallback_mode(mode: DeliveryMode) -> DeliveryMode:
    """Mode to use after a live subscription fails."""
    return DeliveryMode.REST


def classify_failure(exc: BaseException) -> DeliveryCause:
    """Map a backend exception to a user-facing delivery cause."""
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError, httpx.TimeoutException)):
        return "timeout"
    if isinstance(exc, (httpx.TransportError, ConnectionError, OperationalError, DisconnectionError)):
        return "network"
    return "server"


class DeliveryRouter:
    """Send, fetch, and mark-read for one chat view across fallback backends."""

    def __init__(
        self,
        primary: MessageBackend | None = None,
        live: LiveBackend | None = None,
        rest: MessageBackend | None = None,
        *,
        mode: DeliveryMode = DeliveryMode.REST,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        on_delivered: RefreshHook | None = None,
        on_messages: MessagesListener | None = None,
    ):
        if primary is None and live is None and rest is None:
            raise ValueError("DeliveryRouter needs at least one backend")
        self.primary = primary
        self.live = live
        self.rest = rest
        self.mode = mode
        self.timeout = timeout
        self.on_delivered = on_delivered
        self.on_messages = on_messages

        self.state = RouterState.IDLE
        self.self_id: str | None = None
        self.peer_id: str | None = None
        self.messages: list[MessageRecord] = []
        self.last_error: DeliveryError | None = None
        self.recovery: asyncio.Task | None = None

        self._subscription: Subscription | None = None
        self._fallback_used = False
        # Bumped by every fetch; results of superseded loads are dropped
        self._generation = 0
        self._background: set[asyncio.Task] = set()

    # --- Backend ordering ---

    def _send_chain(self) -> list[MessageBackend]:
        chain: list[MessageBackend | None] = [self.primary]
        if self.mode is DeliveryMode.LIVE:
            chain.append(self.live)
        chain.append(self.rest)
        return [backend for backend in chain if backend is not None]

    def _mark_read_chain(self) -> list[MessageBackend]:
        return [b for b in (self.primary, self.live, self.rest) if b is not None]

    def _fetch_chain(self) -> list[MessageBackend]:
        return [backend for backend in (self.primary, self.rest) if backend is not None]

    async def _attempt(
        self,
        chain: list[MessageBackend],
        operation: str,
        call: Callable[[MessageBackend], Awaitable[Any]],
    ) -> Any:
        """Run ``call`` on each backend in order until one succeeds."""
        cause: DeliveryCause = "server"
        for backend in chain:
            try:
                return await asyncio.wait_for(call(backend), self.timeout)
            except Exception as exc:
                cause = classify_failure(exc)
                logger.warning(
                    "%s via %s backend failed (%s): %r", operation, backend.name, cause, exc
                )
        logger.error("%s failed on all %d backend(s)", operation, len(chain))
        raise DeliveryError(cause, attempts=len(chain))

    # --- Send ---

    async def send(self, draft: MessageDraft) -> MessageRecord:
        """
        Deliver ``draft`` through the first backend that accepts it.

        Raises:
            ValidationError: empty content or sender == receiver
            DeliveryError: every backend failed
        """
        draft = draft.validated()
        record = await self._attempt(
            self._send_chain(), "send", lambda backend: backend.insert(draft)
        )
        self._schedule_refresh(draft.sender_id, draft.receiver_id)
        return record

    # --- Fetch ---

    async def fetch(self, self_id: str, peer_id: str) -> list[MessageRecord]:
        """
        Load the conversation between ``self_id`` and ``peer_id``, oldest first.

        In live mode a subscription stays open and later snapshots go to
        ``on_messages``. Any previous subscription and pending recovery are
        released first. Calling again while a load is in flight restarts it;
        the earlier call still returns its own result but no longer updates
        the router.
        """
        self._release()
        self._cancel_recovery()
        self._generation += 1
        generation = self._generation
        self.state = transition(self.state, self._load_event(self_id, peer_id))
        self.self_id, self.peer_id = self_id, peer_id
        self._fallback_used = False
        self.last_error = None

        try:
            if self.mode is DeliveryMode.LIVE and self.live is not None:
                messages = await self._open_live(self_id, peer_id, generation)
            else:
                messages = await self._fetch_once(self_id, peer_id)
        except DeliveryError as exc:
            if generation == self._generation:
                self.last_error = exc
                self.state = transition(self.state, RouterEvent.ERROR)
            raise

        if generation != self._generation:
            return messages
        self.messages = messages
        self.state = transition(self.state, RouterEvent.LOADED)
        return messages

    async def select_peer(self, peer_id: str) -> list[MessageRecord]:
        """Switch the chat view to ``peer_id``."""
        if self.self_id is None:
            raise RuntimeError("fetch() must run before select_peer()")
        return await self.fetch(self.self_id, peer_id)

    async def retry(self) -> list[MessageRecord]:
        """Reload the current conversation after a failure."""
        if self.self_id is None or self.peer_id is None:
            raise RuntimeError("Nothing to retry")
        return await self.fetch(self.self_id, self.peer_id)

    def _load_event(self, self_id: str, peer_id: str) -> RouterEvent:
        same_pair = (self_id, peer_id) == (self.self_id, self.peer_id)
        if self.state is RouterState.FAILED:
            return RouterEvent.RETRY if same_pair else RouterEvent.PEER_CHANGED
        if self.state in (RouterState.READY, RouterState.LOADING) and not same_pair:
            return RouterEvent.PEER_CHANGED
        return RouterEvent.LOAD

    async def _fetch_once(self, self_id: str, peer_id: str) -> list[MessageRecord]:
        return await self._attempt(
            self._fetch_chain(),
            "fetch",
            lambda backend: backend.conversation(self_id, peer_id),
        )

    async def _open_live(
        self, self_id: str, peer_id: str, generation: int
    ) -> list[MessageRecord]:
        try:
            snapshot, subscription = await asyncio.wait_for(
                self.live.subscribe(self_id, peer_id, self._on_snapshot, self._on_live_error),
                self.timeout,
            )
        except Exception as exc:
            logger.warning("Live subscription could not be opened: %r", exc)
            self._fallback_used = True
            self.mode = fallback_mode(self.mode)
            return await self._fetch_once(self_id, peer_id)
        if generation != self._generation:
            subscription.close()
            return snapshot
        self._subscription = subscription
        return snapshot

    async def _on_snapshot(self, messages: list[MessageRecord]) -> None:
        self.messages = messages
        if self.on_messages is not None:
            result = self.on_messages(messages)
            if asyncio.iscoroutine(result):
                await result

    def _on_live_error(self, exc: Exception) -> None:
        """Leave live mode and reload once; later errors in this cycle are ignored."""
        if self._fallback_used:
            return
        self._fallback_used = True
        logger.warning("Live updates failed, switching to one-shot fetches: %r", exc)
        self.mode = fallback_mode(self.mode)
        self._release()
        if self.state is RouterState.READY:
            self.state = transition(self.state, RouterEvent.LOAD)
        self.recovery = asyncio.get_running_loop().create_task(
            self._recover(self.self_id, self.peer_id, self._generation)
        )

    async def _recover(self, self_id: str, peer_id: str, generation: int) -> None:
        try:
            messages = await self._fetch_once(self_id, peer_id)
        except DeliveryError as exc:
            if generation == self._generation:
                self.last_error = exc
                if self.state is RouterState.LOADING:
                    self.state = transition(self.state, RouterEvent.ERROR)
            return
        # The view moved to another conversation while this reload ran
        if generation != self._generation:
            return
        if self.state is RouterState.LOADING:
            self.state = transition(self.state, RouterEvent.LOADED)
        await self._on_snapshot(messages)

    def _cancel_recovery(self) -> None:
        if self.recovery is not None and not self.recovery.done():
            self.recovery.cancel()
        self.recovery = None

    # --- Mark as read ---

    async def mark_read(self, peer_id: str, self_id: str) -> int | None:
        """
        Mark every message from ``peer_id`` to ``self_id`` as read.

        Not critical-path: failures are logged and ``None`` is returned.
        """
        try:
            count = await self._attempt(
                self._mark_read_chain(),
                "mark-read",
                lambda backend: backend.mark_read(peer_id, self_id),
            )
        except DeliveryError:
            return None
        self._schedule_refresh(self_id, peer_id)
        return count

    # --- Conversation refresh ---

    def _schedule_refresh(self, *user_ids: str) -> None:
        if self.on_delivered is None:
            return
        for user_id in user_ids:
            task = asyncio.get_running_loop().create_task(self._refresh(user_id))
            self._background.add(task)
            task.add_done_callback(self._background.discard)

    async def _refresh(self, user_id: str) -> None:
        try:
            await self.on_delivered(user_id)
        except Exception as exc:
            logger.warning("Conversation refresh for %s failed: %r", user_id, exc)

    async def drain(self) -> None:
        """Wait for pending refreshes and live recovery to finish."""
        pending = list(self._background)
        if self.recovery is not None:
            pending.append(self.recovery)
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    # --- Lifecycle ---

    @property
    def has_subscription(self) -> bool:
        return self._subscription is not None and not self._subscription.closed

    def _release(self) -> None:
        if self._subscription is not None:
            self._subscription.close()
            self._subscription = None

    async def close(self) -> None:
        """Release the live subscription, finish background work and close backends."""
        self._release()
        await self.drain()
        for backend in (self.primary, self.live, self.rest):
            aclose = getattr(backend, "aclose", None)
            if aclose is not None:
                await aclose()
