"""Client-side delivery router that talks to the API over HTTP."""

from collections.abc import Callable
from typing import Any

import httpx

from app.config import settings
from app.services.backends import RestMessageBackend
from app.services.delivery import DeliveryRouter

ConversationsListener = Callable[[list[dict[str, Any]]], Any]


def build_rest_router(
    token: str,
    self_id: str,
    *,
    client: httpx.AsyncClient | None = None,
    on_conversations: ConversationsListener | None = None,
) -> DeliveryRouter:
    """
    Build a router whose only backend is the authenticated REST façade.

    After each send or mark-read the caller's conversation list is
    re-fetched and handed to ``on_conversations``. A client created here is
    closed by ``DeliveryRouter.close()``; a passed-in client stays open.
    """
    owns_client = client is None
    if owns_client:
        client = httpx.AsyncClient(
            base_url=settings.api_base_url,
            timeout=settings.delivery_timeout_seconds,
        )
    rest = RestMessageBackend(client, token, owns_client=owns_client)

    async def refresh(user_id: str) -> None:
        # Only the caller's own list is readable with this token
        if user_id != self_id:
            return
        items = await rest.conversations(self_id)
        if on_conversations is not None:
            on_conversations(items)

    return DeliveryRouter(
        rest=rest,
        timeout=settings.delivery_timeout_seconds,
        on_delivered=refresh,
    )
