"""Messages router for direct chat between directory users."""

from fastapi import APIRouter, Depends, Request, WebSocket, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_identity, require_self
from app.auth.providers import Identity
from app.config import settings
from app.database import LiveSessionLocal, get_db, get_live_db
from app.middleware.rate_limit import limiter
from app.models.user import User
from app.schemas.messages import (
    ConversationListResponse,
    ConversationResponse,
    ConversationSummaryItem,
    LastMessageItem,
    MarkReadResponse,
    MessageItem,
    SendMessageRequest,
)
from app.services.backends import LiveMessageBackend, SqlMessageBackend, publish_conversation
from app.services.conversations import (
    ConversationSummary,
    DirectoryUser,
    aggregate_conversations,
    directory_roles_for,
)
from app.services.delivery import DeliveryMode, DeliveryRouter
from app.services.fanout import SqlUserDirectory
from app.services.hub import MessageHub, pair_key, user_key
from app.services.messages import MessageDraft, MessageRecord

router = APIRouter(prefix="/api/v1/messages", tags=["Messages"])


def get_message_hub(request: Request) -> MessageHub:
    return request.app.state.message_hub


async def get_delivery_router(
    db: AsyncSession = Depends(get_db),
    live_db: AsyncSession = Depends(get_live_db),
    hub: MessageHub = Depends(get_message_hub),
) -> DeliveryRouter:
    """Router over the primary database and the live-update store."""
    return DeliveryRouter(
        primary=SqlMessageBackend(db),
        live=LiveMessageBackend(SqlMessageBackend(live_db, name="live"), hub),
        mode=DeliveryMode(settings.delivery_mode),
        timeout=settings.delivery_timeout_seconds,
        on_delivered=hub.announce_conversation_change,
    )


def _message_item(record: MessageRecord) -> MessageItem:
    return MessageItem(
        id=record.id,
        sender_id=record.sender_id,
        receiver_id=record.receiver_id,
        sender_role=record.sender_role,
        receiver_role=record.receiver_role,
        content=record.content,
        read=record.read,
        created_at=record.created_at.isoformat(),
    )


def _summary_item(summary: ConversationSummary) -> ConversationSummaryItem:
    last = summary.last_message
    return ConversationSummaryItem(
        peer_user_id=summary.peer_user_id,
        display_name=summary.display_name,
        role=summary.role,
        last_message=LastMessageItem(
            content=last.content,
            created_at=last.created_at.isoformat(),
            sender_id=last.sender_id,
        )
        if last
        else None,
        unread_count=summary.unread_count,
    )


# --- Send Message ---


@router.post(
    "/send",
    response_model=MessageItem,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit(settings.send_message_rate_limit)
async def send_message(
    request: Request,
    data: SendMessageRequest,
    identity: Identity = Depends(get_current_identity),
    delivery: DeliveryRouter = Depends(get_delivery_router),
    hub: MessageHub = Depends(get_message_hub),
) -> MessageItem:
    """
    Send a direct message.

    The sender must be the caller. Storage falls back to the live store when
    the primary database is unavailable.
    """
    require_self(data.sender_id, identity)

    record = await delivery.send(
        MessageDraft(
            sender_id=data.sender_id,
            receiver_id=data.receiver_id,
            sender_role=data.sender_role,
            receiver_role=data.receiver_role,
            content=data.content,
        )
    )
    await publish_conversation(hub, delivery.primary, data.sender_id, data.receiver_id)
    return _message_item(record)


# --- Conversation List ---
# Registered before /{self_id}/{peer_id} so "conversations" is not taken as a user id


@router.get(
    "/conversations/{self_id}",
    response_model=ConversationListResponse,
    status_code=status.HTTP_200_OK,
)
async def list_conversations(
    self_id: str,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
) -> ConversationListResponse:
    """
    List the caller's conversations.

    Users with message history come first, most recent first, followed by
    every other user the caller's role may message.
    """
    require_self(self_id, identity)

    messages = await SqlMessageBackend(db).messages_for(self_id)
    candidates = await SqlUserDirectory(db).find_by_roles(directory_roles_for(identity.role))

    # Peers outside the role filter keep their directory names
    listed = {c.id for c in candidates}
    outside = {m.other_party(self_id) for m in messages} - listed
    if outside:
        result = await db.execute(select(User).where(User.id.in_(outside)))
        candidates += [
            DirectoryUser(id=user.id, role=user.role, display_name=user.display_name)
            for user in result.scalars().all()
        ]

    summaries = aggregate_conversations(self_id, messages, candidates)
    return ConversationListResponse(items=[_summary_item(s) for s in summaries])


# --- Fetch Conversation ---


@router.get(
    "/{self_id}/{peer_id}",
    response_model=ConversationResponse,
    status_code=status.HTTP_200_OK,
)
async def get_conversation(
    self_id: str,
    peer_id: str,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
) -> ConversationResponse:
    """Get messages between the caller and ``peer_id``, oldest first."""
    require_self(self_id, identity)

    messages = await SqlMessageBackend(db).conversation(self_id, peer_id)
    return ConversationResponse(items=[_message_item(m) for m in messages])


# --- Mark Read ---


@router.put(
    "/mark-read/{peer_id}/{self_id}",
    response_model=MarkReadResponse,
    status_code=status.HTTP_200_OK,
)
async def mark_conversation_read(
    peer_id: str,
    self_id: str,
    identity: Identity = Depends(get_current_identity),
    delivery: DeliveryRouter = Depends(get_delivery_router),
    hub: MessageHub = Depends(get_message_hub),
) -> MarkReadResponse:
    """Mark every message from ``peer_id`` to the caller as read."""
    require_self(self_id, identity)

    marked = await delivery.mark_read(peer_id, self_id)
    if marked:
        await publish_conversation(hub, delivery.primary, peer_id, self_id)
    return MarkReadResponse(marked_count=marked or 0)


# --- Live Streams ---
# Tokens arrive in the ``token`` query parameter


def _socket_identity(websocket: WebSocket, user_id: str) -> Identity | None:
    provider = websocket.app.state.auth_provider
    identity = provider.authenticate(websocket.query_params.get("token"))
    if identity is None or identity.uid != user_id:
        return None
    return identity


def _messages_frame(messages: list[MessageRecord]) -> dict:
    return {
        "type": "messages",
        "items": [_message_item(m).model_dump() for m in messages],
    }


@router.websocket("/ws/conversations/{self_id}")
async def conversations_socket(websocket: WebSocket, self_id: str) -> None:
    """Notify the caller whenever their conversation list should be re-fetched."""
    if _socket_identity(websocket, self_id) is None:
        await websocket.close(code=1008)
        return

    await websocket.app.state.message_hub.stream(
        websocket, user_key(self_id), serialize=lambda payload: payload
    )


@router.websocket("/ws/{self_id}/{peer_id}")
async def conversation_socket(websocket: WebSocket, self_id: str, peer_id: str) -> None:
    """
    Stream the conversation between the caller and ``peer_id``.

    The current messages are sent on connect, then a full snapshot after
    every send or mark-read in this conversation.
    """
    if _socket_identity(websocket, self_id) is None:
        await websocket.close(code=1008)
        return

    async with LiveSessionLocal() as session:
        snapshot = await SqlMessageBackend(session, name="live").conversation(self_id, peer_id)

    await websocket.app.state.message_hub.stream(
        websocket,
        pair_key(self_id, peer_id),
        serialize=_messages_frame,
        greeting=_messages_frame(snapshot),
    )
