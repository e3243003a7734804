"""
Tests for message endpoints:
- POST /api/v1/messages/send
- GET /api/v1/messages/{self_id}/{peer_id}
- PUT /api/v1/messages/mark-read/{peer_id}/{self_id}
- GET /api/v1/messages/conversations/{self_id}
- Live snapshots pushed after send and mark-read
"""

import asyncio
from datetime import datetime, timedelta, timezone

from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.main import app
from app.models.message import Message
from app.services.hub import pair_key


def _payload(sender: dict, receiver: dict, content: str = "Hello there") -> dict:
    return {
        "sender_id": sender["user_id"],
        "receiver_id": receiver["user_id"],
        "sender_role": sender["role"],
        "receiver_role": receiver["role"],
        "content": content,
    }


async def _seed_message(
    db_session: AsyncSession,
    sender: dict,
    receiver: dict,
    content: str,
    minutes_ago: int,
    read: bool = False,
) -> None:
    db_session.add(
        Message(
            sender_id=sender["user_id"],
            receiver_id=receiver["user_id"],
            sender_role=sender["role"],
            receiver_role=receiver["role"],
            content=content,
            read=read,
            created_at=datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)
            - timedelta(minutes=minutes_ago),
        )
    )
    await db_session.commit()


class TestSendMessage:
    """POST /api/v1/messages/send tests."""

    async def test_send_returns_201(
        self, async_client: AsyncClient, test_student: dict, test_teacher: dict, auth_headers
    ):
        """Caller can send a message to a teacher."""
        response = await async_client.post(
            "/api/v1/messages/send",
            json=_payload(test_student, test_teacher),
            headers=auth_headers(test_student["token"]),
        )
        assert response.status_code == 201

    async def test_send_returns_stored_message(
        self, async_client: AsyncClient, test_student: dict, test_teacher: dict, auth_headers
    ):
        """Stored message is unread, trimmed, and has an id and timestamp."""
        response = await async_client.post(
            "/api/v1/messages/send",
            json=_payload(test_student, test_teacher, "  Office hours?  "),
            headers=auth_headers(test_student["token"]),
        )
        data = response.json()

        assert data["id"]
        assert data["content"] == "Office hours?"
        assert data["read"] is False
        assert data["sender_id"] == test_student["user_id"]
        assert data["receiver_id"] == test_teacher["user_id"]
        assert data["created_at"]

    async def test_send_whitespace_content_returns_422(
        self, async_client: AsyncClient, test_student: dict, test_teacher: dict, auth_headers
    ):
        """Whitespace-only content is rejected before anything is stored."""
        response = await async_client.post(
            "/api/v1/messages/send",
            json=_payload(test_student, test_teacher, "   "),
            headers=auth_headers(test_student["token"]),
        )
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

        fetched = await async_client.get(
            f"/api/v1/messages/{test_student['user_id']}/{test_teacher['user_id']}",
            headers=auth_headers(test_student["token"]),
        )
        assert fetched.json()["items"] == []

    async def test_send_to_self_returns_422(
        self, async_client: AsyncClient, test_student: dict, auth_headers
    ):
        """A user cannot message themselves."""
        response = await async_client.post(
            "/api/v1/messages/send",
            json=_payload(test_student, test_student),
            headers=auth_headers(test_student["token"]),
        )
        assert response.status_code == 422

    async def test_send_too_long_returns_422(
        self, async_client: AsyncClient, test_student: dict, test_teacher: dict, auth_headers
    ):
        """Content over 10000 characters is rejected."""
        response = await async_client.post(
            "/api/v1/messages/send",
            json=_payload(test_student, test_teacher, "x" * 10001),
            headers=auth_headers(test_student["token"]),
        )
        assert response.status_code == 422

    async def test_send_as_someone_else_returns_403(
        self, async_client: AsyncClient, test_student: dict, test_teacher: dict, auth_headers
    ):
        """The sender must be the authenticated caller."""
        response = await async_client.post(
            "/api/v1/messages/send",
            json=_payload(test_teacher, test_student),
            headers=auth_headers(test_student["token"]),
        )
        assert response.status_code == 403

    async def test_send_requires_auth(
        self, async_client: AsyncClient, test_student: dict, test_teacher: dict
    ):
        """Unauthenticated request returns 401."""
        response = await async_client.post(
            "/api/v1/messages/send",
            json=_payload(test_student, test_teacher),
        )
        assert response.status_code == 401

    async def test_send_with_invalid_token_returns_401(
        self, async_client: AsyncClient, test_student: dict, test_teacher: dict, auth_headers
    ):
        """A malformed token is rejected."""
        response = await async_client.post(
            "/api/v1/messages/send",
            json=_payload(test_student, test_teacher),
            headers=auth_headers("not-a-jwt"),
        )
        assert response.status_code == 401

    async def test_timed_out_primary_insert_is_not_stored_twice(
        self,
        async_client: AsyncClient,
        db_session: AsyncSession,
        test_student: dict,
        test_teacher: dict,
        auth_headers,
        monkeypatch,
    ):
        """A primary commit cut off by the timeout leaves no row behind for the live store's commit."""
        monkeypatch.setattr(settings, "delivery_mode", "live")
        monkeypatch.setattr(settings, "delivery_timeout_seconds", 0.1)
        original_commit = AsyncSession.commit
        commits = []

        async def slow_first_commit(session):
            commits.append(session)
            if len(commits) == 1:
                await asyncio.sleep(1)
            await original_commit(session)

        monkeypatch.setattr(AsyncSession, "commit", slow_first_commit)

        response = await async_client.post(
            "/api/v1/messages/send",
            json=_payload(test_student, test_teacher, "Only once"),
            headers=auth_headers(test_student["token"]),
        )
        assert response.status_code == 201

        result = await db_session.execute(select(Message))
        assert [m.content for m in result.scalars().all()] == ["Only once"]

    """GET /api/v1/messages/{self_id}/{peer_id} tests."""

    async def test_fetch_returns_messages_oldest_first(
        self,
        async_client: AsyncClient,
        db_session: AsyncSession,
        test_student: dict,
        test_teacher: dict,
        auth_headers,
    ):
        """Messages in both directions come back in chronological order."""
        await _seed_message(db_session, test_student, test_teacher, "first", minutes_ago=30)
        await _seed_message(db_session, test_teacher, test_student, "second", minutes_ago=20)
        await _seed_message(db_session, test_student, test_teacher, "third", minutes_ago=10)

        response = await async_client.get(
            f"/api/v1/messages/{test_student['user_id']}/{test_teacher['user_id']}",
            headers=auth_headers(test_student["token"]),
        )
        assert response.status_code == 200
        contents = [m["content"] for m in response.json()["items"]]
        assert contents == ["first", "second", "third"]

    async def test_fetch_excludes_other_conversations(
        self,
        async_client: AsyncClient,
        db_session: AsyncSession,
        test_student: dict,
        second_student: dict,
        test_teacher: dict,
        auth_headers,
    ):
        """Only messages between the two users are returned."""
        await _seed_message(db_session, test_student, test_teacher, "ours", minutes_ago=5)
        await _seed_message(db_session, second_student, test_teacher, "theirs", minutes_ago=4)

        response = await async_client.get(
            f"/api/v1/messages/{test_student['user_id']}/{test_teacher['user_id']}",
            headers=auth_headers(test_student["token"]),
        )
        assert [m["content"] for m in response.json()["items"]] == ["ours"]

    async def test_fetch_sent_message_appears(
        self, async_client: AsyncClient, test_student: dict, test_teacher: dict, auth_headers
    ):
        """A message sent through the API is visible to the receiver."""
        await async_client.post(
            "/api/v1/messages/send",
            json=_payload(test_student, test_teacher, "Can we meet?"),
            headers=auth_headers(test_student["token"]),
        )

        response = await async_client.get(
            f"/api/v1/messages/{test_teacher['user_id']}/{test_student['user_id']}",
            headers=auth_headers(test_teacher["token"]),
        )
        items = response.json()["items"]
        assert len(items) == 1
        assert items[0]["content"] == "Can we meet?"

    async def test_fetch_other_users_conversation_returns_403(
        self,
        async_client: AsyncClient,
        test_student: dict,
        second_student: dict,
        test_teacher: dict,
        auth_headers,
    ):
        """Callers can only read conversations they are part of."""
        response = await async_client.get(
            f"/api/v1/messages/{second_student['user_id']}/{test_teacher['user_id']}",
            headers=auth_headers(test_student["token"]),
        )
        assert response.status_code == 403


class TestMarkConversationRead:
    """PUT /api/v1/messages/mark-read/{peer_id}/{self_id} tests."""

    async def test_mark_read_marks_incoming_only(
        self,
        async_client: AsyncClient,
        db_session: AsyncSession,
        test_student: dict,
        test_teacher: dict,
        auth_headers,
    ):
        """Only messages from the peer to the caller are marked."""
        await _seed_message(db_session, test_teacher, test_student, "in 1", minutes_ago=3)
        await _seed_message(db_session, test_teacher, test_student, "in 2", minutes_ago=2)
        await _seed_message(db_session, test_student, test_teacher, "out", minutes_ago=1)

        response = await async_client.put(
            f"/api/v1/messages/mark-read/{test_teacher['user_id']}/{test_student['user_id']}",
            headers=auth_headers(test_student["token"]),
        )
        assert response.status_code == 200
        assert response.json()["marked_count"] == 2

        fetched = await async_client.get(
            f"/api/v1/messages/{test_student['user_id']}/{test_teacher['user_id']}",
            headers=auth_headers(test_student["token"]),
        )
        read_state = {m["content"]: m["read"] for m in fetched.json()["items"]}
        assert read_state == {"in 1": True, "in 2": True, "out": False}

    async def test_mark_read_is_idempotent(
        self,
        async_client: AsyncClient,
        db_session: AsyncSession,
        test_student: dict,
        test_teacher: dict,
        auth_headers,
    ):
        """A second call finds nothing left to mark."""
        await _seed_message(db_session, test_teacher, test_student, "hi", minutes_ago=1)
        url = f"/api/v1/messages/mark-read/{test_teacher['user_id']}/{test_student['user_id']}"

        first = await async_client.put(url, headers=auth_headers(test_student["token"]))
        second = await async_client.put(url, headers=auth_headers(test_student["token"]))

        assert first.json()["marked_count"] == 1
        assert second.status_code == 200
        assert second.json()["marked_count"] == 0

    async def test_mark_read_for_someone_else_returns_403(
        self, async_client: AsyncClient, test_student: dict, test_teacher: dict, auth_headers
    ):
        """Callers can only mark their own incoming messages."""
        response = await async_client.put(
            f"/api/v1/messages/mark-read/{test_student['user_id']}/{test_teacher['user_id']}",
            headers=auth_headers(test_student["token"]),
        )
        assert response.status_code == 403


class TestListConversations:
    """GET /api/v1/messages/conversations/{self_id} tests."""

    async def test_conversations_order_and_unread_counts(
        self,
        async_client: AsyncClient,
        db_session: AsyncSession,
        test_student: dict,
        auth_headers,
    ):
        """History first, newest first; then the rest alphabetically."""
        from app.models.user import User

        db_session.add_all(
            [
                User(id="t-a", email="a@example.com", display_name="Alice", role="teacher"),
                User(id="t-b", email="b@example.com", display_name="Bob", role="teacher"),
                User(id="t-c", email="c@example.com", display_name="Carol", role="teacher"),
            ]
        )
        await db_session.commit()
        alice = {"user_id": "t-a", "role": "teacher"}
        bob = {"user_id": "t-b", "role": "teacher"}

        await _seed_message(db_session, test_student, alice, "to alice", minutes_ago=60)
        await _seed_message(db_session, bob, test_student, "from bob 1", minutes_ago=10)
        await _seed_message(db_session, bob, test_student, "from bob 2", minutes_ago=5)

        response = await async_client.get(
            f"/api/v1/messages/conversations/{test_student['user_id']}",
            headers=auth_headers(test_student["token"]),
        )
        assert response.status_code == 200
        items = response.json()["items"]

        assert [i["peer_user_id"] for i in items] == ["t-b", "t-a", "t-c"]
        assert items[0]["unread_count"] == 2
        assert items[0]["last_message"]["content"] == "from bob 2"
        assert items[1]["unread_count"] == 0
        assert items[2]["last_message"] is None

    async def test_conversations_respect_role_visibility(
        self,
        async_client: AsyncClient,
        test_student: dict,
        second_student: dict,
        test_teacher: dict,
        auth_headers,
    ):
        """Students see teachers but not other students."""
        response = await async_client.get(
            f"/api/v1/messages/conversations/{test_student['user_id']}",
            headers=auth_headers(test_student["token"]),
        )
        peers = [i["peer_user_id"] for i in response.json()["items"]]
        assert peers == [test_teacher["user_id"]]

    async def test_conversations_keep_peer_outside_role_filter(
        self,
        async_client: AsyncClient,
        db_session: AsyncSession,
        test_student: dict,
        test_alumni: dict,
        auth_headers,
    ):
        """An alumnus who messaged a student still shows up in the student's list."""
        await _seed_message(db_session, test_alumni, test_student, "hello", minutes_ago=1)

        response = await async_client.get(
            f"/api/v1/messages/conversations/{test_student['user_id']}",
            headers=auth_headers(test_student["token"]),
        )
        items = response.json()["items"]
        assert items[0]["peer_user_id"] == test_alumni["user_id"]
        assert items[0]["display_name"] == test_alumni["display_name"]
        assert items[0]["role"] == "alumni"

    async def test_conversations_for_someone_else_returns_403(
        self, async_client: AsyncClient, test_student: dict, test_teacher: dict, auth_headers
    ):
        """Callers can only list their own conversations."""
        response = await async_client.get(
            f"/api/v1/messages/conversations/{test_teacher['user_id']}",
            headers=auth_headers(test_student["token"]),
        )
        assert response.status_code == 403


class TestLiveSnapshots:
    """Sends and reads through the API push snapshots to hub subscribers."""

    async def test_send_pushes_conversation_to_subscribers(
        self, async_client: AsyncClient, test_student: dict, test_teacher: dict, auth_headers
    ):
        snapshots = []
        subscription = app.state.message_hub.subscribe(
            pair_key(test_teacher["user_id"], test_student["user_id"]), snapshots.append
        )
        try:
            response = await async_client.post(
                "/api/v1/messages/send",
                json=_payload(test_student, test_teacher, "Are you there?"),
                headers=auth_headers(test_student["token"]),
            )
        finally:
            subscription.close()

        assert response.status_code == 201
        assert len(snapshots) == 1
        assert [m.content for m in snapshots[0]] == ["Are you there?"]

    async def test_mark_read_pushes_read_state(
        self,
        async_client: AsyncClient,
        db_session: AsyncSession,
        test_student: dict,
        test_teacher: dict,
        auth_headers,
    ):
        await _seed_message(db_session, test_teacher, test_student, "see me", minutes_ago=1)
        snapshots = []
        subscription = app.state.message_hub.subscribe(
            pair_key(test_student["user_id"], test_teacher["user_id"]), snapshots.append
        )
        try:
            await async_client.put(
                f"/api/v1/messages/mark-read/{test_teacher['user_id']}/{test_student['user_id']}",
                headers=auth_headers(test_student["token"]),
            )
            # Nothing left to mark, nothing pushed
            await async_client.put(
                f"/api/v1/messages/mark-read/{test_teacher['user_id']}/{test_student['user_id']}",
                headers=auth_headers(test_student["token"]),
            )
        finally:
            subscription.close()

        assert len(snapshots) == 1
        assert [m.read for m in snapshots[0]] == [True]
