"""Tests for the FastAPI surface."""

import httpx
import pytest

from chatsync.api import create_app
from chatsync.config import ChatConfig
from chatsync.notify import StoreNotifier
from chatsync.store import SERVER_TIMESTAMP, InMemoryDocumentStore, Query

pytestmark = pytest.mark.anyio


@pytest.fixture
async def client(memory_store: InMemoryDocumentStore):
    app = create_app(memory_store, notifier=StoreNotifier(memory_store))
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


async def send(client: httpx.AsyncClient, sender: str, receiver: str, text: str):
    return await client.post(
        f"/chats/{sender}/messages",
        json={
            "receiver_id": receiver,
            "receiver_name": receiver.upper(),
            "sender_name": sender.upper(),
            "text": text,
        },
    )


class TestMessages:
    async def test_send_returns_synced_receipt(self, client: httpx.AsyncClient) -> None:
        response = await send(client, "u1", "u2", "hello")

        assert response.status_code == 200
        body = response.json()
        assert body["synced"] is True
        assert body["message"]["body"] == "hello"
        assert body["message"]["sender_id"] == "u1"

    async def test_send_notifies_receiver(
        self, client: httpx.AsyncClient, memory_store: InMemoryDocumentStore
    ) -> None:
        await send(client, "u1", "u2", "hello")

        docs = await memory_store.query(Query("notifications"))
        assert [d.data["user_id"] for d in docs] == ["u2"]

    async def test_empty_text_is_rejected(self, client: httpx.AsyncClient) -> None:
        response = await send(client, "u1", "u2", "   ")
        assert response.status_code == 400

    async def test_missing_receiver_is_rejected(self, client: httpx.AsyncClient) -> None:
        response = await client.post(
            "/chats/u1/messages",
            json={"receiver_id": "", "receiver_name": "", "sender_name": "A", "text": "x"},
        )
        assert response.status_code == 422

    async def test_history_in_send_order(self, client: httpx.AsyncClient) -> None:
        await send(client, "u1", "u2", "first")
        await send(client, "u2", "u1", "second")

        response = await client.get("/chats/u2/u1/messages")
        assert response.status_code == 200
        assert [m["body"] for m in response.json()] == ["first", "second"]


class TestReceipts:
    async def test_unread_then_seen(self, client: httpx.AsyncClient) -> None:
        await send(client, "u1", "u2", "one")
        await send(client, "u1", "u2", "two")

        response = await client.get("/chats/u2/unread")
        assert response.json() == {"unread": 2}

        response = await client.post("/chats/u1/u2/seen", params={"viewer_id": "u2"})
        assert response.json() == {"updated": 2}

        response = await client.get("/chats/u2/unread")
        assert response.json() == {"unread": 0}

    async def test_seen_requires_participant(self, client: httpx.AsyncClient) -> None:
        response = await client.post("/chats/u1/u2/seen", params={"viewer_id": "u3"})
        assert response.status_code == 400

    async def test_seen_with_separator_in_ids(self, client: httpx.AsyncClient) -> None:
        await send(client, "u2", "a_b", "hello")

        response = await client.post("/chats/a_b/u2/seen", params={"viewer_id": "a_b"})
        assert response.status_code == 200
        assert response.json() == {"updated": 1}

    async def test_seen_rejects_invalid_room_config(
        self, memory_store: InMemoryDocumentStore
    ) -> None:
        app = create_app(memory_store, ChatConfig(room_separator="::"))
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.post("/chats/u1/u2/seen", params={"viewer_id": "u2"})
        assert response.status_code == 400


class TestTyping:
    async def test_reports_fresh_signal(
        self, client: httpx.AsyncClient, memory_store: InMemoryDocumentStore
    ) -> None:
        response = await client.get("/chats/u2/u1/typing")
        assert response.json() == {"typing": False}

        await memory_store.merge("chats", "u1_u2", {"typing": {"u1": SERVER_TIMESTAMP}})

        response = await client.get("/chats/u2/u1/typing")
        assert response.json() == {"typing": True}
        response = await client.get("/chats/u1/u2/typing")
        assert response.json() == {"typing": False}
