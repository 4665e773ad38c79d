"""Tests for HTTPNotifier."""

import json

import httpx
import pytest

from chatsync.notify import HTTPNotifier, HTTPNotifierConfig


def make_notifier(
    handler, config: HTTPNotifierConfig | None = None
) -> tuple[HTTPNotifier, httpx.AsyncClient]:
    config = config or HTTPNotifierConfig(base_url="http://push.example.com")
    client = httpx.AsyncClient(
        transport=httpx.MockTransport(handler), base_url=config.base_url
    )
    return HTTPNotifier(config, client=client), client


@pytest.mark.anyio
async def test_posts_json_notification() -> None:
    """Notifier POSTs the notification document as JSON."""
    received: list[httpx.Request] = []

    async def handler(request: httpx.Request) -> httpx.Response:
        received.append(request)
        return httpx.Response(201)

    notifier, client = make_notifier(handler)
    await notifier.notify_new_message("u2", "u1", "Ann", None, "hello")

    assert len(received) == 1
    req = received[0]
    assert req.method == "POST"
    assert str(req.url) == "http://push.example.com/notifications"
    body = json.loads(req.content)
    assert body["user_id"] == "u2"
    assert body["message"] == "Ann: hello"
    assert body["read"] is False

    await notifier.close()
    await client.aclose()


@pytest.mark.anyio
async def test_custom_path_and_preview_length() -> None:
    received: list[httpx.Request] = []

    async def handler(request: httpx.Request) -> httpx.Response:
        received.append(request)
        return httpx.Response(200)

    config = HTTPNotifierConfig(
        base_url="http://push.example.com", path="/hooks/chat", preview_length=3
    )
    notifier, client = make_notifier(handler, config)
    await notifier.notify_new_message("u2", "u1", "Ann", None, "hello")

    assert received[0].url.path == "/hooks/chat"
    assert json.loads(received[0].content)["message"] == "Ann: hel..."
    await client.aclose()


@pytest.mark.anyio
async def test_error_status_raises() -> None:
    """Non-2xx responses surface as HTTPStatusError."""

    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503)

    notifier, client = make_notifier(handler)
    with pytest.raises(httpx.HTTPStatusError):
        await notifier.notify_new_message("u2", "u1", "Ann", None, "hello")
    await client.aclose()


@pytest.mark.anyio
async def test_injected_client_survives_close() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200)

    notifier, client = make_notifier(handler)
    async with notifier:
        await notifier.notify_new_message("u2", "u1", "Ann", None, "hello")

    assert not client.is_closed
    with pytest.raises(RuntimeError, match="closed"):
        await notifier.notify_new_message("u2", "u1", "Ann", None, "again")
    await client.aclose()
