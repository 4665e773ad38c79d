"""Notifier that POSTs notifications to a webhook."""

from types import TracebackType

import httpx

from chatsync.notify.base import message_notification, truncate_preview
from chatsync.notify.config import HTTPNotifierConfig


class HTTPNotifier:
    """Notifier that sends each notification as a JSON POST.

    Example:
        config = HTTPNotifierConfig(base_url="http://push.example.com")
        async with HTTPNotifier(config) as notifier:
            await notifier.notify_new_message("u2", "u1", "Ann", None, "hello")
    """

    def __init__(
        self,
        config: HTTPNotifierConfig,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config
        self._client = client
        self._owns_client = client is None
        self._closed = False

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._config.base_url,
                timeout=self._config.timeout_s,
                headers=self._config.headers,
            )
        return self._client

    async def notify_new_message(
        self,
        receiver_id: str,
        sender_id: str,
        sender_name: str,
        sender_avatar: str | None,
        preview: str,
    ) -> None:
        """POST the notification.

        Raises httpx.HTTPStatusError on non-2xx responses.
        """
        if self._closed:
            msg = "Notifier is closed"
            raise RuntimeError(msg)

        client = await self._get_client()
        payload = message_notification(
            receiver_id,
            sender_id,
            sender_name,
            sender_avatar,
            truncate_preview(preview, self._config.preview_length),
        )
        response = await client.post(self._config.path, json=payload)
        response.raise_for_status()

    async def close(self) -> None:
        """Close the HTTP client if this notifier created it."""
        self._closed = True
        if self._client and self._owns_client:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> "HTTPNotifier":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()
