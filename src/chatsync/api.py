"""FastAPI surface over the chat services."""

import logging
from typing import Annotated

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from pydantic import BaseModel, Field

from chatsync.chat import (
    Message,
    MessageChannel,
    ReadReceipts,
    SendReceipt,
    is_typing,
    peer_signal,
    room_id,
)
from chatsync.config import ChatConfig
from chatsync.notify import Notifier
from chatsync.store import DocumentStore, StoreError, utcnow

logger = logging.getLogger(__name__)


class SendMessageRequest(BaseModel):
    receiver_id: str = Field(min_length=1)
    receiver_name: str
    sender_name: str
    text: str
    sender_avatar: str | None = None


def get_channel(request: Request) -> MessageChannel:
    return request.app.state.channel


def get_receipts(request: Request) -> ReadReceipts:
    return request.app.state.receipts


def get_store(request: Request) -> DocumentStore:
    return request.app.state.store


def get_config(request: Request) -> ChatConfig:
    return request.app.state.config


ChannelDep = Annotated[MessageChannel, Depends(get_channel)]
ReceiptsDep = Annotated[ReadReceipts, Depends(get_receipts)]
StoreDep = Annotated[DocumentStore, Depends(get_store)]
ConfigDep = Annotated[ChatConfig, Depends(get_config)]


def create_app(
    store: DocumentStore,
    config: ChatConfig | None = None,
    notifier: Notifier | None = None,
) -> FastAPI:
    """Build the chat API around an open document store."""
    config = config or ChatConfig()
    app = FastAPI(title="chatsync")
    app.state.store = store
    app.state.config = config
    app.state.channel = MessageChannel(store, notifier=notifier, config=config)
    app.state.receipts = ReadReceipts(store, config)

    @app.post("/chats/{user_id}/messages")
    async def send_message(
        user_id: str,
        request: SendMessageRequest,
        channel: ChannelDep,
    ) -> SendReceipt:
        """Send a message from user_id."""
        try:
            return await channel.send(
                request.receiver_id,
                request.receiver_name,
                user_id,
                request.sender_name,
                request.text,
                sender_avatar=request.sender_avatar,
            )
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

    @app.get("/chats/{user_a}/{user_b}/messages")
    async def get_messages(user_a: str, user_b: str, channel: ChannelDep) -> list[Message]:
        """Messages between two users, oldest first."""
        try:
            return await channel.history(user_a, user_b)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e

    @app.post("/chats/{user_a}/{user_b}/seen")
    async def mark_seen(
        user_a: str,
        user_b: str,
        receipts: ReceiptsDep,
        viewer_id: Annotated[str, Query(min_length=1)],
    ) -> dict[str, int]:
        """Mark messages addressed to viewer_id as read."""
        if viewer_id not in (user_a, user_b):
            raise HTTPException(status_code=400, detail="viewer must be a participant")
        try:
            updated = await receipts.mark_seen(user_a, user_b, viewer_id)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        return {"updated": updated}

    @app.get("/chats/{user_id}/unread")
    async def unread(user_id: str, receipts: ReceiptsDep) -> dict[str, int]:
        """Total unread messages for user_id."""
        return {"unread": await receipts.total_unread(user_id)}

    @app.get("/chats/{user_id}/{peer_id}/typing")
    async def typing_status(
        user_id: str,
        peer_id: str,
        store: StoreDep,
        config: ConfigDep,
    ) -> dict[str, bool]:
        """Whether peer_id is currently typing to user_id."""
        try:
            room = room_id(user_id, peer_id, config.room_separator)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e)) from e
        try:
            snapshot = await store.get(config.rooms_collection, room)
        except StoreError:
            logger.warning("Typing lookup for %s failed", room, exc_info=True)
            return {"typing": False}
        signal_at = peer_signal(snapshot, peer_id)
        return {"typing": is_typing(signal_at, utcnow(), config.typing_stale_after)}

    return app


if __name__ == "__main__":
    import uvicorn

    from chatsync.store import InMemoryDocumentStore

    logging.basicConfig(level=logging.INFO)
    uvicorn.run(create_app(InMemoryDocumentStore()), host="0.0.0.0", port=8000)
