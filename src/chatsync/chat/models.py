"""Chat domain models."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from chatsync.chat.rooms import other_participant
from chatsync.store import DocumentSnapshot


class Message(BaseModel):
    """A message in a room. Only ``read`` ever changes after creation."""

    model_config = ConfigDict(frozen=True)

    id: str
    sender_id: str
    receiver_id: str
    sender_name: str
    receiver_name: str
    body: str
    created_at: datetime
    read: bool = False
    local_only: bool = False

    @classmethod
    def from_snapshot(cls, snapshot: DocumentSnapshot) -> Message:
        return cls.model_validate({**snapshot.data, "id": snapshot.id})

    def involves(self, user_a: str, user_b: str) -> bool:
        """True if this message was exchanged between the two users."""
        return {self.sender_id, self.receiver_id} == {user_a, user_b}


class ChatRoom(BaseModel):
    """Room metadata shared by both participants."""

    id: str
    participants: list[str] = Field(default_factory=list)
    participant_names: dict[str, str] = Field(default_factory=dict)
    last_message: str | None = None
    last_message_at: datetime | None = None
    typing: dict[str, datetime | None] = Field(default_factory=dict)

    @classmethod
    def from_snapshot(cls, snapshot: DocumentSnapshot) -> ChatRoom:
        return cls.model_validate({**snapshot.data, "id": snapshot.id})

    def peer_of(self, user_id: str) -> str | None:
        return other_participant(self.participants, user_id)


class SendReceipt(BaseModel):
    """Outcome of a send.

    ``synced`` is False when the store was unavailable and the message only
    exists in the local fallback log.
    """

    message: Message
    synced: bool


class PresenceState(BaseModel):
    """Online status of a user."""

    user_id: str
    online: bool = False
    last_seen: datetime | None = None
