"""One-to-one chat: rooms, messages, receipts, typing and presence."""

from chatsync.chat.channel import MessageChannel
from chatsync.chat.fallback import FallbackLog
from chatsync.chat.models import ChatRoom, Message, PresenceState, SendReceipt
from chatsync.chat.presence import PresenceService
from chatsync.chat.receipts import ReadReceipts
from chatsync.chat.rooms import other_participant, room_id
from chatsync.chat.typing import (
    TypingSignal,
    TypingState,
    TypingWatcher,
    is_typing,
    peer_signal,
)

__all__ = [
    "MessageChannel",
    "FallbackLog",
    "ChatRoom",
    "Message",
    "PresenceState",
    "SendReceipt",
    "PresenceService",
    "ReadReceipts",
    "room_id",
    "other_participant",
    "TypingSignal",
    "TypingState",
    "TypingWatcher",
    "is_typing",
    "peer_signal",
]
