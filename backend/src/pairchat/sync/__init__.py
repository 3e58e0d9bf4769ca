"""Client-side synchronization of conversation state."""

from .session import ChatSession, ChatSessionError
from .state import (
    ChatMessage,
    ConversationState,
    ErrorDismissed,
    ErrorRaised,
    HistoryLoaded,
    MenuToggled,
    MessageDeletedReceived,
    MessageReceived,
    MessageSent,
    OnlineUsersUpdated,
    PartnerMeta,
    PartnerSelected,
    ReplyCancelled,
    ReplyPreview,
    ReplyStarted,
    SendFailed,
    SendStarted,
    reduce,
)

__all__ = [
    "ChatMessage",
    "ChatSession",
    "ChatSessionError",
    "ConversationState",
    "ErrorDismissed",
    "ErrorRaised",
    "HistoryLoaded",
    "MenuToggled",
    "MessageDeletedReceived",
    "MessageReceived",
    "MessageSent",
    "OnlineUsersUpdated",
    "PartnerMeta",
    "PartnerSelected",
    "ReplyCancelled",
    "ReplyPreview",
    "ReplyStarted",
    "SendFailed",
    "SendStarted",
    "reduce",
]
