"""Application service helpers."""

from .conversations import ConversationStore, ReplyTarget

__all__ = ["ConversationStore", "ReplyTarget"]
