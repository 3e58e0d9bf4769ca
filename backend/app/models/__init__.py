"""Database models package."""

from .base import Base
from .chat import Message, MessageDeletion, User
from .enums import DeleteScope

__all__ = [
    "Base",
    "User",
    "Message",
    "MessageDeletion",
    "DeleteScope",
]
