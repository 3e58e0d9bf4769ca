"""Pydantic schemas for API payloads."""

from .auth import LoginRequest, ProfileUpdate, SignupRequest
from .messages import (
    MessageDeleteRequest,
    MessageDeleteResult,
    MessageHit,
    MessageRead,
    MessageSendRequest,
    ReplySnapshot,
)
from .users import UserRead

__all__ = [
    "LoginRequest",
    "ProfileUpdate",
    "SignupRequest",
    "UserRead",
    "MessageRead",
    "MessageHit",
    "MessageSendRequest",
    "MessageDeleteRequest",
    "MessageDeleteResult",
    "ReplySnapshot",
]
