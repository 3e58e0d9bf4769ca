"""Presence tracking and event delivery over websockets."""

from .delivery import (  # noqa: F401
    Connection,
    ConnectionState,
    DeliveryChannel,
    InvalidTransitionError,
    get_delivery_channel,
    safe_send_json,
)
from ..events import (  # noqa: F401
    MESSAGE_DELETED,
    MESSAGE_NEW,
    SCOPE_EVERYONE,
    SCOPE_ME,
    USERS_ONLINE,
    EventPublisher,
    build_envelope,
    deletion_targets,
    message_deleted_payload,
    new_message_targets,
)
from .presence import PresenceChange, PresenceRegistry  # noqa: F401

__all__ = [
    "Connection",
    "ConnectionState",
    "DeliveryChannel",
    "EventPublisher",
    "InvalidTransitionError",
    "PresenceChange",
    "PresenceRegistry",
    "MESSAGE_DELETED",
    "MESSAGE_NEW",
    "SCOPE_EVERYONE",
    "SCOPE_ME",
    "USERS_ONLINE",
    "build_envelope",
    "deletion_targets",
    "get_delivery_channel",
    "message_deleted_payload",
    "new_message_targets",
    "safe_send_json",
]
