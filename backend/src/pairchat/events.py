"""Event contract shared by the delivery channel, the message API and clients."""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Protocol

MESSAGE_NEW = "message:new"
MESSAGE_DELETED = "message:deleted"
USERS_ONLINE = "users:online"

SCOPE_ME = "me"
SCOPE_EVERYONE = "everyone"


class EventPublisher(Protocol):
    """Anything able to push an event to the live connections of some users."""

    async def push(
        self, event: str, payload: Mapping[str, Any] | list[Any], targets: Iterable[str]
    ) -> int:
        """Deliver *payload* to each online target and return the delivery count."""
        ...


def build_envelope(event: str, payload: Any) -> dict[str, Any]:
    """Wrap *payload* in the frame sent over the websocket."""

    return {"type": event, "data": payload}


def message_deleted_payload(message_id: str, scope: str, user_id: str | None = None) -> dict[str, Any]:
    payload: dict[str, Any] = {"message_id": message_id, "scope": scope}
    if user_id is not None:
        payload["user_id"] = user_id
    return payload


def new_message_targets(sender_id: str, receiver_id: str) -> set[str]:
    """Both participants receive a new message, including the sender's own session."""

    return {sender_id, receiver_id}


def deletion_targets(scope: str, *, sender_id: str, receiver_id: str, requester_id: str) -> set[str]:
    """Recipients of ``message:deleted`` for the given scope."""

    if scope == SCOPE_EVERYONE:
        return {sender_id, receiver_id}
    return {requester_id}
