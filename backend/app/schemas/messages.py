"""Schemas related to direct messages."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from app.models import DeleteScope, Message


class ReplySnapshot(BaseModel):
    """Copy of the replied-to message captured when the reply was sent."""

    message_id: str
    sender_id: str
    text: str = ""
    image: str = ""


class MessageRead(BaseModel):
    """Serialized representation of a direct message."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    sender_id: str
    receiver_id: str
    text: str | None = None
    image: str | None = None
    reply_to: ReplySnapshot | None = None
    deleted_for: list[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_message(cls, message: Message) -> "MessageRead":
        reply_to = None
        if message.reply_to_message_id:
            reply_to = ReplySnapshot(
                message_id=message.reply_to_message_id,
                sender_id=message.reply_to_sender_id or "",
                text=message.reply_to_text or "",
                image=message.reply_to_image or "",
            )
        return cls(
            id=message.id,
            sender_id=message.sender_id,
            receiver_id=message.receiver_id,
            text=message.text,
            image=message.image,
            reply_to=reply_to,
            deleted_for=sorted(message.deleted_for),
            created_at=message.created_at,
            updated_at=message.updated_at,
        )


class MessageHit(MessageRead):
    """Search result annotated with the other participant of the conversation."""

    partner_id: str


class MessageSendRequest(BaseModel):
    """Payload for sending a new direct message.

    Emptiness of ``text`` and ``image`` together is checked by the endpoint so
    the error can be reported with the API's own wording.
    """

    text: str | None = Field(default=None, description="Message body")
    image: str | None = Field(default=None, description="Image as a data URL or base64 payload")
    reply_to_message_id: str | None = Field(
        default=None, description="Identifier of the message being replied to"
    )


class MessageDeleteRequest(BaseModel):
    """Payload for deleting a message."""

    scope: DeleteScope = Field(default=DeleteScope.ME)


class MessageDeleteResult(BaseModel):
    message_id: str
    scope: DeleteScope
