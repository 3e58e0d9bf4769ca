"""Persistence operations for direct messages between two users."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import and_, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models import Message, MessageDeletion, User
from app.search.service import MessageSearchFilters, MessageSearchService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReplyTarget:
    """Snapshot of a message taken when another message replies to it."""

    message_id: str
    sender_id: str
    text: str | None
    image: str | None

    @classmethod
    def of(cls, message: Message) -> "ReplyTarget":
        return cls(
            message_id=message.id,
            sender_id=message.sender_id,
            text=message.text,
            image=message.image,
        )


class ConversationStore:
    """Append, query, soft delete and hard delete messages of a user pair."""

    def __init__(self, session: Session):
        self._session = session

    def get(self, message_id: str) -> Message | None:
        return self._session.get(Message, message_id)

    def get_user(self, user_id: str) -> User | None:
        return self._session.get(User, user_id)

    def list_users(self, exclude_id: str) -> list[User]:
        stmt = (
            select(User)
            .where(User.id != exclude_id)
            .order_by(func.lower(User.full_name), User.id)
        )
        return list(self._session.execute(stmt).scalars())

    def append(
        self,
        sender_id: str,
        receiver_id: str,
        *,
        text: str | None,
        image: str | None,
        reply_to: ReplyTarget | None = None,
    ) -> Message:
        """Persist a new message and return it with generated fields populated."""

        message = Message(
            sender_id=sender_id,
            receiver_id=receiver_id,
            text=text,
            image=image,
        )
        if reply_to is not None:
            message.reply_to_message_id = reply_to.message_id
            message.reply_to_sender_id = reply_to.sender_id
            message.reply_to_text = reply_to.text
            message.reply_to_image = reply_to.image
        self._session.add(message)
        self._commit()
        self._session.refresh(message)
        return message

    def list_pair(self, viewer_id: str, partner_id: str) -> list[Message]:
        """Return the conversation of the pair as seen by *viewer_id*, oldest first."""

        stmt = (
            select(Message)
            .where(
                or_(
                    and_(Message.sender_id == viewer_id, Message.receiver_id == partner_id),
                    and_(Message.sender_id == partner_id, Message.receiver_id == viewer_id),
                ),
                ~Message.deletions.any(MessageDeletion.user_id == viewer_id),
            )
            .order_by(Message.created_at.asc(), Message.id.asc())
        )
        return list(self._session.execute(stmt).scalars())

    def mark_deleted_for(self, message: Message, user_id: str) -> None:
        """Hide *message* for *user_id*. Repeated calls leave a single marker."""

        if user_id in message.deleted_for:
            return
        self._session.add(MessageDeletion(message_id=message.id, user_id=user_id))
        try:
            self._session.commit()
        except IntegrityError:
            # A concurrent request already stored the marker.
            self._session.rollback()
        self._session.refresh(message)

    def hard_delete(self, message: Message) -> None:
        self._session.delete(message)
        self._commit()

    def image_in_use(self, url: str) -> bool:
        """Whether any stored message or reply snapshot still points at *url*."""

        stmt = select(Message.id).where(
            or_(Message.image == url, Message.reply_to_image == url)
        ).limit(1)
        return self._session.execute(stmt).first() is not None

    def search(
        self,
        viewer_id: str,
        query: str,
        *,
        limit: int,
        partner_id: str | None = None,
    ) -> list[tuple[Message, str]]:
        result = MessageSearchService(self._session).search(
            viewer_id,
            query,
            limit=limit,
            filters=MessageSearchFilters(partner_id=partner_id),
        )
        return list(zip(result.messages, result.partner_ids))

    def _commit(self) -> None:
        try:
            self._session.commit()
        except Exception:
            self._session.rollback()
            logger.exception("Failed to commit conversation changes")
            raise
