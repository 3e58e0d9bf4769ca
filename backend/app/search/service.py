"""Database-backed search helpers for direct messages."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session

from app.models import Message, MessageDeletion

LIKE_ESCAPE_CHAR = "\\"


def escape_like(value: str, escape: str = LIKE_ESCAPE_CHAR) -> str:
    """Escape LIKE wildcards so *value* is matched as a literal substring."""

    return (
        value.replace(escape, escape + escape)
        .replace("%", escape + "%")
        .replace("_", escape + "_")
    )


@dataclass(frozen=True)
class MessageSearchFilters:
    """Optional filters that can be applied to message search queries."""

    partner_id: str | None = None


@dataclass(frozen=True)
class MessageSearchResult:
    """Search hits paired with the other participant of each conversation."""

    messages: list[Message]
    partner_ids: list[str]


class MessageSearchService:
    """Case-insensitive literal substring search over a viewer's messages."""

    def __init__(self, session: Session):
        self._session = session

    def search(
        self,
        viewer_id: str,
        query: str,
        *,
        limit: int,
        filters: MessageSearchFilters | None = None,
        options: Sequence = (),
    ) -> MessageSearchResult:
        """Return the newest messages visible to *viewer_id* whose text contains *query*."""

        if filters is None:
            filters = MessageSearchFilters()
        if not query:
            return MessageSearchResult(messages=[], partner_ids=[])

        conditions: list = [
            self._build_participant_filter(viewer_id, filters.partner_id),
            self._build_visibility_filter(viewer_id),
            Message.text.is_not(None),
            self._build_matcher(query),
        ]

        stmt = (
            select(Message)
            .where(and_(*conditions))
            .order_by(Message.created_at.desc(), Message.id.desc())
            .limit(limit)
        )
        if options:
            stmt = stmt.options(*options)

        messages = list(self._session.execute(stmt).scalars())
        return MessageSearchResult(
            messages=messages,
            partner_ids=[message.partner_of(viewer_id) for message in messages],
        )

    # Internal helpers -----------------------------------------------------

    def _build_matcher(self, query: str):
        return Message.text.ilike(f"%{escape_like(query)}%", escape=LIKE_ESCAPE_CHAR)

    @staticmethod
    def _build_participant_filter(viewer_id: str, partner_id: str | None):
        if partner_id is None:
            return or_(Message.sender_id == viewer_id, Message.receiver_id == viewer_id)
        return or_(
            and_(Message.sender_id == viewer_id, Message.receiver_id == partner_id),
            and_(Message.sender_id == partner_id, Message.receiver_id == viewer_id),
        )

    @staticmethod
    def _build_visibility_filter(viewer_id: str):
        return ~Message.deletions.any(MessageDeletion.user_id == viewer_id)
