from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects import mysql
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.identifiers import IDENTIFIER_LENGTH, new_identifier
from app.models.base import Base

PreciseDateTime = DateTime(timezone=True).with_variant(mysql.DATETIME(fsp=6), "mysql")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    """Application user."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(
        String(IDENTIFIER_LENGTH), primary_key=True, default=new_identifier
    )
    full_name: Mapped[str] = mapped_column(String(128), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    profile_pic: Mapped[str | None] = mapped_column(String(512))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    sent_messages: Mapped[list["Message"]] = relationship(
        back_populates="sender", foreign_keys="Message.sender_id", cascade="all, delete-orphan"
    )
    received_messages: Mapped[list["Message"]] = relationship(
        back_populates="receiver", foreign_keys="Message.receiver_id", cascade="all, delete-orphan"
    )


class Message(Base):
    """Direct message exchanged between exactly two users.

    ``reply_to_*`` columns hold a snapshot of the replied-to message taken at
    send time. They intentionally carry no foreign key so the snapshot survives
    a later hard delete of the original.
    """

    __tablename__ = "messages"
    __table_args__ = (
        Index("ix_messages_pair_created", "sender_id", "receiver_id", "created_at"),
    )

    id: Mapped[str] = mapped_column(
        String(IDENTIFIER_LENGTH), primary_key=True, default=new_identifier
    )
    sender_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    receiver_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    text: Mapped[str | None] = mapped_column(Text)
    image: Mapped[str | None] = mapped_column(String(512))

    reply_to_message_id: Mapped[str | None] = mapped_column(String(IDENTIFIER_LENGTH))
    reply_to_sender_id: Mapped[str | None] = mapped_column(String(IDENTIFIER_LENGTH))
    reply_to_text: Mapped[str | None] = mapped_column(Text)
    reply_to_image: Mapped[str | None] = mapped_column(String(512))

    # Stored with microseconds so history ordering is stable within a second.
    created_at: Mapped[datetime] = mapped_column(
        PreciseDateTime, default=_utcnow, nullable=False, index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    sender: Mapped[User] = relationship(back_populates="sent_messages", foreign_keys=[sender_id])
    receiver: Mapped[User] = relationship(
        back_populates="received_messages", foreign_keys=[receiver_id]
    )
    deletions: Mapped[list["MessageDeletion"]] = relationship(
        back_populates="message",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )

    @property
    def deleted_for(self) -> set[str]:
        return {deletion.user_id for deletion in self.deletions}

    def involves(self, user_id: str) -> bool:
        return user_id in (self.sender_id, self.receiver_id)

    def belongs_to_pair(self, user_id: str, other_id: str) -> bool:
        return {self.sender_id, self.receiver_id} == {user_id, other_id}

    def partner_of(self, user_id: str) -> str:
        return self.receiver_id if self.sender_id == user_id else self.sender_id


class MessageDeletion(Base):
    """Marks a message as hidden for a single viewer ("delete for me")."""

    __tablename__ = "message_deletions"
    __table_args__ = (UniqueConstraint("message_id", "user_id", name="uq_message_deletion"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    message_id: Mapped[str] = mapped_column(
        ForeignKey("messages.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    message: Mapped[Message] = relationship(back_populates="deletions")
