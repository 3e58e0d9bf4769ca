"""HTTP endpoints for direct messages between two users."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from pairchat.events import (
    MESSAGE_DELETED,
    MESSAGE_NEW,
    EventPublisher,
    deletion_targets,
    message_deleted_payload,
    new_message_targets,
)

from app.api.deps import get_current_user, get_event_publisher, get_media_uploader
from app.config import get_settings
from app.core.identifiers import require_identifier
from app.core.storage import MediaUploader, MediaUploadError
from app.database import get_db
from app.models import DeleteScope, User
from app.schemas import (
    MessageDeleteRequest,
    MessageDeleteResult,
    MessageHit,
    MessageRead,
    MessageSendRequest,
    UserRead,
)
from app.services import ConversationStore, ReplyTarget

router = APIRouter(prefix="/message", tags=["messages"])

settings = get_settings()

logger = logging.getLogger(__name__)


@router.get("/users", response_model=list[UserRead])
def list_users(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[User]:
    """Return every user except the requester."""

    return ConversationStore(db).list_users(exclude_id=current_user.id)


@router.get("/search", response_model=list[MessageHit])
def search_messages(
    q: str = Query(default="", max_length=200),
    partner_id: str | None = Query(default=None, alias="partnerId"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[MessageHit]:
    """Search the requester's visible messages for a literal substring."""

    if partner_id:
        require_identifier(partner_id, "Invalid partner id")
    query = q.strip()
    if not query:
        return []

    hits = ConversationStore(db).search(
        current_user.id,
        query,
        limit=settings.search_result_limit,
        partner_id=partner_id or None,
    )
    return [
        MessageHit(**MessageRead.from_message(message).model_dump(), partner_id=partner)
        for message, partner in hits
    ]


@router.get("/{partner_id}", response_model=list[MessageRead])
def get_conversation(
    partner_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[MessageRead]:
    """Return the conversation with *partner_id*, oldest message first."""

    require_identifier(partner_id, "Invalid partner id")
    messages = ConversationStore(db).list_pair(current_user.id, partner_id)
    return [MessageRead.from_message(message) for message in messages]


@router.post(
    "/send/{partner_id}",
    response_model=MessageRead,
    status_code=status.HTTP_201_CREATED,
)
async def send_message(
    partner_id: str,
    payload: MessageSendRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    publisher: EventPublisher = Depends(get_event_publisher),
    uploader: MediaUploader = Depends(get_media_uploader),
) -> MessageRead:
    """Persist a message to *partner_id* and push it to both participants."""

    require_identifier(partner_id, "Invalid receiver id")
    if partner_id == current_user.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You cannot send a message to yourself",
        )

    store = ConversationStore(db)
    if store.get_user(partner_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Receiver not found")

    text = (payload.text or "").strip()
    image = (payload.image or "").strip()
    if not text and not image:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Message text or image is required",
        )
    if len(text) > settings.chat_message_max_length:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Message text cannot exceed {settings.chat_message_max_length} characters",
        )

    reply_to: ReplyTarget | None = None
    if payload.reply_to_message_id:
        reply_id = require_identifier(payload.reply_to_message_id, "Invalid reply message id")
        original = store.get(reply_id)
        if original is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Reply message not found")
        if not original.belongs_to_pair(current_user.id, partner_id):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Reply message does not belong to this conversation",
            )
        reply_to = ReplyTarget.of(original)

    image_url: str | None = None
    if image:
        try:
            image_url = await uploader.upload_image(current_user.id, image)
        except MediaUploadError as exc:
            logger.exception("Image upload failed for user %s", current_user.id)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to upload image",
            ) from exc

    message = store.append(
        current_user.id,
        partner_id,
        text=text or None,
        image=image_url,
        reply_to=reply_to,
    )
    result = MessageRead.from_message(message)
    await publisher.push(
        MESSAGE_NEW,
        result.model_dump(mode="json"),
        new_message_targets(message.sender_id, message.receiver_id),
    )
    return result


@router.delete("/{message_id}", response_model=MessageDeleteResult)
async def delete_message(
    message_id: str,
    payload: MessageDeleteRequest | None = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    publisher: EventPublisher = Depends(get_event_publisher),
    uploader: MediaUploader = Depends(get_media_uploader),
) -> MessageDeleteResult:
    """Hide a message for the requester, or remove it for both participants."""

    require_identifier(message_id, "Invalid message id")
    scope = payload.scope if payload is not None else DeleteScope.ME

    store = ConversationStore(db)
    message = store.get(message_id)
    if message is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Message not found")
    if not message.involves(current_user.id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You are not allowed to delete this message",
        )

    sender_id, receiver_id = message.sender_id, message.receiver_id
    if scope is DeleteScope.EVERYONE:
        if sender_id != current_user.id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only the sender can delete a message for everyone",
            )
        image = message.image
        store.hard_delete(message)
        if image and not store.image_in_use(image):
            await uploader.discard_image(image)
        event_payload = message_deleted_payload(message_id, scope.value)
    else:
        store.mark_deleted_for(message, current_user.id)
        event_payload = message_deleted_payload(message_id, scope.value, user_id=current_user.id)

    await publisher.push(
        MESSAGE_DELETED,
        event_payload,
        deletion_targets(
            scope.value,
            sender_id=sender_id,
            receiver_id=receiver_id,
            requester_id=current_user.id,
        ),
    )
    return MessageDeleteResult(message_id=message_id, scope=scope)
