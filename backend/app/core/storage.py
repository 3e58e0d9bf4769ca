"""Storage for images attached to messages and user profiles."""

from __future__ import annotations

import base64
import binascii
import logging
import mimetypes
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Final, Protocol
from uuid import uuid4

from fastapi import HTTPException, status

from app.config import get_settings

settings = get_settings()

logger = logging.getLogger(__name__)

_DATA_URL_RE: Final = re.compile(
    r"^data:(?P<content_type>[\w.+-]+/[\w.+-]+)?(?P<params>(;[\w.+-]+=[\w.+-]+)*)(?P<base64>;base64)?,(?P<data>.*)$",
    re.DOTALL,
)

# Signatures used when a bare base64 payload carries no content type.
_IMAGE_SIGNATURES: Final[tuple[tuple[bytes, str], ...]] = (
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
    (b"RIFF", "image/webp"),
)


class MediaUploadError(RuntimeError):
    """Raised when an image could not be persisted by the storage backend."""


@dataclass(slots=True)
class StoredFile:
    """Represents a file persisted by the storage backend."""

    content_type: str
    file_size: int
    absolute_path: Path
    relative_path: str
    url: str


class MediaUploader(Protocol):
    """Accepts a raw image payload and returns a stable URL for it."""

    async def upload_image(self, owner_id: str, payload: str) -> str:
        ...

    async def discard_image(self, url: str) -> None:
        ...


def _media_root() -> Path:
    root = settings.media_root
    root.mkdir(parents=True, exist_ok=True)
    return root


def _sniff_content_type(data: bytes) -> str | None:
    for signature, content_type in _IMAGE_SIGNATURES:
        if data.startswith(signature):
            return content_type
    return None


def decode_image_payload(payload: str) -> tuple[bytes, str]:
    """Decode a data URL or bare base64 string into bytes and a content type."""

    content_type: str | None = None
    encoded = payload.strip()
    match = _DATA_URL_RE.match(encoded)
    if match is not None:
        if not match.group("base64"):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Image data URL must be base64 encoded",
            )
        content_type = match.group("content_type")
        encoded = match.group("data")

    try:
        data = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Image payload is not valid base64",
        ) from exc

    if not data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Image payload is empty")
    if len(data) > settings.max_upload_size:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail="Image exceeds allowed size",
        )

    content_type = content_type or _sniff_content_type(data)
    if not content_type or not content_type.startswith("image/"):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Attachment must be an image")
    return data, content_type


def store_image_payload(owner_id: str, payload: str) -> StoredFile:
    """Persist an image payload under the owner's directory and return its metadata."""

    data, content_type = decode_image_payload(payload)
    extension = mimetypes.guess_extension(content_type) or ".bin"

    target_dir = _media_root() / f"user_{owner_id}"
    file_name = f"{uuid4().hex}{extension}"
    absolute_path = target_dir / file_name
    try:
        target_dir.mkdir(parents=True, exist_ok=True)
        absolute_path.write_bytes(data)
    except OSError as exc:
        if absolute_path.exists():
            absolute_path.unlink()
        raise MediaUploadError(f"Could not store image for user {owner_id}") from exc

    relative_path = os.path.relpath(absolute_path, _media_root()).replace(os.sep, "/")
    return StoredFile(
        content_type=content_type,
        file_size=len(data),
        absolute_path=absolute_path,
        relative_path=relative_path,
        url=build_media_url(relative_path),
    )


class LocalMediaUploader:
    """Stores images on the local filesystem under ``MEDIA_ROOT``."""

    async def upload_image(self, owner_id: str, payload: str) -> str:
        stored = store_image_payload(owner_id, payload)
        logger.info("Stored %s image (%d bytes) for user %s", stored.content_type, stored.file_size, owner_id)
        return stored.url

    async def discard_image(self, url: str) -> None:
        if remove_media_file(url):
            logger.info("Removed stored image %s", url)


def resolve_path(relative_path: str) -> Path:
    """Return an absolute path for a stored file relative path."""

    root = _media_root().resolve()
    candidate = (root / relative_path).resolve()
    if not candidate.is_relative_to(root):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid file path")
    if not candidate.is_file():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")
    return candidate


def build_media_url(relative_path: str) -> str:
    """Construct the public URL for a stored media file."""

    base = settings.media_base_url.rstrip("/")
    return f"{base}/{relative_path}"


def remove_media_file(url: str) -> bool:
    """Unlink the local file behind a media URL; return whether one was removed.

    URLs outside ``MEDIA_BASE_URL`` or pointing outside ``MEDIA_ROOT`` are left alone.
    """

    prefix = settings.media_base_url.rstrip("/") + "/"
    if not url.startswith(prefix):
        return False
    root = _media_root().resolve()
    candidate = (root / url[len(prefix):]).resolve()
    if not candidate.is_relative_to(root) or not candidate.is_file():
        return False
    try:
        candidate.unlink()
    except OSError as exc:
        logger.warning("Could not remove stored image %s: %s", candidate, exc)
        return False
    return True
