"""Core utilities for the PairChat backend."""

from .identifiers import is_valid_identifier, new_identifier, require_identifier
from .storage import LocalMediaUploader, MediaUploader, MediaUploadError, resolve_path

__all__ = [
    "new_identifier",
    "is_valid_identifier",
    "require_identifier",
    "LocalMediaUploader",
    "MediaUploader",
    "MediaUploadError",
    "resolve_path",
]
