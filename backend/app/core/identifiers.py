"""Helpers for generating and validating resource identifiers."""

from __future__ import annotations

import re
from uuid import uuid4

from fastapi import HTTPException, status

IDENTIFIER_LENGTH = 32

_IDENTIFIER_RE = re.compile(r"[0-9a-f]{32}")


def new_identifier() -> str:
    """Return a fresh opaque identifier for a stored document."""

    return uuid4().hex


def is_valid_identifier(value: object) -> bool:
    return isinstance(value, str) and _IDENTIFIER_RE.fullmatch(value) is not None


def require_identifier(value: object, detail: str = "Invalid identifier provided") -> str:
    """Return *value* if it is a well-formed identifier, raising HTTP 400 otherwise."""

    if not is_valid_identifier(value):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)
    return value  # type: ignore[return-value]
