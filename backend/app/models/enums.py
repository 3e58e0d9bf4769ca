from __future__ import annotations

from enum import Enum


class DeleteScope(str, Enum):
    """Who a deleted message disappears for."""

    ME = "me"
    EVERYONE = "everyone"
