"""Message search helpers."""

from .service import MessageSearchFilters, MessageSearchResult, MessageSearchService, escape_like

__all__ = [
    "MessageSearchFilters",
    "MessageSearchResult",
    "MessageSearchService",
    "escape_like",
]
