"""Process-local registry of which user is reachable over which connection."""

from __future__ import annotations

from dataclasses import dataclass
from threading import Lock
from typing import Dict


@dataclass(frozen=True)
class PresenceChange:
    """Outcome of a registry transition.

    ``online`` is the set of online user ids computed in the same critical
    section as the transition, so broadcasting it never races a concurrent
    connect or disconnect.
    """

    changed: bool
    online: frozenset[str]


class PresenceRegistry:
    """Maps a user id to the id of its single live connection.

    The last registration for a user wins. Unregistering only removes the entry
    when it still points at the caller's connection, so a late disconnect of an
    older connection cannot evict a newer one.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, str] = {}
        self._lock = Lock()

    def register(self, user_id: str, connection_id: str) -> PresenceChange:
        with self._lock:
            previous = self._entries.get(user_id)
            self._entries[user_id] = connection_id
            return PresenceChange(previous != connection_id, frozenset(self._entries))

    def unregister(self, user_id: str, connection_id: str) -> PresenceChange:
        with self._lock:
            if self._entries.get(user_id) != connection_id:
                return PresenceChange(False, frozenset(self._entries))
            del self._entries[user_id]
            return PresenceChange(True, frozenset(self._entries))

    def resolve(self, user_id: str) -> str | None:
        with self._lock:
            return self._entries.get(user_id)

    def list_online(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
