"""Delivery channel binding authenticated websockets to users."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Dict, Iterable, Mapping
from uuid import uuid4

from fastapi import status
from fastapi.websockets import WebSocket, WebSocketDisconnect, WebSocketState

from app.monitoring.metrics import (
    presence_online_users,
    realtime_connections,
    realtime_events_total,
    realtime_handshake_rejections_total,
)

from ..events import USERS_ONLINE, build_envelope
from .presence import PresenceChange, PresenceRegistry

logger = logging.getLogger(__name__)


async def safe_send_json(websocket: WebSocket, data: dict[str, Any]) -> bool:
    """Send *data* unless the socket is gone. Returns whether the frame was sent."""

    if websocket.application_state != WebSocketState.CONNECTED:
        return False
    try:
        await websocket.send_json(data)
        return True
    except (WebSocketDisconnect, RuntimeError) as exc:
        logger.debug("Failed to send websocket message: %s", exc)
        return False


class ConnectionState(str, enum.Enum):
    CONNECTING = "connecting"
    AUTHENTICATED = "authenticated"
    CLOSED = "closed"


_ALLOWED_TRANSITIONS: Dict[ConnectionState, frozenset[ConnectionState]] = {
    ConnectionState.CONNECTING: frozenset({ConnectionState.AUTHENTICATED, ConnectionState.CLOSED}),
    ConnectionState.AUTHENTICATED: frozenset({ConnectionState.CLOSED}),
    ConnectionState.CLOSED: frozenset(),
}


class InvalidTransitionError(RuntimeError):
    """Raised when a connection is moved to a state it cannot reach."""


@dataclass(eq=False)
class Connection:
    """One websocket and the user it was authenticated as."""

    websocket: WebSocket
    id: str = field(default_factory=lambda: uuid4().hex)
    state: ConnectionState = ConnectionState.CONNECTING
    user_id: str | None = None

    def _transition(self, target: ConnectionState) -> None:
        if target not in _ALLOWED_TRANSITIONS[self.state]:
            raise InvalidTransitionError(
                f"Connection {self.id} cannot move from {self.state.value} to {target.value}"
            )
        self.state = target

    def authenticate(self, user_id: str) -> None:
        self._transition(ConnectionState.AUTHENTICATED)
        self.user_id = user_id

    def close(self) -> None:
        self._transition(ConnectionState.CLOSED)

    @property
    def is_authenticated(self) -> bool:
        return self.state is ConnectionState.AUTHENTICATED

    async def send(self, event: str, payload: Any) -> bool:
        if not self.is_authenticated:
            return False
        return await safe_send_json(self.websocket, build_envelope(event, payload))


class DeliveryChannel:
    """Tracks live connections and pushes events to the users behind them.

    Presence decides where an event for a user goes. Every authenticated
    connection, including one superseded by a newer connection of the same
    user, still receives the ``users:online`` snapshot until it closes.
    """

    def __init__(self, registry: PresenceRegistry | None = None) -> None:
        self.registry = registry if registry is not None else PresenceRegistry()
        self._connections: Dict[str, Connection] = {}
        self._lock = Lock()

    def open(self, websocket: WebSocket) -> Connection:
        """Start tracking a handshake that has not been authenticated yet."""

        return Connection(websocket=websocket)

    async def reject(self, connection: Connection, reason: str) -> None:
        """Refuse *connection* before it is accepted."""

        connection.close()
        realtime_handshake_rejections_total.inc()
        logger.info("Rejected websocket connection %s: %s", connection.id, reason)
        await connection.websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=reason)

    async def authenticate(self, connection: Connection, user_id: str) -> None:
        """Accept *connection* for *user_id*, register it and announce the online set."""

        await connection.websocket.accept()
        connection.authenticate(user_id)
        with self._lock:
            self._connections[connection.id] = connection
            change = self.registry.register(user_id, connection.id)
            realtime_connections.set(len(self._connections))
        logger.info("User %s connected (connection %s)", user_id, connection.id)
        await self._announce(change)

    async def disconnect(self, connection: Connection) -> None:
        """Close *connection* and announce the online set if it was live."""

        if connection.state is ConnectionState.CLOSED:
            return
        was_authenticated = connection.is_authenticated
        connection.close()
        if not was_authenticated or connection.user_id is None:
            return
        with self._lock:
            self._connections.pop(connection.id, None)
            change = self.registry.unregister(connection.user_id, connection.id)
            realtime_connections.set(len(self._connections))
        logger.info("User %s disconnected (connection %s)", connection.user_id, connection.id)
        await self._announce(change)

    async def push(
        self, event: str, payload: Mapping[str, Any] | list[Any], targets: Iterable[str]
    ) -> int:
        """Send *event* to each online target. Offline targets are skipped silently."""

        delivered = 0
        for user_id in set(targets):
            connection = self._resolve(user_id)
            if connection is None:
                realtime_events_total.labels(event, "dropped").inc()
                logger.debug("Dropped %s for offline user %s", event, user_id)
                continue
            if await connection.send(event, payload):
                delivered += 1
                realtime_events_total.labels(event, "delivered").inc()
            else:
                realtime_events_total.labels(event, "failed").inc()
                logger.warning("Failed to deliver %s to user %s", event, user_id)
        return delivered

    async def close_all(self) -> None:
        """Close every live connection, used on application shutdown."""

        with self._lock:
            connections = list(self._connections.values())
            self._connections.clear()
            self.registry.clear()
            realtime_connections.set(0)
            presence_online_users.set(0)
        for connection in connections:
            connection.close()
            if connection.websocket.application_state == WebSocketState.CONNECTED:
                try:
                    await connection.websocket.close(code=status.WS_1001_GOING_AWAY)
                except RuntimeError:
                    logger.debug("Connection %s already closed", connection.id)

    def online_users(self) -> list[str]:
        return sorted(self.registry.list_online())

    def connection_count(self) -> int:
        with self._lock:
            return len(self._connections)

    def _resolve(self, user_id: str) -> Connection | None:
        with self._lock:
            connection_id = self.registry.resolve(user_id)
            if connection_id is None:
                return None
            return self._connections.get(connection_id)

    async def _announce(self, change: PresenceChange) -> None:
        presence_online_users.set(len(change.online))
        online = sorted(change.online)
        with self._lock:
            connections = list(self._connections.values())
        for connection in connections:
            if await connection.send(USERS_ONLINE, online):
                realtime_events_total.labels(USERS_ONLINE, "delivered").inc()
            else:
                realtime_events_total.labels(USERS_ONLINE, "failed").inc()


delivery_channel = DeliveryChannel()
"""Channel shared by the websocket endpoint and the message API."""


def get_delivery_channel() -> DeliveryChannel:
    return delivery_channel
