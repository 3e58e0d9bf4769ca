"""Headless chat client driving :mod:`pairchat.sync.state` against a live server."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Protocol

import httpx
from websockets.asyncio.client import connect as ws_connect
from websockets.exceptions import ConnectionClosed, WebSocketException

from pairchat.events import MESSAGE_DELETED, MESSAGE_NEW, SCOPE_ME, USERS_ONLINE

from .state import (
    ChatMessage,
    ConversationState,
    ErrorRaised,
    HistoryLoaded,
    MessageDeletedReceived,
    MessageReceived,
    MessageSent,
    OnlineUsersUpdated,
    PartnerSelected,
    SendFailed,
    SendStarted,
    reduce,
)

logger = logging.getLogger(__name__)

DEFAULT_COOKIE_NAME = "jwt"


class EventSocket(Protocol):
    """The subset of a websocket client connection used by the session."""

    def __aiter__(self) -> Any: ...

    async def send(self, message: str) -> None: ...

    async def close(self) -> None: ...


SocketFactory = Callable[[str, dict[str, str]], Awaitable[EventSocket]]
StateListener = Callable[[ConversationState], None]


class ChatSessionError(RuntimeError):
    """Raised when the session is used before it is signed in."""


async def _default_socket_factory(url: str, headers: dict[str, str]) -> EventSocket:
    return await ws_connect(url, additional_headers=headers)


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return f"Request failed with status {response.status_code}"


class ChatSession:
    """One signed-in user's view of the chat.

    REST calls go through ``httpx``; pushed events arrive over a websocket that
    carries the same auth cookie. Failures never raise out of the UI-facing
    methods: they land in ``state.error`` instead. A dropped socket is not
    reopened automatically, call :meth:`connect` again.
    """

    def __init__(
        self,
        base_url: str,
        *,
        http_client: httpx.AsyncClient | None = None,
        socket_factory: SocketFactory | None = None,
        ws_url: str | None = None,
        cookie_name: str = DEFAULT_COOKIE_NAME,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(base_url=self._base_url)
        self._socket_factory = socket_factory or _default_socket_factory
        self._ws_url = ws_url or self._derive_ws_url(self._base_url)
        self._cookie_name = cookie_name
        self._socket: EventSocket | None = None
        self._listener: asyncio.Task[None] | None = None
        self._closing = False
        self._state: ConversationState | None = None
        self._subscribers: list[StateListener] = []
        self.user: dict[str, Any] | None = None

    @staticmethod
    def _derive_ws_url(base_url: str) -> str:
        if base_url.startswith("https://"):
            return "wss://" + base_url.removeprefix("https://") + "/ws"
        return "ws://" + base_url.removeprefix("http://") + "/ws"

    # State ---------------------------------------------------------------

    @property
    def state(self) -> ConversationState:
        if self._state is None:
            raise ChatSessionError("Session is not signed in")
        return self._state

    @property
    def connected(self) -> bool:
        return self._socket is not None

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        self._subscribers.append(listener)
        return lambda: self._subscribers.remove(listener)

    def dispatch(self, event: object) -> ConversationState:
        state = reduce(self.state, event)
        self._state = state
        for listener in list(self._subscribers):
            listener(state)
        return state

    # Authentication -------------------------------------------------------

    async def login(self, email: str, password: str) -> dict[str, Any]:
        response = await self._http.post("/api/auth/login", json={"email": email, "password": password})
        return self._start(response)

    async def signup(self, full_name: str, email: str, password: str) -> dict[str, Any]:
        response = await self._http.post(
            "/api/auth/signup",
            json={"full_name": full_name, "email": email, "password": password},
        )
        return self._start(response)

    def _start(self, response: httpx.Response) -> dict[str, Any]:
        if response.is_error:
            raise ChatSessionError(_error_message(response))
        self.user = response.json()
        self._state = ConversationState(me=self.user["id"])
        return self.user

    async def logout(self) -> None:
        await self.disconnect()
        try:
            await self._http.post("/api/auth/logout")
        except httpx.HTTPError as exc:
            logger.warning("Logout request failed: %s", exc)
        self._http.cookies.clear()
        self._state = None
        self.user = None

    async def close(self) -> None:
        await self.disconnect()
        if self._owns_http:
            await self._http.aclose()

    # Realtime -------------------------------------------------------------

    async def connect(self) -> None:
        """Open the event socket with the session cookie."""

        if self._state is None:
            raise ChatSessionError("Session is not signed in")
        if self._socket is not None:
            return
        token = self._http.cookies.get(self._cookie_name)
        headers = {"Cookie": f"{self._cookie_name}={token}"} if token else {}
        try:
            self._socket = await self._socket_factory(self._ws_url, headers)
        except (OSError, WebSocketException) as exc:
            logger.warning("Could not open event socket: %s", exc)
            self.dispatch(ErrorRaised("Could not connect to the chat server"))
            return
        self._closing = False
        self._listener = asyncio.create_task(self._listen(self._socket))

    async def disconnect(self) -> None:
        socket, listener = self._socket, self._listener
        self._socket = None
        self._listener = None
        if socket is None:
            return
        self._closing = True
        await socket.close()
        if listener is not None:
            listener.cancel()
            try:
                await listener
            except asyncio.CancelledError:
                pass
            except Exception:
                logger.exception("Event listener stopped with an error")

    async def _listen(self, socket: EventSocket) -> None:
        try:
            async for raw in socket:
                self.handle_frame(raw)
        except ConnectionClosed as exc:
            if not self._closing:
                logger.info("Event socket closed: %s", exc)
                self.dispatch(ErrorRaised("Lost connection to the chat server"))
        finally:
            if self._socket is socket:
                self._socket = None

    def handle_frame(self, raw: str | bytes) -> None:
        """Translate one server frame into a state event."""

        try:
            frame = json.loads(raw)
        except ValueError:
            logger.debug("Ignoring malformed frame: %r", raw)
            return
        if not isinstance(frame, dict) or self._state is None:
            return

        try:
            event = self._translate(frame.get("type"), frame.get("data"))
        except (KeyError, TypeError, ValueError) as exc:
            logger.debug("Dropping frame with an incomplete payload (%s): %r", exc, raw)
            return
        if event is not None:
            self.dispatch(event)

    @staticmethod
    def _translate(event_type: Any, data: Any) -> object | None:
        if event_type == MESSAGE_NEW and isinstance(data, dict):
            return MessageReceived(ChatMessage.from_payload(data))
        if event_type == MESSAGE_DELETED and isinstance(data, dict):
            return MessageDeletedReceived(
                message_id=str(data["message_id"]),
                scope=str(data["scope"]),
                user_id=data.get("user_id"),
            )
        if event_type == USERS_ONLINE and isinstance(data, list):
            return OnlineUsersUpdated(frozenset(str(user_id) for user_id in data))
        return None

    # REST -----------------------------------------------------------------

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response | None:
        try:
            response = await self._http.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, url, exc)
            self.dispatch(ErrorRaised("Could not reach the chat server"))
            return None
        if response.is_error:
            self.dispatch(ErrorRaised(_error_message(response)))
            return None
        return response

    async def load_users(self) -> list[dict[str, Any]]:
        response = await self._request("GET", "/api/message/users")
        return response.json() if response is not None else []

    async def select_partner(self, partner_id: str) -> None:
        """Switch to *partner_id* and load its authoritative history."""

        self.dispatch(PartnerSelected(partner_id))
        response = await self._request("GET", f"/api/message/{partner_id}")
        if response is None:
            return
        messages = tuple(ChatMessage.from_payload(item) for item in response.json())
        self.dispatch(HistoryLoaded(partner_id=partner_id, messages=messages))

    async def send(self, text: str | None = None, image: str | None = None) -> ChatMessage | None:
        partner_id = self.state.selected_partner
        if partner_id is None:
            self.dispatch(ErrorRaised("Select a conversation first"))
            return None

        body: dict[str, Any] = {"text": text, "image": image}
        if self.state.reply_draft is not None:
            body["reply_to_message_id"] = self.state.reply_draft.id

        self.dispatch(SendStarted())
        try:
            response = await self._http.post(f"/api/message/send/{partner_id}", json=body)
        except httpx.HTTPError as exc:
            logger.warning("Sending message failed: %s", exc)
            self.dispatch(SendFailed("Could not reach the chat server"))
            return None
        if response.is_error:
            self.dispatch(SendFailed(_error_message(response)))
            return None

        message = ChatMessage.from_payload(response.json())
        self.dispatch(MessageSent(message))
        return message

    async def delete(self, message_id: str, scope: str = SCOPE_ME) -> bool:
        response = await self._request("DELETE", f"/api/message/{message_id}", json={"scope": scope})
        if response is None:
            return False
        self.dispatch(MessageDeletedReceived(message_id=message_id, scope=scope, user_id=self.state.me))
        return True

    async def search(self, query: str, partner_id: str | None = None) -> list[dict[str, Any]]:
        params = {"q": query}
        if partner_id is not None:
            params["partnerId"] = partner_id
        response = await self._request("GET", "/api/message/search", params=params)
        return response.json() if response is not None else []
