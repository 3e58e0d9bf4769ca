"""Client-side conversation state and the reducer that evolves it.

Every change to what a chat client shows goes through :func:`reduce`. History
fetched over REST, acknowledgements of the client's own sends and events pushed
over the websocket are all expressed as events, so ordering, de-duplication and
unread accounting can be exercised without a server or a UI.
"""

from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, Iterable, Mapping

from pairchat.events import SCOPE_EVERYONE, SCOPE_ME


@dataclass(frozen=True)
class ReplyPreview:
    message_id: str
    sender_id: str
    text: str = ""
    image: str = ""


@dataclass(frozen=True)
class ChatMessage:
    """A message as seen by the client."""

    id: str
    sender_id: str
    receiver_id: str
    created_at: str
    text: str | None = None
    image: str | None = None
    reply_to: ReplyPreview | None = None
    deleted_for: frozenset[str] = frozenset()

    @classmethod
    def from_payload(cls, data: Mapping[str, Any]) -> "ChatMessage":
        reply = data.get("reply_to")
        return cls(
            id=str(data["id"]),
            sender_id=str(data["sender_id"]),
            receiver_id=str(data["receiver_id"]),
            created_at=str(data["created_at"]),
            text=data.get("text"),
            image=data.get("image"),
            reply_to=ReplyPreview(
                message_id=str(reply["message_id"]),
                sender_id=str(reply["sender_id"]),
                text=reply.get("text") or "",
                image=reply.get("image") or "",
            )
            if reply
            else None,
            deleted_for=frozenset(data.get("deleted_for") or ()),
        )

    def involves(self, user_id: str) -> bool:
        return user_id in (self.sender_id, self.receiver_id)

    def belongs_to(self, user_id: str, partner_id: str) -> bool:
        return {self.sender_id, self.receiver_id} == {user_id, partner_id}

    def partner_of(self, user_id: str) -> str:
        return self.receiver_id if self.sender_id == user_id else self.sender_id


@dataclass(frozen=True)
class PartnerMeta:
    last_message_time: str | None = None
    unread_count: int = 0


@dataclass(frozen=True)
class ConversationState:
    """Snapshot of one signed-in user's chat view.

    ``scroll_token`` increases whenever the view should scroll to the newest
    message. Renderers compare it with the last value they acted on.
    """

    me: str
    selected_partner: str | None = None
    messages: tuple[ChatMessage, ...] = ()
    partners: Mapping[str, PartnerMeta] = field(default_factory=dict)
    online_users: frozenset[str] = frozenset()
    reply_draft: ChatMessage | None = None
    open_menu: str | None = None
    pending_send: bool = False
    loading_history: bool = False
    error: str | None = None
    scroll_token: int = 0

    def meta_for(self, partner_id: str) -> PartnerMeta:
        return self.partners.get(partner_id, PartnerMeta())

    def unread_for(self, partner_id: str) -> int:
        return self.meta_for(partner_id).unread_count

    def is_online(self, user_id: str) -> bool:
        return user_id in self.online_users

    def message_ids(self) -> list[str]:
        return [message.id for message in self.messages]


# Synchronization events ---------------------------------------------------


@dataclass(frozen=True)
class HistoryLoaded:
    partner_id: str
    messages: tuple[ChatMessage, ...]


@dataclass(frozen=True)
class MessageSent:
    message: ChatMessage


@dataclass(frozen=True)
class MessageReceived:
    message: ChatMessage


@dataclass(frozen=True)
class MessageDeletedReceived:
    message_id: str
    scope: str
    user_id: str | None = None


@dataclass(frozen=True)
class PartnerSelected:
    partner_id: str


# Local UI intents ---------------------------------------------------------


@dataclass(frozen=True)
class ReplyStarted:
    message_id: str


@dataclass(frozen=True)
class ReplyCancelled:
    pass


@dataclass(frozen=True)
class MenuToggled:
    message_id: str | None


@dataclass(frozen=True)
class SendStarted:
    pass


@dataclass(frozen=True)
class SendFailed:
    error: str


@dataclass(frozen=True)
class ErrorRaised:
    error: str


@dataclass(frozen=True)
class ErrorDismissed:
    pass


@dataclass(frozen=True)
class OnlineUsersUpdated:
    user_ids: frozenset[str]


# Helpers ------------------------------------------------------------------


def _dedupe(messages: Iterable[ChatMessage]) -> tuple[ChatMessage, ...]:
    seen: set[str] = set()
    unique: list[ChatMessage] = []
    for message in messages:
        if message.id in seen:
            continue
        seen.add(message.id)
        unique.append(message)
    return tuple(unique)


def _insert_ordered(
    messages: tuple[ChatMessage, ...], message: ChatMessage
) -> tuple[tuple[ChatMessage, ...], bool]:
    """Insert *message* by ``created_at``, after any message with the same timestamp."""

    if any(existing.id == message.id for existing in messages):
        return messages, False
    index = bisect_right(messages, message.created_at, key=_created_at)
    return messages[:index] + (message,) + messages[index:], True


def _created_at(message: ChatMessage) -> str:
    # Server timestamps are ISO-8601 in one format, so string order is time order.
    return message.created_at


def _latest(current: str | None, candidate: str) -> str:
    return candidate if current is None or candidate > current else current


def _with_meta(state: ConversationState, partner_id: str, **changes: Any) -> Dict[str, PartnerMeta]:
    partners = dict(state.partners)
    partners[partner_id] = replace(state.meta_for(partner_id), **changes)
    return partners


def _in_selected_conversation(state: ConversationState, message: ChatMessage) -> bool:
    return state.selected_partner is not None and message.belongs_to(state.me, state.selected_partner)


# Reducers -----------------------------------------------------------------


def _history_loaded(state: ConversationState, event: HistoryLoaded) -> ConversationState:
    if event.partner_id != state.selected_partner:
        # Response for a conversation the user already left.
        return state
    messages = tuple(sorted(_dedupe(event.messages), key=_created_at))
    last_time = messages[-1].created_at if messages else state.meta_for(event.partner_id).last_message_time
    return replace(
        state,
        messages=messages,
        loading_history=False,
        partners=_with_meta(state, event.partner_id, last_message_time=last_time, unread_count=0),
        scroll_token=state.scroll_token + 1,
    )


def _message_sent(state: ConversationState, event: MessageSent) -> ConversationState:
    message = event.message
    partner_id = message.partner_of(state.me)
    last_time = _latest(state.meta_for(partner_id).last_message_time, message.created_at)
    messages = state.messages
    scroll_token = state.scroll_token
    if _in_selected_conversation(state, message):
        messages, _ = _insert_ordered(messages, message)
        scroll_token += 1
    return replace(
        state,
        messages=messages,
        partners=_with_meta(state, partner_id, last_message_time=last_time),
        reply_draft=None,
        open_menu=None,
        pending_send=False,
        scroll_token=scroll_token,
    )


def _message_received(state: ConversationState, event: MessageReceived) -> ConversationState:
    message = event.message
    if not message.involves(state.me):
        return state
    partner_id = message.partner_of(state.me)
    last_time = _latest(state.meta_for(partner_id).last_message_time, message.created_at)

    if _in_selected_conversation(state, message):
        messages, appended = _insert_ordered(state.messages, message)
        return replace(
            state,
            messages=messages,
            partners=_with_meta(
                state, partner_id, last_message_time=last_time, unread_count=0
            ),
            scroll_token=state.scroll_token + 1 if appended else state.scroll_token,
        )

    unread = state.unread_for(partner_id)
    if message.receiver_id == state.me and message.sender_id != state.me:
        unread += 1
    return replace(
        state,
        partners=_with_meta(
            state, partner_id, last_message_time=last_time, unread_count=unread
        ),
    )


def _message_deleted(state: ConversationState, event: MessageDeletedReceived) -> ConversationState:
    applies = event.scope == SCOPE_EVERYONE or (
        event.scope == SCOPE_ME and event.user_id == state.me
    )
    if not applies:
        return state

    messages = tuple(message for message in state.messages if message.id != event.message_id)
    reply_draft = state.reply_draft
    if reply_draft is not None and reply_draft.id == event.message_id:
        reply_draft = None
    open_menu = None if state.open_menu == event.message_id else state.open_menu

    partners = state.partners
    if len(messages) != len(state.messages) and state.selected_partner is not None:
        last_time = messages[-1].created_at if messages else None
        partners = _with_meta(state, state.selected_partner, last_message_time=last_time)

    return replace(
        state,
        messages=messages,
        reply_draft=reply_draft,
        open_menu=open_menu,
        partners=partners,
    )


def _partner_selected(state: ConversationState, event: PartnerSelected) -> ConversationState:
    return replace(
        state,
        selected_partner=event.partner_id,
        messages=(),
        partners=_with_meta(state, event.partner_id, unread_count=0),
        reply_draft=None,
        open_menu=None,
        pending_send=False,
        loading_history=True,
    )


def _reply_started(state: ConversationState, event: ReplyStarted) -> ConversationState:
    target = next((message for message in state.messages if message.id == event.message_id), None)
    if target is None:
        return state
    return replace(state, reply_draft=target, open_menu=None)


def _menu_toggled(state: ConversationState, event: MenuToggled) -> ConversationState:
    if event.message_id is None or state.open_menu == event.message_id:
        return replace(state, open_menu=None)
    return replace(state, open_menu=event.message_id)


_REDUCERS: Dict[type, Callable[[ConversationState, Any], ConversationState]] = {
    HistoryLoaded: _history_loaded,
    MessageSent: _message_sent,
    MessageReceived: _message_received,
    MessageDeletedReceived: _message_deleted,
    PartnerSelected: _partner_selected,
    ReplyStarted: _reply_started,
    ReplyCancelled: lambda state, _: replace(state, reply_draft=None),
    MenuToggled: _menu_toggled,
    SendStarted: lambda state, _: replace(state, pending_send=True, error=None),
    SendFailed: lambda state, event: replace(state, pending_send=False, error=event.error),
    ErrorRaised: lambda state, event: replace(state, error=event.error),
    ErrorDismissed: lambda state, _: replace(state, error=None),
    OnlineUsersUpdated: lambda state, event: replace(state, online_users=frozenset(event.user_ids)),
}


def reduce(state: ConversationState, event: object) -> ConversationState:
    """Return the state that results from applying *event* to *state*."""

    try:
        handler = _REDUCERS[type(event)]
    except KeyError:
        raise TypeError(f"Unsupported conversation event: {type(event).__name__}") from None
    return handler(state, event)
