"""Unit tests for the conversation store and message search."""

from __future__ import annotations

from app.models import User
from app.search import escape_like
from app.services import ConversationStore, ReplyTarget


def _user(session, name: str) -> User:
    user = User(full_name=name, email=f"{name.lower()}@example.com", hashed_password="x")
    session.add(user)
    session.commit()
    return user


def test_escape_like_escapes_wildcards_and_escape_char():
    assert escape_like(r"50%_a\b") == r"50\%\_a\\b"


def test_list_pair_filters_by_pair_and_viewer(db_session):
    alice, bob, carol = (_user(db_session, name) for name in ("Alice", "Bob", "Carol"))
    store = ConversationStore(db_session)
    first = store.append(alice.id, bob.id, text="one", image=None)
    store.append(alice.id, carol.id, text="elsewhere", image=None)
    second = store.append(bob.id, alice.id, text="two", image=None)

    store.mark_deleted_for(first, bob.id)

    assert [m.id for m in store.list_pair(alice.id, bob.id)] == [first.id, second.id]
    assert [m.id for m in store.list_pair(bob.id, alice.id)] == [second.id]


def test_mark_deleted_for_twice_keeps_single_marker(db_session):
    alice, bob = _user(db_session, "Alice"), _user(db_session, "Bob")
    store = ConversationStore(db_session)
    message = store.append(alice.id, bob.id, text="hi", image=None)

    store.mark_deleted_for(message, alice.id)
    store.mark_deleted_for(message, alice.id)

    assert len(message.deletions) == 1
    assert message.deleted_for == {alice.id}


def test_hard_delete_removes_message_and_markers(db_session):
    alice, bob = _user(db_session, "Alice"), _user(db_session, "Bob")
    store = ConversationStore(db_session)
    message = store.append(alice.id, bob.id, text="bye", image=None)
    store.mark_deleted_for(message, bob.id)
    message_id = message.id

    store.hard_delete(message)

    assert store.get(message_id) is None
    assert store.list_pair(alice.id, bob.id) == []


def test_append_copies_reply_snapshot(db_session):
    alice, bob = _user(db_session, "Alice"), _user(db_session, "Bob")
    store = ConversationStore(db_session)
    original = store.append(alice.id, bob.id, text="question?", image="/api/media/a.png")

    reply = store.append(bob.id, alice.id, text="answer", image=None, reply_to=ReplyTarget.of(original))

    assert reply.reply_to_message_id == original.id
    assert reply.reply_to_sender_id == alice.id
    assert reply.reply_to_text == "question?"
    assert reply.reply_to_image == "/api/media/a.png"


def test_search_respects_limit_and_newest_first(db_session):
    alice, bob = _user(db_session, "Alice"), _user(db_session, "Bob")
    store = ConversationStore(db_session)
    sent = [store.append(alice.id, bob.id, text=f"Needle {index}", image=None) for index in range(5)]

    hits = store.search(bob.id, "needle", limit=3)

    assert [message.id for message, _ in hits] == [m.id for m in reversed(sent)][:3]
    assert {partner for _, partner in hits} == {alice.id}
