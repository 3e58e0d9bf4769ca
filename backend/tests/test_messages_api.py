"""Integration tests for the direct message REST API."""

from __future__ import annotations

import pytest
from sqlalchemy import select

from app.core.storage import MediaUploadError
from app.api.deps import get_media_uploader
from app.main import app
from app.models import Message, MessageDeletion

PNG_PIXEL = (
    "data:image/png;base64,"
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)


@pytest.fixture()
def pair(create_user):
    return create_user("Alice"), create_user("Bob")


def _send(client, headers, partner_id, **body):
    return client.post(f"/api/message/send/{partner_id}", json=body, headers=headers)


def test_requests_without_credentials_are_rejected(client):
    response = client.get("/api/message/users")

    assert response.status_code == 401
    assert response.json() == {"message": "Unauthorized - No token provided"}


def test_roster_excludes_requester(client, create_user, auth_headers):
    alice = create_user("alice")
    create_user("Carol")
    create_user("bob")

    response = client.get("/api/message/users", headers=auth_headers(alice))

    assert response.status_code == 200
    names = [user["full_name"] for user in response.json()]
    assert names == ["bob", "Carol"]
    assert all("hashed_password" not in user for user in response.json())


def test_send_and_list_conversation_in_order(client, pair, auth_headers):
    alice, bob = pair

    first = _send(client, auth_headers(alice), bob.id, text="  hi  ")
    second = _send(client, auth_headers(bob), alice.id, text="hello back")

    assert first.status_code == 201
    assert first.json()["text"] == "hi"
    assert first.json()["sender_id"] == alice.id
    assert first.json()["receiver_id"] == bob.id
    assert second.status_code == 201

    history = client.get(f"/api/message/{bob.id}", headers=auth_headers(alice))
    assert history.status_code == 200
    assert [item["id"] for item in history.json()] == [first.json()["id"], second.json()["id"]]


def test_reply_snapshot_is_captured(client, pair, auth_headers):
    alice, bob = pair
    m1 = _send(client, auth_headers(alice), bob.id, text="original").json()

    m2 = _send(
        client,
        auth_headers(alice),
        bob.id,
        text="reply",
        reply_to_message_id=m1["id"],
    )

    assert m2.status_code == 201
    history = client.get(f"/api/message/{alice.id}", headers=auth_headers(bob)).json()
    assert [item["id"] for item in history] == [m1["id"], m2.json()["id"]]
    assert history[1]["reply_to"] == {
        "message_id": m1["id"],
        "sender_id": alice.id,
        "text": "original",
        "image": "",
    }


def test_reply_snapshot_survives_hard_delete(client, pair, auth_headers):
    alice, bob = pair
    m1 = _send(client, auth_headers(alice), bob.id, text="original").json()
    m2 = _send(client, auth_headers(bob), alice.id, text="reply", reply_to_message_id=m1["id"]).json()

    client.request("DELETE", f"/api/message/{m1['id']}", json={"scope": "everyone"}, headers=auth_headers(alice))

    history = client.get(f"/api/message/{alice.id}", headers=auth_headers(bob)).json()
    assert [item["id"] for item in history] == [m2["id"]]
    assert history[0]["reply_to"]["text"] == "original"


def test_reply_from_another_conversation_is_rejected(client, create_user, auth_headers):
    alice, bob, carol = create_user(), create_user(), create_user()
    foreign = _send(client, auth_headers(alice), carol.id, text="private").json()

    response = _send(
        client,
        auth_headers(alice),
        bob.id,
        text="sneaky",
        reply_to_message_id=foreign["id"],
    )

    assert response.status_code == 400
    assert "conversation" in response.json()["message"]


def test_reply_target_validation(client, pair, auth_headers):
    alice, bob = pair

    malformed = _send(client, auth_headers(alice), bob.id, text="x", reply_to_message_id="not-an-id")
    missing = _send(client, auth_headers(alice), bob.id, text="x", reply_to_message_id="0" * 32)

    assert malformed.status_code == 400
    assert missing.status_code == 404


def test_send_requires_text_or_image(client, pair, auth_headers, session_factory):
    alice, bob = pair

    response = _send(client, auth_headers(alice), bob.id, text="   ")

    assert response.status_code == 400
    assert response.json() == {"message": "Message text or image is required"}
    with session_factory() as session:
        assert session.execute(select(Message)).first() is None


def test_send_rejects_overlong_text(client, pair, auth_headers):
    alice, bob = pair

    response = _send(client, auth_headers(alice), bob.id, text="x" * 2001)

    assert response.status_code == 400


def test_send_to_unknown_or_invalid_receiver(client, create_user, auth_headers):
    alice = create_user()

    assert _send(client, auth_headers(alice), "f" * 32, text="hi").status_code == 404
    assert _send(client, auth_headers(alice), "bogus", text="hi").status_code == 400
    assert _send(client, auth_headers(alice), alice.id, text="hi").status_code == 400


def test_send_image_stores_file(client, pair, auth_headers, media_root):
    alice, bob = pair

    response = _send(client, auth_headers(alice), bob.id, image=PNG_PIXEL)

    assert response.status_code == 201
    image_url = response.json()["image"]
    assert image_url.startswith("/api/media/")
    assert response.json()["text"] is None

    served = client.get(image_url)
    assert served.status_code == 200
    assert served.headers["content-type"] == "image/png"


def test_delete_for_everyone_removes_stored_image(client, pair, auth_headers, media_root):
    alice, bob = pair
    message = _send(client, auth_headers(alice), bob.id, image=PNG_PIXEL).json()
    assert len(list(media_root.rglob("*.png"))) == 1

    response = client.request(
        "DELETE", f"/api/message/{message['id']}", json={"scope": "everyone"}, headers=auth_headers(alice)
    )

    assert response.status_code == 200
    assert list(media_root.rglob("*.png")) == []
    assert client.get(message["image"]).status_code == 404


def test_delete_for_everyone_keeps_image_quoted_by_reply(client, pair, auth_headers, media_root):
    alice, bob = pair
    message = _send(client, auth_headers(alice), bob.id, image=PNG_PIXEL).json()
    _send(client, auth_headers(bob), alice.id, text="nice", reply_to_message_id=message["id"])

    client.request(
        "DELETE", f"/api/message/{message['id']}", json={"scope": "everyone"}, headers=auth_headers(alice)
    )

    assert client.get(message["image"]).status_code == 200


def test_image_upload_failure_persists_nothing(client, pair, auth_headers, session_factory):
    alice, bob = pair

    class BrokenUploader:
        async def upload_image(self, owner_id: str, payload: str) -> str:
            raise MediaUploadError("storage offline")

    app.dependency_overrides[get_media_uploader] = lambda: BrokenUploader()
    response = _send(client, auth_headers(alice), bob.id, text="pic", image=PNG_PIXEL)

    assert response.status_code == 500
    assert response.json() == {"message": "Failed to upload image"}
    with session_factory() as session:
        assert session.execute(select(Message)).first() is None


def test_history_rejects_malformed_partner_id(client, create_user, auth_headers):
    alice = create_user()

    response = client.get("/api/message/123", headers=auth_headers(alice))

    assert response.status_code == 400


def test_delete_for_me_is_idempotent_and_viewer_scoped(client, pair, auth_headers, session_factory):
    alice, bob = pair
    message = _send(client, auth_headers(alice), bob.id, text="hide me").json()

    for _ in range(2):
        response = client.request(
            "DELETE", f"/api/message/{message['id']}", json={"scope": "me"}, headers=auth_headers(bob)
        )
        assert response.status_code == 200
        assert response.json() == {"message_id": message["id"], "scope": "me"}

    with session_factory() as session:
        markers = session.execute(select(MessageDeletion)).scalars().all()
        assert [(marker.message_id, marker.user_id) for marker in markers] == [(message["id"], bob.id)]

    assert client.get(f"/api/message/{alice.id}", headers=auth_headers(bob)).json() == []
    alice_view = client.get(f"/api/message/{bob.id}", headers=auth_headers(alice)).json()
    assert [item["id"] for item in alice_view] == [message["id"]]
    assert alice_view[0]["deleted_for"] == [bob.id]


def test_delete_defaults_to_me_scope(client, pair, auth_headers):
    alice, bob = pair
    message = _send(client, auth_headers(alice), bob.id, text="hi").json()

    response = client.delete(f"/api/message/{message['id']}", headers=auth_headers(alice))

    assert response.status_code == 200
    assert response.json()["scope"] == "me"


def test_only_sender_may_delete_for_everyone(client, pair, auth_headers):
    alice, bob = pair
    message = _send(client, auth_headers(alice), bob.id, text="keep").json()

    forbidden = client.request(
        "DELETE", f"/api/message/{message['id']}", json={"scope": "everyone"}, headers=auth_headers(bob)
    )
    assert forbidden.status_code == 403
    assert len(client.get(f"/api/message/{alice.id}", headers=auth_headers(bob)).json()) == 1

    allowed = client.request(
        "DELETE", f"/api/message/{message['id']}", json={"scope": "everyone"}, headers=auth_headers(alice)
    )
    assert allowed.status_code == 200
    assert client.get(f"/api/message/{alice.id}", headers=auth_headers(bob)).json() == []
    assert client.get(f"/api/message/{bob.id}", headers=auth_headers(alice)).json() == []


def test_delete_by_outsider_or_unknown_message(client, create_user, auth_headers):
    alice, bob, carol = create_user(), create_user(), create_user()
    message = _send(client, auth_headers(alice), bob.id, text="ours").json()

    outsider = client.request(
        "DELETE", f"/api/message/{message['id']}", json={"scope": "me"}, headers=auth_headers(carol)
    )
    missing = client.request("DELETE", f"/api/message/{'a' * 32}", json={"scope": "me"}, headers=auth_headers(alice))
    malformed = client.request("DELETE", "/api/message/xyz", json={"scope": "me"}, headers=auth_headers(alice))
    bad_scope = client.request(
        "DELETE", f"/api/message/{message['id']}", json={"scope": "nobody"}, headers=auth_headers(alice)
    )

    assert outsider.status_code == 403
    assert missing.status_code == 404
    assert malformed.status_code == 400
    assert bad_scope.status_code == 400


def test_search_is_literal_case_insensitive_and_viewer_filtered(client, create_user, auth_headers):
    alice, bob, carol = create_user(), create_user(), create_user()
    hit = _send(client, auth_headers(alice), bob.id, text="Discount 50% OFF").json()
    _send(client, auth_headers(alice), bob.id, text="Discount 500 off")
    hidden = _send(client, auth_headers(bob), alice.id, text="50% hidden").json()
    other = _send(client, auth_headers(carol), alice.id, text="carol says 50% too").json()
    _send(client, auth_headers(bob), carol.id, text="not alice 50%")

    client.request("DELETE", f"/api/message/{hidden['id']}", json={"scope": "me"}, headers=auth_headers(alice))

    response = client.get("/api/message/search", params={"q": "50%"}, headers=auth_headers(alice))

    assert response.status_code == 200
    results = response.json()
    assert [item["id"] for item in results] == [other["id"], hit["id"]]
    assert [item["partner_id"] for item in results] == [carol.id, bob.id]

    filtered = client.get(
        "/api/message/search",
        params={"q": "discount 50%", "partnerId": bob.id},
        headers=auth_headers(alice),
    ).json()
    assert [item["id"] for item in filtered] == [hit["id"]]


def test_search_underscore_is_not_a_wildcard(client, pair, auth_headers):
    alice, bob = pair
    _send(client, auth_headers(alice), bob.id, text="file_name")
    _send(client, auth_headers(alice), bob.id, text="filename")

    results = client.get("/api/message/search", params={"q": "e_n"}, headers=auth_headers(alice)).json()

    assert [item["text"] for item in results] == ["file_name"]


def test_search_blank_query_and_invalid_partner(client, create_user, auth_headers):
    alice = create_user()

    blank = client.get("/api/message/search", params={"q": "  "}, headers=auth_headers(alice))
    invalid = client.get(
        "/api/message/search", params={"q": "x", "partnerId": "nope"}, headers=auth_headers(alice)
    )

    assert blank.status_code == 200 and blank.json() == []
    assert invalid.status_code == 400
