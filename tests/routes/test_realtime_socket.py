"""Tests for the /ws real-time endpoint."""

from collections.abc import Awaitable, Callable, Generator
from typing import TypeAlias
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from app.configs import NotificationConfig
from app.main import app
from app.managers.notification_hub import NotificationHub, post_room
from app.managers.rate_limiter import limiter
from app.managers.token_manager import create_access_token
from app.models import UserDB

AuthFactory: TypeAlias = Callable[[UserDB], dict[str, str]]


@pytest.fixture
def live() -> Generator[TestClient]:
    """Synchronous client with the application lifespan running."""
    limiter.enabled = False
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def alice(live: TestClient, make_user: Callable[..., Awaitable[UserDB]]) -> UserDB:
    return live.portal.call(make_user, "alice", "Alice")


@pytest.fixture
def bob(live: TestClient, make_user: Callable[..., Awaitable[UserDB]]) -> UserDB:
    return live.portal.call(make_user, "bob", "Bob")


def token_of(auth_for: AuthFactory, user: UserDB) -> str:
    return auth_for(user)["Authorization"].removeprefix("Bearer ")


def hub_of(live: TestClient) -> NotificationHub:
    return live.app.state.notification_hub  # type: ignore[attr-defined]


class TestHandshake:
    """Tests for the three ways of authenticating."""

    def test_query_token(self, live: TestClient, alice: UserDB, auth_for: AuthFactory) -> None:
        with live.websocket_connect(f"/ws?token={token_of(auth_for, alice)}") as ws:
            welcome = ws.receive_json()
        assert welcome == {"event": "connected", "data": {"userId": str(alice.uuid)}}

    def test_authorization_header(
        self,
        live: TestClient,
        alice: UserDB,
        auth_for: AuthFactory,
    ) -> None:
        with live.websocket_connect("/ws", headers=auth_for(alice)) as ws:
            assert ws.receive_json()["event"] == "connected"

    def test_auth_message(self, live: TestClient, alice: UserDB, auth_for: AuthFactory) -> None:
        with live.websocket_connect("/ws") as ws:
            ws.send_json({"event": "auth", "data": token_of(auth_for, alice)})
            assert ws.receive_json()["event"] == "connected"

    def test_bad_token_is_rejected(self, live: TestClient) -> None:
        with (
            pytest.raises(WebSocketDisconnect) as exc_info,
            live.websocket_connect("/ws?token=forged") as ws,
        ):
            ws.receive_json()

        assert exc_info.value.code == 4401
        assert exc_info.value.reason == "Authentication error"
        assert hub_of(live).status()["connections"] == 0

    def test_first_message_without_token_is_rejected(self, live: TestClient) -> None:
        with (
            pytest.raises(WebSocketDisconnect) as exc_info,
            live.websocket_connect("/ws") as ws,
        ):
            ws.send_json({"event": "subscribe:posts", "data": "1"})
            ws.receive_json()

        assert exc_info.value.code == 4401

    def test_token_of_unknown_user_is_rejected(self, live: TestClient) -> None:
        token = create_access_token(user_id=uuid4(), username="ghost")
        with (
            pytest.raises(WebSocketDisconnect) as exc_info,
            live.websocket_connect(f"/ws?token={token}") as ws,
        ):
            ws.receive_json()

        assert exc_info.value.code == 4401
        assert exc_info.value.reason == "Authentication error"
        assert hub_of(live).status()["connections"] == 0

    def test_silent_client_is_closed_after_handshake_timeout(self, live: TestClient) -> None:
        hub_of(live).config = NotificationConfig(handshake_timeout=0.1)
        with (
            pytest.raises(WebSocketDisconnect) as exc_info,
            live.websocket_connect("/ws") as ws,
        ):
            ws.receive_json()

        assert exc_info.value.code == 4401
        assert hub_of(live).status()["connections"] == 0

    def test_binary_handshake_is_rejected(self, live: TestClient) -> None:
        with (
            pytest.raises(WebSocketDisconnect) as exc_info,
            live.websocket_connect("/ws") as ws,
        ):
            ws.send_bytes(b"\x00\x01")
            ws.receive_json()

        assert exc_info.value.code == 4401


class TestRooms:
    """Tests for subscriptions and deliveries over a real socket."""

    def test_subscribe_and_receive(
        self,
        live: TestClient,
        alice: UserDB,
        auth_for: AuthFactory,
    ) -> None:
        hub = hub_of(live)
        with live.websocket_connect("/ws", headers=auth_for(alice)) as ws:
            ws.receive_json()
            ws.send_json({"event": "subscribe:posts", "data": "42"})
            assert ws.receive_json() == {"event": "subscribed:posts", "data": {"postId": "42"}}

            live.portal.call(hub.notify, post_room("42"), "update:post", {"title": "New"})

            assert ws.receive_json() == {"event": "update:post", "data": {"title": "New"}}

    def test_invalid_event_gets_error(
        self,
        live: TestClient,
        alice: UserDB,
        auth_for: AuthFactory,
    ) -> None:
        with live.websocket_connect("/ws", headers=auth_for(alice)) as ws:
            ws.receive_json()
            ws.send_text("not json")
            reply = ws.receive_json()
            assert reply["event"] == "error"
            assert "message" in reply["data"]

    def test_binary_frame_gets_error_and_socket_stays_open(
        self,
        live: TestClient,
        alice: UserDB,
        auth_for: AuthFactory,
    ) -> None:
        with live.websocket_connect("/ws", headers=auth_for(alice)) as ws:
            ws.receive_json()
            ws.send_bytes(b"\x00\x01")
            assert ws.receive_json() == {
                "event": "error",
                "data": {"message": "Only text frames are accepted"},
            }

            ws.send_json({"event": "subscribe:posts", "data": "42"})
            assert ws.receive_json()["event"] == "subscribed:posts"

    def test_status_counts_live_rooms(
        self,
        live: TestClient,
        alice: UserDB,
        auth_for: AuthFactory,
    ) -> None:
        with live.websocket_connect("/ws", headers=auth_for(alice)) as ws:
            ws.receive_json()
            ws.send_json({"event": "subscribe:posts", "data": "42"})
            ws.receive_json()
            status = live.get("/notifications/status").json()
            assert status == {"distributed": True, "connections": 1, "rooms": 2}

            ws.send_json({"event": "unsubscribe:posts", "data": "42"})
            assert ws.receive_json()["event"] == "unsubscribed:posts"
            assert live.get("/notifications/status").json()["rooms"] == 1

    def test_comment_notifies_subscribers_and_author(
        self,
        live: TestClient,
        alice: UserDB,
        bob: UserDB,
        auth_for: AuthFactory,
    ) -> None:
        created = live.post(
            "/api/posts",
            json={"title": "Live", "content": "Watch this space"},
            headers=auth_for(alice),
        )
        post_id = created.json()["data"]["id"]

        with live.websocket_connect("/ws", headers=auth_for(alice)) as ws:
            ws.receive_json()
            ws.send_json({"event": "subscribe:posts", "data": post_id})
            ws.receive_json()

            response = live.post(
                f"/api/posts/{post_id}/comments",
                json={"content": "First!"},
                headers=auth_for(bob),
            )
            assert response.status_code == 201

            comment = ws.receive_json()
            assert comment["event"] == "new:comment"
            assert comment["data"]["content"] == "First!"

            notification = ws.receive_json()
            assert notification["event"] == "notification"
            assert notification["data"]["type"] == "new-comment"
            assert notification["data"]["postId"] == post_id
            assert notification["data"]["message"] == "Bob commented on your post"
