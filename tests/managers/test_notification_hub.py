"""Tests for app/managers/notification_hub.py."""

import asyncio
from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock
from uuid import UUID, uuid4

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from app.clients import MemoryClient
from app.configs import NotificationConfig
from app.errors import ConnectionAuthError
from app.managers.notification_hub import (
    ConnectionState,
    Deliver,
    HubSession,
    IllegalTransitionError,
    Join,
    Leave,
    NotificationHub,
    Register,
    Release,
    RoomRegistry,
    post_room,
    user_room,
)
from app.schemas import HubMessage
from app.schemas.auth import TokenData

ALICE = uuid4()
BOB = uuid4()
TOKENS = {"alice-token": ALICE, "bob-token": BOB}


async def fake_verifier(token: str) -> TokenData | None:
    user_id = TOKENS.get(token)
    if user_id is None:
        return None
    return TokenData(user_id=user_id, username=token.split("-")[0], jti=uuid4().hex)


@pytest.fixture
def hub_config() -> NotificationConfig:
    return NotificationConfig(outbox_size=3, publish_timeout=0.2)


@pytest.fixture
async def hub(
    memory_client: MemoryClient,
    hub_config: NotificationConfig,
) -> AsyncGenerator[NotificationHub]:
    notification_hub = NotificationHub(memory_client, hub_config, verifier=fake_verifier)
    await notification_hub.start()
    yield notification_hub
    await notification_hub.stop()


async def next_event(session: HubSession, timeout: float = 1.0) -> HubMessage:
    return await asyncio.wait_for(session.outbox.get(), timeout)


async def connect(hub: NotificationHub, token: str) -> HubSession:
    """Connect and consume the welcome event."""
    session = await hub.connect(token)
    assert (await next_event(session)).event == "connected"
    return session


class TestHubSession:
    """Tests for the connection state machine."""

    def test_happy_path(self) -> None:
        session = HubSession()
        assert session.state is ConnectionState.CONNECTING
        session.authenticate(ALICE)
        assert session.is_authenticated
        session.disconnect()
        assert session.state is ConnectionState.DISCONNECTED

    def test_rejected_session_cannot_authenticate(self) -> None:
        session = HubSession()
        session.reject()
        with pytest.raises(IllegalTransitionError):
            session.authenticate(ALICE)

    def test_cannot_disconnect_before_authenticating(self) -> None:
        with pytest.raises(IllegalTransitionError):
            HubSession().disconnect()

    def test_full_outbox_drops(self) -> None:
        session = HubSession(outbox_size=1)
        assert session.offer(HubMessage(event="a")) is True
        assert session.offer(HubMessage(event="b")) is False
        assert session.dropped == 1


class TestRoomRegistry:
    """Tests for the registry actor."""

    @pytest.fixture
    async def registry(self) -> AsyncGenerator[RoomRegistry]:
        room_registry = RoomRegistry()
        await room_registry.start()
        yield room_registry
        await room_registry.stop()

    @staticmethod
    def authenticated() -> HubSession:
        session = HubSession()
        session.authenticate(uuid4())
        return session

    async def test_requires_running_actor(self) -> None:
        with pytest.raises(RuntimeError, match="not running"):
            await RoomRegistry().send(Release(self.authenticated()))

    async def test_register_requires_authentication(self, registry: RoomRegistry) -> None:
        with pytest.raises(IllegalTransitionError):
            await registry.send(Register(HubSession()))

    async def test_join_leave_deliver(self, registry: RoomRegistry) -> None:
        member, outsider = self.authenticated(), self.authenticated()
        for session in (member, outsider):
            await registry.send(Register(session))

        assert await registry.send(Join(member, "post:1")) is True
        assert await registry.send(Join(member, "post:1")) is False
        assert await registry.send(Deliver("post:1", HubMessage(event="ping"))) == 1
        assert outsider.outbox.empty()

        assert await registry.send(Leave(member, "post:1")) is True
        assert await registry.send(Leave(member, "post:1")) is False
        assert registry.room_count == 0

    async def test_join_unregistered_session_fails(self, registry: RoomRegistry) -> None:
        with pytest.raises(KeyError):
            await registry.send(Join(self.authenticated(), "post:1"))


class TestConnect:
    """Tests for the handshake."""

    async def test_valid_token_joins_user_room(self, hub: NotificationHub) -> None:
        session = await hub.connect("alice-token")

        welcome = await next_event(session)
        assert welcome.event == "connected"
        assert welcome.data == {"userId": str(ALICE)}
        assert hub.registry.rooms_of(session) == {user_room(ALICE)}

    @pytest.mark.parametrize("token", [None, "", "forged-token"])
    async def test_invalid_token_is_rejected_without_state(
        self,
        hub: NotificationHub,
        token: str | None,
    ) -> None:
        with pytest.raises(ConnectionAuthError) as exc_info:
            await hub.connect(token)

        assert exc_info.value.close_code == 4401
        assert exc_info.value.detail == "Authentication error"
        assert hub.registry.session_count == 0
        assert hub.registry.room_count == 0

    def test_handshake_token(self, hub: NotificationHub) -> None:
        assert hub.handshake_token('{"event": "auth", "data": "alice-token"}') == "alice-token"
        assert hub.handshake_token('{"event": "subscribe:posts", "data": "1"}') is None
        assert hub.handshake_token("not json") is None


class TestClientEvents:
    """Tests for subscribe and unsubscribe."""

    async def test_subscribe_is_acknowledged_and_idempotent(self, hub: NotificationHub) -> None:
        session = await connect(hub, "alice-token")

        for _ in range(2):
            reply = await hub.handle_client_event(
                session,
                '{"event": "subscribe:posts", "data": "42"}',
            )
            assert reply.event == "subscribed:posts"
            assert reply.data == {"postId": "42"}

        assert hub.registry.member_count(post_room("42")) == 1

    async def test_numeric_post_id(self, hub: NotificationHub) -> None:
        session = await connect(hub, "alice-token")
        reply = await hub.handle_client_event(session, '{"event": "subscribe:posts", "data": 7}')
        assert reply.data == {"postId": "7"}

    async def test_unsubscribe(self, hub: NotificationHub) -> None:
        session = await connect(hub, "alice-token")
        await hub.subscribe(session, "42")

        reply = await hub.handle_client_event(
            session,
            '{"event": "unsubscribe:posts", "data": "42"}',
        )

        assert reply.event == "unsubscribed:posts"
        assert hub.registry.member_count(post_room("42")) == 0
        assert post_room("42") not in hub.registry.rooms_of(session)

    @pytest.mark.parametrize(
        "raw",
        [
            "not json",
            '{"event": "dance"}',
            '{"event": "subscribe:posts"}',
            '{"event": "subscribe:posts", "data": {"id": 1}}',
        ],
    )
    async def test_bad_messages_get_error_event(self, hub: NotificationHub, raw: str) -> None:
        session = await connect(hub, "alice-token")
        reply = await hub.handle_client_event(session, raw)
        assert reply.event == "error"
        assert "message" in reply.data


class TestNotify:
    """Tests for fan-out."""

    async def test_members_receive_and_non_members_do_not(self, hub: NotificationHub) -> None:
        alice = await connect(hub, "alice-token")
        bob = await connect(hub, "bob-token")
        await hub.subscribe(alice, "42")

        result = await hub.notify(post_room("42"), "new:comment", {"id": "c1"})

        assert result.published
        assert not result.degraded
        event = await next_event(alice)
        assert (event.event, event.data) == ("new:comment", {"id": "c1"})
        await asyncio.sleep(0.05)
        assert bob.outbox.empty()

    async def test_user_room_notification(self, hub: NotificationHub) -> None:
        bob = await connect(hub, "bob-token")
        await hub.notify(user_room(BOB), "notification", {"type": "new-comment"})
        assert (await next_event(bob)).data == {"type": "new-comment"}

    async def test_order_is_preserved(self, hub: NotificationHub) -> None:
        alice = await connect(hub, "alice-token")
        await hub.subscribe(alice, "42")

        for i in range(3):
            await hub.notify(post_room("42"), "update:post", {"n": i})

        received = [(await next_event(alice)).data["n"] for _ in range(3)]
        assert received == [0, 1, 2]

    async def test_overflow_drops_events(self, hub: NotificationHub) -> None:
        alice = await connect(hub, "alice-token")
        await hub.subscribe(alice, "42")

        for i in range(5):
            await hub.notify(post_room("42"), "update:post", {"n": i})
        await asyncio.sleep(0.1)

        assert alice.outbox.qsize() == 3
        assert alice.dropped == 2

    async def test_publish_failure_delivers_locally(
        self,
        hub: NotificationHub,
        memory_client: MemoryClient,
    ) -> None:
        alice = await connect(hub, "alice-token")
        await hub.subscribe(alice, "42")
        failing_publish = AsyncMock(side_effect=RedisConnectionError("down"))
        memory_client.publish = failing_publish  # type: ignore[method-assign]

        result = await hub.notify(post_room("42"), "new:comment", {"id": "c1"})

        assert result.degraded
        assert not result.published
        assert result.delivered == 1
        assert (await next_event(alice)).event == "new:comment"

    async def test_empty_room(self, hub: NotificationHub) -> None:
        result = await hub.notify(post_room("nobody"), "new:comment", {})
        assert result.published


class TestDisconnect:
    """Tests for cleanup."""

    async def test_releases_all_rooms(self, hub: NotificationHub) -> None:
        alice = await connect(hub, "alice-token")
        await hub.subscribe(alice, "1")
        await hub.subscribe(alice, "2")

        rooms = await hub.disconnect(alice)

        assert rooms == sorted([user_room(ALICE), post_room("1"), post_room("2")])
        assert hub.registry.room_count == 0
        assert hub.registry.session_count == 0
        assert alice.state is ConnectionState.DISCONNECTED

    async def test_shared_room_survives(self, hub: NotificationHub) -> None:
        alice = await connect(hub, "alice-token")
        bob = await connect(hub, "bob-token")
        await hub.subscribe(alice, "1")
        await hub.subscribe(bob, "1")

        await hub.disconnect(alice)

        assert hub.registry.member_count(post_room("1")) == 1
        assert await hub.disconnect(alice) == []

    async def test_status(self, hub: NotificationHub) -> None:
        await connect(hub, "alice-token")
        status = hub.status()
        assert status == {"distributed": True, "connections": 1, "rooms": 1}


def test_room_names() -> None:
    room_id = UUID("12345678-1234-5678-1234-567812345678")
    assert user_room(room_id) == "user:12345678-1234-5678-1234-567812345678"
    assert post_room("42") == "post:42"


class BrokenChannel:
    """Channel iterator that fails on the first read."""

    def __aiter__(self) -> "BrokenChannel":
        return self

    async def __anext__(self) -> str:
        raise RedisConnectionError("Connection reset by peer")


class FlakyChannelStore:
    """Memory store whose first channel subscription breaks."""

    def __init__(self, store: MemoryClient) -> None:
        self.store = store
        self.subscriptions = 0

    def __getattr__(self, name: str) -> object:
        return getattr(self.store, name)

    @asynccontextmanager
    async def subscribe(self, channel: str) -> AsyncGenerator[AsyncIterator[str]]:
        self.subscriptions += 1
        if self.subscriptions == 1:
            yield BrokenChannel()
            return
        async with self.store.subscribe(channel) as messages:
            yield messages


async def wait_until_distributed(hub: NotificationHub, attempts: int = 100) -> None:
    for _ in range(attempts):
        if hub.distributed:
            return
        await asyncio.sleep(0.01)


class TestListener:
    """Tests for the channel listener."""

    async def test_resubscribes_after_channel_failure(self, memory_client: MemoryClient) -> None:
        store = FlakyChannelStore(memory_client)
        config = NotificationConfig(reconnect_delay=0.01, max_reconnect_delay=0.05)
        hub = NotificationHub(store, config, verifier=fake_verifier)  # type: ignore[arg-type]
        await hub.start()
        try:
            await asyncio.sleep(0.05)
            await wait_until_distributed(hub)

            assert store.subscriptions == 2
            assert hub.status()["distributed"] is True

            alice = await connect(hub, "alice-token")
            result = await hub.notify(user_room(ALICE), "notification", {"n": 1})

            assert result.published
            assert (await next_event(alice)).data == {"n": 1}
        finally:
            await hub.stop()

    async def test_stop_cancels_retry_loop(self, memory_client: MemoryClient) -> None:
        memory_client.subscribe = MagicMock(  # type: ignore[method-assign]
            side_effect=RedisConnectionError("Connection refused"),
        )
        hub = NotificationHub(memory_client, NotificationConfig(reconnect_delay=0.01))
        await hub.start()

        assert hub.distributed is False
        await asyncio.sleep(0.05)
        assert memory_client.subscribe.call_count > 1

        await hub.stop()
        assert hub.status()["distributed"] is False
