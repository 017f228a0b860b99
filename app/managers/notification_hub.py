# app/managers/notification_hub.py

"""
Room-based real-time notification hub.

Connections authenticate once, join their own ``user:<id>`` room and may
subscribe to any number of ``post:<id>`` rooms. Membership lives in a
``RoomRegistry`` actor that owns all room state and applies commands from a
single queue, so connection handlers never touch shared sets directly.

``notify`` publishes each event on a store channel; every process runs one
listener that turns channel messages into local deliveries. Delivery is best
effort: a full session outbox drops the event and nothing is replayed.
"""

from asyncio import (
    CancelledError,
    Event,
    Future,
    Queue,
    QueueFull,
    Task,
    create_task,
    get_running_loop,
    sleep,
    timeout,
)
from collections.abc import Awaitable, Callable
from contextlib import suppress
from dataclasses import dataclass, field
from enum import StrEnum
from logging import DEBUG, getLogger
from typing import Any, TypeAlias
from uuid import UUID, uuid4

from pydantic import ValidationError
from redis.exceptions import RedisError

from app.clients.protocols import KeyValueStoreProtocol
from app.configs import NotificationConfig, file_logger
from app.db import async_session_maker
from app.errors import BASE_EXCEPTION, ConnectionAuthError
from app.managers.token_manager import decode_access_token
from app.repositories import UserRepository
from app.schemas.auth import TokenData
from app.schemas.notification import FanoutMessage, HubMessage

logger = file_logger(getLogger(__name__))

STORE_ERRORS = (RedisError, *BASE_EXCEPTION)

TokenVerifier: TypeAlias = Callable[[str], Awaitable[TokenData | None]]

SUBSCRIBE_EVENT = "subscribe:posts"
UNSUBSCRIBE_EVENT = "unsubscribe:posts"
AUTH_EVENT = "auth"


def user_room(user_id: UUID | str) -> str:
    return f"user:{user_id}"


def post_room(post_id: UUID | str) -> str:
    return f"post:{post_id}"


async def verify_connection_token(token: str) -> TokenData | None:
    """Decode a bearer token and check that its user still exists."""
    token_data = decode_access_token(token)
    if token_data is None:
        return None

    async with async_session_maker() as session:
        user = await UserRepository(session).get_by_id(token_data.user_id)
    if user is None:
        logger.warning(f"Real-time token presented for unknown user {token_data.user_id}")
        return None
    return token_data


class ConnectionState(StrEnum):
    CONNECTING = "connecting"
    AUTHENTICATED = "authenticated"
    REJECTED = "rejected"
    DISCONNECTED = "disconnected"


class IllegalTransitionError(RuntimeError):
    """Raised when a session is moved to a state it cannot reach."""


@dataclass(eq=False)
class HubSession:
    """One live connection and its bounded outbox."""

    outbox_size: int = 100
    id: str = field(default_factory=lambda: uuid4().hex)
    state: ConnectionState = ConnectionState.CONNECTING
    user_id: UUID | None = None
    dropped: int = 0
    outbox: Queue[HubMessage] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.outbox = Queue(maxsize=self.outbox_size)

    def _move(self, expected: ConnectionState, target: ConnectionState) -> None:
        if self.state is not expected:
            mssg = f"Session {self.id} cannot go from {self.state} to {target}"
            raise IllegalTransitionError(mssg)
        self.state = target

    def authenticate(self, user_id: UUID) -> None:
        self._move(ConnectionState.CONNECTING, ConnectionState.AUTHENTICATED)
        self.user_id = user_id

    def reject(self) -> None:
        self._move(ConnectionState.CONNECTING, ConnectionState.REJECTED)

    def disconnect(self) -> None:
        self._move(ConnectionState.AUTHENTICATED, ConnectionState.DISCONNECTED)

    @property
    def is_authenticated(self) -> bool:
        return self.state is ConnectionState.AUTHENTICATED

    def offer(self, message: HubMessage) -> bool:
        """Queue a message for the connection, dropping it if the outbox is full."""
        try:
            self.outbox.put_nowait(message)
        except QueueFull:
            self.dropped += 1
            logger.warning(
                f"Outbox full for session {self.id} (user {self.user_id}), "
                f"dropped {message.event}",
            )
            return False
        return True


@dataclass(frozen=True, slots=True)
class Register:
    session: HubSession


@dataclass(frozen=True, slots=True)
class Join:
    session: HubSession
    room: str


@dataclass(frozen=True, slots=True)
class Leave:
    session: HubSession
    room: str


@dataclass(frozen=True, slots=True)
class Release:
    session: HubSession


@dataclass(frozen=True, slots=True)
class Deliver:
    room: str
    message: HubMessage


RegistryCommand: TypeAlias = Register | Join | Leave | Release | Deliver


class RoomRegistry:
    """
    Owner of all room membership state in this process.

    Commands are applied one at a time, in arrival order, by a single task.
    ``send`` returns the command's result once it has been applied.
    """

    def __init__(self) -> None:
        self._inbox: Queue[tuple[RegistryCommand, Future[Any]]] = Queue()
        self._rooms: dict[str, set[HubSession]] = {}
        self._memberships: dict[str, set[str]] = {}
        self._task: Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if not self.running:
            self._task = create_task(self._run(), name="room-registry")

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            with suppress(CancelledError):
                await self._task
            self._task = None

        while not self._inbox.empty():
            _, future = self._inbox.get_nowait()
            if not future.done():
                future.set_exception(RuntimeError("Room registry stopped"))

    async def send(self, command: RegistryCommand) -> Any:  # noqa: ANN401
        if not self.running:
            mssg = "Room registry is not running"
            raise RuntimeError(mssg)
        future: Future[Any] = get_running_loop().create_future()
        await self._inbox.put((command, future))
        return await future

    async def _run(self) -> None:
        while True:
            command, future = await self._inbox.get()
            if future.cancelled():
                continue
            try:
                future.set_result(self._apply(command))
            except (IllegalTransitionError, KeyError, ValueError) as e:
                future.set_exception(e)

    def _apply(self, command: RegistryCommand) -> Any:  # noqa: ANN401
        match command:
            case Register(session):
                if not session.is_authenticated:
                    mssg = f"Session {session.id} is not authenticated"
                    raise IllegalTransitionError(mssg)
                self._memberships.setdefault(session.id, set())
                return True
            case Join(session, room):
                rooms = self._memberships[session.id]
                if room in rooms:
                    return False
                rooms.add(room)
                self._rooms.setdefault(room, set()).add(session)
                return True
            case Leave(session, room):
                rooms = self._memberships.get(session.id, set())
                if room not in rooms:
                    return False
                rooms.discard(room)
                self._remove_member(room, session)
                return True
            case Release(session):
                rooms = self._memberships.pop(session.id, set())
                for room in rooms:
                    self._remove_member(room, session)
                return sorted(rooms)
            case Deliver(room, message):
                return sum(1 for member in self._rooms.get(room, ()) if member.offer(message))

    def _remove_member(self, room: str, session: HubSession) -> None:
        members = self._rooms.get(room)
        if members is None:
            return
        members.discard(session)
        if not members:
            del self._rooms[room]

    def rooms_of(self, session: HubSession) -> set[str]:
        return set(self._memberships.get(session.id, ()))

    def member_count(self, room: str) -> int:
        return len(self._rooms.get(room, ()))

    @property
    def room_count(self) -> int:
        return len(self._rooms)

    @property
    def session_count(self) -> int:
        return len(self._memberships)


@dataclass(frozen=True, slots=True)
class NotifyResult:
    """
    Outcome of one ``notify`` call.

    ``published`` is True when the event went through the store channel.
    ``delivered`` is the number of local members reached when the hub had to
    deliver directly, and ``None`` when delivery was left to the listeners.
    """

    room: str
    event: str
    published: bool
    delivered: int | None = None
    degraded: bool = False


class NotificationHub:
    """Authenticates connections, tracks rooms and fans out events."""

    def __init__(
        self,
        store: KeyValueStoreProtocol,
        config: NotificationConfig | None = None,
        verifier: TokenVerifier = verify_connection_token,
    ) -> None:
        self.store = store
        self.config = config or NotificationConfig()
        self.verifier = verifier
        self.registry = RoomRegistry()
        self.distributed = False
        self._listener: Task[None] | None = None
        self._ready = Event()

    async def start(self) -> None:
        """Start the registry and the channel listener."""
        await self.registry.start()
        if self._listener is None:
            self._ready.clear()
            self._listener = create_task(self._listen(), name="notification-listener")
            await self._ready.wait()
        logger.info(
            f"Notification hub started ({'distributed' if self.distributed else 'local only'}).",
        )

    async def stop(self) -> None:
        if self._listener is not None:
            self._listener.cancel()
            with suppress(CancelledError):
                await self._listener
            self._listener = None
        await self.registry.stop()
        logger.info("Notification hub stopped.")

    async def _listen(self) -> None:
        """
        Relay channel messages to local rooms until cancelled.

        A failed or closed subscription is retried with exponential backoff;
        while it is down ``notify`` delivers to local members only.
        """
        channel = self.config.channel
        delay = self.config.reconnect_delay
        while True:
            try:
                async with self.store.subscribe(channel) as messages:
                    self.distributed = True
                    self._ready.set()
                    delay = self.config.reconnect_delay
                    logger.info(f"Listening for notifications on channel {channel}")
                    async for raw in messages:
                        await self._dispatch(raw)
            except STORE_ERRORS as e:
                logger.warning(
                    f"Notification listener on channel {channel} failed, "
                    f"retrying in {delay:.1f}s: {str(e) or type(e).__name__}",
                )
            finally:
                self.distributed = False
                self._ready.set()

            await sleep(delay)
            delay = min(delay * 2, self.config.max_reconnect_delay)

    async def _dispatch(self, raw: str) -> None:
        try:
            message = FanoutMessage.model_validate_json(raw)
        except ValidationError:
            logger.warning(f"Ignoring malformed notification: {raw[:200]}")
            return
        delivered = await self.registry.send(Deliver(message.room, message.for_client()))
        if logger.isEnabledFor(DEBUG):
            logger.debug(
                "Delivered %s to %d member(s) of %s",
                message.event,
                delivered,
                message.room,
            )

    def handshake_token(self, raw: str) -> str | None:
        """Extract the token from a first ``{"event": "auth", "data": token}`` message."""
        try:
            message = HubMessage.model_validate_json(raw)
        except ValidationError:
            return None
        if message.event == AUTH_EVENT and isinstance(message.data, str) and message.data:
            return message.data
        return None

    async def connect(self, token: str | None) -> HubSession:
        """
        Authenticate a new connection and join its user room.

        Raises:
            ConnectionAuthError: If the token is missing, invalid or names an
                unknown user. No registry state exists for the rejected session.
        """
        session = HubSession(outbox_size=self.config.outbox_size)
        token_data = await self.verifier(token) if token else None
        if token_data is None:
            session.reject()
            logger.warning(f"Rejected real-time connection {session.id}: invalid credentials")
            raise ConnectionAuthError

        session.authenticate(token_data.user_id)
        await self.registry.send(Register(session))
        await self.registry.send(Join(session, user_room(token_data.user_id)))
        session.offer(HubMessage(event="connected", data={"userId": str(token_data.user_id)}))
        logger.info(f"User {token_data.user_id} connected (session {session.id})")
        return session

    async def subscribe(self, session: HubSession, post_id: str) -> bool:
        return await self.registry.send(Join(session, post_room(post_id)))

    async def unsubscribe(self, session: HubSession, post_id: str) -> bool:
        return await self.registry.send(Leave(session, post_room(post_id)))

    async def handle_client_event(self, session: HubSession, raw: str) -> HubMessage:
        """Apply one client message and return the reply to send back."""
        try:
            message = HubMessage.model_validate_json(raw)
        except ValidationError:
            return HubMessage(event="error", data={"message": "Malformed message"})

        if message.event not in {SUBSCRIBE_EVENT, UNSUBSCRIBE_EVENT}:
            return HubMessage(event="error", data={"message": f"Unknown event: {message.event}"})

        post_id = message.data
        if isinstance(post_id, int) and not isinstance(post_id, bool):
            post_id = str(post_id)
        if not isinstance(post_id, str) or not post_id:
            return HubMessage(event="error", data={"message": "A post id is required"})

        if message.event == SUBSCRIBE_EVENT:
            await self.subscribe(session, post_id)
            return HubMessage(event="subscribed:posts", data={"postId": post_id})
        await self.unsubscribe(session, post_id)
        return HubMessage(event="unsubscribed:posts", data={"postId": post_id})

    async def disconnect(self, session: HubSession) -> list[str]:
        """Release every room of the session. Safe to call more than once."""
        if not session.is_authenticated:
            return []
        rooms: list[str] = await self.registry.send(Release(session))
        session.disconnect()
        logger.info(f"User {session.user_id} disconnected (session {session.id})")
        return rooms

    async def notify(self, room: str, event: str, payload: Any) -> NotifyResult:  # noqa: ANN401
        """
        Send an event to every connection in ``room``.

        The event is published on the store channel. When publishing is not
        possible it is delivered to members connected to this process only,
        and the result is marked degraded. Never raises for store failures.
        """
        message = FanoutMessage(room=room, event=event, data=payload)
        if self.distributed:
            try:
                async with timeout(self.config.publish_timeout):
                    await self.store.publish(self.config.channel, message.model_dump_json())
            except STORE_ERRORS as e:
                logger.warning(
                    f"Publishing {event} to {room} failed, delivering locally: "
                    f"{str(e) or type(e).__name__}",
                )
            else:
                return NotifyResult(room=room, event=event, published=True)

        delivered = await self.registry.send(Deliver(room, message.for_client()))
        return NotifyResult(
            room=room,
            event=event,
            published=False,
            delivered=delivered,
            degraded=True,
        )

    def status(self) -> dict[str, Any]:
        return {
            "distributed": self.distributed,
            "connections": self.registry.session_count,
            "rooms": self.registry.room_count,
        }
