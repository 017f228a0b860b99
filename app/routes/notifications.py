# app/routes/notifications.py

"""
Real-time notification endpoints.

Clients connect to `/ws` and authenticate with a bearer token given as the
`token` query parameter, an `Authorization: Bearer` header, or a first
message `{"event": "auth", "data": "<token>"}`. They then send
`subscribe:posts` / `unsubscribe:posts` events carrying a post id and receive
`new:comment`, `update:post` and `notification` events.
"""

from asyncio import Task, create_task, gather, timeout
from logging import getLogger
from typing import Annotated

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect
from fastapi.responses import ORJSONResponse

from app.configs import file_logger
from app.dependencies import HubDep
from app.errors import ConnectionAuthError
from app.managers.notification_hub import HubSession, NotificationHub
from app.schemas import HubMessage, HubStatusResponse

logger = file_logger(getLogger(__name__))

router = APIRouter(tags=["🔔 Notifications"])

TEXT_FRAMES_ONLY = HubMessage(event="error", data={"message": "Only text frames are accepted"})


def bearer_token(authorization: str | None) -> str | None:
    """Return the credentials of an `Authorization: Bearer` header, if any."""
    if not authorization:
        return None
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() != "bearer" or not credentials.strip():
        return None
    return credentials.strip()


async def receive_client_text(websocket: WebSocket) -> str | None:
    """
    Wait for the next client frame.

    Returns the frame's text, or None for a binary frame.

    Raises:
        WebSocketDisconnect: If the client closed the connection.
    """
    message = await websocket.receive()
    if message["type"] == "websocket.disconnect":
        raise WebSocketDisconnect(message.get("code", 1000), message.get("reason"))
    return message.get("text")


async def await_auth_message(websocket: WebSocket, hub: NotificationHub) -> str | None:
    """Wait for the first client message and read a token from it."""
    try:
        async with timeout(hub.config.handshake_timeout):
            raw = await receive_client_text(websocket)
    except TimeoutError:
        logger.warning("Real-time handshake timed out")
        return None
    return hub.handshake_token(raw) if raw is not None else None


async def pump_outbox(websocket: WebSocket, session: HubSession) -> None:
    """Forward queued events to the client in order."""
    while True:
        message = await session.outbox.get()
        await websocket.send_text(message.model_dump_json())


@router.websocket("/ws")
async def notifications_socket(
    websocket: WebSocket,
    token: Annotated[str | None, Query()] = None,
) -> None:
    """
    Serve one real-time connection.

    Parameters
    ----------
    websocket : WebSocket
        Client connection.
    token : str | None
        Optional bearer token from the query string.
    """
    hub: NotificationHub = websocket.app.state.notification_hub
    await websocket.accept()

    try:
        token = token or bearer_token(websocket.headers.get("authorization"))
        if token is None:
            token = await await_auth_message(websocket, hub)
        session = await hub.connect(token)
    except WebSocketDisconnect:
        logger.info("Client left during the real-time handshake")
        return
    except ConnectionAuthError as e:
        await websocket.close(code=e.close_code, reason=e.detail)
        return

    writer: Task[None] = create_task(pump_outbox(websocket, session))
    try:
        while True:
            raw = await receive_client_text(websocket)
            if raw is None:
                session.offer(TEXT_FRAMES_ONLY)
                continue
            session.offer(await hub.handle_client_event(session, raw))
    except WebSocketDisconnect:
        pass
    finally:
        writer.cancel()
        await gather(writer, return_exceptions=True)
        await hub.disconnect(session)


@router.get(
    "/notifications/status",
    response_model=HubStatusResponse,
    summary="Get notification hub status",
    response_class=ORJSONResponse,
)
async def notifications_status(hub: HubDep) -> ORJSONResponse:
    """Local connection and room counts, and whether cross-process fan-out is active."""
    return ORJSONResponse(HubStatusResponse.model_validate(hub.status()).model_dump())
