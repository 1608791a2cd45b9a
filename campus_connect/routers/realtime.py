import asyncio
from contextlib import contextmanager
from typing import Iterator, Optional

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status
from sqlalchemy.orm import Session

from campus_connect.db.session import get_sync_session
from campus_connect.middlewares.auth_middleware import load_active_user
from campus_connect.services.chat_service import ChatService
from campus_connect.services.game_service import GameService
from campus_connect.services.realtime import Subscription, broker, chat_channel, game_channel
from campus_connect.utils.context import set_user_id
from campus_connect.utils.logging import get_logger

websocket_router = APIRouter()
logger = get_logger()


@contextmanager
def _db_session(websocket: WebSocket) -> Iterator[Session]:
    """A session from the (possibly overridden) request dependency"""
    provider = websocket.app.dependency_overrides.get(get_sync_session, get_sync_session)
    sessions = provider()
    try:
        yield next(sessions)
    finally:
        sessions.close()


async def _reject(websocket: WebSocket, reason: str) -> None:
    logger.warning(f"Rejected websocket {websocket.url.path}: {reason}")
    await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=reason)


async def _stream(websocket: WebSocket, subscription: Subscription) -> None:
    """Forward broker events until the client goes away; answers "ping" text frames"""

    async def forward():
        while True:
            await websocket.send_json(await subscription.get())

    async def listen():
        while True:
            if await websocket.receive_text() == "ping":
                await websocket.send_json({"event": "pong"})

    tasks = [asyncio.create_task(forward()), asyncio.create_task(listen())]
    done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
    for task in pending:
        task.cancel()
    for task in done:
        error = task.exception()
        if error and not isinstance(error, WebSocketDisconnect):
            raise error


@websocket_router.websocket("/chat/rooms/{room_id}")
async def chat_room_socket(
    websocket: WebSocket,
    room_id: int,
    token: Optional[str] = Query(default=None),
    after_id: Optional[int] = Query(default=None, ge=0),
):
    """
    Live messages for one chat room.

    Subscribes before replaying stored messages newer than `after_id`, so a
    message can arrive twice but never be missed. Clients de-duplicate by id.
    """
    channel = chat_channel(room_id)
    with _db_session(websocket) as db:
        user = load_active_user(db, token)
        if not user:
            await _reject(websocket, "TOKEN_INVALID")
            return
        set_user_id(user.id)

        chat_service = ChatService(db)
        try:
            await chat_service.get_participant(user.id, room_id)
        except ValueError as e:
            await _reject(websocket, str(e))
            return

        await websocket.accept()
        subscription = broker.subscribe(channel)
        logger.info(f"User {user.id} connected to {channel}")

        try:
            if after_id is not None:
                replay = await chat_service.messages_after(user.id, room_id, after_id)
                for message in replay:
                    await websocket.send_json(
                        {
                            "event": "message.created",
                            "channel": channel,
                            "data": message.model_dump(by_alias=True),
                            "replay": True,
                        }
                    )
        except WebSocketDisconnect:
            broker.unsubscribe(subscription)
            return

    try:
        await _stream(websocket, subscription)
    finally:
        broker.unsubscribe(subscription)
        logger.info(f"User {user.id} disconnected from {channel}")


@websocket_router.websocket("/games/rooms/{code}")
async def game_room_socket(
    websocket: WebSocket,
    code: str,
    token: Optional[str] = Query(default=None),
):
    """
    Room snapshot on connect, then every update. Open to players and spectators.

    Subscribes before reading the snapshot, so an update racing the connect is
    still delivered. Clients drop events whose `version` is not newer than
    what they hold.
    """
    channel = game_channel(code)
    with _db_session(websocket) as db:
        user = load_active_user(db, token)
        if not user:
            await _reject(websocket, "TOKEN_INVALID")
            return
        set_user_id(user.id)

        subscription = broker.subscribe(channel)
        try:
            snapshot = await GameService(db).get_room(user.id, code)
        except ValueError as e:
            broker.unsubscribe(subscription)
            await _reject(websocket, str(e))
            return

        try:
            await websocket.accept()
            logger.info(f"User {user.id} watching {channel}")
            await websocket.send_json(
                {
                    "event": "room.snapshot",
                    "channel": channel,
                    "data": snapshot.model_dump(by_alias=True),
                }
            )
        except WebSocketDisconnect:
            broker.unsubscribe(subscription)
            return

    try:
        await _stream(websocket, subscription)
    finally:
        broker.unsubscribe(subscription)
        logger.info(f"User {user.id} left {channel}")
