from typing import List, Optional, Tuple

from fastapi import Depends
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from campus_connect.db.models import (
    ChatMessage,
    ChatRoom,
    ChatRoomParticipant,
    ChatRoomType,
    User,
)
from campus_connect.db.session import get_sync_session
from campus_connect.schemas.chat_schemas import (
    ChatMessageResponse,
    ChatRoomResponse,
    ReplyPreview,
    SendMessageRequest,
)
from campus_connect.services.friend_service import FriendService
from campus_connect.services.realtime import broker, chat_channel
from campus_connect.services.user_service import to_user_summary
from campus_connect.utils.datetime_utils import naive_utc_now
from campus_connect.utils.logging import get_logger

logger = get_logger()


def direct_room_key(user_a: int, user_b: int) -> str:
    low, high = sorted((user_a, user_b))
    return f"{low}:{high}"


def to_message_response(message: ChatMessage) -> ChatMessageResponse:
    reply = message.reply_to
    return ChatMessageResponse(
        id=message.id,
        room_id=message.room_id,
        sender=to_user_summary(message.sender),
        message=message.message,
        message_type=message.message_type,
        reply_to=(
            ReplyPreview(
                id=reply.id, message=reply.message, sender_name=reply.sender.full_name
            )
            if reply is not None and not reply.is_deleted
            else None
        ),
        created_at=message.created_at,
    )


class ChatService:
    """Friends-only direct rooms, messages and per-participant read cursors"""

    def __init__(self, db_session: Session):
        self.db = db_session

    def _message_query(self):
        return select(ChatMessage).options(
            selectinload(ChatMessage.sender).selectinload(User.student_profile),
            selectinload(ChatMessage.reply_to).selectinload(ChatMessage.sender),
        )

    async def get_participant(self, user_id: int, room_id: int) -> ChatRoomParticipant:
        """The caller's participant row; raises when the room is missing or not theirs"""
        participant = self.db.execute(
            select(ChatRoomParticipant).where(
                ChatRoomParticipant.room_id == room_id,
                ChatRoomParticipant.user_id == user_id,
            )
        ).scalar_one_or_none()
        if participant:
            return participant

        exists = self.db.execute(select(ChatRoom.id).where(ChatRoom.id == room_id)).first()
        if not exists:
            raise ValueError("CHAT_ROOM_NOT_FOUND")
        raise ValueError("NOT_A_PARTICIPANT")

    def _load_room(self, room_id: int) -> ChatRoom:
        return self.db.execute(
            select(ChatRoom)
            .options(
                selectinload(ChatRoom.participants)
                .selectinload(ChatRoomParticipant.user)
                .selectinload(User.student_profile)
            )
            .where(ChatRoom.id == room_id)
        ).scalar_one()

    def _last_message(self, room_id: int) -> Optional[ChatMessage]:
        return (
            self.db.execute(
                self._message_query()
                .where(ChatMessage.room_id == room_id, ChatMessage.is_deleted == False)
                .order_by(ChatMessage.id.desc())
                .limit(1)
            )
            .scalars()
            .first()
        )

    def _unread_count(self, participant: ChatRoomParticipant) -> int:
        return (
            self.db.execute(
                select(func.count(ChatMessage.id)).where(
                    ChatMessage.room_id == participant.room_id,
                    ChatMessage.created_at > participant.last_read_at,
                    ChatMessage.sender_id != participant.user_id,
                    ChatMessage.is_deleted == False,
                )
            ).scalar()
            or 0
        )

    def _to_room_response(self, room: ChatRoom, user_id: int) -> ChatRoomResponse:
        mine = next(p for p in room.participants if p.user_id == user_id)
        others = [p.user for p in room.participants if p.user_id != user_id]
        name = room.name
        if room.type == ChatRoomType.DIRECT and others:
            name = others[0].full_name

        last_message = self._last_message(room.id)
        return ChatRoomResponse(
            id=room.id,
            type=room.type,
            name=name,
            participants=[to_user_summary(p.user) for p in room.participants],
            last_message=to_message_response(last_message) if last_message else None,
            unread_count=self._unread_count(mine),
            created_at=room.created_at,
            updated_at=room.updated_at,
        )

    def _find_direct_room(self, key: str) -> Optional[int]:
        return self.db.execute(
            select(ChatRoom.id).where(ChatRoom.direct_key == key)
        ).scalar_one_or_none()

    async def get_or_create_direct_room(
        self, user_id: int, friend_id: int
    ) -> Tuple[ChatRoomResponse, bool]:
        """Returns the direct room for the pair and whether it was just created"""
        if user_id == friend_id:
            raise ValueError("CANNOT_CHAT_WITH_SELF")

        if not await FriendService(self.db).are_friends(user_id, friend_id):
            raise ValueError("NOT_FRIENDS")

        key = direct_room_key(user_id, friend_id)
        existing_id = self._find_direct_room(key)
        if existing_id:
            return self._to_room_response(self._load_room(existing_id), user_id), False

        room = ChatRoom(type=ChatRoomType.DIRECT, created_by=user_id, direct_key=key)
        room.participants.extend(
            [
                ChatRoomParticipant(user_id=user_id),
                ChatRoomParticipant(user_id=friend_id),
            ]
        )
        try:
            self.db.add(room)
            self.db.commit()
        except IntegrityError:
            # The other participant opened the room at the same moment
            self.db.rollback()
            existing_id = self._find_direct_room(key)
            if not existing_id:
                raise
            logger.debug(f"Direct room {key} created concurrently, reusing {existing_id}")
            return self._to_room_response(self._load_room(existing_id), user_id), False

        logger.info(f"Created direct chat room {room.id} for users {user_id} and {friend_id}")
        return self._to_room_response(self._load_room(room.id), user_id), True

    async def list_rooms(self, user_id: int) -> List[ChatRoomResponse]:
        """Caller's rooms, most recently active first"""
        room_ids = select(ChatRoomParticipant.room_id).where(
            ChatRoomParticipant.user_id == user_id
        )
        rooms = (
            self.db.execute(
                select(ChatRoom)
                .options(
                    selectinload(ChatRoom.participants)
                    .selectinload(ChatRoomParticipant.user)
                    .selectinload(User.student_profile)
                )
                .where(ChatRoom.id.in_(room_ids))
                .order_by(ChatRoom.updated_at.desc(), ChatRoom.id.desc())
            )
            .scalars()
            .all()
        )
        return [self._to_room_response(room, user_id) for room in rooms]

    async def send_message(
        self, user_id: int, room_id: int, data: SendMessageRequest
    ) -> ChatMessageResponse:
        await self.get_participant(user_id, room_id)

        if data.reply_to_id is not None:
            target = self.db.execute(
                select(ChatMessage.id).where(
                    ChatMessage.id == data.reply_to_id,
                    ChatMessage.room_id == room_id,
                    ChatMessage.is_deleted == False,
                )
            ).first()
            if not target:
                raise ValueError("REPLY_TARGET_NOT_FOUND")

        message = ChatMessage(
            room_id=room_id,
            sender_id=user_id,
            message=data.message,
            message_type=data.message_type,
            reply_to_id=data.reply_to_id,
        )
        self.db.add(message)
        room = self.db.get(ChatRoom, room_id)
        room.updated_at = naive_utc_now()
        self.db.commit()

        created = self.db.execute(
            self._message_query().where(ChatMessage.id == message.id)
        ).scalar_one()
        response = to_message_response(created)

        logger.info(f"User {user_id} sent message {message.id} to room {room_id}")
        broker.publish(
            chat_channel(room_id), "message.created", response.model_dump(by_alias=True)
        )
        return response

    async def get_messages(
        self, user_id: int, room_id: int, limit: int = 50, offset: int = 0
    ) -> List[ChatMessageResponse]:
        """
        Newest page of messages, returned oldest first.

        Reading advances the caller's read cursor to now for the whole room,
        not just the fetched page.
        """
        participant = await self.get_participant(user_id, room_id)

        messages = (
            self.db.execute(
                self._message_query()
                .where(ChatMessage.room_id == room_id, ChatMessage.is_deleted == False)
                .order_by(ChatMessage.created_at.desc(), ChatMessage.id.desc())
                .limit(limit)
                .offset(offset)
            )
            .scalars()
            .all()
        )

        participant.last_read_at = naive_utc_now()
        self.db.commit()

        return [to_message_response(m) for m in reversed(messages)]

    async def messages_after(
        self, user_id: int, room_id: int, after_id: int, limit: int = 200
    ) -> List[ChatMessageResponse]:
        """Messages with id greater than after_id, oldest first, for reconnect replay"""
        await self.get_participant(user_id, room_id)
        messages = (
            self.db.execute(
                self._message_query()
                .where(
                    ChatMessage.room_id == room_id,
                    ChatMessage.id > after_id,
                    ChatMessage.is_deleted == False,
                )
                .order_by(ChatMessage.id)
                .limit(limit)
            )
            .scalars()
            .all()
        )
        return [to_message_response(m) for m in messages]

    async def delete_message(self, user_id: int, room_id: int, message_id: int) -> None:
        """Soft delete; only the sender may remove a message"""
        await self.get_participant(user_id, room_id)

        message = self.db.execute(
            select(ChatMessage).where(
                ChatMessage.id == message_id,
                ChatMessage.room_id == room_id,
                ChatMessage.is_deleted == False,
            )
        ).scalar_one_or_none()
        if not message:
            raise ValueError("MESSAGE_NOT_FOUND")
        if message.sender_id != user_id:
            raise ValueError("NOT_MESSAGE_SENDER")

        message.is_deleted = True
        self.db.commit()

        logger.info(f"User {user_id} deleted message {message_id} in room {room_id}")
        broker.publish(
            chat_channel(room_id), "message.deleted", {"id": message_id, "roomId": room_id}
        )


def get_chat_service(db: Session = Depends(get_sync_session)) -> ChatService:
    return ChatService(db)
