from datetime import datetime
from typing import List, Optional
from pydantic import Field, field_validator

from campus_connect.db.models import ChatRoomType, MessageType
from .camel_base_model import CamelCaseBaseModel as BaseModel
from .user_schemas import UserSummary


class DirectRoomRequest(BaseModel):
    friend_id: int = Field(..., gt=0, description="Friend to chat with")


class SendMessageRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=2000)
    message_type: MessageType = Field(MessageType.TEXT)
    reply_to_id: Optional[int] = Field(None, gt=0)

    @field_validator("message", mode="before")
    @classmethod
    def strip_message(cls, v):
        return v.strip() if isinstance(v, str) else v


class ReplyPreview(BaseModel):
    id: int
    message: str
    sender_name: str


class ChatMessageResponse(BaseModel):
    id: int
    room_id: int
    sender: UserSummary
    message: str
    message_type: MessageType
    reply_to: Optional[ReplyPreview] = None
    created_at: datetime


class ChatRoomResponse(BaseModel):
    id: int
    type: ChatRoomType
    name: Optional[str] = None
    participants: List[UserSummary] = Field(default_factory=list)
    last_message: Optional[ChatMessageResponse] = None
    unread_count: int = 0
    created_at: datetime
    updated_at: Optional[datetime] = None
