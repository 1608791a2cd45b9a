from datetime import datetime
from typing import List, Literal, Optional
from pydantic import Field

from .camel_base_model import CamelCaseBaseModel as BaseModel
from .user_schemas import UserSummary


class SendFriendRequest(BaseModel):
    target_id: int = Field(..., gt=0, description="User to befriend")


class RespondFriendRequest(BaseModel):
    """Exactly one of sender_id (incoming) or recipient_id (outgoing) must be given"""

    sender_id: Optional[int] = Field(
        None, gt=0, description="Original sender, when acting on an incoming request"
    )
    recipient_id: Optional[int] = Field(
        None, gt=0, description="Original recipient, when retracting an outgoing request"
    )
    action: Literal["accept", "decline"] = Field(..., description="Response action")


class FriendItem(BaseModel):
    friend: UserSummary
    friends_since: Optional[datetime] = Field(None, description="Acceptance timestamp")


class PendingRequestItem(BaseModel):
    user: UserSummary = Field(..., description="The other side of the request")
    requested_at: datetime


class PendingRequests(BaseModel):
    incoming: List[PendingRequestItem] = Field(default_factory=list)
    outgoing: List[PendingRequestItem] = Field(default_factory=list)
