from datetime import datetime
from typing import Optional
from pydantic import Field

from campus_connect.db.models import NotificationType
from .camel_base_model import CamelCaseBaseModel as BaseModel
from .user_schemas import UserSummary


class NotificationItem(BaseModel):
    id: int = Field(..., description="Notification ID")
    type: NotificationType = Field(..., description="Notification type")
    actor: UserSummary = Field(..., description="User who triggered the notification")
    message: str = Field(..., description="Rendered notification text")
    is_read: bool = Field(..., description="Whether notification has been read")
    read_at: Optional[datetime] = Field(None, description="Read timestamp")
    created_at: datetime = Field(..., description="Creation timestamp")


class NotificationCounts(BaseModel):
    unread_count: int = Field(0, description="Count of unread notifications")
    updated_count: Optional[int] = Field(
        None, description="Rows changed by a bulk read/unread operation"
    )
