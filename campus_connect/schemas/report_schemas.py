from datetime import datetime
from typing import Optional
from pydantic import Field, field_validator

from campus_connect.db.models import (
    BugSeverity,
    BugStatus,
    FeedbackPriority,
    FeedbackStatus,
)
from .camel_base_model import CamelCaseBaseModel as BaseModel
from .user_schemas import UserSummary


class CreateFeedbackRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=5000)
    priority: FeedbackPriority = Field(FeedbackPriority.MEDIUM)

    @field_validator("message", mode="before")
    @classmethod
    def strip_message(cls, v):
        return v.strip() if isinstance(v, str) else v


class CreateBugReportRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1, max_length=10000)
    severity: BugSeverity = Field(BugSeverity.MEDIUM)

    @field_validator("title", "description", mode="before")
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v


class FeedbackResponse(BaseModel):
    id: int
    message: str
    priority: FeedbackPriority
    status: FeedbackStatus
    reporter: Optional[UserSummary] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class BugReportResponse(BaseModel):
    id: int
    title: str
    description: str
    severity: BugSeverity
    status: BugStatus
    reporter: Optional[UserSummary] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class UpdateFeedbackStatusRequest(BaseModel):
    status: FeedbackStatus


class UpdateBugStatusRequest(BaseModel):
    status: BugStatus
