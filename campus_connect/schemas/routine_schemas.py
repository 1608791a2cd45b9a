from datetime import datetime, time
from typing import List, Optional
from pydantic import Field, field_validator

from campus_connect.db.models import DayOfWeek, RoutineType
from .camel_base_model import CamelCaseBaseModel as BaseModel
from .user_schemas import UserSummary


class RoutineRequest(BaseModel):
    """Create/replace payload for a weekly routine block"""

    day: DayOfWeek = Field(..., description="Day of week")
    start_time: time = Field(..., description="Start time (HH:MM)")
    end_time: time = Field(..., description="End time (HH:MM)")
    activity: str = Field(..., min_length=1, max_length=200, description="Activity")
    location: Optional[str] = Field(None, max_length=200, description="Location")
    type: RoutineType = Field(RoutineType.CLASS, description="Routine type")

    @field_validator("day", mode="before")
    @classmethod
    def lowercase_day(cls, v):
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("activity", "location", mode="before")
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v


class RoutineResponse(BaseModel):
    id: int
    user_id: int
    day: DayOfWeek
    start_time: time
    end_time: time
    activity: str
    location: Optional[str] = None
    type: RoutineType
    created_at: datetime
    updated_at: Optional[datetime] = None


class TimeSlot(BaseModel):
    start: str = Field(..., description="Slot start (HH:MM)")
    end: str = Field(..., description="Slot end (HH:MM)")
    duration_minutes: int = Field(..., description="Slot length in minutes")


class DayFreeTime(BaseModel):
    day: DayOfWeek
    window_start: str
    window_end: str
    min_duration_minutes: int
    slots: List[TimeSlot] = Field(default_factory=list)


class WeeklySummaryItem(BaseModel):
    day: DayOfWeek
    routine_count: int
    scheduled_minutes: int


class RoutineMatch(BaseModel):
    """A friend's routine that overlaps one of the caller's routines"""

    user: UserSummary
    routine: RoutineResponse
    overlap: TimeSlot
