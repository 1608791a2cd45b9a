from datetime import datetime
from typing import Literal, Optional
from pydantic import Field, field_validator

from campus_connect.db.models import UserRole
from .camel_base_model import CamelCaseBaseModel as BaseModel

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"

FriendStatusLabel = Literal["none", "pending_outgoing", "pending_incoming", "accepted"]


class UserSummary(BaseModel):
    """Public view of a user, embedded in friend lists, messages, rosters"""

    id: int = Field(..., description="User ID")
    first_name: str = Field(..., description="First name")
    last_name: str = Field(..., description="Last name")
    email: str = Field(..., description="Email address")
    role: UserRole = Field(..., description="User role")
    profile_image: Optional[str] = Field(None, description="Profile image reference")
    department: Optional[str] = Field(None, description="Department (students only)")


class UserProfile(UserSummary):
    """The caller's own profile"""

    student_id: Optional[str] = Field(None, description="Student number")
    campus_id: Optional[str] = Field(None, description="Campus ID")
    has_password: bool = Field(..., description="False for Google-only accounts")
    created_at: datetime = Field(..., description="Account creation timestamp")
    updated_at: Optional[datetime] = Field(None, description="Last profile update")
    last_login: Optional[datetime] = Field(None, description="Last login timestamp")


class UpdateProfileRequest(BaseModel):
    """Partial profile update; only supplied fields change"""

    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[str] = Field(None, max_length=320, pattern=EMAIL_PATTERN)
    campus_id: Optional[str] = Field(None, max_length=50)
    profile_image: Optional[str] = Field(None, max_length=500)
    department: Optional[str] = Field(None, min_length=1, max_length=150)

    @field_validator("first_name", "last_name", "department", mode="before")
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower() if isinstance(v, str) else v


class UserSearchItem(UserSummary):
    campus_id: Optional[str] = Field(None, description="Campus ID")
    friend_status: FriendStatusLabel = Field(
        "none", description="Relationship between the caller and this user"
    )
