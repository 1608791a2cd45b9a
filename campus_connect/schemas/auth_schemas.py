from typing import Optional
from pydantic import Field, field_validator

from campus_connect.db.models import UserRole
from .camel_base_model import CamelCaseBaseModel as BaseModel
from .user_schemas import EMAIL_PATTERN, UserProfile


class RegisterRequest(BaseModel):
    """Registration request schema"""

    first_name: str = Field(..., min_length=1, max_length=100, description="First name")
    last_name: str = Field(..., min_length=1, max_length=100, description="Last name")
    email: str = Field(..., max_length=320, pattern=EMAIL_PATTERN, description="Email")
    password: str = Field(..., min_length=6, max_length=128, description="Password")
    role: UserRole = Field(UserRole.STUDENT, description="Requested role")
    department: Optional[str] = Field(None, max_length=150, description="Department")
    student_id: Optional[str] = Field(None, max_length=50, description="Student number")
    campus_id: Optional[str] = Field(None, max_length=50, description="Campus ID")
    profile_image: Optional[str] = Field(
        None, max_length=500, description="Profile image URL or storage key"
    )

    @field_validator("first_name", "last_name", mode="before")
    @classmethod
    def strip_names(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("department", mode="before")
    @classmethod
    def blank_department_is_none(cls, v):
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v


class LoginRequest(BaseModel):
    """Login request schema"""

    email: str = Field(..., pattern=EMAIL_PATTERN, description="Email")
    password: str = Field(..., min_length=1, description="Password")

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower() if isinstance(v, str) else v


class GoogleLoginRequest(BaseModel):
    """Google Sign-In ID token (the `credential` returned to the browser)"""

    credential: str = Field(..., min_length=1, description="Google ID token")


class ChangePasswordRequest(BaseModel):
    current_password: Optional[str] = Field(
        None, description="Required unless the account has no password yet"
    )
    new_password: str = Field(..., min_length=6, max_length=128)


class AuthResponse(BaseModel):
    """Token plus profile, returned by register/login/google"""

    token: str = Field(..., description="Bearer access token")
    token_type: str = Field("bearer", description="Token type")
    expires_in: int = Field(..., description="Token lifetime in seconds")
    user: UserProfile = Field(..., description="Authenticated user's profile")
