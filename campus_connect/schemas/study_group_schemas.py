from datetime import datetime
from typing import List, Optional
from pydantic import Field, field_validator

from campus_connect.db.models import MembershipRole
from .camel_base_model import CamelCaseBaseModel as BaseModel
from .user_schemas import UserSummary


class CreateStudyGroupRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=150, description="Group name")
    description: Optional[str] = Field(None, max_length=2000)

    @field_validator("name", "description", mode="before")
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v


class TransferOwnershipRequest(BaseModel):
    new_owner_id: int = Field(..., gt=0, description="Existing member to promote")


class StudyGroupMember(BaseModel):
    user: UserSummary
    role: MembershipRole
    joined_at: datetime


class StudyGroupResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    creator: UserSummary
    member_count: int
    is_member: bool
    my_role: Optional[MembershipRole] = None
    created_at: datetime


class StudyGroupDetail(StudyGroupResponse):
    members: List[StudyGroupMember] = Field(default_factory=list)
