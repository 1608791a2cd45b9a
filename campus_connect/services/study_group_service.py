from typing import Dict, List, Optional

from fastapi import Depends
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from campus_connect.db.models import (
    MembershipRole,
    StudyGroup,
    StudyGroupMembership,
    User,
)
from campus_connect.db.session import get_sync_session
from campus_connect.schemas.study_group_schemas import (
    CreateStudyGroupRequest,
    StudyGroupDetail,
    StudyGroupMember,
    StudyGroupResponse,
)
from campus_connect.services.user_service import escape_like, to_user_summary
from campus_connect.utils.logging import get_logger

logger = get_logger()


class StudyGroupService:
    """Study group CRUD plus the membership roster and ownership rules"""

    def __init__(self, db_session: Session):
        self.db = db_session

    async def _get_group(self, group_id: int) -> StudyGroup:
        group = self.db.execute(
            select(StudyGroup)
            .options(
                selectinload(StudyGroup.creator).selectinload(User.student_profile),
                selectinload(StudyGroup.memberships)
                .selectinload(StudyGroupMembership.user)
                .selectinload(User.student_profile),
            )
            .where(StudyGroup.id == group_id)
        ).scalar_one_or_none()
        if not group:
            raise ValueError("STUDY_GROUP_NOT_FOUND")
        return group

    @staticmethod
    def _membership(group: StudyGroup, user_id: int) -> Optional[StudyGroupMembership]:
        return next((m for m in group.memberships if m.user_id == user_id), None)

    def _member_counts(self, group_ids: List[int]) -> Dict[int, int]:
        if not group_ids:
            return {}
        rows = self.db.execute(
            select(StudyGroupMembership.group_id, func.count(StudyGroupMembership.id))
            .where(StudyGroupMembership.group_id.in_(group_ids))
            .group_by(StudyGroupMembership.group_id)
        ).all()
        return {group_id: count for group_id, count in rows}

    def _my_roles(self, user_id: int, group_ids: List[int]) -> Dict[int, MembershipRole]:
        if not group_ids:
            return {}
        rows = self.db.execute(
            select(StudyGroupMembership.group_id, StudyGroupMembership.role).where(
                StudyGroupMembership.user_id == user_id,
                StudyGroupMembership.group_id.in_(group_ids),
            )
        ).all()
        return {group_id: role for group_id, role in rows}

    def _to_responses(self, user_id: int, groups: List[StudyGroup]) -> List[StudyGroupResponse]:
        ids = [g.id for g in groups]
        counts = self._member_counts(ids)
        roles = self._my_roles(user_id, ids)
        return [
            StudyGroupResponse(
                id=group.id,
                name=group.name,
                description=group.description,
                creator=to_user_summary(group.creator),
                member_count=counts.get(group.id, 0),
                is_member=group.id in roles,
                my_role=roles.get(group.id),
                created_at=group.created_at,
            )
            for group in groups
        ]

    def _to_detail(self, user_id: int, group: StudyGroup) -> StudyGroupDetail:
        mine = self._membership(group, user_id)
        return StudyGroupDetail(
            id=group.id,
            name=group.name,
            description=group.description,
            creator=to_user_summary(group.creator),
            member_count=len(group.memberships),
            is_member=mine is not None,
            my_role=mine.role if mine else None,
            created_at=group.created_at,
            members=[
                StudyGroupMember(
                    user=to_user_summary(m.user), role=m.role, joined_at=m.joined_at
                )
                for m in group.memberships
            ],
        )

    async def list_groups(
        self, user_id: int, query: Optional[str] = None
    ) -> List[StudyGroupResponse]:
        """All groups, newest first, optionally filtered by name/description"""
        stmt = select(StudyGroup).options(
            selectinload(StudyGroup.creator).selectinload(User.student_profile)
        )
        if query and query.strip():
            like = f"%{escape_like(query.strip())}%"
            stmt = stmt.where(
                or_(
                    StudyGroup.name.ilike(like, escape="\\"),
                    StudyGroup.description.ilike(like, escape="\\"),
                )
            )
        groups = (
            self.db.execute(stmt.order_by(StudyGroup.created_at.desc(), StudyGroup.id.desc()))
            .scalars()
            .all()
        )
        return self._to_responses(user_id, list(groups))

    async def list_my_groups(self, user_id: int) -> List[StudyGroupResponse]:
        groups = (
            self.db.execute(
                select(StudyGroup)
                .join(StudyGroupMembership, StudyGroupMembership.group_id == StudyGroup.id)
                .options(selectinload(StudyGroup.creator).selectinload(User.student_profile))
                .where(StudyGroupMembership.user_id == user_id)
                .order_by(StudyGroupMembership.joined_at.desc())
            )
            .scalars()
            .all()
        )
        return self._to_responses(user_id, list(groups))

    async def get_group(self, user_id: int, group_id: int) -> StudyGroupDetail:
        return self._to_detail(user_id, await self._get_group(group_id))

    async def create_group(
        self, creator_id: int, data: CreateStudyGroupRequest
    ) -> StudyGroupDetail:
        """Group row and creator membership are written in one transaction"""
        try:
            group = StudyGroup(
                creator_id=creator_id, name=data.name, description=data.description
            )
            group.memberships.append(
                StudyGroupMembership(user_id=creator_id, role=MembershipRole.CREATOR)
            )
            self.db.add(group)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"User {creator_id} created study group {group.id} '{group.name}'")
        return await self.get_group(creator_id, group.id)

    async def join_group(self, user_id: int, group_id: int) -> StudyGroupDetail:
        group = await self._get_group(group_id)
        if self._membership(group, user_id):
            logger.debug(f"User {user_id} already in study group {group_id}")
            return self._to_detail(user_id, group)

        try:
            self.db.add(
                StudyGroupMembership(
                    group_id=group_id, user_id=user_id, role=MembershipRole.MEMBER
                )
            )
            self.db.commit()
        except IntegrityError:
            # A parallel join for the same user won the unique key
            self.db.rollback()
            logger.debug(f"User {user_id} joined study group {group_id} concurrently")
            return await self.get_group(user_id, group_id)
        self.db.expire(group)

        logger.info(f"User {user_id} joined study group {group_id}")
        return await self.get_group(user_id, group_id)

    async def leave_group(self, user_id: int, group_id: int) -> None:
        group = await self._get_group(group_id)
        membership = self._membership(group, user_id)
        if not membership:
            raise ValueError("NOT_A_MEMBER")

        if membership.role == MembershipRole.CREATOR:
            creators = [m for m in group.memberships if m.role == MembershipRole.CREATOR]
            if len(creators) == 1:
                raise ValueError("SOLE_CREATOR_CANNOT_LEAVE")

        group.memberships.remove(membership)
        self.db.commit()
        logger.info(f"User {user_id} left study group {group_id}")

    async def transfer_ownership(
        self, user_id: int, group_id: int, new_owner_id: int
    ) -> StudyGroupDetail:
        group = await self._get_group(group_id)
        current = self._membership(group, user_id)
        if not current or current.role != MembershipRole.CREATOR:
            raise ValueError("NOT_GROUP_CREATOR")

        target = self._membership(group, new_owner_id)
        if not target:
            raise ValueError("NEW_OWNER_NOT_MEMBER")
        if target is current:
            return self._to_detail(user_id, group)

        target.role = MembershipRole.CREATOR
        current.role = MembershipRole.MEMBER
        group.creator_id = new_owner_id
        self.db.commit()
        self.db.expire(group)

        logger.info(f"Study group {group_id} ownership moved {user_id} -> {new_owner_id}")
        return await self.get_group(user_id, group_id)

    async def delete_group(self, user_id: int, group_id: int) -> None:
        group = await self._get_group(group_id)
        # The recorded creator, not merely any creator-role member
        if group.creator_id != user_id:
            raise ValueError("NOT_GROUP_CREATOR")

        self.db.delete(group)
        self.db.commit()
        logger.info(f"User {user_id} deleted study group {group_id}")

    async def remove_member(
        self, user_id: int, group_id: int, member_id: int
    ) -> StudyGroupDetail:
        group = await self._get_group(group_id)
        mine = self._membership(group, user_id)
        if not mine or mine.role != MembershipRole.CREATOR:
            raise ValueError("NOT_GROUP_CREATOR")
        if member_id == user_id:
            raise ValueError("CANNOT_REMOVE_SELF")

        membership = self._membership(group, member_id)
        if not membership:
            raise ValueError("NOT_A_MEMBER: That user is not a member of this group")

        group.memberships.remove(membership)
        self.db.commit()
        self.db.expire(group)

        logger.info(f"User {user_id} removed {member_id} from study group {group_id}")
        return await self.get_group(user_id, group_id)


def get_study_group_service(
    db: Session = Depends(get_sync_session),
) -> StudyGroupService:
    return StudyGroupService(db)
