from typing import Dict, Iterable, List, Optional

from fastapi import Depends
from sqlalchemy import and_, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from campus_connect.db.models import (
    Friendship,
    FriendshipStatus,
    StudentProfile,
    User,
    UserRole,
)
from campus_connect.db.session import get_sync_session
from campus_connect.schemas.user_schemas import (
    UpdateProfileRequest,
    UserProfile,
    UserSearchItem,
    UserSummary,
)
from campus_connect.utils.logging import get_logger

logger = get_logger()


def to_user_summary(user: User) -> UserSummary:
    return UserSummary(
        id=user.id,
        first_name=user.first_name,
        last_name=user.last_name,
        email=user.email,
        role=user.role,
        profile_image=user.profile_image,
        department=user.department,
    )


def to_user_profile(user: User) -> UserProfile:
    return UserProfile(
        **to_user_summary(user).model_dump(),
        student_id=user.student_id,
        campus_id=user.campus_id,
        has_password=user.password_hash is not None,
        created_at=user.created_at,
        updated_at=user.updated_at,
        last_login=user.last_login,
    )


def escape_like(term: str) -> str:
    """Escape LIKE wildcards so user input only ever matches literally"""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class UserService:
    """Profile reads/updates and student directory search"""

    def __init__(self, db_session: Session):
        self.db = db_session

    async def get_user_by_id(self, user_id: int) -> Optional[User]:
        result = self.db.execute(
            select(User)
            .options(selectinload(User.student_profile))
            .where(User.id == user_id)
        )
        return result.scalar_one_or_none()

    async def get_profile(self, user_id: int) -> UserProfile:
        user = await self.get_user_by_id(user_id)
        if not user:
            raise ValueError("USER_NOT_FOUND")
        return to_user_profile(user)

    async def update_profile(
        self, user_id: int, update_data: UpdateProfileRequest
    ) -> UserProfile:
        """Apply a partial update; the user row and department commit together"""
        user = await self.get_user_by_id(user_id)
        if not user:
            raise ValueError("USER_NOT_FOUND")

        changes = update_data.model_dump(exclude_unset=True, exclude_none=True)
        department = changes.pop("department", None)
        if department is not None and user.role != UserRole.STUDENT:
            # Departments only exist on student profiles
            department = None

        if not changes and department is None:
            raise ValueError("NOTHING_TO_UPDATE")

        if "email" in changes and changes["email"] != user.email:
            taken = self.db.execute(
                select(User.id).where(
                    User.email == changes["email"], User.id != user_id
                )
            ).first()
            if taken:
                raise ValueError("EMAIL_ALREADY_EXISTS")

        try:
            for field, value in changes.items():
                setattr(user, field, value)

            if department is not None:
                if user.student_profile:
                    user.student_profile.department = department
                else:
                    user.student_profile = StudentProfile(department=department)

            self.db.commit()
            self.db.refresh(user)
        except IntegrityError:
            self.db.rollback()
            raise ValueError("EMAIL_ALREADY_EXISTS")
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Updated profile for user {user_id}: {sorted(changes)}")
        return to_user_profile(user)

    async def search_students(
        self, caller_id: int, query: str, limit: int = 20, offset: int = 0
    ) -> List[UserSearchItem]:
        """Substring search over student names, email and campus id"""
        like = f"%{escape_like(query.strip())}%"
        stmt = (
            select(User)
            .join(StudentProfile, StudentProfile.user_id == User.id)
            .options(selectinload(User.student_profile))
            .where(
                User.role == UserRole.STUDENT,
                User.id != caller_id,
                or_(
                    User.first_name.ilike(like, escape="\\"),
                    User.last_name.ilike(like, escape="\\"),
                    User.email.ilike(like, escape="\\"),
                    User.campus_id.ilike(like, escape="\\"),
                ),
            )
            .order_by(User.first_name, User.last_name, User.id)
            .limit(limit)
            .offset(offset)
        )
        users = self.db.execute(stmt).scalars().all()
        statuses = await self.get_friend_statuses(caller_id, [u.id for u in users])

        return [
            UserSearchItem(
                **to_user_summary(user).model_dump(),
                campus_id=user.campus_id,
                friend_status=statuses.get(user.id, "none"),
            )
            for user in users
        ]

    async def get_friend_statuses(
        self, caller_id: int, other_ids: Iterable[int]
    ) -> Dict[int, str]:
        """Relationship label between the caller and each of other_ids"""
        other_ids = list(other_ids)
        if not other_ids:
            return {}

        edges = (
            self.db.execute(
                select(Friendship).where(
                    or_(
                        and_(
                            Friendship.requester_id == caller_id,
                            Friendship.recipient_id.in_(other_ids),
                        ),
                        and_(
                            Friendship.recipient_id == caller_id,
                            Friendship.requester_id.in_(other_ids),
                        ),
                    )
                )
            )
            .scalars()
            .all()
        )

        statuses: Dict[int, str] = {}
        for edge in edges:
            outgoing = edge.requester_id == caller_id
            other = edge.recipient_id if outgoing else edge.requester_id
            if edge.status == FriendshipStatus.ACCEPTED:
                statuses[other] = "accepted"
            elif statuses.get(other) != "accepted":
                statuses[other] = "pending_outgoing" if outgoing else "pending_incoming"
        return statuses


def get_user_service(db: Session = Depends(get_sync_session)) -> UserService:
    return UserService(db)
