from typing import List, Optional

from fastapi import Depends
from sqlalchemy import and_, delete, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from campus_connect.db.models import (
    Friendship,
    FriendshipStatus,
    NotificationType,
    User,
    UserRole,
)
from campus_connect.db.session import get_sync_session
from campus_connect.schemas.friend_schemas import (
    FriendItem,
    PendingRequestItem,
    PendingRequests,
    RespondFriendRequest,
)
from campus_connect.services.notification_service import NotificationService
from campus_connect.services.user_service import to_user_summary
from campus_connect.utils.datetime_utils import naive_utc_now
from campus_connect.utils.logging import get_logger

logger = get_logger()


def between(user_a: int, user_b: int):
    """Match friendship edges between two users in either direction"""
    return or_(
        and_(Friendship.requester_id == user_a, Friendship.recipient_id == user_b),
        and_(Friendship.requester_id == user_b, Friendship.recipient_id == user_a),
    )


class FriendService:
    """Directed friend requests that collapse into an accepted relation"""

    def __init__(self, db_session: Session):
        self.db = db_session
        self.notifications = NotificationService(db_session)

    async def _get_edge(self, requester_id: int, recipient_id: int) -> Optional[Friendship]:
        result = self.db.execute(
            select(Friendship).where(
                Friendship.requester_id == requester_id,
                Friendship.recipient_id == recipient_id,
            )
        )
        return result.scalar_one_or_none()

    async def are_friends(self, user_a: int, user_b: int) -> bool:
        result = self.db.execute(
            select(Friendship.id).where(
                between(user_a, user_b),
                Friendship.status == FriendshipStatus.ACCEPTED,
            )
        )
        return result.first() is not None

    async def send_request(self, me: int, target_id: int) -> Friendship:
        """Create (or refresh) a pending me -> target edge and notify the target"""
        if me == target_id:
            raise ValueError("CANNOT_FRIEND_SELF")

        users = {
            u.id: u
            for u in self.db.execute(
                select(User).where(User.id.in_([me, target_id]))
            ).scalars()
        }
        if target_id not in users:
            raise ValueError("USER_NOT_FOUND")
        if any(u.role != UserRole.STUDENT for u in users.values()):
            raise ValueError("STUDENTS_ONLY")

        reverse = await self._get_edge(target_id, me)
        if reverse:
            if reverse.status == FriendshipStatus.ACCEPTED:
                raise ValueError("ALREADY_FRIENDS")
            raise ValueError("REQUEST_PENDING_FROM_OTHER")

        edge = await self._get_edge(me, target_id)
        if edge and edge.status == FriendshipStatus.ACCEPTED:
            raise ValueError("ALREADY_FRIENDS")

        try:
            if edge:
                edge.status = FriendshipStatus.PENDING
                edge.accepted_at = None
                edge.updated_at = naive_utc_now()
            else:
                edge = Friendship(
                    requester_id=me,
                    recipient_id=target_id,
                    status=FriendshipStatus.PENDING,
                )
                self.db.add(edge)

            self.notifications.add_notification(
                recipient_id=target_id,
                actor_id=me,
                notification_type=NotificationType.FRIEND_REQUEST_RECEIVED,
            )
            # Edge and notification succeed or fail together
            self.db.commit()
            self.db.refresh(edge)
        except IntegrityError:
            self.db.rollback()
            logger.warning(f"Concurrent friend request {me} -> {target_id}")
            raise ValueError("FRIEND_REQUEST_FAILED: A request was just created, please refresh")
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Friend request {me} -> {target_id} pending")
        return edge

    async def respond(self, me: int, response: RespondFriendRequest) -> Optional[Friendship]:
        """
        Accept or decline a request.

        `sender_id` targets an incoming request (me is the recipient) and
        `recipient_id` targets one of my outgoing requests, which can only be
        declined (retracted). Returns the accepted edge, or None on decline.
        """
        if (response.sender_id is None) == (response.recipient_id is None):
            raise ValueError("INVALID_RESPOND_TARGET")

        if response.recipient_id is not None:
            edge = await self._get_edge(me, response.recipient_id)
            if not edge or edge.status != FriendshipStatus.PENDING:
                raise ValueError("FRIEND_REQUEST_NOT_FOUND")
            if response.action == "accept":
                raise ValueError("CANNOT_ACCEPT_OWN_REQUEST")
            self.db.delete(edge)
            self.db.commit()
            logger.info(f"User {me} retracted friend request to {response.recipient_id}")
            return None

        sender_id = response.sender_id
        edge = await self._get_edge(sender_id, me)
        if not edge or edge.status != FriendshipStatus.PENDING:
            raise ValueError("FRIEND_REQUEST_NOT_FOUND")

        if response.action == "decline":
            self.db.delete(edge)
            self.db.commit()
            logger.info(f"User {me} declined friend request from {sender_id}")
            return None

        try:
            edge.status = FriendshipStatus.ACCEPTED
            edge.accepted_at = naive_utc_now()

            # A crossing request in the other direction is now redundant
            self.db.execute(
                delete(Friendship).where(
                    Friendship.requester_id == me,
                    Friendship.recipient_id == sender_id,
                    Friendship.status == FriendshipStatus.PENDING,
                )
            )
            self.notifications.add_notification(
                recipient_id=sender_id,
                actor_id=me,
                notification_type=NotificationType.FRIEND_REQUEST_ACCEPTED,
            )
            self.db.commit()
            self.db.refresh(edge)
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"User {me} accepted friend request from {sender_id}")
        return edge

    async def list_friends(self, me: int) -> List[FriendItem]:
        edges = (
            self.db.execute(
                select(Friendship)
                .options(
                    selectinload(Friendship.requester).selectinload(User.student_profile),
                    selectinload(Friendship.recipient).selectinload(User.student_profile),
                )
                .where(
                    or_(Friendship.requester_id == me, Friendship.recipient_id == me),
                    Friendship.status == FriendshipStatus.ACCEPTED,
                )
            )
            .scalars()
            .all()
        )

        friends = [
            FriendItem(
                friend=to_user_summary(
                    edge.recipient if edge.requester_id == me else edge.requester
                ),
                friends_since=edge.accepted_at,
            )
            for edge in edges
        ]
        friends.sort(key=lambda f: (f.friend.first_name.lower(), f.friend.last_name.lower()))
        return friends

    async def list_friend_ids(self, me: int) -> List[int]:
        rows = self.db.execute(
            select(Friendship.requester_id, Friendship.recipient_id).where(
                or_(Friendship.requester_id == me, Friendship.recipient_id == me),
                Friendship.status == FriendshipStatus.ACCEPTED,
            )
        ).all()
        return [b if a == me else a for a, b in rows]

    async def list_pending(self, me: int) -> PendingRequests:
        edges = (
            self.db.execute(
                select(Friendship)
                .options(
                    selectinload(Friendship.requester).selectinload(User.student_profile),
                    selectinload(Friendship.recipient).selectinload(User.student_profile),
                )
                .where(
                    or_(Friendship.requester_id == me, Friendship.recipient_id == me),
                    Friendship.status == FriendshipStatus.PENDING,
                )
                .order_by(Friendship.updated_at.desc())
            )
            .scalars()
            .all()
        )

        pending = PendingRequests()
        for edge in edges:
            if edge.recipient_id == me:
                pending.incoming.append(
                    PendingRequestItem(
                        user=to_user_summary(edge.requester),
                        requested_at=edge.updated_at,
                    )
                )
            else:
                pending.outgoing.append(
                    PendingRequestItem(
                        user=to_user_summary(edge.recipient),
                        requested_at=edge.updated_at,
                    )
                )
        return pending

    async def remove(self, me: int, other_id: int) -> int:
        """Delete every edge between the two users, whatever its direction or status"""
        result = self.db.execute(delete(Friendship).where(between(me, other_id)))
        self.db.commit()
        if not result.rowcount:
            raise ValueError("FRIENDSHIP_NOT_FOUND")
        logger.info(f"Removed friendship between {me} and {other_id}")
        return result.rowcount


def get_friend_service(db: Session = Depends(get_sync_session)) -> FriendService:
    return FriendService(db)
