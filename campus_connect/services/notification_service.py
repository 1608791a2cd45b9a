from typing import List, Optional, Tuple

from fastapi import Depends
from sqlalchemy import and_, desc, func, select, update
from sqlalchemy.orm import Session, selectinload

from campus_connect.db.models import Notification, NotificationType, User
from campus_connect.db.session import get_sync_session
from campus_connect.schemas.notification_schemas import NotificationItem
from campus_connect.services.user_service import to_user_summary
from campus_connect.utils.datetime_utils import naive_utc_now
from campus_connect.utils.logging import get_logger

logger = get_logger()

NOTIFICATION_TEMPLATES = {
    NotificationType.FRIEND_REQUEST_RECEIVED: "{actor} sent you a friend request",
    NotificationType.FRIEND_REQUEST_ACCEPTED: "{actor} accepted your friend request",
}


class NotificationService:
    """Per-recipient notification feed with read/unread state"""

    def __init__(self, db_session: Session):
        self.db = db_session

    def add_notification(
        self,
        recipient_id: int,
        actor_id: int,
        notification_type: NotificationType,
    ) -> Optional[Notification]:
        """
        Stage a notification in the caller's transaction (no commit).

        An identical unread notification (same type, actor and recipient) is
        not duplicated; None is returned in that case.
        """
        existing = self.db.execute(
            select(Notification.id).where(
                Notification.recipient_id == recipient_id,
                Notification.actor_id == actor_id,
                Notification.type == notification_type,
                Notification.is_read == False,
            )
        ).first()
        if existing:
            logger.debug(
                f"Skipping duplicate {notification_type.value} for user {recipient_id}"
            )
            return None

        notification = Notification(
            recipient_id=recipient_id,
            actor_id=actor_id,
            type=notification_type,
        )
        self.db.add(notification)
        return notification

    async def get_user_notifications(
        self,
        user_id: int,
        unread_only: bool = False,
        page: int = 1,
        limit: int = 20,
    ) -> Tuple[List[NotificationItem], int]:
        """
        Get a page of notifications for a user, newest first.

        Returns:
            The page of formatted notifications and the total matching count
        """
        conditions = [Notification.recipient_id == user_id]
        if unread_only:
            conditions.append(Notification.is_read == False)

        total = (
            self.db.execute(
                select(func.count(Notification.id)).where(and_(*conditions))
            ).scalar()
            or 0
        )

        notifications = (
            self.db.execute(
                select(Notification)
                .options(selectinload(Notification.actor).selectinload(User.student_profile))
                .where(and_(*conditions))
                .order_by(desc(Notification.created_at), desc(Notification.id))
                .limit(limit)
                .offset((page - 1) * limit)
            )
            .scalars()
            .all()
        )

        return [self._to_item(n) for n in notifications], total

    async def get_unread_count(self, user_id: int) -> int:
        result = self.db.execute(
            select(func.count(Notification.id)).where(
                Notification.recipient_id == user_id,
                Notification.is_read == False,
            )
        )
        return result.scalar() or 0

    async def set_read_state(
        self, user_id: int, notification_id: int, is_read: bool
    ) -> NotificationItem:
        """Mark one of the user's notifications read or unread"""
        notification = self.db.execute(
            select(Notification).where(
                Notification.id == notification_id,
                Notification.recipient_id == user_id,
            )
        ).scalar_one_or_none()
        if not notification:
            raise ValueError("NOTIFICATION_NOT_FOUND")

        if notification.is_read != is_read:
            notification.is_read = is_read
            notification.read_at = naive_utc_now() if is_read else None
            self.db.commit()
            self.db.refresh(notification)

        return self._to_item(notification)

    async def set_all_read_state(self, user_id: int, is_read: bool) -> int:
        """Bulk read/unread; returns the number of rows changed"""
        result = self.db.execute(
            update(Notification)
            .where(
                Notification.recipient_id == user_id,
                Notification.is_read == (not is_read),
            )
            .values(is_read=is_read, read_at=naive_utc_now() if is_read else None)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        # Bulk UPDATE bypasses the identity map
        self.db.expire_all()

        updated_count = result.rowcount or 0
        logger.info(
            f"Marked {updated_count} notifications as {'read' if is_read else 'unread'} for user {user_id}"
        )
        return updated_count

    @staticmethod
    def _to_item(notification: Notification) -> NotificationItem:
        actor = notification.actor
        template = NOTIFICATION_TEMPLATES.get(notification.type, "{actor} did something")
        return NotificationItem(
            id=notification.id,
            type=notification.type,
            actor=to_user_summary(actor),
            message=template.format(actor=actor.full_name),
            is_read=notification.is_read,
            read_at=notification.read_at,
            created_at=notification.created_at,
        )


def get_notification_service(
    db: Session = Depends(get_sync_session),
) -> NotificationService:
    return NotificationService(db)
