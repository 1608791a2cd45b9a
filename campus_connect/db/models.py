from typing import Any, Dict, List, Optional
from datetime import datetime, time
from sqlalchemy import (
    String,
    Boolean,
    Integer,
    Text,
    ForeignKey,
    Enum,
    Index,
    JSON,
    UniqueConstraint,
    CheckConstraint,
    DateTime,
    Time,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
import enum

from campus_connect.utils.datetime_utils import naive_utc_now


class Base(DeclarativeBase):
    pass


# Enums
class UserRole(enum.Enum):
    STUDENT = "student"
    MANAGER = "manager"
    ADMIN = "admin"


class FriendshipStatus(enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"


class NotificationType(enum.Enum):
    FRIEND_REQUEST_RECEIVED = "friend_request_received"
    FRIEND_REQUEST_ACCEPTED = "friend_request_accepted"


class DayOfWeek(enum.Enum):
    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"


class RoutineType(enum.Enum):
    CLASS = "class"
    STUDY = "study"
    BREAK = "break"
    ACTIVITY = "activity"


class MembershipRole(enum.Enum):
    CREATOR = "creator"
    MEMBER = "member"


class ChatRoomType(enum.Enum):
    DIRECT = "direct"
    GROUP = "group"


class MessageType(enum.Enum):
    TEXT = "text"
    EMOJI = "emoji"
    SYSTEM = "system"


class GameType(enum.Enum):
    TIC_TAC_TOE = "tic_tac_toe"
    ROCK_PAPER_SCISSORS = "rock_paper_scissors"


class GameRoomStatus(enum.Enum):
    WAITING = "waiting"
    PLAYING = "playing"
    FINISHED = "finished"


class FeedbackPriority(enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class FeedbackStatus(enum.Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CLOSED = "closed"


class BugSeverity(enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class BugStatus(enum.Enum):
    OPEN = "open"
    TRIAGED = "triaged"
    IN_PROGRESS = "in_progress"
    FIXED = "fixed"
    CLOSED = "closed"


# Base model with common audit fields
class AuditMixin:
    """Mixin for common audit fields"""

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=naive_utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=naive_utc_now, onupdate=naive_utc_now, nullable=False
    )


# Models
class User(Base, AuditMixin):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(
        String(320), unique=True, nullable=False
    )  # RFC 5321 max length
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    # Null for accounts that only ever signed in with Google
    password_hash: Mapped[Optional[str]] = mapped_column(String(255))
    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole), default=UserRole.STUDENT, nullable=False
    )
    google_id: Mapped[Optional[str]] = mapped_column(String(255), unique=True)
    student_id: Mapped[Optional[str]] = mapped_column(String(50))
    campus_id: Mapped[Optional[str]] = mapped_column(String(50))
    profile_image: Mapped[Optional[str]] = mapped_column(String(500))
    last_login: Mapped[Optional[datetime]] = mapped_column(DateTime)

    # Relationships
    student_profile: Mapped[Optional["StudentProfile"]] = relationship(
        back_populates="user", cascade="all, delete-orphan", uselist=False
    )
    routines: Mapped[List["Routine"]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )

    # Constraints
    __table_args__ = (
        Index("idx_users_role", "role"),
        Index("idx_users_name", "first_name", "last_name"),
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def department(self) -> Optional[str]:
        return self.student_profile.department if self.student_profile else None


class StudentProfile(Base, AuditMixin):
    __tablename__ = "student_profiles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    department: Mapped[str] = mapped_column(String(150), nullable=False)

    # Relationships
    user: Mapped["User"] = relationship(back_populates="student_profile")


class Friendship(Base, AuditMixin):
    """Directed friend edge; requester -> recipient."""

    __tablename__ = "friendships"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    requester_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    recipient_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    status: Mapped[FriendshipStatus] = mapped_column(
        Enum(FriendshipStatus), default=FriendshipStatus.PENDING, nullable=False
    )
    accepted_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    # Relationships
    requester: Mapped["User"] = relationship(foreign_keys=[requester_id])
    recipient: Mapped["User"] = relationship(foreign_keys=[recipient_id])

    # Constraints
    __table_args__ = (
        UniqueConstraint(
            "requester_id", "recipient_id", name="uq_friendships_requester_recipient"
        ),
        CheckConstraint("requester_id <> recipient_id", name="ck_friendships_no_self"),
        Index("idx_friendships_recipient_status", "recipient_id", "status"),
        Index("idx_friendships_requester_status", "requester_id", "status"),
    )


class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    recipient_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    actor_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[NotificationType] = mapped_column(
        Enum(NotificationType), nullable=False
    )
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    read_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=naive_utc_now, nullable=False
    )

    # Relationships
    actor: Mapped["User"] = relationship(foreign_keys=[actor_id])

    # Constraints
    __table_args__ = (
        Index("idx_notifications_recipient_created", "recipient_id", "created_at"),
        Index("idx_notifications_recipient_read", "recipient_id", "is_read"),
    )


class Routine(Base, AuditMixin):
    __tablename__ = "routines"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    day: Mapped[DayOfWeek] = mapped_column(Enum(DayOfWeek), nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    activity: Mapped[str] = mapped_column(String(200), nullable=False)
    location: Mapped[Optional[str]] = mapped_column(String(200))
    type: Mapped[RoutineType] = mapped_column(
        Enum(RoutineType), default=RoutineType.CLASS, nullable=False
    )

    # Relationships
    user: Mapped["User"] = relationship(back_populates="routines")

    # Overlap is checked by the service; the schema only guards ordering
    __table_args__ = (
        CheckConstraint("end_time > start_time", name="ck_routines_end_after_start"),
        Index("idx_routines_user_day", "user_id", "day", "start_time"),
    )


class StudyGroup(Base, AuditMixin):
    __tablename__ = "study_groups"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    creator_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(150), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)

    # Relationships
    creator: Mapped["User"] = relationship(foreign_keys=[creator_id])
    memberships: Mapped[List["StudyGroupMembership"]] = relationship(
        back_populates="group",
        cascade="all, delete-orphan",
        order_by="StudyGroupMembership.joined_at",
    )

    # Constraints
    __table_args__ = (
        Index("idx_study_groups_name", "name"),
        Index("idx_study_groups_creator", "creator_id"),
    )


class StudyGroupMembership(Base):
    __tablename__ = "study_group_memberships"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    group_id: Mapped[int] = mapped_column(
        ForeignKey("study_groups.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    role: Mapped[MembershipRole] = mapped_column(
        Enum(MembershipRole), default=MembershipRole.MEMBER, nullable=False
    )
    joined_at: Mapped[datetime] = mapped_column(
        DateTime, default=naive_utc_now, nullable=False
    )

    # Relationships
    group: Mapped["StudyGroup"] = relationship(back_populates="memberships")
    user: Mapped["User"] = relationship()

    # Constraints
    __table_args__ = (
        UniqueConstraint("group_id", "user_id", name="uq_memberships_group_user"),
        Index("idx_memberships_user", "user_id"),
    )


class ChatRoom(Base, AuditMixin):
    __tablename__ = "chat_rooms"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    type: Mapped[ChatRoomType] = mapped_column(
        Enum(ChatRoomType), default=ChatRoomType.DIRECT, nullable=False
    )
    name: Mapped[Optional[str]] = mapped_column(String(150))
    created_by: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    # "low_id:high_id" for direct rooms, one room per pair
    direct_key: Mapped[Optional[str]] = mapped_column(String(40), unique=True)

    # Relationships
    participants: Mapped[List["ChatRoomParticipant"]] = relationship(
        back_populates="room", cascade="all, delete-orphan"
    )

    # Constraints
    __table_args__ = (Index("idx_chat_rooms_updated", "updated_at"),)


class ChatRoomParticipant(Base):
    __tablename__ = "chat_room_participants"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    room_id: Mapped[int] = mapped_column(
        ForeignKey("chat_rooms.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    last_read_at: Mapped[datetime] = mapped_column(
        DateTime, default=naive_utc_now, nullable=False
    )
    joined_at: Mapped[datetime] = mapped_column(
        DateTime, default=naive_utc_now, nullable=False
    )

    # Relationships
    room: Mapped["ChatRoom"] = relationship(back_populates="participants")
    user: Mapped["User"] = relationship()

    # Constraints
    __table_args__ = (
        UniqueConstraint("room_id", "user_id", name="uq_participants_room_user"),
        Index("idx_participants_user", "user_id"),
    )


class ChatMessage(Base):
    __tablename__ = "chat_messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    room_id: Mapped[int] = mapped_column(
        ForeignKey("chat_rooms.id", ondelete="CASCADE"), nullable=False
    )
    sender_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    message: Mapped[str] = mapped_column(Text, nullable=False)
    message_type: Mapped[MessageType] = mapped_column(
        Enum(MessageType), default=MessageType.TEXT, nullable=False
    )
    reply_to_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("chat_messages.id", ondelete="SET NULL")
    )
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=naive_utc_now, nullable=False
    )

    # Relationships
    sender: Mapped["User"] = relationship()
    reply_to: Mapped[Optional["ChatMessage"]] = relationship(remote_side=[id])

    # Constraints
    __table_args__ = (
        Index("idx_chat_messages_room_created", "room_id", "created_at"),
        Index("idx_chat_messages_room_id", "room_id", "id"),
    )


class GameRoom(Base, AuditMixin):
    __tablename__ = "game_rooms"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(12), unique=True, nullable=False)
    game_type: Mapped[GameType] = mapped_column(Enum(GameType), nullable=False)
    created_by: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    status: Mapped[GameRoomStatus] = mapped_column(
        Enum(GameRoomStatus), default=GameRoomStatus.WAITING, nullable=False
    )
    game_state: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False)
    winner_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL")
    )
    # Optimistic locking counter; a stale write raises StaleDataError
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # Relationships
    players: Mapped[List["GameRoomPlayer"]] = relationship(
        back_populates="room",
        cascade="all, delete-orphan",
        order_by="GameRoomPlayer.id",
    )
    creator: Mapped["User"] = relationship(foreign_keys=[created_by])
    winner: Mapped[Optional["User"]] = relationship(foreign_keys=[winner_id])

    __mapper_args__ = {"version_id_col": version}

    # Constraints
    __table_args__ = (
        Index("idx_game_rooms_code", "code"),
        Index("idx_game_rooms_status", "status"),
    )


class GameRoomPlayer(Base):
    __tablename__ = "game_room_players"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    room_id: Mapped[int] = mapped_column(
        ForeignKey("game_rooms.id", ondelete="CASCADE"), nullable=False
    )
    player_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    symbol: Mapped[str] = mapped_column(String(1), nullable=False)
    joined_at: Mapped[datetime] = mapped_column(
        DateTime, default=naive_utc_now, nullable=False
    )

    # Relationships
    room: Mapped["GameRoom"] = relationship(back_populates="players")
    player: Mapped["User"] = relationship()

    # Constraints
    __table_args__ = (
        UniqueConstraint("room_id", "player_id", name="uq_game_players_room_player"),
        UniqueConstraint("room_id", "symbol", name="uq_game_players_room_symbol"),
    )


class GameStatistic(Base, AuditMixin):
    __tablename__ = "game_statistics"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    game_type: Mapped[GameType] = mapped_column(Enum(GameType), nullable=False)
    wins: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    losses: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    draws: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_games: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Relationships
    user: Mapped["User"] = relationship()

    # Constraints
    __table_args__ = (
        UniqueConstraint("user_id", "game_type", name="uq_game_statistics_user_game"),
        Index("idx_game_statistics_game", "game_type"),
    )

    @property
    def points(self) -> int:
        return self.wins * 3 + self.draws


class Feedback(Base, AuditMixin):
    __tablename__ = "feedback"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    # Null for anonymous submissions
    user_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL")
    )
    message: Mapped[str] = mapped_column(Text, nullable=False)
    priority: Mapped[FeedbackPriority] = mapped_column(
        Enum(FeedbackPriority), default=FeedbackPriority.MEDIUM, nullable=False
    )
    status: Mapped[FeedbackStatus] = mapped_column(
        Enum(FeedbackStatus), default=FeedbackStatus.OPEN, nullable=False
    )

    # Relationships
    user: Mapped[Optional["User"]] = relationship()

    # Constraints
    __table_args__ = (Index("idx_feedback_status_created", "status", "created_at"),)


class BugReport(Base, AuditMixin):
    __tablename__ = "bug_reports"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL")
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    severity: Mapped[BugSeverity] = mapped_column(
        Enum(BugSeverity), default=BugSeverity.MEDIUM, nullable=False
    )
    status: Mapped[BugStatus] = mapped_column(
        Enum(BugStatus), default=BugStatus.OPEN, nullable=False
    )

    # Relationships
    user: Mapped[Optional["User"]] = relationship()

    # Constraints
    __table_args__ = (Index("idx_bug_reports_status_created", "status", "created_at"),)
