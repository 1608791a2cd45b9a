from datetime import time
from typing import Dict, List, Optional

from fastapi import Depends
from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session, selectinload

from campus_connect.config.settings import settings
from campus_connect.db.models import DayOfWeek, Routine, RoutineType, User
from campus_connect.db.session import get_sync_session
from campus_connect.schemas.routine_schemas import (
    DayFreeTime,
    RoutineMatch,
    RoutineRequest,
    RoutineResponse,
    TimeSlot,
    WeeklySummaryItem,
)
from campus_connect.services.friend_service import FriendService
from campus_connect.services.user_service import to_user_summary
from campus_connect.utils.datetime_utils import (
    format_minutes,
    minutes_since_midnight,
    parse_time_of_day,
)
from campus_connect.utils.logging import get_logger
from campus_connect.utils.time_slots import (
    Interval,
    free_slots,
    intersect_intervals,
    mutual_free_slots,
)

logger = get_logger()

DAY_ORDER = list(DayOfWeek)


def free_time_window() -> Interval:
    """The configured bounded day-span used for free-time computations"""
    return Interval(
        minutes_since_midnight(parse_time_of_day(settings.FREE_TIME_WINDOW_START)),
        minutes_since_midnight(parse_time_of_day(settings.FREE_TIME_WINDOW_END)),
    )


def routine_interval(routine: Routine) -> Interval:
    # Busy time covers every minute the routine touches
    return Interval(
        minutes_since_midnight(routine.start_time),
        minutes_since_midnight(routine.end_time, round_up=True),
    )


def to_time_slots(intervals: List[Interval]) -> List[TimeSlot]:
    return [
        TimeSlot(
            start=format_minutes(i.start),
            end=format_minutes(i.end),
            duration_minutes=i.duration,
        )
        for i in intervals
    ]


class RoutineService:
    """Weekly time blocks per user, with overlap rejection and free-time lookups"""

    def __init__(self, db_session: Session):
        self.db = db_session

    def _find_conflict(
        self,
        owner_id: int,
        day: DayOfWeek,
        start: time,
        end: time,
        exclude_id: Optional[int] = None,
    ) -> Optional[Routine]:
        """
        First routine of the owner on the same day that overlaps [start, end).

        Covers an existing block containing the new start, one containing the
        new end, and one fully inside the new range (which includes an exact
        match).
        """
        conditions = [
            Routine.user_id == owner_id,
            Routine.day == day,
            or_(
                and_(Routine.start_time <= start, Routine.end_time > start),
                and_(Routine.start_time < end, Routine.end_time >= end),
                and_(Routine.start_time >= start, Routine.end_time <= end),
            ),
        ]
        if exclude_id is not None:
            conditions.append(Routine.id != exclude_id)

        return (
            self.db.execute(
                select(Routine).where(*conditions).order_by(Routine.start_time)
            )
            .scalars()
            .first()
        )

    def _validate(
        self, owner_id: int, data: RoutineRequest, exclude_id: Optional[int] = None
    ) -> None:
        if data.end_time <= data.start_time:
            raise ValueError("INVALID_TIME_RANGE")

        conflict = self._find_conflict(
            owner_id, data.day, data.start_time, data.end_time, exclude_id
        )
        if conflict:
            logger.warning(
                f"Routine conflict for user {owner_id} on {data.day.value}: "
                f"{data.start_time}-{data.end_time} overlaps routine {conflict.id}"
            )
            raise ValueError(
                f"ROUTINE_TIME_CONFLICT: Time conflicts with '{conflict.activity}' "
                f"({conflict.start_time.strftime('%H:%M')}-{conflict.end_time.strftime('%H:%M')})"
            )

    async def _get_owned(self, owner_id: int, routine_id: int) -> Routine:
        # Someone else's routine is reported as missing, not forbidden
        routine = self.db.execute(
            select(Routine).where(Routine.id == routine_id, Routine.user_id == owner_id)
        ).scalar_one_or_none()
        if not routine:
            raise ValueError("ROUTINE_NOT_FOUND")
        return routine

    async def list_routines(
        self, owner_id: int, day: Optional[DayOfWeek] = None
    ) -> List[RoutineResponse]:
        stmt = select(Routine).where(Routine.user_id == owner_id)
        if day is not None:
            stmt = stmt.where(Routine.day == day)
        routines = self.db.execute(stmt).scalars().all()

        routines = sorted(routines, key=lambda r: (DAY_ORDER.index(r.day), r.start_time))
        return [RoutineResponse.model_validate(r) for r in routines]

    async def get_routine(self, owner_id: int, routine_id: int) -> RoutineResponse:
        return RoutineResponse.model_validate(await self._get_owned(owner_id, routine_id))

    async def create_routine(self, owner_id: int, data: RoutineRequest) -> RoutineResponse:
        self._validate(owner_id, data)

        routine = Routine(
            user_id=owner_id,
            day=data.day,
            start_time=data.start_time,
            end_time=data.end_time,
            activity=data.activity,
            location=data.location,
            type=data.type,
        )
        self.db.add(routine)
        self.db.commit()
        self.db.refresh(routine)

        logger.info(f"Created routine {routine.id} for user {owner_id} on {data.day.value}")
        return RoutineResponse.model_validate(routine)

    async def update_routine(
        self, owner_id: int, routine_id: int, data: RoutineRequest
    ) -> RoutineResponse:
        routine = await self._get_owned(owner_id, routine_id)
        self._validate(owner_id, data, exclude_id=routine_id)

        routine.day = data.day
        routine.start_time = data.start_time
        routine.end_time = data.end_time
        routine.activity = data.activity
        routine.location = data.location
        routine.type = data.type
        self.db.commit()
        self.db.refresh(routine)

        logger.info(f"Updated routine {routine_id} for user {owner_id}")
        return RoutineResponse.model_validate(routine)

    async def delete_routine(self, owner_id: int, routine_id: int) -> None:
        routine = await self._get_owned(owner_id, routine_id)
        self.db.delete(routine)
        self.db.commit()
        logger.info(f"Deleted routine {routine_id} for user {owner_id}")

    async def weekly_summary(self, owner_id: int) -> List[WeeklySummaryItem]:
        routines = self.db.execute(
            select(Routine).where(Routine.user_id == owner_id)
        ).scalars().all()

        summary: Dict[DayOfWeek, WeeklySummaryItem] = {
            day: WeeklySummaryItem(day=day, routine_count=0, scheduled_minutes=0)
            for day in DAY_ORDER
        }
        for routine in routines:
            item = summary[routine.day]
            item.routine_count += 1
            item.scheduled_minutes += routine_interval(routine).duration
        return list(summary.values())

    def _busy(self, owner_id: int, day: DayOfWeek) -> List[Interval]:
        routines = self.db.execute(
            select(Routine).where(Routine.user_id == owner_id, Routine.day == day)
        ).scalars().all()
        return [routine_interval(r) for r in routines]

    async def free_time(
        self, owner_id: int, day: DayOfWeek, min_duration: Optional[int] = None
    ) -> DayFreeTime:
        window = free_time_window()
        min_duration = (
            settings.DEFAULT_MIN_FREE_MINUTES if min_duration is None else min_duration
        )
        slots = free_slots(self._busy(owner_id, day), window.start, window.end, min_duration)
        return DayFreeTime(
            day=day,
            window_start=format_minutes(window.start),
            window_end=format_minutes(window.end),
            min_duration_minutes=min_duration,
            slots=to_time_slots(slots),
        )

    async def mutual_free_time(
        self,
        owner_id: int,
        friend_id: int,
        day: Optional[DayOfWeek] = None,
        min_duration: Optional[int] = None,
    ) -> List[DayFreeTime]:
        """Free slots shared with a friend for one day, or for the whole week"""
        if not await FriendService(self.db).are_friends(owner_id, friend_id):
            raise ValueError("NOT_FRIENDS")

        window = free_time_window()
        min_duration = (
            settings.DEFAULT_MIN_FREE_MINUTES if min_duration is None else min_duration
        )
        days = [day] if day is not None else DAY_ORDER

        results = []
        for current in days:
            slots = mutual_free_slots(
                self._busy(owner_id, current),
                self._busy(friend_id, current),
                window.start,
                window.end,
                min_duration,
            )
            results.append(
                DayFreeTime(
                    day=current,
                    window_start=format_minutes(window.start),
                    window_end=format_minutes(window.end),
                    min_duration_minutes=min_duration,
                    slots=to_time_slots(slots),
                )
            )
        return results

    async def friend_matches(
        self,
        owner_id: int,
        day: DayOfWeek,
        routine_type: Optional[RoutineType] = None,
        min_duration: int = 60,
    ) -> List[RoutineMatch]:
        """Friends' routines on `day` that overlap one of mine for at least min_duration"""
        friend_ids = await FriendService(self.db).list_friend_ids(owner_id)
        if not friend_ids:
            return []

        mine = self.db.execute(
            select(Routine).where(Routine.user_id == owner_id, Routine.day == day)
        ).scalars().all()

        stmt = (
            select(Routine)
            .options(selectinload(Routine.user).selectinload(User.student_profile))
            .where(Routine.user_id.in_(friend_ids), Routine.day == day)
            .order_by(Routine.start_time)
        )
        if routine_type is not None:
            stmt = stmt.where(Routine.type == routine_type)
        theirs = self.db.execute(stmt).scalars().all()

        matches = []
        for own in mine:
            own_interval = routine_interval(own)
            for other in theirs:
                overlap = intersect_intervals([own_interval], [routine_interval(other)])
                if overlap and overlap[0].duration >= min_duration:
                    matches.append(
                        RoutineMatch(
                            user=to_user_summary(other.user),
                            routine=RoutineResponse.model_validate(other),
                            overlap=to_time_slots(overlap)[0],
                        )
                    )
        return matches


def get_routine_service(db: Session = Depends(get_sync_session)) -> RoutineService:
    return RoutineService(db)
