from typing import Dict, FrozenSet, List, Optional, Tuple

from fastapi import Depends
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, selectinload

from campus_connect.config.settings import settings
from campus_connect.db.models import (
    BugReport,
    BugStatus,
    Feedback,
    FeedbackStatus,
    User,
)
from campus_connect.db.session import get_sync_session
from campus_connect.schemas.report_schemas import (
    BugReportResponse,
    CreateBugReportRequest,
    CreateFeedbackRequest,
    FeedbackResponse,
)
from campus_connect.schemas.response_schemas import OffsetPage
from campus_connect.services.user_service import escape_like, to_user_summary
from campus_connect.utils.logging import get_logger

logger = get_logger()

FEEDBACK_TRANSITIONS: Dict[FeedbackStatus, FrozenSet[FeedbackStatus]] = {
    FeedbackStatus.OPEN: frozenset(
        {FeedbackStatus.IN_PROGRESS, FeedbackStatus.RESOLVED, FeedbackStatus.CLOSED}
    ),
    FeedbackStatus.IN_PROGRESS: frozenset(
        {FeedbackStatus.OPEN, FeedbackStatus.RESOLVED, FeedbackStatus.CLOSED}
    ),
    FeedbackStatus.RESOLVED: frozenset({FeedbackStatus.CLOSED, FeedbackStatus.OPEN}),
    FeedbackStatus.CLOSED: frozenset({FeedbackStatus.OPEN}),
}

BUG_TRANSITIONS: Dict[BugStatus, FrozenSet[BugStatus]] = {
    BugStatus.OPEN: frozenset({BugStatus.TRIAGED, BugStatus.IN_PROGRESS, BugStatus.CLOSED}),
    BugStatus.TRIAGED: frozenset({BugStatus.IN_PROGRESS, BugStatus.CLOSED, BugStatus.OPEN}),
    BugStatus.IN_PROGRESS: frozenset({BugStatus.FIXED, BugStatus.TRIAGED, BugStatus.CLOSED}),
    BugStatus.FIXED: frozenset({BugStatus.CLOSED, BugStatus.IN_PROGRESS}),
    BugStatus.CLOSED: frozenset({BugStatus.OPEN}),
}


def check_transition(transitions: Dict, current, target) -> bool:
    """True when the status change is allowed; staying put is always allowed"""
    return current == target or target in transitions.get(current, frozenset())


def clamp_page(limit: Optional[int], offset: Optional[int]) -> Tuple[int, int]:
    limit = settings.ADMIN_PAGE_LIMIT_DEFAULT if not limit or limit < 1 else limit
    return min(limit, settings.ADMIN_PAGE_LIMIT_MAX), max(offset or 0, 0)


def to_feedback_response(feedback: Feedback) -> FeedbackResponse:
    return FeedbackResponse(
        id=feedback.id,
        message=feedback.message,
        priority=feedback.priority,
        status=feedback.status,
        reporter=to_user_summary(feedback.user) if feedback.user else None,
        created_at=feedback.created_at,
        updated_at=feedback.updated_at,
    )


def to_bug_response(bug: BugReport) -> BugReportResponse:
    return BugReportResponse(
        id=bug.id,
        title=bug.title,
        description=bug.description,
        severity=bug.severity,
        status=bug.status,
        reporter=to_user_summary(bug.user) if bug.user else None,
        created_at=bug.created_at,
        updated_at=bug.updated_at,
    )


class ReportService:
    """User feedback and bug reports, plus the admin triage console"""

    def __init__(self, db_session: Session):
        self.db = db_session

    async def submit_feedback(
        self, user_id: Optional[int], data: CreateFeedbackRequest
    ) -> FeedbackResponse:
        feedback = Feedback(
            user_id=user_id,
            message=data.message,
            priority=data.priority,
            status=FeedbackStatus.OPEN,
        )
        self.db.add(feedback)
        self.db.commit()
        self.db.refresh(feedback)

        logger.info(
            f"Feedback {feedback.id} submitted by {'user ' + str(user_id) if user_id else 'anonymous'}"
        )
        return to_feedback_response(feedback)

    async def submit_bug_report(
        self, user_id: int, data: CreateBugReportRequest
    ) -> BugReportResponse:
        bug = BugReport(
            user_id=user_id,
            title=data.title,
            description=data.description,
            severity=data.severity,
            status=BugStatus.OPEN,
        )
        self.db.add(bug)
        self.db.commit()
        self.db.refresh(bug)

        logger.info(f"Bug report {bug.id} ({data.severity.value}) submitted by user {user_id}")
        return to_bug_response(bug)

    async def list_my_bug_reports(self, user_id: int) -> List[BugReportResponse]:
        bugs = (
            self.db.execute(
                select(BugReport)
                .options(selectinload(BugReport.user).selectinload(User.student_profile))
                .where(BugReport.user_id == user_id)
                .order_by(BugReport.created_at.desc(), BugReport.id.desc())
            )
            .scalars()
            .all()
        )
        return [to_bug_response(b) for b in bugs]

    async def list_feedback(
        self,
        status: Optional[FeedbackStatus] = None,
        query: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> OffsetPage:
        limit, offset = clamp_page(limit, offset)

        conditions = []
        if status is not None:
            conditions.append(Feedback.status == status)
        if query and query.strip():
            like = f"%{escape_like(query.strip())}%"
            conditions.append(
                or_(
                    Feedback.message.ilike(like, escape="\\"),
                    User.first_name.ilike(like, escape="\\"),
                    User.last_name.ilike(like, escape="\\"),
                    User.email.ilike(like, escape="\\"),
                )
            )

        total = self.db.execute(
            select(func.count(Feedback.id))
            .select_from(Feedback)
            .outerjoin(User, User.id == Feedback.user_id)
            .where(*conditions)
        ).scalar() or 0

        rows = (
            self.db.execute(
                select(Feedback)
                .outerjoin(User, User.id == Feedback.user_id)
                .options(selectinload(Feedback.user).selectinload(User.student_profile))
                .where(*conditions)
                .order_by(Feedback.created_at.desc(), Feedback.id.desc())
                .limit(limit)
                .offset(offset)
            )
            .scalars()
            .all()
        )

        return OffsetPage(
            items=[to_feedback_response(f) for f in rows],
            total=total,
            limit=limit,
            offset=offset,
        )

    async def list_bug_reports(
        self,
        status: Optional[BugStatus] = None,
        query: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> OffsetPage:
        limit, offset = clamp_page(limit, offset)

        conditions = []
        if status is not None:
            conditions.append(BugReport.status == status)
        if query and query.strip():
            like = f"%{escape_like(query.strip())}%"
            conditions.append(
                or_(
                    BugReport.title.ilike(like, escape="\\"),
                    BugReport.description.ilike(like, escape="\\"),
                    User.first_name.ilike(like, escape="\\"),
                    User.last_name.ilike(like, escape="\\"),
                    User.email.ilike(like, escape="\\"),
                )
            )

        total = self.db.execute(
            select(func.count(BugReport.id))
            .select_from(BugReport)
            .outerjoin(User, User.id == BugReport.user_id)
            .where(*conditions)
        ).scalar() or 0

        rows = (
            self.db.execute(
                select(BugReport)
                .outerjoin(User, User.id == BugReport.user_id)
                .options(selectinload(BugReport.user).selectinload(User.student_profile))
                .where(*conditions)
                .order_by(BugReport.created_at.desc(), BugReport.id.desc())
                .limit(limit)
                .offset(offset)
            )
            .scalars()
            .all()
        )

        return OffsetPage(
            items=[to_bug_response(b) for b in rows],
            total=total,
            limit=limit,
            offset=offset,
        )

    async def update_feedback_status(
        self, admin_id: int, feedback_id: int, status: FeedbackStatus
    ) -> FeedbackResponse:
        feedback = self.db.get(Feedback, feedback_id)
        if not feedback:
            raise ValueError("FEEDBACK_NOT_FOUND")

        if not check_transition(FEEDBACK_TRANSITIONS, feedback.status, status):
            raise ValueError(
                f"INVALID_STATUS_TRANSITION: Feedback cannot move from "
                f"{feedback.status.value} to {status.value}"
            )

        if feedback.status != status:
            previous = feedback.status
            feedback.status = status
            self.db.commit()
            self.db.refresh(feedback)
            logger.info(
                f"Admin {admin_id} moved feedback {feedback_id} {previous.value} -> {status.value}"
            )
        return to_feedback_response(feedback)

    async def update_bug_status(
        self, admin_id: int, bug_id: int, status: BugStatus
    ) -> BugReportResponse:
        bug = self.db.get(BugReport, bug_id)
        if not bug:
            raise ValueError("BUG_REPORT_NOT_FOUND")

        if not check_transition(BUG_TRANSITIONS, bug.status, status):
            raise ValueError(
                f"INVALID_STATUS_TRANSITION: Bug report cannot move from "
                f"{bug.status.value} to {status.value}"
            )

        if bug.status != status:
            previous = bug.status
            bug.status = status
            self.db.commit()
            self.db.refresh(bug)
            logger.info(
                f"Admin {admin_id} moved bug report {bug_id} {previous.value} -> {status.value}"
            )
        return to_bug_response(bug)


def get_report_service(db: Session = Depends(get_sync_session)) -> ReportService:
    return ReportService(db)
