from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Path, Query, Request
from sqlalchemy.exc import SQLAlchemyError

from campus_connect.db.models import BugStatus, FeedbackStatus
from campus_connect.middlewares.auth_middleware import AuthState, require_admin
from campus_connect.schemas.report_schemas import (
    UpdateBugStatusRequest,
    UpdateFeedbackStatusRequest,
)
from campus_connect.services.report_service import ReportService, get_report_service
from campus_connect.utils.error_handlers import handle_service_error
from campus_connect.utils.errors import BusinessLogicError
from campus_connect.utils.logging import get_logger
from campus_connect.utils.responses import ResponseBuilder

admin_router = APIRouter()
logger = get_logger()


@admin_router.get("/ping", summary="Admin access check")
async def ping(
    request: Request,
    current_user: Annotated[AuthState, Depends(require_admin)],
):
    return ResponseBuilder.success(
        request=request,
        data={"userId": current_user.user_id, "role": current_user.role},
        message="Admin access confirmed",
    )


@admin_router.get(
    "/feedback",
    summary="Browse feedback",
    description="Filter by status and free text (message, reporter name or email). "
    "`limit` defaults to 20 and is capped at 100.",
)
async def list_feedback(
    request: Request,
    current_user: Annotated[AuthState, Depends(require_admin)],
    status: Optional[FeedbackStatus] = Query(default=None),
    q: Optional[str] = Query(default=None, max_length=200),
    limit: Optional[int] = Query(default=None, ge=1),
    offset: Optional[int] = Query(default=None, ge=0),
    report_service: ReportService = Depends(get_report_service),
):
    try:
        page = await report_service.list_feedback(status, q, limit, offset)
        return ResponseBuilder.success(
            request=request,
            data=page.model_dump(by_alias=True),
            message=f"Retrieved {len(page.items)} of {page.total} feedback entries",
        )
    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except SQLAlchemyError:
        raise
    except Exception as e:
        logger.error(f"Admin feedback listing failed: {str(e)}", exc_info=True)
        raise BusinessLogicError(
            message="Failed to retrieve feedback", error_code="FEEDBACK_RETRIEVAL_FAILED"
        )


@admin_router.get(
    "/bugs",
    summary="Browse bug reports",
    description="Filter by status and free text (title, description, reporter name or email).",
)
async def list_bug_reports(
    request: Request,
    current_user: Annotated[AuthState, Depends(require_admin)],
    status: Optional[BugStatus] = Query(default=None),
    q: Optional[str] = Query(default=None, max_length=200),
    limit: Optional[int] = Query(default=None, ge=1),
    offset: Optional[int] = Query(default=None, ge=0),
    report_service: ReportService = Depends(get_report_service),
):
    try:
        page = await report_service.list_bug_reports(status, q, limit, offset)
        return ResponseBuilder.success(
            request=request,
            data=page.model_dump(by_alias=True),
            message=f"Retrieved {len(page.items)} of {page.total} bug reports",
        )
    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except SQLAlchemyError:
        raise
    except Exception as e:
        logger.error(f"Admin bug listing failed: {str(e)}", exc_info=True)
        raise BusinessLogicError(
            message="Failed to retrieve bug reports",
            error_code="BUG_REPORTS_RETRIEVAL_FAILED",
        )


@admin_router.put(
    "/feedback/{feedback_id}/status",
    summary="Update feedback status",
    description="Only allowed transitions are accepted. Setting the current status is a no-op.",
)
async def update_feedback_status(
    request: Request,
    feedback_id: Annotated[int, Path(gt=0)],
    body: UpdateFeedbackStatusRequest,
    current_user: Annotated[AuthState, Depends(require_admin)],
    report_service: ReportService = Depends(get_report_service),
):
    try:
        feedback = await report_service.update_feedback_status(
            current_user.user_id, feedback_id, body.status
        )
        return ResponseBuilder.success(
            request=request,
            data=feedback.model_dump(by_alias=True),
            message="Feedback status updated",
        )
    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except SQLAlchemyError:
        raise
    except Exception:
        raise BusinessLogicError(
            message="Failed to update feedback status",
            error_code="FEEDBACK_UPDATE_FAILED",
        )


@admin_router.put("/bugs/{bug_id}/status", summary="Update bug report status")
async def update_bug_status(
    request: Request,
    bug_id: Annotated[int, Path(gt=0)],
    body: UpdateBugStatusRequest,
    current_user: Annotated[AuthState, Depends(require_admin)],
    report_service: ReportService = Depends(get_report_service),
):
    try:
        bug = await report_service.update_bug_status(
            current_user.user_id, bug_id, body.status
        )
        return ResponseBuilder.success(
            request=request,
            data=bug.model_dump(by_alias=True),
            message="Bug report status updated",
        )
    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except SQLAlchemyError:
        raise
    except Exception:
        raise BusinessLogicError(
            message="Failed to update bug report status",
            error_code="BUG_REPORT_UPDATE_FAILED",
        )
