from typing import Annotated

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.exc import SQLAlchemyError

from campus_connect.middlewares.auth_middleware import AuthState, get_current_user
from campus_connect.schemas.report_schemas import CreateBugReportRequest
from campus_connect.services.report_service import ReportService, get_report_service
from campus_connect.utils.error_handlers import handle_service_error
from campus_connect.utils.errors import BusinessLogicError
from campus_connect.utils.responses import ResponseBuilder

bugs_router = APIRouter()


@bugs_router.post(
    "/",
    status_code=status.HTTP_201_CREATED,
    summary="Report a bug",
)
async def submit_bug_report(
    request: Request,
    body: CreateBugReportRequest,
    current_user: Annotated[AuthState, Depends(get_current_user)],
    report_service: ReportService = Depends(get_report_service),
):
    try:
        bug = await report_service.submit_bug_report(current_user.user_id, body)
        return ResponseBuilder.success(
            request=request,
            data=bug.model_dump(by_alias=True),
            message="Bug report submitted",
            status_code=status.HTTP_201_CREATED,
        )
    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except SQLAlchemyError:
        raise
    except Exception:
        raise BusinessLogicError(
            message="Failed to submit bug report", error_code="BUG_REPORT_SUBMISSION_FAILED"
        )


@bugs_router.get("/", summary="My bug reports")
async def list_my_bug_reports(
    request: Request,
    current_user: Annotated[AuthState, Depends(get_current_user)],
    report_service: ReportService = Depends(get_report_service),
):
    try:
        bugs = await report_service.list_my_bug_reports(current_user.user_id)
        return ResponseBuilder.success(
            request=request,
            data=[b.model_dump(by_alias=True) for b in bugs],
            message=f"Retrieved {len(bugs)} bug reports",
        )
    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except SQLAlchemyError:
        raise
    except Exception:
        raise BusinessLogicError(
            message="Failed to retrieve bug reports",
            error_code="BUG_REPORTS_RETRIEVAL_FAILED",
        )
