from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.exc import SQLAlchemyError

from campus_connect.middlewares.auth_middleware import AuthState, get_optional_user
from campus_connect.schemas.report_schemas import CreateFeedbackRequest
from campus_connect.services.report_service import ReportService, get_report_service
from campus_connect.utils.error_handlers import handle_service_error
from campus_connect.utils.errors import BusinessLogicError
from campus_connect.utils.responses import ResponseBuilder

feedback_router = APIRouter()


@feedback_router.post(
    "/",
    status_code=status.HTTP_201_CREATED,
    summary="Send feedback",
    description="Works with or without a bearer token. Anonymous feedback has no reporter.",
)
async def submit_feedback(
    request: Request,
    body: CreateFeedbackRequest,
    current_user: Annotated[Optional[AuthState], Depends(get_optional_user)],
    report_service: ReportService = Depends(get_report_service),
):
    try:
        feedback = await report_service.submit_feedback(
            current_user.user_id if current_user else None, body
        )
        return ResponseBuilder.success(
            request=request,
            data=feedback.model_dump(by_alias=True),
            message="Thank you for your feedback",
            status_code=status.HTTP_201_CREATED,
        )
    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except SQLAlchemyError:
        raise
    except Exception:
        raise BusinessLogicError(
            message="Failed to submit feedback", error_code="FEEDBACK_SUBMISSION_FAILED"
        )
