from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.exc import SQLAlchemyError

from campus_connect.middlewares.auth_middleware import AuthState, get_current_user
from campus_connect.schemas.user_schemas import UpdateProfileRequest
from campus_connect.services.user_service import UserService, get_user_service
from campus_connect.utils.error_handlers import handle_service_error
from campus_connect.utils.errors import BusinessLogicError
from campus_connect.utils.responses import ResponseBuilder

users_router = APIRouter()


@users_router.get(
    "/me",
    summary="Get my profile",
    description="Profile of the authenticated caller.",
)
async def get_my_profile(
    request: Request,
    current_user: Annotated[AuthState, Depends(get_current_user)],
    user_service: UserService = Depends(get_user_service),
):
    try:
        profile = await user_service.get_profile(current_user.user_id)
        return ResponseBuilder.success(
            request=request,
            data=profile.model_dump(by_alias=True),
            message="Profile retrieved successfully",
        )
    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except SQLAlchemyError:
        raise
    except Exception:
        raise BusinessLogicError(
            message="Failed to retrieve profile", error_code="PROFILE_RETRIEVAL_FAILED"
        )


@users_router.patch(
    "/me",
    summary="Update my profile",
    description="Partial update of names, email, campus id, profile image and (students) department. "
    "The user row and the department change commit together.",
)
async def update_my_profile(
    request: Request,
    update_data: UpdateProfileRequest,
    current_user: Annotated[AuthState, Depends(get_current_user)],
    user_service: UserService = Depends(get_user_service),
):
    try:
        profile = await user_service.update_profile(current_user.user_id, update_data)
        return ResponseBuilder.success(
            request=request,
            data=profile.model_dump(by_alias=True),
            message="Profile updated successfully",
        )
    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except SQLAlchemyError:
        raise
    except Exception:
        raise BusinessLogicError(
            message="Failed to update profile", error_code="PROFILE_UPDATE_FAILED"
        )


@users_router.get(
    "/search",
    summary="Search students",
    description="Substring search over student names, email and campus id, with the caller's friend status per result.",
)
async def search_users(
    request: Request,
    current_user: Annotated[AuthState, Depends(get_current_user)],
    q: str = Query(..., min_length=1, max_length=100, description="Search term"),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    user_service: UserService = Depends(get_user_service),
):
    try:
        results = await user_service.search_students(
            current_user.user_id, q, limit=limit, offset=offset
        )
        return ResponseBuilder.success(
            request=request,
            data=[r.model_dump(by_alias=True) for r in results],
            message=f"Found {len(results)} students",
        )
    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except SQLAlchemyError:
        raise
    except Exception:
        raise BusinessLogicError(
            message="Failed to search users", error_code="USER_SEARCH_FAILED"
        )
