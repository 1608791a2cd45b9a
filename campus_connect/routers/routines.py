from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Path, Query, Request, status
from sqlalchemy.exc import SQLAlchemyError

from campus_connect.db.models import DayOfWeek, RoutineType
from campus_connect.middlewares.auth_middleware import AuthState, get_current_user
from campus_connect.schemas.routine_schemas import RoutineRequest
from campus_connect.services.routine_service import RoutineService, get_routine_service
from campus_connect.utils.error_handlers import handle_service_error
from campus_connect.utils.errors import BusinessLogicError
from campus_connect.utils.responses import ResponseBuilder

routines_router = APIRouter()


@routines_router.get(
    "/",
    summary="List my routines",
    description="The caller's weekly routine blocks, ordered by day then start time.",
)
async def list_routines(
    request: Request,
    current_user: Annotated[AuthState, Depends(get_current_user)],
    day: Optional[DayOfWeek] = Query(default=None, description="Only this day"),
    routine_service: RoutineService = Depends(get_routine_service),
):
    try:
        routines = await routine_service.list_routines(current_user.user_id, day)
        return ResponseBuilder.success(
            request=request,
            data=[r.model_dump(by_alias=True) for r in routines],
            message=f"Retrieved {len(routines)} routines",
        )
    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except SQLAlchemyError:
        raise
    except Exception:
        raise BusinessLogicError(
            message="Failed to retrieve routines", error_code="ROUTINES_RETRIEVAL_FAILED"
        )


@routines_router.get("/summary/weekly", summary="Weekly summary")
async def weekly_summary(
    request: Request,
    current_user: Annotated[AuthState, Depends(get_current_user)],
    routine_service: RoutineService = Depends(get_routine_service),
):
    """Routine count and scheduled minutes for each day of the week"""
    try:
        summary = await routine_service.weekly_summary(current_user.user_id)
        return ResponseBuilder.success(
            request=request,
            data=[s.model_dump(by_alias=True) for s in summary],
            message="Weekly summary retrieved",
        )
    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except SQLAlchemyError:
        raise
    except Exception:
        raise BusinessLogicError(
            message="Failed to build weekly summary", error_code="ROUTINE_SUMMARY_FAILED"
        )


@routines_router.get(
    "/free-time/{day}",
    summary="My free time",
    description="Gaps between the caller's routines inside the daily window, at least `duration` minutes long.",
)
async def free_time(
    request: Request,
    day: DayOfWeek,
    current_user: Annotated[AuthState, Depends(get_current_user)],
    duration: Optional[int] = Query(default=None, ge=1, le=24 * 60),
    routine_service: RoutineService = Depends(get_routine_service),
):
    try:
        result = await routine_service.free_time(current_user.user_id, day, duration)
        return ResponseBuilder.success(
            request=request,
            data=result.model_dump(by_alias=True),
            message=f"Found {len(result.slots)} free slots",
        )
    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except SQLAlchemyError:
        raise
    except Exception:
        raise BusinessLogicError(
            message="Failed to compute free time", error_code="FREE_TIME_FAILED"
        )


@routines_router.get(
    "/mutual-free-time/{friend_id}",
    summary="Mutual free time with a friend",
    description="Slots where neither the caller nor the friend is busy. Without `day`, all seven days.",
)
async def mutual_free_time(
    request: Request,
    friend_id: Annotated[int, Path(gt=0)],
    current_user: Annotated[AuthState, Depends(get_current_user)],
    day: Optional[DayOfWeek] = Query(default=None),
    min_duration: Optional[int] = Query(default=None, ge=1, le=24 * 60),
    routine_service: RoutineService = Depends(get_routine_service),
):
    try:
        days = await routine_service.mutual_free_time(
            current_user.user_id, friend_id, day, min_duration
        )
        return ResponseBuilder.success(
            request=request,
            data=[d.model_dump(by_alias=True) for d in days],
            message="Mutual free time computed",
        )
    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except SQLAlchemyError:
        raise
    except Exception:
        raise BusinessLogicError(
            message="Failed to compute mutual free time",
            error_code="MUTUAL_FREE_TIME_FAILED",
        )


@routines_router.get(
    "/matches/friends",
    summary="Routine overlaps with friends",
    description="Friends' routines on a day that overlap one of the caller's for at least `duration` minutes.",
)
async def friend_matches(
    request: Request,
    current_user: Annotated[AuthState, Depends(get_current_user)],
    day: DayOfWeek = Query(..., description="Day to compare"),
    type: Optional[RoutineType] = Query(default=None, description="Friends' routine type"),
    duration: int = Query(default=60, ge=1, le=24 * 60),
    routine_service: RoutineService = Depends(get_routine_service),
):
    try:
        matches = await routine_service.friend_matches(
            current_user.user_id, day, type, duration
        )
        return ResponseBuilder.success(
            request=request,
            data=[m.model_dump(by_alias=True) for m in matches],
            message=f"Found {len(matches)} matches",
        )
    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except SQLAlchemyError:
        raise
    except Exception:
        raise BusinessLogicError(
            message="Failed to find routine matches", error_code="ROUTINE_MATCHES_FAILED"
        )


@routines_router.get(
    "/user/{owner_id}",
    summary="Another user's routines",
    description="Any authenticated caller may view any user's weekly routine.",
)
async def list_user_routines(
    request: Request,
    owner_id: Annotated[int, Path(gt=0)],
    current_user: Annotated[AuthState, Depends(get_current_user)],
    routine_service: RoutineService = Depends(get_routine_service),
):
    try:
        routines = await routine_service.list_routines(owner_id)
        return ResponseBuilder.success(
            request=request,
            data=[r.model_dump(by_alias=True) for r in routines],
            message=f"Retrieved {len(routines)} routines",
        )
    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except SQLAlchemyError:
        raise
    except Exception:
        raise BusinessLogicError(
            message="Failed to retrieve routines", error_code="ROUTINES_RETRIEVAL_FAILED"
        )


@routines_router.get("/{routine_id}", summary="Get one of my routines")
async def get_routine(
    request: Request,
    routine_id: Annotated[int, Path(gt=0)],
    current_user: Annotated[AuthState, Depends(get_current_user)],
    routine_service: RoutineService = Depends(get_routine_service),
):
    try:
        routine = await routine_service.get_routine(current_user.user_id, routine_id)
        return ResponseBuilder.success(
            request=request,
            data=routine.model_dump(by_alias=True),
            message="Routine retrieved successfully",
        )
    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except SQLAlchemyError:
        raise
    except Exception:
        raise BusinessLogicError(
            message="Failed to retrieve routine", error_code="ROUTINE_RETRIEVAL_FAILED"
        )


@routines_router.post(
    "/",
    status_code=status.HTTP_201_CREATED,
    summary="Create a routine",
    description="Rejected with ROUTINE_TIME_CONFLICT when it overlaps another routine on the same day.",
)
async def create_routine(
    request: Request,
    routine_data: RoutineRequest,
    current_user: Annotated[AuthState, Depends(get_current_user)],
    routine_service: RoutineService = Depends(get_routine_service),
):
    try:
        routine = await routine_service.create_routine(current_user.user_id, routine_data)
        return ResponseBuilder.success(
            request=request,
            data=routine.model_dump(by_alias=True),
            message="Routine created successfully",
            status_code=status.HTTP_201_CREATED,
        )
    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except SQLAlchemyError:
        raise
    except Exception:
        raise BusinessLogicError(
            message="Failed to create routine", error_code="ROUTINE_CREATION_FAILED"
        )


@routines_router.put("/{routine_id}", summary="Replace a routine")
async def update_routine(
    request: Request,
    routine_id: Annotated[int, Path(gt=0)],
    routine_data: RoutineRequest,
    current_user: Annotated[AuthState, Depends(get_current_user)],
    routine_service: RoutineService = Depends(get_routine_service),
):
    try:
        routine = await routine_service.update_routine(
            current_user.user_id, routine_id, routine_data
        )
        return ResponseBuilder.success(
            request=request,
            data=routine.model_dump(by_alias=True),
            message="Routine updated successfully",
        )
    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except SQLAlchemyError:
        raise
    except Exception:
        raise BusinessLogicError(
            message="Failed to update routine", error_code="ROUTINE_UPDATE_FAILED"
        )


@routines_router.delete("/{routine_id}", summary="Delete a routine")
async def delete_routine(
    request: Request,
    routine_id: Annotated[int, Path(gt=0)],
    current_user: Annotated[AuthState, Depends(get_current_user)],
    routine_service: RoutineService = Depends(get_routine_service),
):
    try:
        await routine_service.delete_routine(current_user.user_id, routine_id)
        return ResponseBuilder.success(request=request, message="Routine deleted successfully")
    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except SQLAlchemyError:
        raise
    except Exception:
        raise BusinessLogicError(
            message="Failed to delete routine", error_code="ROUTINE_DELETION_FAILED"
        )
