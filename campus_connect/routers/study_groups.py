from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Path, Query, Request, status
from sqlalchemy.exc import SQLAlchemyError

from campus_connect.middlewares.auth_middleware import (
    AuthState,
    get_current_user,
    require_student,
)
from campus_connect.schemas.study_group_schemas import (
    CreateStudyGroupRequest,
    TransferOwnershipRequest,
)
from campus_connect.services.study_group_service import (
    StudyGroupService,
    get_study_group_service,
)
from campus_connect.utils.error_handlers import handle_service_error
from campus_connect.utils.errors import BusinessLogicError
from campus_connect.utils.responses import ResponseBuilder

study_groups_router = APIRouter()


@study_groups_router.get(
    "/",
    summary="List study groups",
    description="All groups, newest first. `q` filters by name or description.",
)
async def list_groups(
    request: Request,
    current_user: Annotated[AuthState, Depends(get_current_user)],
    q: Optional[str] = Query(default=None, max_length=100, description="Search term"),
    service: StudyGroupService = Depends(get_study_group_service),
):
    try:
        groups = await service.list_groups(current_user.user_id, q)
        return ResponseBuilder.success(
            request=request,
            data=[g.model_dump(by_alias=True) for g in groups],
            message=f"Retrieved {len(groups)} study groups",
        )
    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except SQLAlchemyError:
        raise
    except Exception:
        raise BusinessLogicError(
            message="Failed to retrieve study groups",
            error_code="STUDY_GROUPS_RETRIEVAL_FAILED",
        )


@study_groups_router.get("/mine", summary="Groups I belong to")
async def list_my_groups(
    request: Request,
    current_user: Annotated[AuthState, Depends(get_current_user)],
    service: StudyGroupService = Depends(get_study_group_service),
):
    try:
        groups = await service.list_my_groups(current_user.user_id)
        return ResponseBuilder.success(
            request=request,
            data=[g.model_dump(by_alias=True) for g in groups],
            message=f"Retrieved {len(groups)} study groups",
        )
    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except SQLAlchemyError:
        raise
    except Exception:
        raise BusinessLogicError(
            message="Failed to retrieve study groups",
            error_code="STUDY_GROUPS_RETRIEVAL_FAILED",
        )


@study_groups_router.get(
    "/{group_id}",
    summary="Study group detail",
    description="Group with its member roster and the caller's membership.",
)
async def get_group(
    request: Request,
    group_id: Annotated[int, Path(gt=0)],
    current_user: Annotated[AuthState, Depends(get_current_user)],
    service: StudyGroupService = Depends(get_study_group_service),
):
    try:
        group = await service.get_group(current_user.user_id, group_id)
        return ResponseBuilder.success(
            request=request,
            data=group.model_dump(by_alias=True),
            message="Study group retrieved successfully",
        )
    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except SQLAlchemyError:
        raise
    except Exception:
        raise BusinessLogicError(
            message="Failed to retrieve study group",
            error_code="STUDY_GROUP_RETRIEVAL_FAILED",
        )


@study_groups_router.post(
    "/",
    status_code=status.HTTP_201_CREATED,
    summary="Create a study group",
    description="The caller becomes the creator and first member.",
)
async def create_group(
    request: Request,
    group_data: CreateStudyGroupRequest,
    current_user: Annotated[AuthState, Depends(require_student)],
    service: StudyGroupService = Depends(get_study_group_service),
):
    try:
        group = await service.create_group(current_user.user_id, group_data)
        return ResponseBuilder.success(
            request=request,
            data=group.model_dump(by_alias=True),
            message="Study group created successfully",
            status_code=status.HTTP_201_CREATED,
        )
    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except SQLAlchemyError:
        raise
    except Exception:
        raise BusinessLogicError(
            message="Failed to create study group",
            error_code="STUDY_GROUP_CREATION_FAILED",
        )


@study_groups_router.post("/{group_id}/join", summary="Join a study group")
async def join_group(
    request: Request,
    group_id: Annotated[int, Path(gt=0)],
    current_user: Annotated[AuthState, Depends(require_student)],
    service: StudyGroupService = Depends(get_study_group_service),
):
    try:
        group = await service.join_group(current_user.user_id, group_id)
        return ResponseBuilder.success(
            request=request,
            data=group.model_dump(by_alias=True),
            message="Joined study group",
        )
    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except SQLAlchemyError:
        raise
    except Exception:
        raise BusinessLogicError(
            message="Failed to join study group", error_code="STUDY_GROUP_JOIN_FAILED"
        )


@study_groups_router.post(
    "/{group_id}/leave",
    summary="Leave a study group",
    description="The only creator must transfer ownership before leaving.",
)
async def leave_group(
    request: Request,
    group_id: Annotated[int, Path(gt=0)],
    current_user: Annotated[AuthState, Depends(require_student)],
    service: StudyGroupService = Depends(get_study_group_service),
):
    try:
        await service.leave_group(current_user.user_id, group_id)
        return ResponseBuilder.success(request=request, message="Left study group")
    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except SQLAlchemyError:
        raise
    except Exception:
        raise BusinessLogicError(
            message="Failed to leave study group", error_code="STUDY_GROUP_LEAVE_FAILED"
        )


@study_groups_router.post(
    "/{group_id}/transfer-ownership",
    summary="Transfer group ownership",
    description="Hands the creator role to an existing member.",
)
async def transfer_ownership(
    request: Request,
    group_id: Annotated[int, Path(gt=0)],
    body: TransferOwnershipRequest,
    current_user: Annotated[AuthState, Depends(require_student)],
    service: StudyGroupService = Depends(get_study_group_service),
):
    try:
        group = await service.transfer_ownership(
            current_user.user_id, group_id, body.new_owner_id
        )
        return ResponseBuilder.success(
            request=request,
            data=group.model_dump(by_alias=True),
            message="Ownership transferred",
        )
    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except SQLAlchemyError:
        raise
    except Exception:
        raise BusinessLogicError(
            message="Failed to transfer ownership",
            error_code="STUDY_GROUP_TRANSFER_FAILED",
        )


@study_groups_router.delete("/{group_id}", summary="Delete a study group")
async def delete_group(
    request: Request,
    group_id: Annotated[int, Path(gt=0)],
    current_user: Annotated[AuthState, Depends(require_student)],
    service: StudyGroupService = Depends(get_study_group_service),
):
    try:
        await service.delete_group(current_user.user_id, group_id)
        return ResponseBuilder.success(request=request, message="Study group deleted")
    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except SQLAlchemyError:
        raise
    except Exception:
        raise BusinessLogicError(
            message="Failed to delete study group",
            error_code="STUDY_GROUP_DELETION_FAILED",
        )


@study_groups_router.delete(
    "/{group_id}/members/{student_id}", summary="Remove a member"
)
async def remove_member(
    request: Request,
    group_id: Annotated[int, Path(gt=0)],
    student_id: Annotated[int, Path(gt=0)],
    current_user: Annotated[AuthState, Depends(require_student)],
    service: StudyGroupService = Depends(get_study_group_service),
):
    try:
        group = await service.remove_member(current_user.user_id, group_id, student_id)
        return ResponseBuilder.success(
            request=request,
            data=group.model_dump(by_alias=True),
            message="Member removed",
        )
    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except SQLAlchemyError:
        raise
    except Exception:
        raise BusinessLogicError(
            message="Failed to remove member",
            error_code="STUDY_GROUP_MEMBER_REMOVAL_FAILED",
        )
