from typing import Annotated

from fastapi import APIRouter, Depends, Path, Query, Request
from sqlalchemy.exc import SQLAlchemyError

from campus_connect.middlewares.auth_middleware import AuthState, get_current_user
from campus_connect.schemas.notification_schemas import NotificationCounts
from campus_connect.services.notification_service import (
    NotificationService,
    get_notification_service,
)
from campus_connect.utils.error_handlers import handle_service_error
from campus_connect.utils.errors import BusinessLogicError
from campus_connect.utils.logging import get_logger
from campus_connect.utils.responses import ResponseBuilder

notifications_router = APIRouter()
logger = get_logger()


@notifications_router.get(
    "/",
    summary="List notifications",
    description="Newest first, optionally only unread ones. Paginated with page/limit.",
)
async def get_notifications(
    request: Request,
    current_user: Annotated[AuthState, Depends(get_current_user)],
    unread_only: bool = Query(default=False, description="Only unread notifications"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    service: NotificationService = Depends(get_notification_service),
):
    try:
        items, total = await service.get_user_notifications(
            current_user.user_id, unread_only=unread_only, page=page, limit=limit
        )
        unread_count = await service.get_unread_count(current_user.user_id)
        return ResponseBuilder.paginated(
            request=request,
            data=[n.model_dump(by_alias=True) for n in items],
            page=page,
            per_page=limit,
            total=total,
            message=f"Retrieved {len(items)} notifications",
            meta={"unreadCount": unread_count},
        )
    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except SQLAlchemyError:
        raise
    except Exception as e:
        logger.error(
            f"Failed to get notifications for user {current_user.user_id}: {str(e)}",
            exc_info=True,
        )
        raise BusinessLogicError(
            message="Failed to retrieve notifications",
            error_code="NOTIFICATIONS_RETRIEVAL_FAILED",
        )


@notifications_router.get("/count", summary="Unread notification count")
async def get_unread_count(
    request: Request,
    current_user: Annotated[AuthState, Depends(get_current_user)],
    service: NotificationService = Depends(get_notification_service),
):
    try:
        unread_count = await service.get_unread_count(current_user.user_id)
        return ResponseBuilder.success(
            request=request,
            data=NotificationCounts(unread_count=unread_count).model_dump(
                by_alias=True, exclude_none=True
            ),
            message="Unread count retrieved",
        )
    except SQLAlchemyError:
        raise
    except Exception:
        raise BusinessLogicError(
            message="Failed to count notifications",
            error_code="NOTIFICATIONS_COUNT_FAILED",
        )


async def _bulk_update(request: Request, user_id: int, service: NotificationService, is_read: bool):
    updated_count = await service.set_all_read_state(user_id, is_read)
    unread_count = await service.get_unread_count(user_id)
    return ResponseBuilder.success(
        request=request,
        data=NotificationCounts(
            unread_count=unread_count, updated_count=updated_count
        ).model_dump(by_alias=True),
        message=f"Marked {updated_count} notifications as {'read' if is_read else 'unread'}",
    )


@notifications_router.patch("/read-all", summary="Mark all notifications read")
async def mark_all_read(
    request: Request,
    current_user: Annotated[AuthState, Depends(get_current_user)],
    service: NotificationService = Depends(get_notification_service),
):
    try:
        return await _bulk_update(request, current_user.user_id, service, True)
    except SQLAlchemyError:
        raise
    except Exception:
        raise BusinessLogicError(
            message="Failed to mark all notifications as read",
            error_code="NOTIFICATIONS_UPDATE_FAILED",
        )


@notifications_router.patch("/unread-all", summary="Mark all notifications unread")
async def mark_all_unread(
    request: Request,
    current_user: Annotated[AuthState, Depends(get_current_user)],
    service: NotificationService = Depends(get_notification_service),
):
    try:
        return await _bulk_update(request, current_user.user_id, service, False)
    except SQLAlchemyError:
        raise
    except Exception:
        raise BusinessLogicError(
            message="Failed to mark all notifications as unread",
            error_code="NOTIFICATIONS_UPDATE_FAILED",
        )


@notifications_router.patch("/{notification_id}/read", summary="Mark one notification read")
async def mark_read(
    request: Request,
    notification_id: Annotated[int, Path(gt=0)],
    current_user: Annotated[AuthState, Depends(get_current_user)],
    service: NotificationService = Depends(get_notification_service),
):
    try:
        item = await service.set_read_state(current_user.user_id, notification_id, True)
        return ResponseBuilder.success(
            request=request,
            data=item.model_dump(by_alias=True),
            message="Notification marked as read",
        )
    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except SQLAlchemyError:
        raise
    except Exception:
        raise BusinessLogicError(
            message="Failed to mark notification as read",
            error_code="NOTIFICATIONS_UPDATE_FAILED",
        )


@notifications_router.patch("/{notification_id}/unread", summary="Mark one notification unread")
async def mark_unread(
    request: Request,
    notification_id: Annotated[int, Path(gt=0)],
    current_user: Annotated[AuthState, Depends(get_current_user)],
    service: NotificationService = Depends(get_notification_service),
):
    try:
        item = await service.set_read_state(current_user.user_id, notification_id, False)
        return ResponseBuilder.success(
            request=request,
            data=item.model_dump(by_alias=True),
            message="Notification marked as unread",
        )
    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except SQLAlchemyError:
        raise
    except Exception:
        raise BusinessLogicError(
            message="Failed to mark notification as unread",
            error_code="NOTIFICATIONS_UPDATE_FAILED",
        )
