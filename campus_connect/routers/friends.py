from typing import Annotated

from fastapi import APIRouter, Depends, Path, Query, Request, status
from sqlalchemy.exc import SQLAlchemyError

from campus_connect.middlewares.auth_middleware import AuthState, require_student
from campus_connect.schemas.friend_schemas import RespondFriendRequest, SendFriendRequest
from campus_connect.services.friend_service import FriendService, get_friend_service
from campus_connect.services.user_service import UserService, get_user_service
from campus_connect.utils.error_handlers import handle_service_error
from campus_connect.utils.errors import BusinessLogicError
from campus_connect.utils.responses import ResponseBuilder

friends_router = APIRouter()


@friends_router.get(
    "/",
    summary="List friends",
    description="Accepted friends of the caller with the date each friendship began.",
)
async def list_friends(
    request: Request,
    current_user: Annotated[AuthState, Depends(require_student)],
    friend_service: FriendService = Depends(get_friend_service),
):
    try:
        friends = await friend_service.list_friends(current_user.user_id)
        return ResponseBuilder.success(
            request=request,
            data=[f.model_dump(by_alias=True) for f in friends],
            message=f"Retrieved {len(friends)} friends",
        )
    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except SQLAlchemyError:
        raise
    except Exception:
        raise BusinessLogicError(
            message="Failed to retrieve friends", error_code="FRIENDS_RETRIEVAL_FAILED"
        )


@friends_router.get(
    "/pending",
    summary="Pending friend requests",
    description="Incoming and outgoing pending requests as two separate lists.",
)
async def list_pending(
    request: Request,
    current_user: Annotated[AuthState, Depends(require_student)],
    friend_service: FriendService = Depends(get_friend_service),
):
    try:
        pending = await friend_service.list_pending(current_user.user_id)
        return ResponseBuilder.success(
            request=request,
            data=pending.model_dump(by_alias=True),
            message="Pending requests retrieved successfully",
        )
    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except SQLAlchemyError:
        raise
    except Exception:
        raise BusinessLogicError(
            message="Failed to retrieve pending requests",
            error_code="PENDING_REQUESTS_RETRIEVAL_FAILED",
        )


@friends_router.get(
    "/search",
    summary="Find students to befriend",
    description="Student search excluding the caller, with the friend status of each result.",
)
async def search_students(
    request: Request,
    current_user: Annotated[AuthState, Depends(require_student)],
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
            message="Failed to search students", error_code="FRIEND_SEARCH_FAILED"
        )


@friends_router.post(
    "/request",
    status_code=status.HTTP_201_CREATED,
    summary="Send a friend request",
    description="Creates or refreshes a pending request and notifies the recipient in the same transaction.",
)
async def send_friend_request(
    request: Request,
    body: SendFriendRequest,
    current_user: Annotated[AuthState, Depends(require_student)],
    friend_service: FriendService = Depends(get_friend_service),
):
    try:
        edge = await friend_service.send_request(current_user.user_id, body.target_id)
        return ResponseBuilder.success(
            request=request,
            data={
                "requesterId": edge.requester_id,
                "recipientId": edge.recipient_id,
                "status": edge.status.value,
            },
            message="Friend request sent",
            status_code=status.HTTP_201_CREATED,
        )
    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except SQLAlchemyError:
        raise
    except Exception:
        raise BusinessLogicError(
            message="Failed to send friend request", error_code="FRIEND_REQUEST_FAILED"
        )


@friends_router.put(
    "/respond",
    summary="Respond to a friend request",
    description="Give senderId to accept or decline an incoming request, or recipientId to retract your own.",
)
async def respond_to_request(
    request: Request,
    body: RespondFriendRequest,
    current_user: Annotated[AuthState, Depends(require_student)],
    friend_service: FriendService = Depends(get_friend_service),
):
    try:
        edge = await friend_service.respond(current_user.user_id, body)
        if edge is None:
            return ResponseBuilder.success(
                request=request, message="Friend request declined"
            )
        return ResponseBuilder.success(
            request=request,
            data={
                "requesterId": edge.requester_id,
                "recipientId": edge.recipient_id,
                "status": edge.status.value,
                "acceptedAt": edge.accepted_at.isoformat() if edge.accepted_at else None,
            },
            message="Friend request accepted",
        )
    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except SQLAlchemyError:
        raise
    except Exception:
        raise BusinessLogicError(
            message="Failed to respond to friend request",
            error_code="FRIEND_RESPOND_FAILED",
        )


@friends_router.delete(
    "/{friend_id}",
    summary="Remove a friend",
    description="Deletes any edge between the caller and the user, in either direction.",
)
async def remove_friend(
    request: Request,
    friend_id: Annotated[int, Path(gt=0, description="Other user's ID")],
    current_user: Annotated[AuthState, Depends(require_student)],
    friend_service: FriendService = Depends(get_friend_service),
):
    try:
        await friend_service.remove(current_user.user_id, friend_id)
        return ResponseBuilder.success(request=request, message="Friend removed")
    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except SQLAlchemyError:
        raise
    except Exception:
        raise BusinessLogicError(
            message="Failed to remove friend", error_code="FRIEND_REMOVAL_FAILED"
        )
