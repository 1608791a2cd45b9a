from typing import Annotated

from fastapi import APIRouter, Depends, Path, Query, Request, status
from sqlalchemy.exc import SQLAlchemyError

from campus_connect.middlewares.auth_middleware import AuthState, get_current_user
from campus_connect.schemas.chat_schemas import DirectRoomRequest, SendMessageRequest
from campus_connect.services.chat_service import ChatService, get_chat_service
from campus_connect.utils.error_handlers import handle_service_error
from campus_connect.utils.errors import BusinessLogicError
from campus_connect.utils.responses import ResponseBuilder

chat_router = APIRouter()


@chat_router.post(
    "/rooms/direct",
    summary="Open a direct chat",
    description="Returns the existing one-to-one room with a friend, creating it on first use (201).",
)
async def open_direct_room(
    request: Request,
    body: DirectRoomRequest,
    current_user: Annotated[AuthState, Depends(get_current_user)],
    chat_service: ChatService = Depends(get_chat_service),
):
    try:
        room, created = await chat_service.get_or_create_direct_room(
            current_user.user_id, body.friend_id
        )
        return ResponseBuilder.success(
            request=request,
            data=room.model_dump(by_alias=True),
            message="Chat room created" if created else "Chat room retrieved",
            status_code=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        )
    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except SQLAlchemyError:
        raise
    except Exception:
        raise BusinessLogicError(
            message="Failed to open chat room", error_code="CHAT_ROOM_CREATION_FAILED"
        )


@chat_router.get(
    "/rooms",
    summary="My chat rooms",
    description="Most recently active first, with last message and unread count.",
)
async def list_rooms(
    request: Request,
    current_user: Annotated[AuthState, Depends(get_current_user)],
    chat_service: ChatService = Depends(get_chat_service),
):
    try:
        rooms = await chat_service.list_rooms(current_user.user_id)
        return ResponseBuilder.success(
            request=request,
            data=[r.model_dump(by_alias=True) for r in rooms],
            message=f"Retrieved {len(rooms)} chat rooms",
        )
    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except SQLAlchemyError:
        raise
    except Exception:
        raise BusinessLogicError(
            message="Failed to retrieve chat rooms",
            error_code="CHAT_ROOMS_RETRIEVAL_FAILED",
        )


@chat_router.get(
    "/rooms/{room_id}/messages",
    summary="Read messages",
    description="Newest page returned oldest first. Marks the room as read for the caller.",
)
async def get_messages(
    request: Request,
    room_id: Annotated[int, Path(gt=0)],
    current_user: Annotated[AuthState, Depends(get_current_user)],
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    chat_service: ChatService = Depends(get_chat_service),
):
    try:
        messages = await chat_service.get_messages(
            current_user.user_id, room_id, limit=limit, offset=offset
        )
        return ResponseBuilder.success(
            request=request,
            data=[m.model_dump(by_alias=True) for m in messages],
            message=f"Retrieved {len(messages)} messages",
        )
    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except SQLAlchemyError:
        raise
    except Exception:
        raise BusinessLogicError(
            message="Failed to retrieve messages",
            error_code="CHAT_MESSAGES_RETRIEVAL_FAILED",
        )


@chat_router.post(
    "/rooms/{room_id}/messages",
    status_code=status.HTTP_201_CREATED,
    summary="Send a message",
)
async def send_message(
    request: Request,
    room_id: Annotated[int, Path(gt=0)],
    body: SendMessageRequest,
    current_user: Annotated[AuthState, Depends(get_current_user)],
    chat_service: ChatService = Depends(get_chat_service),
):
    try:
        message = await chat_service.send_message(current_user.user_id, room_id, body)
        return ResponseBuilder.success(
            request=request,
            data=message.model_dump(by_alias=True),
            message="Message sent",
            status_code=status.HTTP_201_CREATED,
        )
    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except SQLAlchemyError:
        raise
    except Exception:
        raise BusinessLogicError(
            message="Failed to send message", error_code="CHAT_MESSAGE_SEND_FAILED"
        )


@chat_router.delete(
    "/rooms/{room_id}/messages/{message_id}", summary="Delete my message"
)
async def delete_message(
    request: Request,
    room_id: Annotated[int, Path(gt=0)],
    message_id: Annotated[int, Path(gt=0)],
    current_user: Annotated[AuthState, Depends(get_current_user)],
    chat_service: ChatService = Depends(get_chat_service),
):
    try:
        await chat_service.delete_message(current_user.user_id, room_id, message_id)
        return ResponseBuilder.success(request=request, message="Message deleted")
    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except SQLAlchemyError:
        raise
    except Exception:
        raise BusinessLogicError(
            message="Failed to delete message", error_code="CHAT_MESSAGE_DELETE_FAILED"
        )
