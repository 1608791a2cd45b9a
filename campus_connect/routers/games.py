from typing import Annotated

from fastapi import APIRouter, Depends, Path, Query, Request, status
from sqlalchemy.exc import SQLAlchemyError

from campus_connect.db.models import GameType
from campus_connect.middlewares.auth_middleware import AuthState, get_current_user
from campus_connect.schemas.game_schemas import CreateRoomRequest, MoveRequest
from campus_connect.services.game_service import GameService, get_game_service
from campus_connect.utils.error_handlers import handle_service_error
from campus_connect.utils.errors import BusinessLogicError
from campus_connect.utils.logging import get_logger
from campus_connect.utils.responses import ResponseBuilder

games_router = APIRouter()
logger = get_logger()

RoomCode = Annotated[str, Path(min_length=4, max_length=12, description="Room code")]


@games_router.get("/", summary="Game catalog")
async def list_games(
    request: Request,
    current_user: Annotated[AuthState, Depends(get_current_user)],
    game_service: GameService = Depends(get_game_service),
):
    games = await game_service.list_games()
    return ResponseBuilder.success(
        request=request,
        data=[g.model_dump(by_alias=True) for g in games],
        message=f"{len(games)} games available",
    )


@games_router.get(
    "/statistics",
    summary="My game statistics",
    description="Wins, losses, draws and points per game type for the caller.",
)
async def get_statistics(
    request: Request,
    current_user: Annotated[AuthState, Depends(get_current_user)],
    game_service: GameService = Depends(get_game_service),
):
    try:
        stats = await game_service.get_statistics(current_user.user_id)
        return ResponseBuilder.success(
            request=request,
            data=[s.model_dump(by_alias=True) for s in stats],
            message="Statistics retrieved successfully",
        )
    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except SQLAlchemyError:
        raise
    except Exception:
        raise BusinessLogicError(
            message="Failed to retrieve statistics",
            error_code="GAME_STATISTICS_RETRIEVAL_FAILED",
        )


@games_router.get(
    "/{game_type}/leaderboard",
    summary="Leaderboard",
    description="Players ranked by points (3 per win, 1 per draw), then wins.",
)
async def get_leaderboard(
    request: Request,
    game_type: GameType,
    current_user: Annotated[AuthState, Depends(get_current_user)],
    limit: int = Query(default=10, ge=1, le=100),
    game_service: GameService = Depends(get_game_service),
):
    try:
        entries = await game_service.get_leaderboard(game_type, limit)
        return ResponseBuilder.success(
            request=request,
            data=[e.model_dump(by_alias=True) for e in entries],
            message=f"Top {len(entries)} players",
        )
    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except SQLAlchemyError:
        raise
    except Exception:
        raise BusinessLogicError(
            message="Failed to retrieve leaderboard",
            error_code="LEADERBOARD_RETRIEVAL_FAILED",
        )


@games_router.post(
    "/rooms",
    status_code=status.HTTP_201_CREATED,
    summary="Create a game room",
    description="Allocates a 6-character room code. The caller takes the first seat.",
)
async def create_room(
    request: Request,
    body: CreateRoomRequest,
    current_user: Annotated[AuthState, Depends(get_current_user)],
    game_service: GameService = Depends(get_game_service),
):
    try:
        room = await game_service.create_room(current_user.user_id, body.game_type)
        return ResponseBuilder.success(
            request=request,
            data=room.model_dump(by_alias=True),
            message=f"Room {room.code} created",
            status_code=status.HTTP_201_CREATED,
        )
    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except SQLAlchemyError:
        raise
    except Exception as e:
        logger.error(f"Failed to create game room: {str(e)}", exc_info=True)
        raise BusinessLogicError(
            message="Failed to create game room", error_code="GAME_ROOM_CREATION_FAILED"
        )


@games_router.get("/rooms/{code}", summary="Get a game room")
async def get_room(
    request: Request,
    code: RoomCode,
    current_user: Annotated[AuthState, Depends(get_current_user)],
    game_service: GameService = Depends(get_game_service),
):
    try:
        room = await game_service.get_room(current_user.user_id, code)
        return ResponseBuilder.success(
            request=request,
            data=room.model_dump(by_alias=True),
            message="Room retrieved successfully",
        )
    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except SQLAlchemyError:
        raise
    except Exception:
        raise BusinessLogicError(
            message="Failed to retrieve game room",
            error_code="GAME_ROOM_RETRIEVAL_FAILED",
        )


@games_router.post(
    "/rooms/{code}/join",
    summary="Join a game room",
    description="Takes the next free seat. Filling the room starts the game.",
)
async def join_room(
    request: Request,
    code: RoomCode,
    current_user: Annotated[AuthState, Depends(get_current_user)],
    game_service: GameService = Depends(get_game_service),
):
    try:
        room = await game_service.join_room(current_user.user_id, code)
        return ResponseBuilder.success(
            request=request,
            data=room.model_dump(by_alias=True),
            message=f"Joined room {room.code}",
        )
    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except SQLAlchemyError:
        raise
    except Exception:
        raise BusinessLogicError(
            message="Failed to join game room", error_code="GAME_ROOM_JOIN_FAILED"
        )


@games_router.post(
    "/rooms/{code}/move",
    summary="Make a move",
    description="`position` (0-8) for tic-tac-toe, `choice` for rock-paper-scissors.",
)
async def make_move(
    request: Request,
    code: RoomCode,
    move: MoveRequest,
    current_user: Annotated[AuthState, Depends(get_current_user)],
    game_service: GameService = Depends(get_game_service),
):
    try:
        room = await game_service.make_move(current_user.user_id, code, move)
        return ResponseBuilder.success(
            request=request,
            data=room.model_dump(by_alias=True),
            message="Move accepted",
        )
    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except SQLAlchemyError:
        raise
    except Exception as e:
        logger.error(f"Move failed in room {code}: {str(e)}", exc_info=True)
        raise BusinessLogicError(
            message="Failed to apply move", error_code="GAME_MOVE_FAILED"
        )


@games_router.post("/rooms/{code}/reset", summary="Start a new game in the room")
async def reset_room(
    request: Request,
    code: RoomCode,
    current_user: Annotated[AuthState, Depends(get_current_user)],
    game_service: GameService = Depends(get_game_service),
):
    try:
        room = await game_service.reset_room(current_user.user_id, code)
        return ResponseBuilder.success(
            request=request,
            data=room.model_dump(by_alias=True),
            message="Game reset",
        )
    except (ValueError, RuntimeError) as e:
        return handle_service_error(request, e)
    except SQLAlchemyError:
        raise
    except Exception:
        raise BusinessLogicError(
            message="Failed to reset game room", error_code="GAME_ROOM_RESET_FAILED"
        )
