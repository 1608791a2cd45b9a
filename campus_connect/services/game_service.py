import secrets
import string
from typing import List, Optional

from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.orm.exc import StaleDataError

from campus_connect.config.settings import settings
from campus_connect.db.models import (
    GameRoom,
    GameRoomPlayer,
    GameRoomStatus,
    GameStatistic,
    GameType,
    User,
)
from campus_connect.db.session import get_sync_session
from campus_connect.schemas.game_schemas import (
    GameInfo,
    GamePlayerItem,
    GameRoomResponse,
    GameStatisticItem,
    LeaderboardEntry,
    MoveRequest,
)
from campus_connect.services.games import BaseGameEngine, GameEngineRegistry
from campus_connect.services.realtime import broker, game_channel
from campus_connect.services.user_service import to_user_summary
from campus_connect.utils.logging import get_logger

logger = get_logger()

ROOM_CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_room_code(length: int = settings.GAME_ROOM_CODE_LENGTH) -> str:
    return "".join(secrets.choice(ROOM_CODE_ALPHABET) for _ in range(length))


class GameService:
    """Game rooms: lobby, validated moves, results and statistics"""

    def __init__(self, db_session: Session):
        self.db = db_session

    async def list_games(self) -> List[GameInfo]:
        return GameEngineRegistry.catalog()

    async def _get_room(self, code: str) -> GameRoom:
        room = self.db.execute(
            select(GameRoom)
            .options(
                selectinload(GameRoom.players)
                .selectinload(GameRoomPlayer.player)
                .selectinload(User.student_profile)
            )
            .where(GameRoom.code == code.strip().upper())
        ).scalar_one_or_none()
        if not room:
            raise ValueError("ROOM_NOT_FOUND")
        return room

    @staticmethod
    def _player(room: GameRoom, user_id: int) -> Optional[GameRoomPlayer]:
        return next((p for p in room.players if p.player_id == user_id), None)

    def _to_response(self, room: GameRoom, user_id: Optional[int]) -> GameRoomResponse:
        engine = GameEngineRegistry.create_engine(room.game_type)
        me = self._player(room, user_id) if user_id is not None else None
        symbol = me.symbol if me else None
        return GameRoomResponse(
            code=room.code,
            game_type=room.game_type,
            status=room.status,
            created_by=room.created_by,
            players=[
                GamePlayerItem(
                    user=to_user_summary(p.player), symbol=p.symbol, joined_at=p.joined_at
                )
                for p in room.players
            ],
            game_state=engine.view_for(engine.load_state(room.game_state), symbol),
            winner_id=room.winner_id,
            my_symbol=symbol,
            version=room.version,
            created_at=room.created_at,
            updated_at=room.updated_at,
        )

    def _publish(self, room: GameRoom, event: str = "room.updated") -> None:
        # Subscribers get the spectator view; players re-fetch their own view
        broker.publish(
            game_channel(room.code),
            event,
            self._to_response(room, None).model_dump(by_alias=True),
        )

    def _commit_room(self, room: GameRoom) -> None:
        """Commit a room write, mapping lost optimistic-lock races to a retryable code"""
        try:
            self.db.commit()
        except (StaleDataError, IntegrityError) as e:
            self.db.rollback()
            logger.warning(f"Concurrent write on game room {room.code}: {type(e).__name__}")
            raise ValueError("GAME_STATE_CONFLICT")
        self.db.expire(room)

    async def get_room(self, user_id: int, code: str) -> GameRoomResponse:
        return self._to_response(await self._get_room(code), user_id)

    async def create_room(self, user_id: int, game_type: GameType) -> GameRoomResponse:
        """Create a waiting room with the caller seated as the first player"""
        engine = GameEngineRegistry.create_engine(game_type)

        for attempt in range(1, settings.GAME_ROOM_CODE_MAX_ATTEMPTS + 1):
            code = generate_room_code()
            taken = self.db.execute(
                select(GameRoom.id).where(GameRoom.code == code)
            ).first()
            if taken:
                logger.debug(f"Room code collision on attempt {attempt}: {code}")
                continue

            room = GameRoom(
                code=code,
                game_type=game_type,
                created_by=user_id,
                status=GameRoomStatus.WAITING,
                game_state=engine.dump_state(engine.initial_state()),
            )
            room.players.append(
                GameRoomPlayer(player_id=user_id, symbol=engine.symbols[0])
            )
            try:
                self.db.add(room)
                self.db.commit()
            except IntegrityError:
                # Lost a race for the same code
                self.db.rollback()
                continue

            logger.info(f"User {user_id} created {game_type.value} room {code}")
            return await self.get_room(user_id, code)

        logger.error(
            f"Could not allocate a room code after {settings.GAME_ROOM_CODE_MAX_ATTEMPTS} attempts"
        )
        raise ValueError("ROOM_CODE_GENERATION_FAILED")

    async def join_room(self, user_id: int, code: str) -> GameRoomResponse:
        room = await self._get_room(code)
        if self._player(room, user_id):
            return self._to_response(room, user_id)

        if room.status == GameRoomStatus.FINISHED:
            raise ValueError("ROOM_NOT_JOINABLE")

        engine = GameEngineRegistry.create_engine(room.game_type)
        if len(room.players) >= engine.max_players:
            raise ValueError("ROOM_FULL")

        taken = {p.symbol for p in room.players}
        symbol = next(s for s in engine.symbols if s not in taken)
        room.players.append(GameRoomPlayer(player_id=user_id, symbol=symbol))
        if len(room.players) == engine.max_players:
            room.status = GameRoomStatus.PLAYING

        try:
            self._commit_room(room)
        except ValueError:
            # Someone else took the seat first
            raise ValueError("ROOM_FULL")

        logger.info(f"User {user_id} joined room {room.code} as {symbol}")
        room = await self._get_room(code)
        self._publish(room)
        return self._to_response(room, user_id)

    async def make_move(
        self, user_id: int, code: str, move: MoveRequest
    ) -> GameRoomResponse:
        room = await self._get_room(code)
        if room.status != GameRoomStatus.PLAYING:
            raise ValueError("GAME_NOT_IN_PROGRESS")

        player = self._player(room, user_id)
        if not player:
            raise ValueError("NOT_A_PLAYER")

        engine = GameEngineRegistry.create_engine(room.game_type)
        outcome = engine.apply_move(engine.load_state(room.game_state), player.symbol, move)

        # Move, result and statistics land in one commit
        try:
            room.game_state = engine.dump_state(outcome.state)
            if outcome.finished:
                self._finish(room, engine, outcome.winner)
            self._commit_room(room)
        except SQLAlchemyError:
            self.db.rollback()
            raise

        room = await self._get_room(code)
        if outcome.finished:
            logger.info(
                f"Room {room.code} finished, winner "
                f"{room.winner_id if room.winner_id else 'none (draw)'}"
            )
        self._publish(room)
        return self._to_response(room, user_id)

    def _finish(
        self, room: GameRoom, engine: BaseGameEngine, winner_symbol: Optional[str]
    ) -> None:
        room.status = GameRoomStatus.FINISHED
        winner = next((p for p in room.players if p.symbol == winner_symbol), None)
        room.winner_id = winner.player_id if winner else None

        for player in room.players:
            stat = self._get_or_create_statistic(player.player_id, room.game_type)
            stat.total_games += 1
            if winner is None:
                stat.draws += 1
            elif player.player_id == winner.player_id:
                stat.wins += 1
            else:
                stat.losses += 1

    def _get_or_create_statistic(self, user_id: int, game_type: GameType) -> GameStatistic:
        # The room row must only flush at commit, where version races are mapped
        with self.db.no_autoflush:
            stat = self.db.execute(
                select(GameStatistic).where(
                    GameStatistic.user_id == user_id, GameStatistic.game_type == game_type
                )
            ).scalar_one_or_none()
        if stat is None:
            stat = GameStatistic(
                user_id=user_id,
                game_type=game_type,
                wins=0,
                losses=0,
                draws=0,
                total_games=0,
            )
            self.db.add(stat)
        return stat

    async def reset_room(self, user_id: int, code: str) -> GameRoomResponse:
        """Start a fresh game with the same roster"""
        room = await self._get_room(code)
        if not self._player(room, user_id):
            raise ValueError("NOT_A_PLAYER")

        engine = GameEngineRegistry.create_engine(room.game_type)
        room.game_state = engine.dump_state(engine.initial_state())
        room.winner_id = None
        room.status = (
            GameRoomStatus.PLAYING
            if len(room.players) >= engine.max_players
            else GameRoomStatus.WAITING
        )
        self._commit_room(room)

        logger.info(f"User {user_id} reset room {room.code}")
        room = await self._get_room(code)
        self._publish(room)
        return self._to_response(room, user_id)

    async def get_statistics(self, user_id: int) -> List[GameStatisticItem]:
        stats = self.db.execute(
            select(GameStatistic).where(GameStatistic.user_id == user_id)
        ).scalars().all()
        by_type = {s.game_type: s for s in stats}

        items = []
        for game_type in GameEngineRegistry.list_registered_types():
            stat = by_type.get(game_type)
            items.append(
                GameStatisticItem(
                    game_type=game_type,
                    wins=stat.wins if stat else 0,
                    losses=stat.losses if stat else 0,
                    draws=stat.draws if stat else 0,
                    total_games=stat.total_games if stat else 0,
                    points=stat.points if stat else 0,
                )
            )
        return items

    async def get_leaderboard(
        self, game_type: GameType, limit: int = 10
    ) -> List[LeaderboardEntry]:
        """Ranked by points (3 per win, 1 per draw), then wins"""
        points = GameStatistic.wins * 3 + GameStatistic.draws
        stats = (
            self.db.execute(
                select(GameStatistic)
                .options(selectinload(GameStatistic.user).selectinload(User.student_profile))
                .where(GameStatistic.game_type == game_type, GameStatistic.total_games > 0)
                .order_by(points.desc(), GameStatistic.wins.desc(), GameStatistic.user_id)
                .limit(limit)
            )
            .scalars()
            .all()
        )
        return [
            LeaderboardEntry(
                rank=rank,
                user=to_user_summary(stat.user),
                wins=stat.wins,
                losses=stat.losses,
                draws=stat.draws,
                total_games=stat.total_games,
                points=stat.points,
            )
            for rank, stat in enumerate(stats, start=1)
        ]


def get_game_service(db: Session = Depends(get_sync_session)) -> GameService:
    return GameService(db)
