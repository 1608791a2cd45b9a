from typing import Callable, Dict, List

from campus_connect.db.models import GameType
from campus_connect.schemas.game_schemas import GameInfo
from campus_connect.utils.logging import get_logger
from .base import BaseGameEngine
from .rock_paper_scissors import RockPaperScissorsEngine
from .tic_tac_toe import TicTacToeEngine

logger = get_logger()


class GameEngineRegistry:
    """Registry for game rule engines"""

    # Map game types to engine factories
    _factories: Dict[GameType, Callable[[], BaseGameEngine]] = {
        GameType.TIC_TAC_TOE: TicTacToeEngine,
        GameType.ROCK_PAPER_SCISSORS: RockPaperScissorsEngine,
    }

    @classmethod
    def create_engine(cls, game_type: GameType) -> BaseGameEngine:
        """Create the engine for a game type"""
        factory = cls._factories.get(game_type)
        if factory:
            return factory()

        logger.warning(f"No engine registered for game type: {game_type}")
        raise ValueError("GAME_TYPE_NOT_SUPPORTED")

    @classmethod
    def list_registered_types(cls) -> List[GameType]:
        """List all registered game types"""
        return list(cls._factories.keys())

    @classmethod
    def catalog(cls) -> List[GameInfo]:
        """Public description of every playable game"""
        return [factory().info() for factory in cls._factories.values()]
