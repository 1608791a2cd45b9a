from .base import BaseGameEngine, MoveOutcome
from .registry import GameEngineRegistry
from .rock_paper_scissors import RockPaperScissorsEngine
from .tic_tac_toe import TicTacToeEngine

__all__ = [
    "BaseGameEngine",
    "MoveOutcome",
    "GameEngineRegistry",
    "RockPaperScissorsEngine",
    "TicTacToeEngine",
]
