from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from pydantic import Field, TypeAdapter

from campus_connect.db.models import GameRoomStatus, GameType
from .camel_base_model import CamelCaseBaseModel as BaseModel
from .user_schemas import UserSummary

Symbol = Literal["X", "O"]
RpsChoice = Literal["rock", "paper", "scissors"]
RpsOutcome = Literal["player1", "player2", "draw"]


# Game state variants, stored as JSON on the room row
class TicTacToeState(BaseModel):
    kind: Literal["tic_tac_toe"] = "tic_tac_toe"
    board: List[Optional[Symbol]] = Field(
        default_factory=lambda: [None] * 9, min_length=9, max_length=9
    )
    current_player: Symbol = "X"
    winner: Optional[Literal["X", "O", "draw"]] = None
    winning_line: Optional[List[int]] = None


class RoundOutcome(BaseModel):
    round: int
    player1_choice: RpsChoice
    player2_choice: RpsChoice
    result: RpsOutcome


class RockPaperScissorsState(BaseModel):
    kind: Literal["rock_paper_scissors"] = "rock_paper_scissors"
    player1_choice: Optional[RpsChoice] = None
    player2_choice: Optional[RpsChoice] = None
    player1_score: int = 0
    player2_score: int = 0
    current_round: int = 1
    max_rounds: int = 15
    target_score: int = 5
    round_result: Optional[RpsOutcome] = None
    last_round: Optional[RoundOutcome] = None
    game_result: Optional[RpsOutcome] = None


GameState = Annotated[
    Union[TicTacToeState, RockPaperScissorsState], Field(discriminator="kind")
]
game_state_adapter = TypeAdapter(GameState)


# Requests
class CreateRoomRequest(BaseModel):
    game_type: GameType = Field(..., description="Game to play")


class MoveRequest(BaseModel):
    """Tic-tac-toe uses `position`; rock-paper-scissors uses `choice`"""

    position: Optional[int] = Field(None, description="Board cell 0-8")
    choice: Optional[str] = Field(None, description="rock, paper or scissors")


# Responses
class GameInfo(BaseModel):
    game_type: GameType
    name: str
    description: str
    max_players: int


class GamePlayerItem(BaseModel):
    user: UserSummary
    symbol: Symbol
    joined_at: datetime


class GameRoomResponse(BaseModel):
    code: str
    game_type: GameType
    status: GameRoomStatus
    created_by: int
    players: List[GamePlayerItem] = Field(default_factory=list)
    game_state: Dict[str, Any] = Field(..., description="State as seen by the caller")
    winner_id: Optional[int] = None
    my_symbol: Optional[Symbol] = None
    version: int
    created_at: datetime
    updated_at: Optional[datetime] = None


class GameStatisticItem(BaseModel):
    game_type: GameType
    wins: int
    losses: int
    draws: int
    total_games: int
    points: int


class LeaderboardEntry(BaseModel):
    rank: int
    user: UserSummary
    wins: int
    losses: int
    draws: int
    total_games: int
    points: int
