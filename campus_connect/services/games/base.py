from abc import ABC, abstractmethod
from typing import Any, Dict, NamedTuple, Optional, Tuple

from campus_connect.db.models import GameType
from campus_connect.schemas.game_schemas import GameInfo, MoveRequest, game_state_adapter
from campus_connect.schemas.camel_base_model import CamelCaseBaseModel


class MoveOutcome(NamedTuple):
    """Result of a pure transition; winner is a symbol, None for a draw"""

    state: CamelCaseBaseModel
    finished: bool = False
    winner: Optional[str] = None


class BaseGameEngine(ABC):
    """Rules for one game type, expressed as pure functions over its state"""

    game_type: GameType
    name: str
    description: str
    max_players: int = 2
    # Assigned in join order; the first entry belongs to the room creator
    symbols: Tuple[str, ...] = ("X", "O")

    @abstractmethod
    def initial_state(self) -> CamelCaseBaseModel:
        pass

    @abstractmethod
    def apply_move(
        self, state: CamelCaseBaseModel, symbol: str, move: MoveRequest
    ) -> MoveOutcome:
        """
        Validate and apply a move without mutating `state`.

        Raises:
            ValueError: with a game error code when the move is rejected
        """
        pass

    def load_state(self, raw: Dict[str, Any]) -> CamelCaseBaseModel:
        state = game_state_adapter.validate_python(raw)
        if state.kind != self.game_type.value:
            raise ValueError(f"GAME_STATE_CORRUPT: expected {self.game_type.value}, got {state.kind}")
        return state

    def dump_state(self, state: CamelCaseBaseModel) -> Dict[str, Any]:
        return state.model_dump(by_alias=True)

    def view_for(self, state: CamelCaseBaseModel, symbol: Optional[str]) -> Dict[str, Any]:
        """State as shown to a player holding `symbol` (None for spectators)"""
        return state.model_dump(by_alias=True)

    def info(self) -> GameInfo:
        return GameInfo(
            game_type=self.game_type,
            name=self.name,
            description=self.description,
            max_players=self.max_players,
        )
