from typing import List, Optional

from campus_connect.db.models import GameType
from campus_connect.schemas.game_schemas import MoveRequest, TicTacToeState
from .base import BaseGameEngine, MoveOutcome

WIN_LINES = (
    (0, 1, 2),
    (3, 4, 5),
    (6, 7, 8),
    (0, 3, 6),
    (1, 4, 7),
    (2, 5, 8),
    (0, 4, 8),
    (2, 4, 6),
)


def find_winning_line(board: List[Optional[str]]) -> Optional[List[int]]:
    for a, b, c in WIN_LINES:
        if board[a] and board[a] == board[b] == board[c]:
            return [a, b, c]
    return None


class TicTacToeEngine(BaseGameEngine):
    game_type = GameType.TIC_TAC_TOE
    name = "Tic Tac Toe"
    description = "Classic 3x3 grid. Get three in a row to win."

    def initial_state(self) -> TicTacToeState:
        return TicTacToeState()

    def apply_move(
        self, state: TicTacToeState, symbol: str, move: MoveRequest
    ) -> MoveOutcome:
        if state.winner is not None:
            raise ValueError("GAME_NOT_IN_PROGRESS")

        position = move.position
        if position is None or not 0 <= position <= 8:
            raise ValueError("INVALID_POSITION")
        if state.current_player != symbol:
            raise ValueError(
                f"NOT_YOUR_TURN: It's {state.current_player}'s turn, you are {symbol}"
            )
        if state.board[position] is not None:
            raise ValueError("POSITION_TAKEN")

        board = list(state.board)
        board[position] = symbol

        line = find_winning_line(board)
        if line:
            return MoveOutcome(
                state=state.model_copy(
                    update={"board": board, "winner": symbol, "winning_line": line}
                ),
                finished=True,
                winner=symbol,
            )

        if all(cell is not None for cell in board):
            return MoveOutcome(
                state=state.model_copy(update={"board": board, "winner": "draw"}),
                finished=True,
            )

        next_player = "O" if symbol == "X" else "X"
        return MoveOutcome(
            state=state.model_copy(update={"board": board, "current_player": next_player})
        )
