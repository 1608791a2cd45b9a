from typing import Any, Dict, Optional

from campus_connect.db.models import GameType
from campus_connect.schemas.game_schemas import (
    MoveRequest,
    RockPaperScissorsState,
    RoundOutcome,
)
from .base import BaseGameEngine, MoveOutcome

CHOICES = ("rock", "paper", "scissors")

# choice -> the choice it defeats
BEATS = {"rock": "scissors", "paper": "rock", "scissors": "paper"}

# player1 is the room creator (symbol X), player2 the joiner (O)
RESULT_TO_SYMBOL = {"player1": "X", "player2": "O"}


def decide_round(player1_choice: str, player2_choice: str) -> str:
    if player1_choice == player2_choice:
        return "draw"
    return "player1" if BEATS[player1_choice] == player2_choice else "player2"


class RockPaperScissorsEngine(BaseGameEngine):
    game_type = GameType.ROCK_PAPER_SCISSORS
    name = "Rock Paper Scissors"
    description = "Simultaneous picks each round. First to 5 points wins."

    def initial_state(self) -> RockPaperScissorsState:
        return RockPaperScissorsState()

    def apply_move(
        self, state: RockPaperScissorsState, symbol: str, move: MoveRequest
    ) -> MoveOutcome:
        if state.game_result is not None:
            raise ValueError("GAME_NOT_IN_PROGRESS")

        choice = (move.choice or "").strip().lower()
        if choice not in CHOICES:
            raise ValueError("INVALID_CHOICE")

        choice_key = "player1_choice" if symbol == "X" else "player2_choice"
        if getattr(state, choice_key) is not None:
            raise ValueError("CHOICE_ALREADY_MADE")

        state = state.model_copy(update={choice_key: choice})
        if state.player1_choice is None or state.player2_choice is None:
            return MoveOutcome(state=state)

        result = decide_round(state.player1_choice, state.player2_choice)
        player1_score = state.player1_score + (result == "player1")
        player2_score = state.player2_score + (result == "player2")
        last_round = RoundOutcome(
            round=state.current_round,
            player1_choice=state.player1_choice,
            player2_choice=state.player2_choice,
            result=result,
        )

        finished = (
            player1_score >= state.target_score
            or player2_score >= state.target_score
            or state.current_round >= state.max_rounds
        )
        if finished:
            if player1_score > player2_score:
                game_result = "player1"
            elif player2_score > player1_score:
                game_result = "player2"
            else:
                game_result = "draw"
            return MoveOutcome(
                state=state.model_copy(
                    update={
                        "player1_score": player1_score,
                        "player2_score": player2_score,
                        "round_result": result,
                        "last_round": last_round,
                        "game_result": game_result,
                    }
                ),
                finished=True,
                winner=RESULT_TO_SYMBOL.get(game_result),
            )

        return MoveOutcome(
            state=state.model_copy(
                update={
                    "player1_choice": None,
                    "player2_choice": None,
                    "player1_score": player1_score,
                    "player2_score": player2_score,
                    "current_round": state.current_round + 1,
                    "round_result": result,
                    "last_round": last_round,
                }
            )
        )

    def view_for(
        self, state: RockPaperScissorsState, symbol: Optional[str]
    ) -> Dict[str, Any]:
        """Hide a pending pick from everyone but the player who made it"""
        view = state.model_dump(by_alias=True)
        view["player1Ready"] = state.player1_choice is not None
        view["player2Ready"] = state.player2_choice is not None
        if state.game_result is None:
            if symbol != "X":
                view["player1Choice"] = None
            if symbol != "O":
                view["player2Choice"] = None
        return view
