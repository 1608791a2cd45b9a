import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from campus_connect.db.models import GameRoomStatus, GameStatistic, GameType
from campus_connect.schemas.game_schemas import MoveRequest
from campus_connect.services import game_service
from campus_connect.services.game_service import GameService, generate_room_code

pytestmark = pytest.mark.integration

API = "/api/v1/games"


@pytest.fixture
def open_room(client, headers_for):
    """Create a room as host and, when given, seat a guest."""

    def _open(host, guest=None, game_type="tic_tac_toe"):
        response = client.post(
            f"{API}/rooms", json={"gameType": game_type}, headers=headers_for(host)
        )
        assert response.status_code == 201, response.text
        code = response.json()["data"]["code"]
        if guest is not None:
            response = client.post(f"{API}/rooms/{code}/join", headers=headers_for(guest))
            assert response.status_code == 200, response.text
        return code

    return _open


@pytest.fixture
def move(client, headers_for):
    def _move(user, code, **payload):
        return client.post(f"{API}/rooms/{code}/move", json=payload, headers=headers_for(user))

    return _move


def play_x_wins(move, x_player, o_player, code):
    for user, position in [
        (x_player, 0),
        (o_player, 3),
        (x_player, 1),
        (o_player, 4),
        (x_player, 2),
    ]:
        response = move(user, code, position=position)
        assert response.status_code == 200, response.text
    return response


class TestRoomLifecycle:
    """Creating, joining and reading rooms."""

    def test_catalog(self, client, student_a, headers_for):
        response = client.get(f"{API}/", headers=headers_for(student_a))
        assert response.status_code == 200
        assert {g["gameType"] for g in response.json()["data"]} == {
            "tic_tac_toe",
            "rock_paper_scissors",
        }

    def test_create_seats_host_as_x(self, client, student_a, headers_for):
        response = client.post(
            f"{API}/rooms", json={"gameType": "tic_tac_toe"}, headers=headers_for(student_a)
        )
        room = response.json()["data"]

        assert len(room["code"]) == 6
        assert room["status"] == "waiting"
        assert room["mySymbol"] == "X"
        assert room["createdBy"] == student_a.id
        assert room["gameState"]["board"] == [None] * 9

    def test_unknown_game_type_rejected(self, client, student_a, headers_for):
        response = client.post(
            f"{API}/rooms", json={"gameType": "chess"}, headers=headers_for(student_a)
        )
        assert response.status_code == 422

    def test_join_starts_game(self, client, student_a, student_b, headers_for, open_room):
        code = open_room(student_a)

        response = client.post(f"{API}/rooms/{code}/join", headers=headers_for(student_b))
        room = response.json()["data"]
        assert room["status"] == "playing"
        assert room["mySymbol"] == "O"
        assert [p["symbol"] for p in room["players"]] == ["X", "O"]

    def test_join_is_case_insensitive_and_idempotent(
        self, client, student_a, student_b, headers_for, open_room
    ):
        code = open_room(student_a, student_b)

        response = client.post(f"{API}/rooms/{code.lower()}/join", headers=headers_for(student_b))
        assert response.status_code == 200
        assert len(response.json()["data"]["players"]) == 2

    def test_third_player_gets_room_full(
        self, client, student_a, student_b, student_c, headers_for, open_room
    ):
        code = open_room(student_a, student_b)

        response = client.post(f"{API}/rooms/{code}/join", headers=headers_for(student_c))
        assert response.status_code == 409
        assert response.json()["meta"]["errorCode"] == "ROOM_FULL"

    def test_unknown_room(self, client, student_a, headers_for):
        response = client.get(f"{API}/rooms/NOPE42", headers=headers_for(student_a))
        assert response.status_code == 404
        assert response.json()["meta"]["errorCode"] == "ROOM_NOT_FOUND"

    def test_room_codes_use_upper_alphanumerics(self):
        code = generate_room_code()
        assert len(code) == 6
        assert code == code.upper() and code.isalnum()


class TestTicTacToeOverHttp:
    """Turn order, results and statistics."""

    def test_move_before_opponent_joins(self, student_a, open_room, move):
        code = open_room(student_a)

        response = move(student_a, code, position=0)
        assert response.status_code == 409
        assert response.json()["meta"]["errorCode"] == "GAME_NOT_IN_PROGRESS"

    def test_out_of_turn_move_rejected(self, student_a, student_b, open_room, move):
        code = open_room(student_a, student_b)

        response = move(student_b, code, position=0)
        assert response.status_code == 409
        assert response.json()["meta"]["errorCode"] == "NOT_YOUR_TURN"

    def test_spectator_cannot_move(self, student_a, student_b, student_c, open_room, move):
        code = open_room(student_a, student_b)

        response = move(student_c, code, position=0)
        assert response.status_code == 403
        assert response.json()["meta"]["errorCode"] == "NOT_A_PLAYER"

    def test_taken_cell_rejected(self, student_a, student_b, open_room, move):
        code = open_room(student_a, student_b)
        move(student_a, code, position=4)

        response = move(student_b, code, position=4)
        assert response.status_code == 409
        assert response.json()["meta"]["errorCode"] == "POSITION_TAKEN"

    def test_win_records_result_and_statistics(
        self, client, student_a, student_b, headers_for, open_room, move
    ):
        code = open_room(student_a, student_b)

        room = play_x_wins(move, student_a, student_b, code).json()["data"]
        assert room["status"] == "finished"
        assert room["winnerId"] == student_a.id
        assert room["gameState"]["winningLine"] == [0, 1, 2]

        winner_stats = client.get(f"{API}/statistics", headers=headers_for(student_a)).json()["data"]
        ttt = next(s for s in winner_stats if s["gameType"] == "tic_tac_toe")
        assert ttt == {
            "gameType": "tic_tac_toe",
            "wins": 1,
            "losses": 0,
            "draws": 0,
            "totalGames": 1,
            "points": 3,
        }

        loser_stats = client.get(f"{API}/statistics", headers=headers_for(student_b)).json()["data"]
        assert next(s for s in loser_stats if s["gameType"] == "tic_tac_toe")["losses"] == 1

        after = move(student_b, code, position=8)
        assert after.status_code == 409

    def test_leaderboard_ranks_by_points(
        self, client, student_a, student_b, headers_for, open_room, move
    ):
        code = open_room(student_a, student_b)
        play_x_wins(move, student_a, student_b, code)

        board = client.get(
            f"{API}/tic_tac_toe/leaderboard", headers=headers_for(student_b)
        ).json()["data"]
        assert [(e["rank"], e["user"]["id"], e["points"]) for e in board] == [
            (1, student_a.id, 3),
            (2, student_b.id, 0),
        ]

        empty = client.get(
            f"{API}/rock_paper_scissors/leaderboard", headers=headers_for(student_b)
        ).json()["data"]
        assert empty == []

    def test_reset_keeps_roster(self, client, student_a, student_b, headers_for, open_room, move):
        code = open_room(student_a, student_b)
        play_x_wins(move, student_a, student_b, code)

        response = client.post(f"{API}/rooms/{code}/reset", headers=headers_for(student_b))
        assert response.status_code == 200, response.text
        room = response.json()["data"]
        assert room["status"] == "playing"
        assert room["winnerId"] is None
        assert room["gameState"]["board"] == [None] * 9
        assert len(room["players"]) == 2

    def test_reset_by_outsider_rejected(
        self, client, student_a, student_b, student_c, headers_for, open_room
    ):
        code = open_room(student_a, student_b)

        response = client.post(f"{API}/rooms/{code}/reset", headers=headers_for(student_c))
        assert response.status_code == 403


class TestRockPaperScissorsOverHttp:
    """Simultaneous picks stay hidden until the round resolves."""

    def test_pending_choice_hidden_from_opponent(
        self, client, student_a, student_b, headers_for, open_room, move
    ):
        code = open_room(student_a, student_b, game_type="rock_paper_scissors")

        own = move(student_a, code, choice="rock").json()["data"]["gameState"]
        assert own["player1Choice"] == "rock"

        theirs = client.get(f"{API}/rooms/{code}", headers=headers_for(student_b)).json()["data"]
        assert theirs["gameState"]["player1Choice"] is None
        assert theirs["gameState"]["player1Ready"] is True

    def test_round_resolves(self, student_a, student_b, open_room, move):
        code = open_room(student_a, student_b, game_type="rock_paper_scissors")
        move(student_a, code, choice="rock")

        state = move(student_b, code, choice="paper").json()["data"]["gameState"]
        assert state["player2Score"] == 1
        assert state["currentRound"] == 2
        assert state["lastRound"]["player1Choice"] == "rock"


class TestGameService:
    """Service-level checks."""

    @pytest.mark.asyncio
    async def test_draw_counts_for_both_players(self, db_session, student_a, student_b):
        service = GameService(db_session)
        room = await service.create_room(student_a.id, GameType.TIC_TAC_TOE)
        await service.join_room(student_b.id, room.code)

        # X O X / X O O / O X X
        sequence = [
            (student_a, 0),
            (student_b, 1),
            (student_a, 2),
            (student_b, 4),
            (student_a, 3),
            (student_b, 5),
            (student_a, 7),
            (student_b, 6),
            (student_a, 8),
        ]
        for user, position in sequence:
            result = await service.make_move(user.id, room.code, MoveRequest(position=position))

        assert result.winner_id is None
        assert result.game_state["winner"] == "draw"
        for user in (student_a, student_b):
            stats = await service.get_statistics(user.id)
            ttt = next(s for s in stats if s.game_type == GameType.TIC_TAC_TOE)
            assert (ttt.draws, ttt.total_games, ttt.points) == (1, 1, 1)

    @pytest.mark.asyncio
    async def test_finished_room_cannot_be_joined(
        self, db_session, student_a, student_b, student_c
    ):
        service = GameService(db_session)
        room = await service.create_room(student_a.id, GameType.TIC_TAC_TOE)
        await service.join_room(student_b.id, room.code)
        for user, position in [(student_a, 0), (student_b, 3), (student_a, 1), (student_b, 4), (student_a, 2)]:
            await service.make_move(user.id, room.code, MoveRequest(position=position))

        with pytest.raises(ValueError, match="ROOM_NOT_JOINABLE"):
            await service.join_room(student_c.id, room.code)

    @pytest.mark.asyncio
    async def test_stale_room_write_is_a_conflict(self, session_factory, student_a, student_b):
        first, second = session_factory(), session_factory()
        try:
            room = await GameService(first).create_room(student_a.id, GameType.TIC_TAC_TOE)
            await GameService(first).join_room(student_b.id, room.code)

            # `first` keeps the room as it was before this move landed
            await GameService(second).make_move(student_a.id, room.code, MoveRequest(position=0))

            with pytest.raises(ValueError, match="GAME_STATE_CONFLICT"):
                await GameService(first).make_move(
                    student_a.id, room.code, MoveRequest(position=4)
                )

            board = (await GameService(second).get_room(student_a.id, room.code)).game_state[
                "board"
            ]
            assert board[0] == "X"
            assert board[4] is None
        finally:
            first.close()
            second.close()

    @pytest.mark.asyncio
    async def test_room_code_retries_are_bounded(self, db_session, student_a, monkeypatch):
        monkeypatch.setattr(game_service, "generate_room_code", lambda: "SAME42")
        service = GameService(db_session)
        await service.create_room(student_a.id, GameType.TIC_TAC_TOE)

        with pytest.raises(ValueError, match="ROOM_CODE_GENERATION_FAILED"):
            await service.create_room(student_a.id, GameType.ROCK_PAPER_SCISSORS)

    def test_room_code_exhaustion_over_http(self, client, student_a, headers_for, monkeypatch):
        monkeypatch.setattr(game_service, "generate_room_code", lambda: "SAME42")
        first = client.post(
            f"{API}/rooms", json={"gameType": "tic_tac_toe"}, headers=headers_for(student_a)
        )
        assert first.status_code == 201

        second = client.post(
            f"{API}/rooms", json={"gameType": "tic_tac_toe"}, headers=headers_for(student_a)
        )
        assert second.status_code == 503
        assert second.json()["meta"]["errorCode"] == "ROOM_CODE_GENERATION_FAILED"

    @pytest.mark.asyncio
    async def test_failed_finish_rolls_back_the_winning_move(
        self, db_session, student_a, student_b, monkeypatch
    ):
        service = GameService(db_session)
        room = await service.create_room(student_a.id, GameType.TIC_TAC_TOE)
        await service.join_room(student_b.id, room.code)
        for user, position in [(student_a, 0), (student_b, 3), (student_a, 1), (student_b, 4)]:
            await service.make_move(user.id, room.code, MoveRequest(position=position))

        def stats_unavailable(self, user_id, game_type):
            raise OperationalError("SELECT game_statistics", {}, Exception("disk I/O error"))

        monkeypatch.setattr(GameService, "_get_or_create_statistic", stats_unavailable)

        with pytest.raises(OperationalError):
            await service.make_move(student_a.id, room.code, MoveRequest(position=2))

        after = await service.get_room(student_a.id, room.code)
        assert after.status == GameRoomStatus.PLAYING
        assert after.winner_id is None
        assert after.game_state["board"][2] is None
        assert db_session.execute(select(func.count(GameStatistic.id))).scalar() == 0
