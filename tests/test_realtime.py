import asyncio

import pytest
from starlette.websockets import WebSocketDisconnect

from campus_connect.services.game_service import GameService
from campus_connect.services.realtime import RealtimeBroker, broker, chat_channel, game_channel

pytestmark = pytest.mark.integration

WS = "/ws"


class TestRealtimeBroker:
    """Channel fan-out and bounded inboxes."""

    def test_channel_names(self):
        assert chat_channel(7) == "chat:7"
        assert game_channel("ab12cd") == "game:AB12CD"

    @pytest.mark.asyncio
    async def test_publish_reaches_every_subscriber_on_channel(self):
        hub = RealtimeBroker(queue_size=10)
        first = hub.subscribe("chat:1")
        second = hub.subscribe("chat:1")
        other = hub.subscribe("chat:2")

        delivered = hub.publish("chat:1", "message.created", {"id": 1})

        assert delivered == 2
        for subscription in (first, second):
            event = await subscription.get(timeout=1)
            assert event["event"] == "message.created"
            assert event["channel"] == "chat:1"
            assert event["data"] == {"id": 1}
            assert event["timestamp"]
        assert other.queue.empty()

    def test_publish_without_subscribers(self):
        assert RealtimeBroker().publish("chat:1", "message.created", {}) == 0

    @pytest.mark.asyncio
    async def test_full_inbox_drops_oldest(self):
        hub = RealtimeBroker(queue_size=2)
        subscription = hub.subscribe("game:ABC123")

        for n in range(3):
            hub.publish("game:ABC123", "room.updated", {"n": n})

        assert subscription.dropped == 1
        assert (await subscription.get(timeout=1))["data"] == {"n": 1}
        assert (await subscription.get(timeout=1))["data"] == {"n": 2}

    @pytest.mark.asyncio
    async def test_get_times_out_when_idle(self):
        subscription = RealtimeBroker().subscribe("chat:1")
        with pytest.raises(asyncio.TimeoutError):
            await subscription.get(timeout=0.01)

    def test_unsubscribe_removes_empty_channel(self):
        hub = RealtimeBroker()
        subscription = hub.subscribe("chat:1")
        assert hub.subscriber_count("chat:1") == 1

        hub.unsubscribe(subscription)
        hub.unsubscribe(subscription)

        assert hub.subscriber_count("chat:1") == 0
        assert hub.publish("chat:1", "message.created", {}) == 0


@pytest.fixture
def chat_room(client, headers_for, make_friends):
    def _open(user, friend):
        make_friends(user, friend)
        response = client.post(
            "/api/v1/chat/rooms/direct", json={"friendId": friend.id}, headers=headers_for(user)
        )
        assert response.status_code == 201, response.text
        return response.json()["data"]["id"]

    return _open


class TestChatSocket:
    """Live chat delivery."""

    def test_rejects_missing_token(self, client):
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect(f"{WS}/chat/rooms/1"):
                pass
        assert exc_info.value.code == 1008

    def test_rejects_non_participant(
        self, client, student_a, student_b, student_c, token_of, chat_room
    ):
        room_id = chat_room(student_a, student_b)

        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect(
                f"{WS}/chat/rooms/{room_id}?token={token_of(student_c)}"
            ):
                pass
        assert exc_info.value.reason == "NOT_A_PARTICIPANT"

    def test_receives_new_messages(
        self, client, student_a, student_b, headers_for, token_of, chat_room
    ):
        room_id = chat_room(student_a, student_b)

        with client.websocket_connect(
            f"{WS}/chat/rooms/{room_id}?token={token_of(student_a)}"
        ) as websocket:
            response = client.post(
                f"/api/v1/chat/rooms/{room_id}/messages",
                json={"message": "are you there?"},
                headers=headers_for(student_b),
            )
            assert response.status_code == 201

            event = websocket.receive_json()
            assert event["event"] == "message.created"
            assert event["channel"] == f"chat:{room_id}"
            assert event["data"]["message"] == "are you there?"
            assert event["data"]["sender"]["id"] == student_b.id

    def test_replays_messages_after_id(
        self, client, student_a, student_b, headers_for, token_of, chat_room
    ):
        room_id = chat_room(student_a, student_b)
        ids = []
        for text in ("one", "two", "three"):
            response = client.post(
                f"/api/v1/chat/rooms/{room_id}/messages",
                json={"message": text},
                headers=headers_for(student_b),
            )
            ids.append(response.json()["data"]["id"])

        with client.websocket_connect(
            f"{WS}/chat/rooms/{room_id}?token={token_of(student_a)}&after_id={ids[0]}"
        ) as websocket:
            replayed = [websocket.receive_json(), websocket.receive_json()]

        assert [e["data"]["message"] for e in replayed] == ["two", "three"]
        assert all(e["replay"] is True for e in replayed)

    def test_ping_gets_pong(self, client, student_a, student_b, token_of, chat_room):
        room_id = chat_room(student_a, student_b)

        with client.websocket_connect(
            f"{WS}/chat/rooms/{room_id}?token={token_of(student_a)}"
        ) as websocket:
            websocket.send_text("ping")
            assert websocket.receive_json() == {"event": "pong"}


class TestGameSocket:
    """Room snapshots and updates."""

    def test_snapshot_then_update_on_join(
        self, client, student_a, student_b, headers_for, token_of
    ):
        code = client.post(
            "/api/v1/games/rooms", json={"gameType": "tic_tac_toe"}, headers=headers_for(student_a)
        ).json()["data"]["code"]

        with client.websocket_connect(
            f"{WS}/games/rooms/{code}?token={token_of(student_a)}"
        ) as websocket:
            snapshot = websocket.receive_json()
            assert snapshot["event"] == "room.snapshot"
            assert snapshot["data"]["status"] == "waiting"
            assert snapshot["data"]["mySymbol"] == "X"

            client.post(f"/api/v1/games/rooms/{code}/join", headers=headers_for(student_b))

            update = websocket.receive_json()
            assert update["event"] == "room.updated"
            assert update["channel"] == f"game:{code}"
            assert update["data"]["status"] == "playing"
            assert len(update["data"]["players"]) == 2

    def test_unknown_room_rejected(self, client, student_a, token_of):
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect(f"{WS}/games/rooms/NOPE42?token={token_of(student_a)}"):
                pass
        assert exc_info.value.reason == "ROOM_NOT_FOUND"
        assert broker.subscriber_count(game_channel("NOPE42")) == 0

    def test_update_during_connect_is_not_lost(
        self, client, student_a, headers_for, token_of, monkeypatch
    ):
        code = client.post(
            "/api/v1/games/rooms", json={"gameType": "tic_tac_toe"}, headers=headers_for(student_a)
        ).json()["data"]["code"]
        original_get_room = GameService.get_room

        async def get_room_after_update(self, user_id, room_code):
            # Another player's move lands while the snapshot is being read
            broker.publish(
                game_channel(room_code), "room.updated", {"code": room_code, "version": 9}
            )
            return await original_get_room(self, user_id, room_code)

        monkeypatch.setattr(GameService, "get_room", get_room_after_update)

        with client.websocket_connect(
            f"{WS}/games/rooms/{code}?token={token_of(student_a)}"
        ) as websocket:
            assert websocket.receive_json()["event"] == "room.snapshot"
            update = websocket.receive_json()
            assert update["event"] == "room.updated"
            assert update["data"]["version"] == 9
