import pytest

from campus_connect.db.models import DayOfWeek
from campus_connect.schemas.routine_schemas import RoutineRequest
from campus_connect.services.routine_service import RoutineService

pytestmark = pytest.mark.integration

API = "/api/v1/routines"


def routine_payload(start, end, day="monday", activity="Lecture", **extra):
    payload = {
        "day": day,
        "startTime": start,
        "endTime": end,
        "activity": activity,
        "type": "class",
    }
    payload.update(extra)
    return payload


@pytest.fixture
def add_routine(client, headers_for):
    def _add(user, start, end, day="monday", activity="Lecture", **extra):
        response = client.post(
            f"{API}/",
            json=routine_payload(start, end, day=day, activity=activity, **extra),
            headers=headers_for(user),
        )
        assert response.status_code == 201, response.text
        return response.json()["data"]

    return _add


def slot_pairs(day_free_time):
    return [(s["start"], s["end"]) for s in day_free_time["slots"]]


class TestRoutineConflicts:
    """Overlap detection inside one user's week."""

    def test_overlapping_routine_rejected_and_original_unchanged(
        self, client, student_a, headers_for, add_routine
    ):
        original = add_routine(student_a, "09:00", "10:00", activity="Calculus")

        response = client.post(
            f"{API}/",
            json=routine_payload("09:30", "10:30", activity="Physics"),
            headers=headers_for(student_a),
        )

        assert response.status_code == 409
        body = response.json()
        assert body["meta"]["errorCode"] == "ROUTINE_TIME_CONFLICT"
        assert "Calculus" in body["message"]
        assert "09:00-10:00" in body["message"]

        routines = client.get(f"{API}/", headers=headers_for(student_a)).json()["data"]
        assert routines == [original]

    @pytest.mark.parametrize(
        "start,end",
        [
            ("08:30", "09:30"),  # covers existing start
            ("09:15", "09:45"),  # inside existing
            ("08:00", "11:00"),  # contains existing
            ("09:00", "10:00"),  # exact duplicate
        ],
    )
    @pytest.mark.asyncio
    async def test_every_overlap_shape_detected(self, db_session, student_a, start, end):
        service = RoutineService(db_session)
        await service.create_routine(
            student_a.id, RoutineRequest(day="monday", start_time="09:00", end_time="10:00", activity="A")
        )

        with pytest.raises(ValueError, match="ROUTINE_TIME_CONFLICT"):
            await service.create_routine(
                student_a.id,
                RoutineRequest(day="monday", start_time=start, end_time=end, activity="B"),
            )

    @pytest.mark.asyncio
    async def test_touching_routines_and_other_days_allowed(self, db_session, student_a):
        service = RoutineService(db_session)
        await service.create_routine(
            student_a.id, RoutineRequest(day="monday", start_time="09:00", end_time="10:00", activity="A")
        )
        await service.create_routine(
            student_a.id, RoutineRequest(day="monday", start_time="10:00", end_time="11:00", activity="B")
        )
        await service.create_routine(
            student_a.id, RoutineRequest(day="tuesday", start_time="09:00", end_time="10:00", activity="C")
        )

        assert len(await service.list_routines(student_a.id)) == 3

    @pytest.mark.asyncio
    async def test_other_users_schedule_does_not_conflict(self, db_session, student_a, student_b):
        service = RoutineService(db_session)
        request = RoutineRequest(day="monday", start_time="09:00", end_time="10:00", activity="A")
        await service.create_routine(student_a.id, request)
        await service.create_routine(student_b.id, request)

    def test_end_before_start_rejected(self, client, student_a, headers_for):
        response = client.post(
            f"{API}/", json=routine_payload("10:00", "09:00"), headers=headers_for(student_a)
        )
        assert response.status_code == 400
        assert response.json()["meta"]["errorCode"] == "INVALID_TIME_RANGE"

    def test_update_may_keep_its_own_slot(self, client, student_a, headers_for, add_routine):
        routine = add_routine(student_a, "09:00", "10:00")

        response = client.put(
            f"{API}/{routine['id']}",
            json=routine_payload("09:00", "10:30", activity="Longer lecture"),
            headers=headers_for(student_a),
        )
        assert response.status_code == 200, response.text
        assert response.json()["data"]["endTime"] == "10:30"

    def test_update_into_another_routine_rejected(
        self, client, student_a, headers_for, add_routine
    ):
        add_routine(student_a, "09:00", "10:00")
        second = add_routine(student_a, "11:00", "12:00")

        response = client.put(
            f"{API}/{second['id']}",
            json=routine_payload("09:30", "11:30"),
            headers=headers_for(student_a),
        )
        assert response.status_code == 409


class TestRoutineCrud:
    """Ownership and listing."""

    def test_listing_sorted_by_day_then_time(self, client, student_a, headers_for, add_routine):
        add_routine(student_a, "14:00", "15:00", day="tuesday")
        add_routine(student_a, "11:00", "12:00", day="monday")
        add_routine(student_a, "08:00", "09:00", day="tuesday")

        routines = client.get(f"{API}/", headers=headers_for(student_a)).json()["data"]
        assert [(r["day"], r["startTime"]) for r in routines] == [
            ("monday", "11:00"),
            ("tuesday", "08:00"),
            ("tuesday", "14:00"),
        ]

        tuesday = client.get(
            f"{API}/", params={"day": "tuesday"}, headers=headers_for(student_a)
        ).json()["data"]
        assert len(tuesday) == 2

    def test_someone_elses_routine_is_not_found(
        self, client, student_a, student_b, headers_for, add_routine
    ):
        routine = add_routine(student_a, "09:00", "10:00")

        for response in (
            client.get(f"{API}/{routine['id']}", headers=headers_for(student_b)),
            client.delete(f"{API}/{routine['id']}", headers=headers_for(student_b)),
        ):
            assert response.status_code == 404
            assert response.json()["meta"]["errorCode"] == "ROUTINE_NOT_FOUND"

    def test_any_user_may_view_another_schedule(
        self, client, student_a, student_b, headers_for, add_routine
    ):
        add_routine(student_a, "09:00", "10:00")

        response = client.get(f"{API}/user/{student_a.id}", headers=headers_for(student_b))
        assert response.status_code == 200
        assert len(response.json()["data"]) == 1

    def test_delete(self, client, student_a, headers_for, add_routine):
        routine = add_routine(student_a, "09:00", "10:00")

        response = client.delete(f"{API}/{routine['id']}", headers=headers_for(student_a))
        assert response.status_code == 200
        assert client.get(f"{API}/", headers=headers_for(student_a)).json()["data"] == []

    def test_weekly_summary(self, client, student_a, headers_for, add_routine):
        add_routine(student_a, "09:00", "10:00")
        add_routine(student_a, "13:00", "14:30")

        summary = client.get(f"{API}/summary/weekly", headers=headers_for(student_a)).json()["data"]
        assert len(summary) == 7
        assert summary[0] == {"day": "monday", "routineCount": 2, "scheduledMinutes": 150}
        assert summary[1]["routineCount"] == 0


class TestFreeTime:
    """Own and mutual free slots."""

    def test_free_time_for_a_day(self, client, student_a, headers_for, add_routine):
        add_routine(student_a, "09:00", "10:00")
        add_routine(student_a, "12:00", "13:00")

        data = client.get(
            f"{API}/free-time/monday", headers=headers_for(student_a)
        ).json()["data"]
        assert data["windowStart"] == "08:00"
        assert data["windowEnd"] == "22:00"
        assert data["minDurationMinutes"] == 30
        assert slot_pairs(data) == [("08:00", "09:00"), ("10:00", "12:00"), ("13:00", "22:00")]
        assert data["slots"][0]["durationMinutes"] == 60

    def test_partial_minute_keeps_the_minute_busy(
        self, client, student_a, headers_for, add_routine
    ):
        add_routine(student_a, "10:00", "10:30:30")
        add_routine(student_a, "12:00:00", "12:00:30", activity="Call")

        data = client.get(
            f"{API}/free-time/monday", params={"duration": 1}, headers=headers_for(student_a)
        ).json()["data"]
        assert slot_pairs(data) == [("08:00", "10:00"), ("10:31", "12:00"), ("12:01", "22:00")]

        summary = client.get(f"{API}/summary/weekly", headers=headers_for(student_a)).json()["data"]
        assert summary[0]["scheduledMinutes"] == 32

    def test_mutual_free_time_documented_example(
        self, client, student_a, student_b, headers_for, add_routine, make_friends
    ):
        make_friends(student_a, student_b)
        add_routine(student_a, "09:00", "10:00")
        add_routine(student_a, "11:00", "12:00", activity="Lab")
        add_routine(student_b, "09:30", "11:30")

        response = client.get(
            f"{API}/mutual-free-time/{student_b.id}",
            params={"day": "monday", "min_duration": 30},
            headers=headers_for(student_a),
        )
        assert response.status_code == 200, response.text
        days = response.json()["data"]
        assert len(days) == 1
        assert slot_pairs(days[0]) == [("08:00", "09:00"), ("12:00", "22:00")]

    def test_mutual_free_time_whole_week(
        self, client, student_a, student_b, headers_for, make_friends
    ):
        make_friends(student_a, student_b)

        days = client.get(
            f"{API}/mutual-free-time/{student_b.id}", headers=headers_for(student_a)
        ).json()["data"]
        assert [d["day"] for d in days] == [d.value for d in DayOfWeek]
        assert all(slot_pairs(d) == [("08:00", "22:00")] for d in days)

    def test_mutual_free_time_requires_friendship(
        self, client, student_a, student_b, headers_for
    ):
        response = client.get(
            f"{API}/mutual-free-time/{student_b.id}", headers=headers_for(student_a)
        )
        assert response.status_code == 403
        assert response.json()["meta"]["errorCode"] == "NOT_FRIENDS"

    def test_friend_matches(
        self, client, student_a, student_b, student_c, headers_for, add_routine, make_friends
    ):
        make_friends(student_a, student_b)
        add_routine(student_a, "09:00", "11:00", activity="Library")
        add_routine(student_b, "10:00", "12:00", activity="Revision", type="study")
        # Not a friend, so never matched
        add_routine(student_c, "09:00", "11:00", activity="Gym", type="activity")

        matches = client.get(
            f"{API}/matches/friends",
            params={"day": "monday", "duration": 60},
            headers=headers_for(student_a),
        ).json()["data"]
        assert len(matches) == 1
        assert matches[0]["user"]["id"] == student_b.id
        assert matches[0]["routine"]["activity"] == "Revision"
        assert matches[0]["overlap"] == {"start": "10:00", "end": "11:00", "durationMinutes": 60}

        shorter_than_required = client.get(
            f"{API}/matches/friends",
            params={"day": "monday", "duration": 90},
            headers=headers_for(student_a),
        ).json()["data"]
        assert shorter_than_required == []

        wrong_type = client.get(
            f"{API}/matches/friends",
            params={"day": "monday", "type": "class"},
            headers=headers_for(student_a),
        ).json()["data"]
        assert wrong_type == []
