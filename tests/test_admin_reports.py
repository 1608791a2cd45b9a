import pytest

from campus_connect.db.models import BugStatus, FeedbackStatus
from campus_connect.services.report_service import (
    BUG_TRANSITIONS,
    FEEDBACK_TRANSITIONS,
    check_transition,
    clamp_page,
)

pytestmark = pytest.mark.integration

API = "/api/v1"


@pytest.fixture
def submit_feedback(client, headers_for):
    def _submit(message, user=None, priority="medium"):
        response = client.post(
            f"{API}/feedback/",
            json={"message": message, "priority": priority},
            headers=headers_for(user) if user else {},
        )
        assert response.status_code == 201, response.text
        return response.json()["data"]

    return _submit


@pytest.fixture
def report_bug(client, headers_for):
    def _report(user, title="Login button broken", description="Nothing happens", severity="high"):
        response = client.post(
            f"{API}/bugs/",
            json={"title": title, "description": description, "severity": severity},
            headers=headers_for(user),
        )
        assert response.status_code == 201, response.text
        return response.json()["data"]

    return _report


class TestStatusTransitions:
    """Allowed status moves."""

    @pytest.mark.parametrize(
        "current,target,allowed",
        [
            (FeedbackStatus.OPEN, FeedbackStatus.RESOLVED, True),
            (FeedbackStatus.RESOLVED, FeedbackStatus.OPEN, True),
            (FeedbackStatus.CLOSED, FeedbackStatus.RESOLVED, False),
            (FeedbackStatus.CLOSED, FeedbackStatus.CLOSED, True),
        ],
    )
    def test_feedback(self, current, target, allowed):
        assert check_transition(FEEDBACK_TRANSITIONS, current, target) is allowed

    @pytest.mark.parametrize(
        "current,target,allowed",
        [
            (BugStatus.OPEN, BugStatus.TRIAGED, True),
            (BugStatus.IN_PROGRESS, BugStatus.FIXED, True),
            (BugStatus.OPEN, BugStatus.FIXED, False),
            (BugStatus.CLOSED, BugStatus.IN_PROGRESS, False),
            (BugStatus.CLOSED, BugStatus.OPEN, True),
        ],
    )
    def test_bugs(self, current, target, allowed):
        assert check_transition(BUG_TRANSITIONS, current, target) is allowed

    @pytest.mark.parametrize(
        "limit,offset,expected",
        [(None, None, (20, 0)), (500, 10, (100, 10)), (0, -5, (20, 0)), (5, 3, (5, 3))],
    )
    def test_clamp_page(self, limit, offset, expected):
        assert clamp_page(limit, offset) == expected


class TestFeedbackSubmission:
    """Signed-in and anonymous feedback."""

    def test_signed_in_feedback_records_reporter(self, student_a, submit_feedback):
        feedback = submit_feedback("Great app", user=student_a)

        assert feedback["status"] == "open"
        assert feedback["priority"] == "medium"
        assert feedback["reporter"]["id"] == student_a.id

    def test_anonymous_feedback_accepted(self, submit_feedback):
        feedback = submit_feedback("Please add dark mode")

        assert feedback["status"] == "open"
        assert feedback.get("reporter") is None

    def test_blank_feedback_rejected(self, client):
        response = client.post(f"{API}/feedback/", json={"message": "   "})
        assert response.status_code == 422


class TestBugReports:
    """Filing and listing own bug reports."""

    def test_report_requires_login(self, client):
        response = client.post(
            f"{API}/bugs/", json={"title": "x", "description": "y"}
        )
        assert response.status_code == 401

    def test_lists_only_own_reports(self, client, student_a, student_b, headers_for, report_bug):
        mine = report_bug(student_a)
        report_bug(student_b, title="Crash on upload")

        reports = client.get(f"{API}/bugs/", headers=headers_for(student_a)).json()["data"]
        assert [r["id"] for r in reports] == [mine["id"]]
        assert reports[0]["severity"] == "high"
        assert reports[0]["status"] == "open"


class TestAdminConsole:
    """Admin-only browsing and status changes."""

    def test_students_are_refused(self, client, student_a, headers_for):
        for path in ("/admin/ping", "/admin/feedback", "/admin/bugs"):
            response = client.get(f"{API}{path}", headers=headers_for(student_a))
            assert response.status_code == 403
            assert response.json()["meta"]["errorCode"] == "ADMIN_REQUIRED"

    def test_feedback_listing_filters_and_pages(
        self, client, admin_user, student_a, headers_for, submit_feedback
    ):
        submit_feedback("Search is slow", user=student_a)
        submit_feedback("Love the games")
        submit_feedback("Search results are wrong")
        headers = headers_for(admin_user)

        page = client.get(f"{API}/admin/feedback", headers=headers).json()["data"]
        assert page["total"] == 3
        assert page["limit"] == 20
        assert page["offset"] == 0
        assert page["items"][0]["message"] == "Search results are wrong"

        found = client.get(
            f"{API}/admin/feedback", params={"q": "search"}, headers=headers
        ).json()["data"]
        assert found["total"] == 2

        by_reporter = client.get(
            f"{API}/admin/feedback", params={"q": "anders"}, headers=headers
        ).json()["data"]
        assert [f["message"] for f in by_reporter["items"]] == ["Search is slow"]

        second = client.get(
            f"{API}/admin/feedback", params={"limit": 1, "offset": 1}, headers=headers
        ).json()["data"]
        assert second["total"] == 3
        assert [f["message"] for f in second["items"]] == ["Love the games"]

        capped = client.get(
            f"{API}/admin/feedback", params={"limit": 1000}, headers=headers
        ).json()["data"]
        assert capped["limit"] == 100

    def test_feedback_status_update(
        self, client, admin_user, headers_for, submit_feedback
    ):
        feedback = submit_feedback("Typo on the home page")
        headers = headers_for(admin_user)
        path = f"{API}/admin/feedback/{feedback['id']}/status"

        response = client.put(path, json={"status": "resolved"}, headers=headers)
        assert response.status_code == 200, response.text
        assert response.json()["data"]["status"] == "resolved"

        client.put(path, json={"status": "closed"}, headers=headers)
        response = client.put(path, json={"status": "in_progress"}, headers=headers)
        assert response.status_code == 400
        assert response.json()["meta"]["errorCode"] == "INVALID_STATUS_TRANSITION"

        open_list = client.get(
            f"{API}/admin/feedback", params={"status": "closed"}, headers=headers
        ).json()["data"]
        assert [f["id"] for f in open_list["items"]] == [feedback["id"]]

    def test_unknown_status_value_is_validation_error(
        self, client, admin_user, headers_for, submit_feedback
    ):
        feedback = submit_feedback("Anything")
        response = client.put(
            f"{API}/admin/feedback/{feedback['id']}/status",
            json={"status": "done"},
            headers=headers_for(admin_user),
        )
        assert response.status_code == 422

    def test_missing_feedback(self, client, admin_user, headers_for):
        response = client.put(
            f"{API}/admin/feedback/999/status",
            json={"status": "closed"},
            headers=headers_for(admin_user),
        )
        assert response.status_code == 404
        assert response.json()["meta"]["errorCode"] == "FEEDBACK_NOT_FOUND"

    def test_bug_workflow(self, client, admin_user, student_a, headers_for, report_bug):
        bug = report_bug(student_a)
        headers = headers_for(admin_user)
        path = f"{API}/admin/bugs/{bug['id']}/status"

        skipped = client.put(path, json={"status": "fixed"}, headers=headers)
        assert skipped.status_code == 400

        for status in ("triaged", "in_progress", "fixed", "closed"):
            response = client.put(path, json={"status": status}, headers=headers)
            assert response.status_code == 200, response.text
            assert response.json()["data"]["status"] == status

        listed = client.get(
            f"{API}/admin/bugs", params={"status": "closed", "q": "login"}, headers=headers
        ).json()["data"]
        assert listed["total"] == 1
        assert listed["items"][0]["reporter"]["id"] == student_a.id

        # The reporter sees the new status on their own list
        mine = client.get(f"{API}/bugs/", headers=headers_for(student_a)).json()["data"]
        assert mine[0]["status"] == "closed"
