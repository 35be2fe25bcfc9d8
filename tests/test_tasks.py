"""
Tests for task endpoints.
"""
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from meetpulse.models.audit_log import AuditLog
from meetpulse.models.meeting import Meeting
from meetpulse.models.task import Task
from meetpulse.models.user import User


def create_task(client: TestClient, meeting: Meeting, headers: dict, **overrides) -> dict:
    payload = {
        "description": "Prepare the demo",
        "common_question": "Is the demo ready?",
        "meeting_id": str(meeting.id),
        "deadline": "2030-03-01T12:00:00Z",
        "contribution_importance": 30,
    }
    payload.update(overrides)
    response = client.post("/api/v1/tasks", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


class TestCreateTask:
    def test_create(self, client: TestClient, meeting: Meeting, alice: User, alice_headers: dict):
        task = create_task(client, meeting, alice_headers)
        assert task["author"]["id"] == str(alice.id)
        assert task["author"]["full_name"] == "Alice Participant"
        assert task["meeting"]["title"] == "Sprint retrospective"
        assert task["approved"] is False
        assert task["is_completed"] is False

    def test_one_task_per_meeting(self, client: TestClient, meeting: Meeting, alice_headers: dict):
        create_task(client, meeting, alice_headers)
        response = client.post(
            "/api/v1/tasks",
            json={
                "description": "Another",
                "meeting_id": str(meeting.id),
                "deadline": "2030-03-01T12:00:00Z",
                "contribution_importance": 10,
            },
            headers=alice_headers,
        )
        assert response.status_code == 400

    def test_outsider_cannot_create(
        self, client: TestClient, meeting: Meeting, outsider_headers: dict
    ):
        response = client.post(
            "/api/v1/tasks",
            json={
                "description": "Sneaky",
                "meeting_id": str(meeting.id),
                "deadline": "2030-03-01T12:00:00Z",
                "contribution_importance": 10,
            },
            headers=outsider_headers,
        )
        assert response.status_code == 403


class TestReadTasks:
    def test_list_own_tasks(
        self,
        client: TestClient,
        meeting: Meeting,
        alice_headers: dict,
        bob_headers: dict,
    ):
        create_task(client, meeting, alice_headers)
        assert len(client.get("/api/v1/tasks", headers=alice_headers).json()) == 1
        assert client.get("/api/v1/tasks", headers=bob_headers).json() == []

    def test_filter_by_completion(
        self, client: TestClient, meeting: Meeting, alice_headers: dict
    ):
        task = create_task(client, meeting, alice_headers)
        client.patch(
            f"/api/v1/tasks/{task['id']}", json={"is_completed": True}, headers=alice_headers
        )

        current = client.get("/api/v1/tasks?filter=current", headers=alice_headers).json()
        past = client.get("/api/v1/tasks?filter=past", headers=alice_headers).json()
        assert current == []
        assert [item["id"] for item in past] == [task["id"]]

    def test_unknown_filter(self, client: TestClient, alice_headers: dict):
        response = client.get("/api/v1/tasks?filter=tomorrow", headers=alice_headers)
        assert response.status_code == 400

    def test_meeting_tasks(
        self,
        client: TestClient,
        meeting: Meeting,
        alice_headers: dict,
        bob_headers: dict,
        outsider_headers: dict,
    ):
        create_task(client, meeting, alice_headers)
        create_task(client, meeting, bob_headers, description="Fix the build")

        response = client.get(f"/api/v1/tasks/meeting/{meeting.id}", headers=alice_headers)
        assert {item["description"] for item in response.json()} == {
            "Prepare the demo",
            "Fix the build",
        }

        response = client.get(f"/api/v1/tasks/meeting/{meeting.id}", headers=outsider_headers)
        assert response.status_code == 403

    def test_get_task_visibility(
        self,
        client: TestClient,
        meeting: Meeting,
        alice_headers: dict,
        bob_headers: dict,
        creator_headers: dict,
    ):
        task = create_task(client, meeting, alice_headers)
        url = f"/api/v1/tasks/{task['id']}"

        assert client.get(url, headers=alice_headers).status_code == 200
        assert client.get(url, headers=creator_headers).status_code == 200
        assert client.get(url, headers=bob_headers).status_code == 403

    def test_get_missing_task(self, client: TestClient, alice_headers: dict):
        response = client.get(
            "/api/v1/tasks/00000000-0000-0000-0000-000000000000", headers=alice_headers
        )
        assert response.status_code == 404


class TestUpdateTask:
    def test_update_by_author(self, client: TestClient, meeting: Meeting, alice_headers: dict):
        task = create_task(client, meeting, alice_headers)
        response = client.patch(
            f"/api/v1/tasks/{task['id']}",
            json={"description": "Prepare a better demo"},
            headers=alice_headers,
        )
        assert response.status_code == 200
        assert response.json()["description"] == "Prepare a better demo"
        assert response.json()["contribution_importance"] == 30

    def test_update_by_other_user(
        self, client: TestClient, meeting: Meeting, alice_headers: dict, bob_headers: dict
    ):
        task = create_task(client, meeting, alice_headers)
        response = client.patch(
            f"/api/v1/tasks/{task['id']}", json={"description": "Mine"}, headers=bob_headers
        )
        assert response.status_code == 403

    def test_delete(
        self,
        client: TestClient,
        db: Session,
        meeting: Meeting,
        alice_headers: dict,
        bob_headers: dict,
    ):
        task = create_task(client, meeting, alice_headers)
        url = f"/api/v1/tasks/{task['id']}"

        assert client.delete(url, headers=bob_headers).status_code == 403
        assert client.delete(url, headers=alice_headers).status_code == 204
        assert db.query(Task).count() == 0
        assert db.query(AuditLog).filter(AuditLog.action == "delete_task").count() == 1


class TestApproval:
    def test_creator_approves(
        self,
        client: TestClient,
        db: Session,
        meeting: Meeting,
        alice_headers: dict,
        creator_headers: dict,
    ):
        task = create_task(client, meeting, alice_headers)
        response = client.patch(
            f"/api/v1/tasks/{task['id']}/approve",
            json={"approved": True},
            headers=creator_headers,
        )
        assert response.status_code == 200
        data = response.json()
        assert data["task_id"] == task["id"]
        assert data["approved"] is True
        assert data["task"]["approved"] is True
        assert db.query(AuditLog).filter(AuditLog.action == "approve_task").count() == 1

    def test_participant_cannot_approve(
        self, client: TestClient, meeting: Meeting, alice_headers: dict
    ):
        task = create_task(client, meeting, alice_headers)
        response = client.patch(
            f"/api/v1/tasks/{task['id']}/approve",
            json={"approved": True},
            headers=alice_headers,
        )
        assert response.status_code == 403

    def test_approved_task_is_locked(
        self,
        client: TestClient,
        meeting: Meeting,
        alice_headers: dict,
        creator_headers: dict,
    ):
        task = create_task(client, meeting, alice_headers)
        client.patch(
            f"/api/v1/tasks/{task['id']}/approve",
            json={"approved": True},
            headers=creator_headers,
        )

        response = client.patch(
            f"/api/v1/tasks/{task['id']}",
            json={"description": "Changed after approval"},
            headers=alice_headers,
        )
        assert response.status_code == 403

        # Unapproving unlocks it again
        client.patch(
            f"/api/v1/tasks/{task['id']}/approve",
            json={"approved": False},
            headers=creator_headers,
        )
        response = client.patch(
            f"/api/v1/tasks/{task['id']}",
            json={"description": "Changed after approval"},
            headers=alice_headers,
        )
        assert response.status_code == 200

    def test_approval_shows_in_meeting_detail(
        self,
        client: TestClient,
        meeting_url: str,
        alice_headers: dict,
        creator_headers: dict,
    ):
        client.post(
            f"{meeting_url}/task-plannings",
            json={
                "task_description": "Write the report",
                "common_question": "Who owns reporting?",
                "deadline": "2030-01-01T00:00:00Z",
                "expected_contribution_percentage": 40,
            },
            headers=alice_headers,
        )
        detail = client.get(meeting_url, headers=creator_headers).json()
        task_id = detail["task_plannings"][0]["task_id"]

        client.patch(
            f"/api/v1/tasks/{task_id}/approve", json={"approved": True}, headers=creator_headers
        )

        detail = client.get(meeting_url, headers=creator_headers).json()
        assert detail["task_plannings"][0]["approved"] is True
