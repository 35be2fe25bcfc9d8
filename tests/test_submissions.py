"""
Tests for the submission ledgers and their gating policies.
"""
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from meetpulse.core.exceptions import BadRequestError, ForbiddenError
from meetpulse.models.meeting import Meeting, MeetingPhase
from meetpulse.models.task import Task
from meetpulse.models.user import User
from meetpulse.schemas.meeting import (
    EmotionalEvaluationSubmit,
    TaskEvaluationSubmit,
    TaskPlanningSubmit,
    UnderstandingContributionSubmit,
)
from meetpulse.services import submissions


def planning_payload(description: str = "Write the report", percentage: float = 40) -> dict:
    return {
        "task_description": description,
        "common_question": "Who owns reporting?",
        "deadline": "2030-01-01T00:00:00Z",
        "expected_contribution_percentage": percentage,
    }


class TestEmotionalEvaluation:
    def test_submit(
        self,
        client: TestClient,
        meeting_url: str,
        alice: User,
        bob: User,
        alice_headers: dict,
    ):
        response = client.post(
            f"{meeting_url}/emotional-evaluations",
            json={
                "evaluations": [
                    {"target_participant_id": str(bob.id), "emotional_scale": 60, "is_toxic": False}
                ]
            },
            headers=alice_headers,
        )
        assert response.status_code == 201
        entries = response.json()["emotional_evaluations"]
        assert len(entries) == 1
        assert entries[0]["participant"]["id"] == str(alice.id)
        assert entries[0]["evaluations"][0]["target_participant_id"] == str(bob.id)
        assert entries[0]["submitted_at"] is not None

    def test_resubmission_replaces_entry(
        self,
        client: TestClient,
        db: Session,
        meeting: Meeting,
        meeting_url: str,
        alice: User,
        bob: User,
        alice_headers: dict,
    ):
        for scale in (10, -40):
            client.post(
                f"{meeting_url}/emotional-evaluations",
                json={
                    "evaluations": [
                        {"target_participant_id": str(bob.id), "emotional_scale": scale}
                    ]
                },
                headers=alice_headers,
            )

        db.refresh(meeting)
        assert list(meeting.emotional_evaluations.keys()) == [str(alice.id)]
        entry = meeting.emotional_evaluations[str(alice.id)]
        assert entry["evaluations"] == [
            {"target_participant_id": str(bob.id), "emotional_scale": -40, "is_toxic": False}
        ]

    def test_empty_evaluation_list_is_recorded(
        self, client: TestClient, meeting_url: str, alice: User, alice_headers: dict
    ):
        response = client.post(
            f"{meeting_url}/emotional-evaluations",
            json={"evaluations": []},
            headers=alice_headers,
        )
        assert response.status_code == 201
        entries = response.json()["emotional_evaluations"]
        assert entries[0]["participant"]["id"] == str(alice.id)
        assert entries[0]["evaluations"] == []

    def test_scale_out_of_range(
        self, client: TestClient, meeting_url: str, bob: User, alice_headers: dict
    ):
        response = client.post(
            f"{meeting_url}/emotional-evaluations",
            json={"evaluations": [{"target_participant_id": str(bob.id), "emotional_scale": 150}]},
            headers=alice_headers,
        )
        assert response.status_code == 400

    def test_missing_meeting(self, client: TestClient, alice_headers: dict):
        response = client.post(
            "/api/v1/meetings/00000000-0000-0000-0000-000000000000/emotional-evaluations",
            json={"evaluations": []},
            headers=alice_headers,
        )
        assert response.status_code == 404


class TestUnderstandingContribution:
    def test_submit(
        self, client: TestClient, meeting_url: str, bob: User, alice_headers: dict
    ):
        response = client.post(
            f"{meeting_url}/understanding-contributions",
            json={
                "understanding_score": 80,
                "contributions": [{"participant_id": str(bob.id), "contribution_percentage": 55}],
            },
            headers=alice_headers,
        )
        assert response.status_code == 201
        entry = response.json()["understanding_contributions"][0]
        assert entry["understanding_score"] == 80
        assert entry["contributions"] == [
            {"participant_id": str(bob.id), "contribution_percentage": 55}
        ]


class TestTaskPlanning:
    def test_submit_creates_task(
        self,
        client: TestClient,
        db: Session,
        meeting: Meeting,
        meeting_url: str,
        alice: User,
        alice_headers: dict,
    ):
        response = client.post(
            f"{meeting_url}/task-plannings", json=planning_payload(), headers=alice_headers
        )
        assert response.status_code == 201
        entry = response.json()["task_plannings"][0]

        task = db.query(Task).filter(Task.author_id == alice.id).one()
        assert task.meeting_id == meeting.id
        assert task.description == "Write the report"
        assert task.contribution_importance == 40
        assert entry["task_id"] == str(task.id)
        assert entry["approved"] is False

    def test_resubmission_updates_same_task(
        self,
        client: TestClient,
        db: Session,
        meeting_url: str,
        alice: User,
        alice_headers: dict,
    ):
        client.post(f"{meeting_url}/task-plannings", json=planning_payload(), headers=alice_headers)
        client.post(
            f"{meeting_url}/task-plannings",
            json=planning_payload("Write a shorter report", 25),
            headers=alice_headers,
        )

        db.expire_all()
        tasks = db.query(Task).filter(Task.author_id == alice.id).all()
        assert len(tasks) == 1
        assert tasks[0].description == "Write a shorter report"
        assert tasks[0].contribution_importance == 25

    def test_resubmission_leaves_approved_task_untouched(
        self,
        client: TestClient,
        db: Session,
        meeting: Meeting,
        meeting_url: str,
        alice: User,
        alice_headers: dict,
    ):
        client.post(f"{meeting_url}/task-plannings", json=planning_payload(), headers=alice_headers)
        task = db.query(Task).filter(Task.author_id == alice.id).one()
        task.approved = True
        db.commit()

        response = client.post(
            f"{meeting_url}/task-plannings",
            json=planning_payload("Something else", 90),
            headers=alice_headers,
        )
        assert response.status_code == 201

        db.expire_all()
        task = db.query(Task).filter(Task.author_id == alice.id).one()
        assert task.description == "Write the report"
        assert task.approved is True

        # The ledger holds the latest submission; approval is joined from the task
        entry = response.json()["task_plannings"][0]
        assert entry["task_description"] == "Something else"
        assert entry["approved"] is True


class TestTaskEvaluation:
    def test_submit(
        self,
        client: TestClient,
        meeting_url: str,
        alice: User,
        alice_headers: dict,
        bob_headers: dict,
    ):
        client.post(f"{meeting_url}/task-plannings", json=planning_payload(), headers=alice_headers)
        response = client.post(
            f"{meeting_url}/task-evaluations",
            json={"evaluations": [{"task_author_id": str(alice.id), "importance_score": 70}]},
            headers=bob_headers,
        )
        assert response.status_code == 201
        assert response.json()["task_evaluations"][0]["evaluations"] == [
            {"task_author_id": str(alice.id), "importance_score": 70}
        ]

    def test_unknown_author_rejects_whole_submission(
        self,
        client: TestClient,
        db: Session,
        meeting: Meeting,
        meeting_url: str,
        alice: User,
        bob: User,
        alice_headers: dict,
        bob_headers: dict,
    ):
        client.post(f"{meeting_url}/task-plannings", json=planning_payload(), headers=alice_headers)
        response = client.post(
            f"{meeting_url}/task-evaluations",
            json={
                "evaluations": [
                    {"task_author_id": str(alice.id), "importance_score": 70},
                    {"task_author_id": str(bob.id), "importance_score": 10},
                ]
            },
            headers=bob_headers,
        )
        assert response.status_code == 400

        db.refresh(meeting)
        assert meeting.task_evaluations == {}


class TestStrictPolicy:
    def test_phase_mismatch_rejected(self, db: Session, meeting: Meeting, alice: User):
        with pytest.raises(BadRequestError):
            submissions.submit_understanding_contribution(
                db,
                meeting.id,
                UnderstandingContributionSubmit(understanding_score=50),
                alice,
                policy="strict",
            )

    def test_matching_phase_accepted(self, db: Session, meeting: Meeting, alice: User):
        updated = submissions.submit_emotional_evaluation(
            db, meeting.id, EmotionalEvaluationSubmit(evaluations=[]), alice, policy="strict"
        )
        assert str(alice.id) in updated.emotional_evaluations

    def test_creator_cannot_submit(self, db: Session, meeting: Meeting, creator: User):
        with pytest.raises(ForbiddenError):
            submissions.submit_emotional_evaluation(
                db, meeting.id, EmotionalEvaluationSubmit(), creator, policy="strict"
            )

    def test_outsider_cannot_submit(self, db: Session, meeting: Meeting, outsider: User):
        with pytest.raises(ForbiddenError):
            submissions.submit_emotional_evaluation(
                db, meeting.id, EmotionalEvaluationSubmit(), outsider, policy="strict"
            )

    def test_permissive_accepts_any_phase_and_creator(
        self, db: Session, meeting: Meeting, creator: User, alice: User
    ):
        submissions.submit_task_planning(
            db,
            meeting.id,
            TaskPlanningSubmit(**planning_payload()),
            creator,
            policy="permissive",
        )
        updated = submissions.submit_task_evaluation(
            db,
            meeting.id,
            TaskEvaluationSubmit(
                evaluations=[{"task_author_id": creator.id, "importance_score": 20}]
            ),
            alice,
            policy="permissive",
        )
        assert meeting.current_phase == MeetingPhase.EMOTIONAL_EVALUATION.value
        assert list(updated.task_evaluations.keys()) == [str(alice.id)]

    def test_update_type(self):
        assert submissions.update_type(MeetingPhase.TASK_PLANNING) == "task_planning_updated"
