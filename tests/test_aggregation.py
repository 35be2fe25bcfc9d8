"""
Tests for the read-side aggregation views.
"""
import uuid
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from meetpulse.models.meeting import Meeting
from meetpulse.models.user import User
from meetpulse.services import aggregation

A = "aaaaaaaa-0000-0000-0000-000000000001"
B = "bbbbbbbb-0000-0000-0000-000000000002"
C = "cccccccc-0000-0000-0000-000000000003"

USERS = {
    A: SimpleNamespace(full_name="Ann", email="ann@example.com"),
    B: SimpleNamespace(full_name="Ben", email="ben@example.com"),
    C: SimpleNamespace(full_name="Cid", email="cid@example.com"),
}

STAMP = "2030-01-01T10:00:00+00:00"


def make_meeting(**ledgers) -> Meeting:
    """A detached meeting run by C with A and B invited."""
    fields = dict(
        id=uuid.uuid4(),
        title="Retro",
        question="How did it go?",
        creator_id=uuid.UUID(C),
        participant_ids=[A, B, C],
        current_phase="emotional_evaluation",
        status="active",
        emotional_evaluations={},
        understanding_contributions={},
        task_plannings={},
        task_evaluations={},
        active_participants=[],
    )
    fields.update(ledgers)
    return Meeting(**fields)


def emotional(pid, *ratings):
    return {
        "participant_id": pid,
        "evaluations": [
            {"target_participant_id": target, "emotional_scale": scale, "is_toxic": toxic}
            for target, scale, toxic in ratings
        ],
        "submitted_at": STAMP,
    }


def understanding(pid, score, *contributions):
    return {
        "participant_id": pid,
        "understanding_score": score,
        "contributions": [
            {"participant_id": target, "contribution_percentage": pct}
            for target, pct in contributions
        ],
        "submitted_at": STAMP,
    }


def planning(pid, description, expected):
    return {
        "participant_id": pid,
        "task_description": description,
        "common_question": "Q?",
        "deadline": "2030-02-01T00:00:00+00:00",
        "expected_contribution_percentage": expected,
        "submitted_at": STAMP,
    }


def task_evaluation(pid, *scores):
    return {
        "participant_id": pid,
        "evaluations": [
            {"task_author_id": author, "importance_score": score} for author, score in scores
        ],
        "submitted_at": STAMP,
    }


@pytest.fixture
def evaluated_meeting() -> Meeting:
    return make_meeting(
        status="finished",
        current_phase="finished",
        emotional_evaluations={
            A: emotional(A, (B, 60, False), (A, 100, False)),
            B: emotional(B, (A, -20, True)),
        },
        understanding_contributions={
            A: understanding(A, 80, (B, 40), (A, 60)),
            B: understanding(B, 60, (A, 30)),
        },
        task_plannings={
            A: planning(A, "Write the report", 40),
            B: planning(B, "Fix the build", 20),
        },
        task_evaluations={
            A: task_evaluation(A, (B, 70)),
            B: task_evaluation(B, (A, 50)),
            C: task_evaluation(C, (A, 90), (B, 30)),
        },
    )


class TestNumericHelpers:
    def test_median_odd(self):
        assert aggregation.median([30, 10, 20]) == 20

    def test_median_even(self):
        assert aggregation.median([10, 20, 30, 40]) == 25

    def test_median_empty(self):
        assert aggregation.median([]) == 0

    def test_mean(self):
        assert aggregation.mean([10, 20]) == 15
        assert aggregation.mean([]) == 0

    def test_round_half_up(self):
        assert aggregation.round_half_up(0.125) == 0.13
        assert aggregation.round_half_up(-0.125) == -0.12
        assert aggregation.round_half_up(33.333333) == 33.33

    @pytest.mark.parametrize(
        "submitted, total, expected",
        [(0, 0, 0), (1, 3, 33), (2, 3, 67), (1, 8, 13), (2, 2, 100)],
    )
    def test_voting_percentage(self, submitted, total, expected):
        assert aggregation.voting_percentage(submitted, total) == expected

    def test_summarize_empty(self):
        summary = aggregation.summarize_scores([])
        assert summary.count == 0
        assert summary.average == 0
        assert summary.scores == []


class TestVoting:
    def test_submitted_ids_follow_current_phase(self, evaluated_meeting: Meeting):
        evaluated_meeting.current_phase = "task_evaluation"
        assert sorted(aggregation.submitted_ids(evaluated_meeting)) == sorted([A, B, C])

        evaluated_meeting.current_phase = "finished"
        assert aggregation.submitted_ids(evaluated_meeting) == []

    def test_voting_info_without_connections(self, evaluated_meeting: Meeting):
        evaluated_meeting.current_phase = "emotional_evaluation"
        info = aggregation.voting_info(evaluated_meeting, [])
        assert info.total_voting_participants == 0
        assert info.voting_progress.percentage == 0
        assert sorted(info.submission_status.submitted) == sorted([A, B])


class TestTaskEvaluationAnalytics:
    def test_no_evaluations(self):
        meeting = make_meeting(task_plannings={A: planning(A, "Write the report", 40)})
        result = aggregation.task_evaluation_analytics(meeting, USERS, {})
        assert result.message == aggregation.NO_TASK_EVALUATIONS
        assert result.task_analytics == []

    def test_scores_per_task(self, evaluated_meeting: Meeting):
        result = aggregation.task_evaluation_analytics(evaluated_meeting, USERS, {})

        assert result.message is None
        assert result.total_tasks == 2
        assert result.total_evaluators == 3
        assert result.total_participants == 3

        first, second = result.task_analytics
        assert first.task_author.id == A
        assert first.evaluations.scores == [50, 90]
        assert first.evaluations.average == 70
        assert first.evaluations.median == 70
        assert first.evaluations.min == 50
        assert first.evaluations.max == 90
        assert first.evaluation_difference == 30

        assert second.task_author.id == B
        assert second.evaluations.average == 50
        assert second.evaluation_difference == 30


class TestStatistics:
    def test_received_ratings_exclude_self(self, evaluated_meeting: Meeting):
        result = aggregation.statistics(evaluated_meeting, USERS)
        stats = {stat.participant.id: stat for stat in result.participant_stats}

        assert stats[A].understanding_score == 80
        assert stats[A].average_emotional_scale == -20
        assert stats[A].toxicity_flags == 1
        assert stats[A].average_contribution == 30

        assert stats[B].average_emotional_scale == 60
        assert stats[B].toxicity_flags == 0
        assert stats[B].average_contribution == 40

        # The creator submitted nothing and received nothing
        assert stats[C].understanding_score == 0
        assert stats[C].average_emotional_scale == 0

        assert result.avg_understanding == pytest.approx(140 / 3)

    def test_final_statistics(self, evaluated_meeting: Meeting):
        result = aggregation.final_statistics(evaluated_meeting, USERS)
        by_id = {item["participant"]["id"]: item for item in result["participant_statistics"]}

        assert result["total_participants"] == 3

        ann = by_id[A]
        assert [g["target_participant"]["id"] for g in ann["emotional_evaluations"]["given"]] == [
            B,
            A,
        ]
        assert [
            r["from_participant"]["full_name"] for r in ann["emotional_evaluations"]["received"]
        ] == ["Ann", "Ben"]
        assert ann["understanding_and_contribution"]["given"]["understanding_score"] == 80
        assert ann["task_planning"]["task_created"]["own_contribution_estimate"] == 40
        assert sorted(
            r["importance_score"] for r in ann["task_planning"]["evaluations_received"]
        ) == [50, 90]

        cid = by_id[C]
        assert cid["understanding_and_contribution"]["given"] is None
        assert cid["task_planning"]["task_created"] is None
        assert cid["task_planning"]["evaluations_received"] == []
        assert len(cid["task_planning"]["evaluations_given"]) == 2

    def test_all_submissions_shape(self, evaluated_meeting: Meeting):
        result = aggregation.all_submissions(evaluated_meeting, USERS, {})
        emotional_dump = result["submissions"]["emotional_evaluation"]

        assert set(emotional_dump) == {A, B}
        assert emotional_dump[A]["submitted"] is True
        assert emotional_dump[A]["evaluations"][0]["target_participant"] == {
            "id": B,
            "full_name": "Ben",
        }
        planning_dump = result["submissions"]["task_planning"][A]
        assert planning_dump["task_id"] is None
        assert planning_dump["approved"] is False

    def test_phase_submissions_exclude_creator(self, evaluated_meeting: Meeting):
        result = aggregation.phase_submissions(evaluated_meeting, USERS, {})
        assert {p["id"] for p in result["participants"]} == {A, B}
        assert len(result["task_evaluations"]) == 3


class TestStatisticsEndpoint:
    def test_requires_finished_meeting(
        self, client: TestClient, meeting_url: str, alice_headers: dict
    ):
        response = client.get(f"{meeting_url}/statistics", headers=alice_headers)
        assert response.status_code == 400

    def test_finished_meeting(
        self,
        client: TestClient,
        meeting_url: str,
        alice: User,
        bob: User,
        alice_headers: dict,
        creator_headers: dict,
    ):
        client.post(
            f"{meeting_url}/understanding-contributions",
            json={
                "understanding_score": 90,
                "contributions": [{"participant_id": str(bob.id), "contribution_percentage": 70}],
            },
            headers=alice_headers,
        )
        client.patch(f"{meeting_url}/phase", json={"phase": "finished"}, headers=creator_headers)

        response = client.get(f"{meeting_url}/statistics", headers=alice_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["question"] == "How did the sprint go?"
        # Alice 90, Bob and the creator never submitted
        assert data["avg_understanding"] == pytest.approx(30)

        stats = {stat["participant"]["id"]: stat for stat in data["participant_stats"]}
        assert stats[str(bob.id)]["average_contribution"] == 70
        assert stats[str(bob.id)]["understanding_score"] == 0

    def test_creator_views_are_creator_only(
        self, client: TestClient, meeting_url: str, alice_headers: dict, creator_headers: dict
    ):
        for view in (
            "all-submissions",
            "phase-submissions",
            "final-stats",
            "task-evaluation-analytics",
        ):
            assert client.get(f"{meeting_url}/{view}", headers=alice_headers).status_code == 403
            assert client.get(f"{meeting_url}/{view}", headers=creator_headers).status_code == 200
