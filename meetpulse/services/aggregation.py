"""
Read-side views over a meeting.

Every function here is pure: it takes a Meeting snapshot plus lookups loaded
by the caller (users keyed by id string, companion tasks keyed by author id
string, the live presence roster) and returns response data. Nothing is
written back.
"""
import math
from typing import Any, Dict, Iterable, List, Optional

from meetpulse.models.meeting import LEDGER_COLUMNS, Meeting, MeetingPhase, MeetingStatus
from meetpulse.models.task import Task
from meetpulse.models.user import User
from meetpulse.schemas.meeting import (
    ActiveParticipantsOut,
    DurablePresenceEntry,
    EmotionalEvaluationEntry,
    LiveParticipant,
    MeetingListItem,
    MeetingOut,
    ParticipantRef,
    ParticipantStatistics,
    PendingVotersOut,
    ScoreSummary,
    StatisticsOut,
    SubmissionStatus,
    TaskAnalytics,
    TaskEvaluationAnalyticsOut,
    TaskEvaluationEntry,
    TaskPlanningEntry,
    UnderstandingContributionEntry,
    VotingInfoOut,
    VotingProgress,
)
from meetpulse.services.presence import PresenceRecord

Users = Dict[str, User]
Tasks = Dict[str, Task]

NO_TASK_EVALUATIONS = "No task evaluations submitted yet"


# ---------------------------------------------------------------------------
# Numeric helpers
# ---------------------------------------------------------------------------


def round_half_up(value: float, digits: int = 2) -> float:
    """Round to ``digits`` places with halves going up, towards +inf."""
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def mean(values: List[float]) -> float:
    return sum(values) / len(values) if values else 0


def median(values: List[float]) -> float:
    """Median; an even number of values gives the mean of the middle two."""
    if not values:
        return 0
    ordered = sorted(values)
    mid = len(ordered) // 2
    if len(ordered) % 2:
        return ordered[mid]
    return (ordered[mid - 1] + ordered[mid]) / 2


def voting_percentage(submitted: int, total: int) -> int:
    if total <= 0:
        return 0
    return math.floor(submitted * 100 / total + 0.5)


def summarize_scores(scores: List[float]) -> ScoreSummary:
    return ScoreSummary(
        count=len(scores),
        average=round_half_up(mean(scores)),
        min=min(scores) if scores else 0,
        max=max(scores) if scores else 0,
        median=round_half_up(median(scores)),
        scores=list(scores),
    )


# ---------------------------------------------------------------------------
# Display helpers
# ---------------------------------------------------------------------------


def participant_ref(users: Users, participant_id: Any) -> ParticipantRef:
    user = users.get(str(participant_id))
    return ParticipantRef(
        id=str(participant_id),
        full_name=user.full_name if user else None,
        email=user.email if user else None,
    )


def _short_ref(users: Users, participant_id: Any) -> Dict[str, Any]:
    user = users.get(str(participant_id))
    return {"id": str(participant_id), "full_name": user.full_name if user else None}


def live_participants(roster: Iterable[PresenceRecord]) -> List[LiveParticipant]:
    return [
        LiveParticipant(
            id=record.user_id,
            full_name=record.full_name,
            email=record.email,
            joined_at=record.joined_at,
            last_seen=record.last_seen,
        )
        for record in roster
    ]


def _ledger_entries(meeting: Meeting, phase: MeetingPhase) -> List[Dict[str, Any]]:
    return list(meeting.ledger(phase).values())


def _task_fields(tasks: Tasks, participant_id: str) -> Dict[str, Any]:
    task = tasks.get(participant_id)
    return {
        "task_id": str(task.id) if task else None,
        "approved": bool(task.approved) if task else False,
    }


# ---------------------------------------------------------------------------
# Meeting representations
# ---------------------------------------------------------------------------


def meeting_list_item(meeting: Meeting) -> MeetingListItem:
    return MeetingListItem(
        id=str(meeting.id),
        title=meeting.title,
        question=meeting.question,
        creator_id=str(meeting.creator_id),
        participant_count=len(meeting.participant_ids or []),
        current_phase=meeting.current_phase,
        status=meeting.status,
        upcoming_date=meeting.upcoming_date,
        created_at=meeting.created_at,
        updated_at=meeting.updated_at,
    )


def meeting_detail(meeting: Meeting, users: Users, tasks: Tasks) -> MeetingOut:
    """Full meeting with display fields and the approval flag joined in."""
    return MeetingOut(
        id=str(meeting.id),
        title=meeting.title,
        question=meeting.question,
        creator=participant_ref(users, meeting.creator_id),
        participant_ids=list(meeting.participant_ids or []),
        participants=[participant_ref(users, pid) for pid in meeting.participant_ids or []],
        current_phase=meeting.current_phase,
        status=meeting.status,
        upcoming_date=meeting.upcoming_date,
        active_participants=durable_presence(meeting, users),
        emotional_evaluations=[
            EmotionalEvaluationEntry(
                participant=participant_ref(users, entry["participant_id"]),
                evaluations=entry.get("evaluations", []),
                submitted_at=entry.get("submitted_at"),
            )
            for entry in _ledger_entries(meeting, MeetingPhase.EMOTIONAL_EVALUATION)
        ],
        understanding_contributions=[
            UnderstandingContributionEntry(
                participant=participant_ref(users, entry["participant_id"]),
                understanding_score=entry["understanding_score"],
                contributions=entry.get("contributions", []),
                submitted_at=entry.get("submitted_at"),
            )
            for entry in _ledger_entries(meeting, MeetingPhase.UNDERSTANDING_CONTRIBUTION)
        ],
        task_plannings=[
            TaskPlanningEntry(
                participant=participant_ref(users, entry["participant_id"]),
                task_description=entry["task_description"],
                common_question=entry.get("common_question"),
                deadline=entry.get("deadline"),
                expected_contribution_percentage=entry["expected_contribution_percentage"],
                submitted_at=entry.get("submitted_at"),
                **_task_fields(tasks, entry["participant_id"]),
            )
            for entry in _ledger_entries(meeting, MeetingPhase.TASK_PLANNING)
        ],
        task_evaluations=[
            TaskEvaluationEntry(
                participant=participant_ref(users, entry["participant_id"]),
                evaluations=entry.get("evaluations", []),
                submitted_at=entry.get("submitted_at"),
            )
            for entry in _ledger_entries(meeting, MeetingPhase.TASK_EVALUATION)
        ],
        created_at=meeting.created_at,
        updated_at=meeting.updated_at,
    )


def durable_presence(meeting: Meeting, users: Users) -> List[DurablePresenceEntry]:
    return [
        DurablePresenceEntry(
            participant=participant_ref(users, entry["participant_id"]),
            joined_at=entry.get("joined_at"),
            last_seen=entry.get("last_seen"),
        )
        for entry in meeting.active_participants or []
    ]


# ---------------------------------------------------------------------------
# Presence and voting
# ---------------------------------------------------------------------------


def submitted_ids(meeting: Meeting, phase: Optional[MeetingPhase] = None) -> List[str]:
    """Ids present in the ledger of ``phase`` (the current phase by default)."""
    return list(meeting.ledger(phase or meeting.current_phase).keys())


def voting_info(meeting: Meeting, roster: List[PresenceRecord]) -> VotingInfoOut:
    voters = live_participants(roster)
    submitted = submitted_ids(meeting)
    return VotingInfoOut(
        meeting_id=str(meeting.id),
        current_phase=meeting.current_phase,
        voting_participants=voters,
        total_voting_participants=len(voters),
        submission_status=SubmissionStatus(phase=meeting.current_phase, submitted=submitted),
        voting_progress=VotingProgress(
            submitted=len(submitted),
            total=len(voters),
            percentage=voting_percentage(len(submitted), len(voters)),
        ),
    )


def pending_voters(meeting: Meeting, roster: List[PresenceRecord]) -> PendingVotersOut:
    submitted = set(submitted_ids(meeting))
    pending = [record for record in roster if record.user_id not in submitted]
    return PendingVotersOut(
        meeting_id=str(meeting.id),
        phase=meeting.current_phase,
        pending_count=len(pending),
        pending_participants=live_participants(pending),
    )


def active_participants(meeting: Meeting, roster: List[PresenceRecord]) -> ActiveParticipantsOut:
    live = live_participants(roster)
    return ActiveParticipantsOut(
        meeting_id=str(meeting.id),
        active_participants=live,
        total_participants=len(meeting.participant_ids or []),
        active_count=len(live),
        source="websocket",
    )


# ---------------------------------------------------------------------------
# Submission dumps
# ---------------------------------------------------------------------------


def all_submissions(meeting: Meeting, users: Users, tasks: Tasks) -> Dict[str, Any]:
    """
    Every ledger keyed by phase, then by participant id.

    A participant who submitted an empty evaluation list appears with
    ``submitted: True`` and ``evaluations: []``; one who never submitted is
    absent.
    """
    submissions: Dict[str, Dict[str, Any]] = {phase.value: {} for phase in LEDGER_COLUMNS}

    for entry in _ledger_entries(meeting, MeetingPhase.EMOTIONAL_EVALUATION):
        pid = entry["participant_id"]
        submissions[MeetingPhase.EMOTIONAL_EVALUATION.value][pid] = {
            "participant": participant_ref(users, pid).model_dump(),
            "submitted": True,
            "submitted_at": entry.get("submitted_at"),
            "evaluations": [
                {
                    "target_participant": _short_ref(users, item["target_participant_id"]),
                    "emotional_scale": item["emotional_scale"],
                    "is_toxic": item["is_toxic"],
                }
                for item in entry.get("evaluations", [])
            ],
        }

    for entry in _ledger_entries(meeting, MeetingPhase.UNDERSTANDING_CONTRIBUTION):
        pid = entry["participant_id"]
        submissions[MeetingPhase.UNDERSTANDING_CONTRIBUTION.value][pid] = {
            "participant": participant_ref(users, pid).model_dump(),
            "submitted": True,
            "submitted_at": entry.get("submitted_at"),
            "understanding_score": entry["understanding_score"],
            "contributions": [
                {
                    "participant": _short_ref(users, item["participant_id"]),
                    "contribution_percentage": item["contribution_percentage"],
                }
                for item in entry.get("contributions", [])
            ],
        }

    for entry in _ledger_entries(meeting, MeetingPhase.TASK_PLANNING):
        pid = entry["participant_id"]
        submissions[MeetingPhase.TASK_PLANNING.value][pid] = {
            "participant": participant_ref(users, pid).model_dump(),
            **_task_fields(tasks, pid),
            "submitted": True,
            "submitted_at": entry.get("submitted_at"),
            "task_description": entry["task_description"],
            "common_question": entry.get("common_question"),
            "deadline": entry.get("deadline"),
            "expected_contribution_percentage": entry["expected_contribution_percentage"],
        }

    for entry in _ledger_entries(meeting, MeetingPhase.TASK_EVALUATION):
        pid = entry["participant_id"]
        submissions[MeetingPhase.TASK_EVALUATION.value][pid] = {
            "participant": participant_ref(users, pid).model_dump(),
            "submitted": True,
            "submitted_at": entry.get("submitted_at"),
            "evaluations": [
                {
                    "task_author": _short_ref(users, item["task_author_id"]),
                    "importance_score": item["importance_score"],
                }
                for item in entry.get("evaluations", [])
            ],
        }

    return {"meeting_id": str(meeting.id), "submissions": submissions}


def phase_submissions(meeting: Meeting, users: Users, tasks: Tasks) -> Dict[str, Any]:
    """Meeting header, invited participants (creator excluded) and the four ledgers."""
    creator_id = str(meeting.creator_id)
    detail = meeting_detail(meeting, users, tasks)
    return {
        "meeting_id": str(meeting.id),
        "title": meeting.title,
        "question": meeting.question,
        "current_phase": meeting.current_phase,
        "status": meeting.status,
        "participants": [
            participant_ref(users, pid).model_dump()
            for pid in meeting.participant_ids or []
            if pid != creator_id
        ],
        "emotional_evaluations": [e.model_dump() for e in detail.emotional_evaluations],
        "understanding_contributions": [
            e.model_dump() for e in detail.understanding_contributions
        ],
        "task_plannings": [e.model_dump() for e in detail.task_plannings],
        "task_evaluations": [e.model_dump() for e in detail.task_evaluations],
    }


# ---------------------------------------------------------------------------
# Analytics
# ---------------------------------------------------------------------------


def task_evaluation_analytics(meeting: Meeting, users: Users, tasks: Tasks) -> TaskEvaluationAnalyticsOut:
    evaluations = _ledger_entries(meeting, MeetingPhase.TASK_EVALUATION)
    if not evaluations:
        return TaskEvaluationAnalyticsOut(
            meeting_id=str(meeting.id),
            meeting_title=meeting.title,
            message=NO_TASK_EVALUATIONS,
            task_analytics=[],
        )

    analytics = []
    for planning in _ledger_entries(meeting, MeetingPhase.TASK_PLANNING):
        author_id = planning["participant_id"]
        scores = []
        for evaluation in evaluations:
            for item in evaluation.get("evaluations", []):
                if item["task_author_id"] == author_id:
                    scores.append(item["importance_score"])
                    break

        summary = summarize_scores(scores)
        expected = planning["expected_contribution_percentage"]
        analytics.append(
            TaskAnalytics(
                task_author=participant_ref(users, author_id),
                task_id=_task_fields(tasks, author_id)["task_id"],
                task_description=planning["task_description"],
                common_question=planning.get("common_question"),
                deadline=planning.get("deadline"),
                original_contribution_percentage=expected,
                evaluations=summary,
                evaluation_difference=round_half_up(mean(scores) - expected),
            )
        )

    analytics.sort(key=lambda item: item.evaluations.average, reverse=True)
    return TaskEvaluationAnalyticsOut(
        meeting_id=str(meeting.id),
        meeting_title=meeting.title,
        total_tasks=len(analytics),
        total_evaluators=len(evaluations),
        total_participants=len(meeting.participant_ids or []),
        task_analytics=analytics,
    )


def statistics(meeting: Meeting, users: Users) -> StatisticsOut:
    """
    Per-participant outcome of a finished meeting.

    Emotional scale, toxicity flags and contribution are what the participant
    received from the others; self-ratings are ignored.
    """
    emotional = _ledger_entries(meeting, MeetingPhase.EMOTIONAL_EVALUATION)
    understanding = meeting.understanding_contributions or {}

    participant_stats = []
    for pid in meeting.participant_ids or []:
        received = [
            item
            for entry in emotional
            if entry["participant_id"] != pid
            for item in entry.get("evaluations", [])
            if item["target_participant_id"] == pid
        ]
        contributions = [
            item["contribution_percentage"]
            for entry in understanding.values()
            if entry["participant_id"] != pid
            for item in entry.get("contributions", [])
            if item["participant_id"] == pid
        ]
        own = understanding.get(pid)
        participant_stats.append(
            ParticipantStatistics(
                participant=participant_ref(users, pid),
                understanding_score=own["understanding_score"] if own else 0,
                average_emotional_scale=mean([item["emotional_scale"] for item in received]),
                toxicity_flags=sum(1 for item in received if item["is_toxic"]),
                average_contribution=mean(contributions),
            )
        )

    return StatisticsOut(
        meeting_id=str(meeting.id),
        question=meeting.question,
        avg_understanding=mean([stat.understanding_score for stat in participant_stats]),
        participant_stats=participant_stats,
    )


def final_statistics(meeting: Meeting, users: Users) -> Dict[str, Any]:
    """Everything each participant gave and received, phase by phase."""
    emotional = _ledger_entries(meeting, MeetingPhase.EMOTIONAL_EVALUATION)
    understanding = meeting.understanding_contributions or {}
    plannings = meeting.task_plannings or {}
    task_evaluations = _ledger_entries(meeting, MeetingPhase.TASK_EVALUATION)

    participant_statistics = []
    for pid in meeting.participant_ids or []:
        own_emotional = (meeting.emotional_evaluations or {}).get(pid)
        own_understanding = understanding.get(pid)
        own_task = plannings.get(pid)
        own_task_evaluation = (meeting.task_evaluations or {}).get(pid)

        participant_statistics.append(
            {
                "participant": participant_ref(users, pid).model_dump(),
                "emotional_evaluations": {
                    "given": [
                        {
                            "target_participant": _short_ref(users, item["target_participant_id"]),
                            "emotional_scale": item["emotional_scale"],
                            "is_toxic": item["is_toxic"],
                        }
                        for item in (own_emotional or {}).get("evaluations", [])
                    ],
                    "received": [
                        {
                            "from_participant": _short_ref(users, entry["participant_id"]),
                            "emotional_scale": item["emotional_scale"],
                            "is_toxic": item["is_toxic"],
                        }
                        for entry in emotional
                        for item in entry.get("evaluations", [])
                        if item["target_participant_id"] == pid
                    ],
                },
                "understanding_and_contribution": {
                    "given": (
                        {
                            "understanding_score": own_understanding["understanding_score"],
                            "contributions": [
                                {
                                    "participant": _short_ref(users, item["participant_id"]),
                                    "contribution_percentage": item["contribution_percentage"],
                                }
                                for item in own_understanding.get("contributions", [])
                            ],
                            "submitted_at": own_understanding.get("submitted_at"),
                        }
                        if own_understanding
                        else None
                    ),
                    "received": [
                        {
                            "from_participant": _short_ref(users, entry["participant_id"]),
                            "contribution_percentage": item["contribution_percentage"],
                        }
                        for entry in understanding.values()
                        for item in entry.get("contributions", [])
                        if item["participant_id"] == pid
                    ],
                },
                "task_planning": {
                    "task_created": (
                        {
                            "task_description": own_task["task_description"],
                            "common_question": own_task.get("common_question"),
                            "deadline": own_task.get("deadline"),
                            "own_contribution_estimate": own_task[
                                "expected_contribution_percentage"
                            ],
                            "submitted_at": own_task.get("submitted_at"),
                        }
                        if own_task
                        else None
                    ),
                    "evaluations_given": [
                        {
                            "task_author": _short_ref(users, item["task_author_id"]),
                            "importance_score": item["importance_score"],
                        }
                        for item in (own_task_evaluation or {}).get("evaluations", [])
                    ],
                    "evaluations_received": (
                        [
                            {
                                "from_participant": _short_ref(users, entry["participant_id"]),
                                "importance_score": item["importance_score"],
                            }
                            for entry in task_evaluations
                            for item in entry.get("evaluations", [])
                            if item["task_author_id"] == pid
                        ]
                        if own_task
                        else []
                    ),
                },
            }
        )

    return {
        "meeting_id": str(meeting.id),
        "meeting_title": meeting.title,
        "meeting_question": meeting.question,
        "current_phase": meeting.current_phase,
        "status": meeting.status,
        "creator": participant_ref(users, meeting.creator_id).model_dump(),
        "total_participants": len(participant_statistics),
        "participant_statistics": participant_statistics,
        "created_at": meeting.created_at,
        "updated_at": meeting.updated_at,
    }


def statistics_available(meeting: Meeting) -> bool:
    return meeting.status == MeetingStatus.FINISHED.value
