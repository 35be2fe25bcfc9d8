"""
Submission ledger.

Each meeting keeps one ledger per submission phase, a JSON object mapping the
submitter's id to their latest submission. Submitting again replaces the
previous entry wholesale and refreshes ``submitted_at``.

Two gating policies exist (``settings.SUBMISSION_POLICY``):

- ``permissive``: every submission is accepted, whatever the current phase
  and whoever the submitter is.
- ``strict``: the meeting must currently be in the submission's phase, the
  submitter must be an invited participant, and the creator cannot submit.

Every write loads the meeting row FOR UPDATE and commits the whole aggregate,
so concurrent resubmissions by the same participant cannot interleave.
"""
import logging
from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from meetpulse.core.config import settings
from meetpulse.core.exceptions import BadRequestError, ForbiddenError
from meetpulse.models.meeting import LEDGER_COLUMNS, Meeting, MeetingPhase
from meetpulse.models.user import User
from meetpulse.schemas.meeting import (
    EmotionalEvaluationSubmit,
    TaskEvaluationSubmit,
    TaskPlanningSubmit,
    UnderstandingContributionSubmit,
)
from meetpulse.services.meetings import as_utc, get_meeting, utcnow
from meetpulse.services.tasks import upsert_planning_task

logger = logging.getLogger(__name__)


def update_type(phase: MeetingPhase) -> str:
    """Type tag of the meetingUpdated event sent after a submission."""
    return f"{MeetingPhase(phase).value}_updated"


def check_policy(meeting: Meeting, phase: MeetingPhase, user: User, policy: Optional[str] = None) -> None:
    policy = policy or settings.SUBMISSION_POLICY
    if policy != "strict":
        return

    if meeting.current_phase != phase.value:
        raise BadRequestError(
            f"Meeting is in {meeting.current_phase} phase; "
            f"{phase.value} submissions are not accepted"
        )
    if meeting.is_creator(user.id):
        raise ForbiddenError("The meeting creator cannot submit evaluations")
    if str(user.id) not in (meeting.participant_ids or []):
        raise ForbiddenError("Only participants can submit evaluations")


def _open_ledger(
    db: Session, meeting_id: UUID, phase: MeetingPhase, user: User, policy: Optional[str]
) -> Meeting:
    meeting = get_meeting(db, meeting_id, for_update=True)
    check_policy(meeting, phase, user, policy)
    return meeting


def _write_entry(meeting: Meeting, phase: MeetingPhase, participant_id: str, entry: dict) -> None:
    """Replace the participant's entry; a new dict is assigned so the change is tracked."""
    column = LEDGER_COLUMNS[phase]
    ledger = dict(getattr(meeting, column) or {})
    ledger[participant_id] = entry
    setattr(meeting, column, ledger)


def _stamp(now: Optional[datetime]) -> str:
    return (now or utcnow()).isoformat()


def submit_emotional_evaluation(
    db: Session,
    meeting_id: UUID,
    data: EmotionalEvaluationSubmit,
    user: User,
    policy: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Meeting:
    phase = MeetingPhase.EMOTIONAL_EVALUATION
    meeting = _open_ledger(db, meeting_id, phase, user, policy)

    _write_entry(
        meeting,
        phase,
        str(user.id),
        {
            "participant_id": str(user.id),
            "evaluations": [
                {
                    "target_participant_id": str(item.target_participant_id),
                    "emotional_scale": item.emotional_scale,
                    "is_toxic": item.is_toxic,
                }
                for item in data.evaluations
            ],
            "submitted_at": _stamp(now),
        },
    )
    db.commit()
    db.refresh(meeting)
    logger.info(f"Emotional evaluation from {user.id} stored for meeting {meeting.id}")
    return meeting


def submit_understanding_contribution(
    db: Session,
    meeting_id: UUID,
    data: UnderstandingContributionSubmit,
    user: User,
    policy: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Meeting:
    phase = MeetingPhase.UNDERSTANDING_CONTRIBUTION
    meeting = _open_ledger(db, meeting_id, phase, user, policy)

    _write_entry(
        meeting,
        phase,
        str(user.id),
        {
            "participant_id": str(user.id),
            "understanding_score": data.understanding_score,
            "contributions": [
                {
                    "participant_id": str(item.participant_id),
                    "contribution_percentage": item.contribution_percentage,
                }
                for item in data.contributions
            ],
            "submitted_at": _stamp(now),
        },
    )
    db.commit()
    db.refresh(meeting)
    logger.info(f"Understanding/contribution from {user.id} stored for meeting {meeting.id}")
    return meeting


def submit_task_planning(
    db: Session,
    meeting_id: UUID,
    data: TaskPlanningSubmit,
    user: User,
    policy: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Meeting:
    phase = MeetingPhase.TASK_PLANNING
    meeting = _open_ledger(db, meeting_id, phase, user, policy)

    _write_entry(
        meeting,
        phase,
        str(user.id),
        {
            "participant_id": str(user.id),
            "task_description": data.task_description,
            "common_question": data.common_question,
            "deadline": as_utc(data.deadline).isoformat(),
            "expected_contribution_percentage": data.expected_contribution_percentage,
            "submitted_at": _stamp(now),
        },
    )
    upsert_planning_task(
        db,
        meeting,
        author_id=user.id,
        description=data.task_description,
        common_question=data.common_question,
        deadline=data.deadline,
        contribution_importance=data.expected_contribution_percentage,
    )
    db.commit()
    db.refresh(meeting)
    logger.info(f"Task planning from {user.id} stored for meeting {meeting.id}")
    return meeting


def submit_task_evaluation(
    db: Session,
    meeting_id: UUID,
    data: TaskEvaluationSubmit,
    user: User,
    policy: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Meeting:
    phase = MeetingPhase.TASK_EVALUATION
    meeting = _open_ledger(db, meeting_id, phase, user, policy)

    # All-or-nothing: validate every referenced author before writing anything
    task_authors = set((meeting.task_plannings or {}).keys())
    for item in data.evaluations:
        if str(item.task_author_id) not in task_authors:
            db.rollback()
            raise BadRequestError(
                f"Task author {item.task_author_id} not found in task plannings"
            )

    _write_entry(
        meeting,
        phase,
        str(user.id),
        {
            "participant_id": str(user.id),
            "evaluations": [
                {
                    "task_author_id": str(item.task_author_id),
                    "importance_score": item.importance_score,
                }
                for item in data.evaluations
            ],
            "submitted_at": _stamp(now),
        },
    )
    db.commit()
    db.refresh(meeting)
    logger.info(f"Task evaluation from {user.id} stored for meeting {meeting.id}")
    return meeting
