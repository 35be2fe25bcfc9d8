"""
Meeting API endpoints: CRUD, phase control, submissions and read-side views.

Realtime notifications are sent after the response through background tasks,
so a slow or broken socket never delays or fails the request.
"""
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request, status
from sqlalchemy.orm import Session

from meetpulse.core.deps import (
    get_connection_manager,
    get_current_user,
    get_db,
    get_presence_tracker,
    parse_uuid,
)
from meetpulse.core.exceptions import BadRequestError
from meetpulse.models.meeting import Meeting, MeetingPhase
from meetpulse.models.user import User
from meetpulse.schemas.meeting import (
    ActiveParticipantsOut,
    DurableJoinOut,
    EmotionalEvaluationSubmit,
    MeetingCreate,
    MeetingListFilter,
    MeetingListItem,
    MeetingOut,
    MeetingUpdate,
    PendingVotersOut,
    PhaseChange,
    StatisticsOut,
    TaskEvaluationAnalyticsOut,
    TaskEvaluationSubmit,
    TaskPlanningSubmit,
    UnderstandingContributionSubmit,
    VotingInfoOut,
)
from meetpulse.services import aggregation, meetings as meeting_service, submissions
from meetpulse.services.audit import AuditAction, TargetType, log_action
from meetpulse.services.presence import PresenceTracker
from meetpulse.services.realtime import ConnectionManager

router = APIRouter(prefix="/meetings", tags=["meetings"])


def _detail(db: Session, meeting: Meeting) -> MeetingOut:
    return aggregation.meeting_detail(
        meeting,
        meeting_service.load_user_directory(db, meeting),
        meeting_service.load_meeting_tasks(db, meeting),
    )


def _creator_meeting(db: Session, meeting_id: str, user: User, message: str) -> Meeting:
    meeting = meeting_service.get_meeting(db, parse_uuid(meeting_id, "meeting ID"))
    meeting_service.ensure_creator(meeting, user, message)
    return meeting


def _member_meeting(db: Session, meeting_id: str, user: User) -> Meeting:
    return meeting_service.get_meeting_for_member(db, parse_uuid(meeting_id, "meeting ID"), user)


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------


@router.post("", response_model=MeetingOut, status_code=status.HTTP_201_CREATED)
def create_meeting(
    data: MeetingCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Create a new meeting.

    The creator is always added to the participant list. A meeting scheduled
    in the future starts as ``upcoming``, otherwise as ``active``.
    """
    meeting = meeting_service.create_meeting(db, data, current_user)

    log_action(
        db=db,
        action=AuditAction.CREATE_MEETING,
        user_id=current_user.id,
        target_type=TargetType.MEETING,
        target_id=str(meeting.id),
        details={"title": meeting.title, "status": meeting.status},
        request=request,
    )

    return _detail(db, meeting)


@router.get("", response_model=List[MeetingListItem])
def list_meetings(
    filter: Optional[MeetingListFilter] = Query(None, description="current | past | upcoming"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """List meetings the current user created or was invited to."""
    meetings = meeting_service.list_meetings(db, current_user, filter)
    return [aggregation.meeting_list_item(meeting) for meeting in meetings]


@router.get("/{meeting_id}", response_model=MeetingOut)
def get_meeting(
    meeting_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Get a meeting with all of its submissions."""
    return _detail(db, _member_meeting(db, meeting_id, current_user))


@router.patch("/{meeting_id}", response_model=MeetingOut)
def update_meeting(
    meeting_id: str,
    data: MeetingUpdate,
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    connections: ConnectionManager = Depends(get_connection_manager),
):
    """Update title, question, participants or schedule (creator only)."""
    meeting = meeting_service.update_meeting(
        db, parse_uuid(meeting_id, "meeting ID"), data, current_user
    )

    log_action(
        db=db,
        action=AuditAction.UPDATE_MEETING,
        user_id=current_user.id,
        target_type=TargetType.MEETING,
        target_id=str(meeting.id),
        details=data.model_dump(exclude_none=True),
        request=request,
    )

    background_tasks.add_task(
        connections.emit_meeting_updated,
        str(meeting.id),
        "meeting_updated",
        str(current_user.id),
    )
    return _detail(db, meeting)


@router.delete("/{meeting_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_meeting(
    meeting_id: str,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Delete a meeting (creator only). Its tasks are kept and detached."""
    meeting_uuid = parse_uuid(meeting_id, "meeting ID")
    meeting_service.delete_meeting(db, meeting_uuid, current_user)

    log_action(
        db=db,
        action=AuditAction.DELETE_MEETING,
        user_id=current_user.id,
        target_type=TargetType.MEETING,
        target_id=str(meeting_uuid),
        request=request,
    )

    return None


@router.patch("/{meeting_id}/phase", response_model=MeetingOut)
def change_phase(
    meeting_id: str,
    data: PhaseChange,
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    connections: ConnectionManager = Depends(get_connection_manager),
):
    """
    Move the meeting to any phase (creator only).

    Phases are not ordered. ``finished`` finishes the meeting; every other
    phase makes it ``active``.
    """
    meeting = meeting_service.change_phase(
        db, parse_uuid(meeting_id, "meeting ID"), data.phase, current_user
    )

    log_action(
        db=db,
        action=AuditAction.CHANGE_PHASE,
        user_id=current_user.id,
        target_type=TargetType.MEETING,
        target_id=str(meeting.id),
        details={"phase": meeting.current_phase, "status": meeting.status},
        request=request,
    )

    background_tasks.add_task(
        connections.emit_phase_change,
        str(meeting.id),
        meeting.current_phase,
        meeting.status,
    )
    return _detail(db, meeting)


# ---------------------------------------------------------------------------
# Submissions
# ---------------------------------------------------------------------------


def _after_submission(
    background_tasks: BackgroundTasks,
    connections: ConnectionManager,
    meeting: Meeting,
    phase: MeetingPhase,
    user: User,
) -> None:
    background_tasks.add_task(
        connections.emit_meeting_updated,
        str(meeting.id),
        submissions.update_type(phase),
        str(user.id),
    )


@router.post(
    "/{meeting_id}/emotional-evaluations",
    response_model=MeetingOut,
    status_code=status.HTTP_201_CREATED,
)
def submit_emotional_evaluation(
    meeting_id: str,
    data: EmotionalEvaluationSubmit,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    connections: ConnectionManager = Depends(get_connection_manager),
):
    """Submit (or replace) the caller's emotional evaluations of other participants."""
    meeting = submissions.submit_emotional_evaluation(
        db, parse_uuid(meeting_id, "meeting ID"), data, current_user
    )
    _after_submission(
        background_tasks, connections, meeting, MeetingPhase.EMOTIONAL_EVALUATION, current_user
    )
    return _detail(db, meeting)


@router.post(
    "/{meeting_id}/understanding-contributions",
    response_model=MeetingOut,
    status_code=status.HTTP_201_CREATED,
)
def submit_understanding_contribution(
    meeting_id: str,
    data: UnderstandingContributionSubmit,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    connections: ConnectionManager = Depends(get_connection_manager),
):
    """Submit (or replace) the caller's understanding score and contribution estimates."""
    meeting = submissions.submit_understanding_contribution(
        db, parse_uuid(meeting_id, "meeting ID"), data, current_user
    )
    _after_submission(
        background_tasks,
        connections,
        meeting,
        MeetingPhase.UNDERSTANDING_CONTRIBUTION,
        current_user,
    )
    return _detail(db, meeting)


@router.post(
    "/{meeting_id}/task-plannings",
    response_model=MeetingOut,
    status_code=status.HTTP_201_CREATED,
)
def submit_task_planning(
    meeting_id: str,
    data: TaskPlanningSubmit,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    connections: ConnectionManager = Depends(get_connection_manager),
):
    """
    Submit (or replace) the caller's task plan.

    Also creates or refreshes the caller's task for this meeting, unless that
    task has already been approved.
    """
    meeting = submissions.submit_task_planning(
        db, parse_uuid(meeting_id, "meeting ID"), data, current_user
    )
    _after_submission(
        background_tasks, connections, meeting, MeetingPhase.TASK_PLANNING, current_user
    )
    return _detail(db, meeting)


@router.post(
    "/{meeting_id}/task-evaluations",
    response_model=MeetingOut,
    status_code=status.HTTP_201_CREATED,
)
def submit_task_evaluation(
    meeting_id: str,
    data: TaskEvaluationSubmit,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    connections: ConnectionManager = Depends(get_connection_manager),
):
    """
    Submit (or replace) the caller's importance scores for planned tasks.

    Every referenced task author must have submitted a task plan; otherwise
    nothing is stored.
    """
    meeting = submissions.submit_task_evaluation(
        db, parse_uuid(meeting_id, "meeting ID"), data, current_user
    )
    _after_submission(
        background_tasks, connections, meeting, MeetingPhase.TASK_EVALUATION, current_user
    )
    return _detail(db, meeting)


# ---------------------------------------------------------------------------
# Presence and voting views
# ---------------------------------------------------------------------------


@router.get("/{meeting_id}/voting-info", response_model=VotingInfoOut)
def get_voting_info(
    meeting_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    presence: PresenceTracker = Depends(get_presence_tracker),
):
    """Connected participants and who already submitted in the current phase (creator only)."""
    meeting = _creator_meeting(
        db, meeting_id, current_user, "Only the meeting creator can view voting information"
    )
    return aggregation.voting_info(meeting, presence.list(str(meeting.id)))


@router.get("/{meeting_id}/pending-voters", response_model=PendingVotersOut)
def get_pending_voters(
    meeting_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    presence: PresenceTracker = Depends(get_presence_tracker),
):
    """Connected participants who have not submitted in the current phase (creator only)."""
    meeting = _creator_meeting(
        db, meeting_id, current_user, "Only the meeting creator can view pending voters"
    )
    return aggregation.pending_voters(meeting, presence.list(str(meeting.id)))


@router.get("/{meeting_id}/active-participants", response_model=ActiveParticipantsOut)
def get_active_participants(
    meeting_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    presence: PresenceTracker = Depends(get_presence_tracker),
):
    """Participants currently connected to the meeting room."""
    meeting = _member_meeting(db, meeting_id, current_user)
    return aggregation.active_participants(meeting, presence.list(str(meeting.id)))


# ---------------------------------------------------------------------------
# Submission dumps and statistics
# ---------------------------------------------------------------------------


@router.get("/{meeting_id}/all-submissions")
def get_all_submissions(
    meeting_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Every submission of every phase keyed by participant (creator only)."""
    meeting = _creator_meeting(
        db, meeting_id, current_user, "Only the meeting creator can view all submissions"
    )
    return aggregation.all_submissions(
        meeting,
        meeting_service.load_user_directory(db, meeting),
        meeting_service.load_meeting_tasks(db, meeting),
    )


@router.get("/{meeting_id}/phase-submissions")
def get_phase_submissions(
    meeting_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Meeting header, invited participants and the four ledgers (creator only)."""
    meeting = _creator_meeting(
        db, meeting_id, current_user, "Only the meeting creator can view detailed submissions"
    )
    return aggregation.phase_submissions(
        meeting,
        meeting_service.load_user_directory(db, meeting),
        meeting_service.load_meeting_tasks(db, meeting),
    )


@router.get("/{meeting_id}/statistics", response_model=StatisticsOut)
def get_statistics(
    meeting_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Per-participant results of a finished meeting."""
    meeting = _member_meeting(db, meeting_id, current_user)
    if not aggregation.statistics_available(meeting):
        raise BadRequestError("Statistics are only available for finished meetings")
    return aggregation.statistics(meeting, meeting_service.load_user_directory(db, meeting))


@router.get("/{meeting_id}/final-stats")
def get_final_statistics(
    meeting_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """What each participant gave and received in every phase (creator only)."""
    meeting = _creator_meeting(
        db, meeting_id, current_user, "Only the creator can view final statistics"
    )
    return aggregation.final_statistics(meeting, meeting_service.load_user_directory(db, meeting))


@router.get(
    "/{meeting_id}/task-evaluation-analytics",
    response_model=TaskEvaluationAnalyticsOut,
)
def get_task_evaluation_analytics(
    meeting_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Importance scores per planned task, best rated first (creator only)."""
    meeting = _creator_meeting(
        db, meeting_id, current_user, "Only the creator can view task evaluation analytics"
    )
    return aggregation.task_evaluation_analytics(
        meeting,
        meeting_service.load_user_directory(db, meeting),
        meeting_service.load_meeting_tasks(db, meeting),
    )


# ---------------------------------------------------------------------------
# Durable presence
# ---------------------------------------------------------------------------


@router.post("/{meeting_id}/join", response_model=DurableJoinOut, deprecated=True)
def join_meeting(
    meeting_id: str,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    connections: ConnectionManager = Depends(get_connection_manager),
):
    """
    Record the caller as present on the meeting row.

    Superseded by the realtime channel; live presence is reported by
    ``/active-participants``.
    """
    meeting = meeting_service.join_meeting(
        db, parse_uuid(meeting_id, "meeting ID"), current_user
    )
    users = meeting_service.load_user_directory(db, meeting)
    entries = aggregation.durable_presence(meeting, users)
    own = next(entry for entry in entries if entry.participant.id == str(current_user.id))

    background_tasks.add_task(
        connections.emit_meeting_updated,
        str(meeting.id),
        "participant_joined",
        str(current_user.id),
    )
    return DurableJoinOut(
        meeting_id=str(meeting.id),
        user_id=str(current_user.id),
        joined_at=own.joined_at,
        active_participants=entries,
    )


@router.post("/{meeting_id}/leave", deprecated=True)
def leave_meeting(
    meeting_id: str,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    connections: ConnectionManager = Depends(get_connection_manager),
):
    """Remove the caller from the durable presence list."""
    meeting = meeting_service.leave_meeting(
        db, parse_uuid(meeting_id, "meeting ID"), current_user
    )

    background_tasks.add_task(
        connections.emit_meeting_updated,
        str(meeting.id),
        "participant_left",
        str(current_user.id),
    )
    return {"meeting_id": str(meeting.id), "user_id": str(current_user.id), "left": True}
