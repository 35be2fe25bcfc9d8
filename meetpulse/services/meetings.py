"""
Meeting state machine.

Owns meeting creation, phase/status transitions and creator-only mutations.
Phase changes are deliberately unordered: the creator may jump to any phase
at any time. Status follows the phase:

- ``finished`` phase  -> ``finished`` status
- any other phase     -> ``active`` status (an ``upcoming`` or ``finished``
  meeting becomes ``active``)

Upcoming meetings are also activated by the scheduled sweep once their
``upcoming_date`` has passed (see ``activate_due_meetings``).
"""
import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional
from uuid import UUID

from sqlalchemy import String, cast, or_
from sqlalchemy.orm import Session

from meetpulse.core.exceptions import BadRequestError, ForbiddenError, NotFoundError
from meetpulse.models.meeting import Meeting, MeetingPhase, MeetingStatus
from meetpulse.models.task import Task
from meetpulse.models.user import User
from meetpulse.schemas.meeting import MeetingCreate, MeetingUpdate

logger = logging.getLogger(__name__)

LIST_FILTERS = {
    "current": MeetingStatus.ACTIVE,
    "past": MeetingStatus.FINISHED,
    "upcoming": MeetingStatus.UPCOMING,
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize a datetime to aware UTC; naive values are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _member_ids(creator_id, participant_ids: Iterable) -> List[str]:
    """Deduplicate participant ids (order kept) and make sure the creator is in."""
    ids: List[str] = []
    for participant_id in participant_ids:
        value = str(participant_id)
        if value not in ids:
            ids.append(value)
    if str(creator_id) not in ids:
        ids.append(str(creator_id))
    return ids


def initial_status(upcoming_date: Optional[datetime], now: datetime) -> MeetingStatus:
    if upcoming_date is not None and as_utc(upcoming_date) > as_utc(now):
        return MeetingStatus.UPCOMING
    return MeetingStatus.ACTIVE


def apply_phase(meeting: Meeting, phase: MeetingPhase) -> Meeting:
    """Move a meeting to ``phase`` and derive its status. No ordering is enforced."""
    phase = MeetingPhase(phase)
    if phase == MeetingPhase.FINISHED:
        meeting.status = MeetingStatus.FINISHED.value
    elif meeting.status != MeetingStatus.ACTIVE.value:
        meeting.status = MeetingStatus.ACTIVE.value
    meeting.current_phase = phase.value
    return meeting


# ---------------------------------------------------------------------------
# Lookups and guards
# ---------------------------------------------------------------------------


def get_meeting(db: Session, meeting_id: UUID, for_update: bool = False) -> Meeting:
    """
    Load a meeting or raise NotFoundError.

    With ``for_update`` the row is locked until the transaction ends, so a
    read-modify-write of the aggregate cannot interleave with another one.
    """
    query = db.query(Meeting).filter(Meeting.id == meeting_id)
    if for_update:
        query = query.with_for_update()
    meeting = query.first()
    if meeting is None:
        raise NotFoundError("Meeting not found")
    return meeting


def ensure_creator(meeting: Meeting, user: User, message: str) -> None:
    if not meeting.is_creator(user.id):
        raise ForbiddenError(message)


def ensure_member(meeting: Meeting, user: User) -> None:
    if not meeting.is_member(user.id):
        raise ForbiddenError("You are not a participant of this meeting")


def load_user_directory(db: Session, meeting: Meeting) -> Dict[str, User]:
    """Load every user referenced by a meeting, keyed by id string."""
    ids = {str(meeting.creator_id), *(meeting.participant_ids or [])}
    for column in (
        meeting.emotional_evaluations,
        meeting.understanding_contributions,
        meeting.task_plannings,
        meeting.task_evaluations,
    ):
        for participant_id, entry in (column or {}).items():
            ids.add(participant_id)
            for item in entry.get("evaluations", []):
                ids.add(item.get("target_participant_id") or item.get("task_author_id"))
            for item in entry.get("contributions", []):
                ids.add(item.get("participant_id"))
    for entry in meeting.active_participants or []:
        ids.add(entry.get("participant_id"))

    uuids = []
    for value in ids:
        try:
            uuids.append(UUID(str(value)))
        except ValueError:
            continue
    if not uuids:
        return {}
    users = db.query(User).filter(User.id.in_(uuids)).all()
    return {str(user.id): user for user in users}


def load_meeting_tasks(db: Session, meeting: Meeting) -> Dict[str, Task]:
    """Companion tasks of a meeting keyed by author id string."""
    tasks = db.query(Task).filter(Task.meeting_id == meeting.id).all()
    return {str(task.author_id): task for task in tasks}


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------


def create_meeting(
    db: Session,
    data: MeetingCreate,
    creator: User,
    now: Optional[datetime] = None,
) -> Meeting:
    now = now or utcnow()
    upcoming_date = as_utc(data.upcoming_date) if data.upcoming_date else now

    meeting = Meeting(
        title=data.title,
        question=data.question,
        creator_id=creator.id,
        participant_ids=_member_ids(creator.id, data.participant_ids),
        current_phase=MeetingPhase.EMOTIONAL_EVALUATION.value,
        status=initial_status(upcoming_date, now).value,
        upcoming_date=upcoming_date,
        emotional_evaluations={},
        understanding_contributions={},
        task_plannings={},
        task_evaluations={},
        active_participants=[],
    )
    db.add(meeting)
    db.commit()
    db.refresh(meeting)

    logger.info(f"Meeting {meeting.id} created by {creator.id} ({meeting.status})")
    return meeting


def list_meetings(db: Session, user: User, filter: Optional[str] = None) -> List[Meeting]:
    """Meetings the user created or was invited to, newest first."""
    # participant_ids is a JSON list of id strings; match the quoted id in its text form
    query = db.query(Meeting).filter(
        or_(
            Meeting.creator_id == user.id,
            cast(Meeting.participant_ids, String).like(f'%"{user.id}"%'),
        )
    )
    if filter is not None:
        if filter not in LIST_FILTERS:
            raise BadRequestError(f"Unknown filter: {filter}")
        query = query.filter(Meeting.status == LIST_FILTERS[filter].value)

    return query.order_by(Meeting.created_at.desc()).all()


def get_meeting_for_member(db: Session, meeting_id: UUID, user: User) -> Meeting:
    meeting = get_meeting(db, meeting_id)
    ensure_member(meeting, user)
    return meeting


def update_meeting(db: Session, meeting_id: UUID, data: MeetingUpdate, user: User) -> Meeting:
    meeting = get_meeting(db, meeting_id, for_update=True)
    ensure_creator(meeting, user, "Only the meeting creator can update the meeting")

    if data.title is not None:
        meeting.title = data.title
    if data.question is not None:
        meeting.question = data.question
    if data.participant_ids is not None:
        meeting.participant_ids = _member_ids(meeting.creator_id, data.participant_ids)
    if data.upcoming_date is not None:
        meeting.upcoming_date = as_utc(data.upcoming_date)

    db.commit()
    db.refresh(meeting)
    return meeting


def delete_meeting(db: Session, meeting_id: UUID, user: User) -> None:
    meeting = get_meeting(db, meeting_id, for_update=True)
    ensure_creator(meeting, user, "Only the meeting creator can delete the meeting")

    # Tasks only reference the meeting; they outlive it
    db.query(Task).filter(Task.meeting_id == meeting.id).update(
        {Task.meeting_id: None}, synchronize_session=False
    )
    db.delete(meeting)
    db.commit()
    logger.info(f"Meeting {meeting_id} deleted by {user.id}")


def change_phase(db: Session, meeting_id: UUID, phase: MeetingPhase, user: User) -> Meeting:
    meeting = get_meeting(db, meeting_id, for_update=True)
    ensure_creator(meeting, user, "Only the meeting creator can change the phase")

    previous = meeting.current_phase
    apply_phase(meeting, phase)
    db.commit()
    db.refresh(meeting)

    logger.info(
        f"Meeting {meeting.id} phase {previous} -> {meeting.current_phase} "
        f"(status {meeting.status})"
    )
    return meeting


# ---------------------------------------------------------------------------
# Durable presence (deprecated, superseded by the realtime channel)
# ---------------------------------------------------------------------------


def join_meeting(db: Session, meeting_id: UUID, user: User, now: Optional[datetime] = None) -> Meeting:
    meeting = get_meeting(db, meeting_id, for_update=True)
    if str(user.id) not in (meeting.participant_ids or []):
        raise ForbiddenError("Only participants can join the meeting")

    now = now or utcnow()
    entries = [dict(entry) for entry in meeting.active_participants or []]
    for entry in entries:
        if entry.get("participant_id") == str(user.id):
            entry["last_seen"] = now.isoformat()
            break
    else:
        entries.append(
            {
                "participant_id": str(user.id),
                "joined_at": now.isoformat(),
                "last_seen": now.isoformat(),
            }
        )
    meeting.active_participants = entries
    db.commit()
    db.refresh(meeting)
    return meeting


def leave_meeting(db: Session, meeting_id: UUID, user: User) -> Meeting:
    meeting = get_meeting(db, meeting_id, for_update=True)
    meeting.active_participants = [
        entry
        for entry in meeting.active_participants or []
        if entry.get("participant_id") != str(user.id)
    ]
    db.commit()
    db.refresh(meeting)
    return meeting


# ---------------------------------------------------------------------------
# Scheduled activation
# ---------------------------------------------------------------------------


def activate_due_meetings(db: Session, now: Optional[datetime] = None) -> int:
    """
    Flip every upcoming meeting whose upcoming_date has passed to active.

    Returns:
        Number of meetings activated
    """
    now = as_utc(now or utcnow())
    upcoming = (
        db.query(Meeting)
        .filter(Meeting.status == MeetingStatus.UPCOMING.value)
        .with_for_update()
        .all()
    )

    activated = 0
    for meeting in upcoming:
        if meeting.upcoming_date is None or as_utc(meeting.upcoming_date) <= now:
            meeting.status = MeetingStatus.ACTIVE.value
            activated += 1
            logger.info(
                f"Activating meeting {meeting.id} ({meeting.title}), "
                f"scheduled for {meeting.upcoming_date}"
            )

    db.commit()
    return activated
