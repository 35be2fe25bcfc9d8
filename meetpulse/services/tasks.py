"""
Task service.

A task is the follow-up a participant commits to during a meeting. There is at
most one task per (meeting, author): submitting task planning again updates
that task instead of creating another one. ``Task.approved`` is the only copy
of the approval flag; only the meeting creator may set it, and an approved
task can no longer be edited by its author.
"""
import logging
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from meetpulse.core.exceptions import BadRequestError, ForbiddenError, NotFoundError
from meetpulse.models.meeting import Meeting
from meetpulse.models.task import Task
from meetpulse.models.user import User
from meetpulse.schemas.meeting import ParticipantRef
from meetpulse.schemas.task import TaskCreate, TaskMeetingRef, TaskOut, TaskUpdate
from meetpulse.services.meetings import as_utc, ensure_member, get_meeting

logger = logging.getLogger(__name__)


def task_to_out(task: Task, meeting: Optional[Meeting] = None) -> TaskOut:
    author = task.author
    return TaskOut(
        id=str(task.id),
        description=task.description,
        common_question=task.common_question,
        author=ParticipantRef(
            id=str(task.author_id),
            full_name=author.full_name if author else None,
            email=author.email if author else None,
        ),
        meeting=(
            TaskMeetingRef(
                id=str(task.meeting_id),
                title=meeting.title if meeting else None,
                question=meeting.question if meeting else None,
            )
            if task.meeting_id
            else None
        ),
        deadline=task.deadline,
        contribution_importance=task.contribution_importance,
        is_completed=task.is_completed,
        approved=task.approved,
        created_at=task.created_at,
        updated_at=task.updated_at,
    )


def meeting_of(db: Session, task: Task) -> Optional[Meeting]:
    if task.meeting_id is None:
        return None
    return db.query(Meeting).filter(Meeting.id == task.meeting_id).first()


def get_task(db: Session, task_id: UUID) -> Task:
    task = db.query(Task).filter(Task.id == task_id).first()
    if task is None:
        raise NotFoundError("Task not found")
    return task


def get_task_for_viewer(db: Session, task_id: UUID, user: User) -> Task:
    """The author and the meeting creator may view a task."""
    task = get_task(db, task_id)
    if task.author_id == user.id:
        return task
    meeting = meeting_of(db, task)
    if meeting is not None and meeting.is_creator(user.id):
        return task
    raise ForbiddenError("You can only view your own tasks")


def list_tasks(db: Session, user: User, filter: Optional[str] = None) -> List[Task]:
    query = db.query(Task).filter(Task.author_id == user.id)
    if filter == "current":
        query = query.filter(Task.is_completed.is_(False))
    elif filter == "past":
        query = query.filter(Task.is_completed.is_(True))
    elif filter is not None:
        raise BadRequestError(f"Unknown filter: {filter}")
    return query.order_by(Task.deadline.asc()).all()


def list_meeting_tasks(db: Session, meeting_id: UUID, user: User) -> List[Task]:
    meeting = get_meeting(db, meeting_id)
    ensure_member(meeting, user)
    return (
        db.query(Task)
        .filter(Task.meeting_id == meeting.id)
        .order_by(Task.created_at.asc())
        .all()
    )


def create_task(db: Session, data: TaskCreate, user: User) -> Task:
    meeting = get_meeting(db, data.meeting_id)
    ensure_member(meeting, user)

    existing = (
        db.query(Task)
        .filter(Task.meeting_id == meeting.id, Task.author_id == user.id)
        .first()
    )
    if existing is not None:
        raise BadRequestError("You already have a task for this meeting; update it instead")

    task = Task(
        description=data.description,
        common_question=data.common_question,
        author_id=user.id,
        meeting_id=meeting.id,
        deadline=as_utc(data.deadline),
        contribution_importance=data.contribution_importance,
    )
    db.add(task)
    db.commit()
    db.refresh(task)
    return task


def update_task(db: Session, task_id: UUID, data: TaskUpdate, user: User) -> Task:
    task = get_task(db, task_id)
    if task.author_id != user.id:
        raise ForbiddenError("Only the task author can update the task")
    if task.approved:
        raise ForbiddenError("Cannot edit approved tasks")

    if data.description is not None:
        task.description = data.description
    if data.common_question is not None:
        task.common_question = data.common_question
    if data.deadline is not None:
        task.deadline = as_utc(data.deadline)
    if data.contribution_importance is not None:
        task.contribution_importance = data.contribution_importance
    if data.is_completed is not None:
        task.is_completed = data.is_completed

    db.commit()
    db.refresh(task)
    return task


def delete_task(db: Session, task_id: UUID, user: User) -> Task:
    task = get_task(db, task_id)
    if task.author_id != user.id:
        raise ForbiddenError("Only the task author can delete the task")
    db.delete(task)
    db.commit()
    return task


def set_approval(db: Session, task_id: UUID, approved: bool, user: User) -> Task:
    task = get_task(db, task_id)
    meeting = meeting_of(db, task)
    if meeting is None:
        raise NotFoundError("Meeting not found")
    if not meeting.is_creator(user.id):
        raise ForbiddenError("Only the meeting creator can approve tasks")

    task.approved = approved
    db.commit()
    db.refresh(task)
    logger.info(f"Task {task.id} approval set to {approved} by {user.id}")
    return task


def upsert_planning_task(
    db: Session,
    meeting: Meeting,
    author_id: UUID,
    description: str,
    common_question: str,
    deadline: datetime,
    contribution_importance: float,
) -> Task:
    """
    Create or refresh the companion task of a task-planning submission.

    Does not commit; the caller commits together with the ledger write. An
    approved task is returned untouched.
    """
    task = (
        db.query(Task)
        .filter(Task.meeting_id == meeting.id, Task.author_id == author_id)
        .first()
    )
    if task is None:
        task = Task(meeting_id=meeting.id, author_id=author_id, is_completed=False)
        db.add(task)
    elif task.approved:
        logger.info(f"Task {task.id} is approved; planning resubmission leaves it unchanged")
        return task

    task.description = description
    task.common_question = common_question
    task.deadline = as_utc(deadline)
    task.contribution_importance = contribution_importance
    return task
