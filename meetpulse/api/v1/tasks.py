"""
Task API endpoints.
"""
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request, status
from sqlalchemy.orm import Session

from meetpulse.core.deps import get_connection_manager, get_current_user, get_db, parse_uuid
from meetpulse.models.task import Task
from meetpulse.models.user import User
from meetpulse.schemas.task import (
    TaskApprovalOut,
    TaskApprove,
    TaskCreate,
    TaskListFilter,
    TaskOut,
    TaskUpdate,
)
from meetpulse.services import tasks as task_service
from meetpulse.services.audit import AuditAction, TargetType, log_action
from meetpulse.services.realtime import ConnectionManager

router = APIRouter(prefix="/tasks", tags=["tasks"])


def _out(db: Session, task: Task) -> TaskOut:
    return task_service.task_to_out(task, task_service.meeting_of(db, task))


def _notify(
    background_tasks: BackgroundTasks,
    connections: ConnectionManager,
    task: Task,
    update_type: str,
    user: User,
) -> None:
    if task.meeting_id is None:
        return
    background_tasks.add_task(
        connections.emit_meeting_updated, str(task.meeting_id), update_type, str(user.id)
    )


@router.get("", response_model=List[TaskOut])
def list_tasks(
    filter: Optional[TaskListFilter] = Query(None, description="current | past"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """List the current user's tasks, nearest deadline first."""
    return [_out(db, task) for task in task_service.list_tasks(db, current_user, filter)]


@router.get("/meeting/{meeting_id}", response_model=List[TaskOut])
def list_meeting_tasks(
    meeting_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """List every task of a meeting (meeting members only)."""
    tasks = task_service.list_meeting_tasks(db, parse_uuid(meeting_id, "meeting ID"), current_user)
    return [_out(db, task) for task in tasks]


@router.get("/{task_id}", response_model=TaskOut)
def get_task(
    task_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Get a task. Visible to its author and to the meeting creator."""
    task = task_service.get_task_for_viewer(db, parse_uuid(task_id, "task ID"), current_user)
    return _out(db, task)


@router.post("", response_model=TaskOut, status_code=status.HTTP_201_CREATED)
def create_task(
    data: TaskCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Create a task for a meeting the current user belongs to."""
    task = task_service.create_task(db, data, current_user)
    return _out(db, task)


@router.patch("/{task_id}", response_model=TaskOut)
def update_task(
    task_id: str,
    data: TaskUpdate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    connections: ConnectionManager = Depends(get_connection_manager),
):
    """Update a task (author only). Approved tasks can no longer be edited."""
    task = task_service.update_task(db, parse_uuid(task_id, "task ID"), data, current_user)
    _notify(background_tasks, connections, task, "task_updated", current_user)
    return _out(db, task)


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_task(
    task_id: str,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Delete a task (author only)."""
    task_uuid = parse_uuid(task_id, "task ID")
    task_service.delete_task(db, task_uuid, current_user)

    log_action(
        db=db,
        action=AuditAction.DELETE_TASK,
        user_id=current_user.id,
        target_type=TargetType.TASK,
        target_id=str(task_uuid),
        request=request,
    )

    return None


@router.patch("/{task_id}/approve", response_model=TaskApprovalOut)
def approve_task(
    task_id: str,
    data: TaskApprove,
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    connections: ConnectionManager = Depends(get_connection_manager),
):
    """Approve or unapprove a task (meeting creator only)."""
    task = task_service.set_approval(db, parse_uuid(task_id, "task ID"), data.approved, current_user)

    log_action(
        db=db,
        action=AuditAction.APPROVE_TASK,
        user_id=current_user.id,
        target_type=TargetType.TASK,
        target_id=str(task.id),
        details={"approved": task.approved},
        request=request,
    )

    _notify(background_tasks, connections, task, "task_approved", current_user)
    return TaskApprovalOut(task_id=str(task.id), approved=task.approved, task=_out(db, task))
