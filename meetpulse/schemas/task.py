"""Schemas for task operations."""

from datetime import datetime
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from .meeting import ParticipantRef


class TaskCreate(BaseModel):
    """Request schema for creating a task outside of the task-planning phase."""

    description: str = Field(..., min_length=1)
    common_question: Optional[str] = None
    meeting_id: UUID
    deadline: datetime
    contribution_importance: float = Field(..., ge=0, le=100)


class TaskUpdate(BaseModel):
    """Request schema for updating a task. Only provided fields change."""

    description: Optional[str] = Field(None, min_length=1)
    common_question: Optional[str] = None
    deadline: Optional[datetime] = None
    contribution_importance: Optional[float] = Field(None, ge=0, le=100)
    is_completed: Optional[bool] = None


class TaskApprove(BaseModel):
    """Approve or unapprove a task."""

    approved: bool


class TaskMeetingRef(BaseModel):
    id: str
    title: Optional[str] = None
    question: Optional[str] = None


class TaskOut(BaseModel):
    """Response schema for a task."""

    id: str
    description: str
    common_question: Optional[str] = None
    author: ParticipantRef
    meeting: Optional[TaskMeetingRef] = None
    deadline: datetime
    contribution_importance: float
    is_completed: bool
    approved: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class TaskApprovalOut(BaseModel):
    task_id: str
    approved: bool
    task: TaskOut


TaskListFilter = Literal["current", "past"]
