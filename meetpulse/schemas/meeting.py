"""Schemas for meetings, phase changes and phase submissions."""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from meetpulse.models.meeting import MeetingPhase, MeetingStatus


class ParticipantRef(BaseModel):
    """Display fields for a user referenced from a meeting."""

    id: str
    full_name: Optional[str] = None
    email: Optional[str] = None


# ---------------------------------------------------------------------------
# Meeting CRUD
# ---------------------------------------------------------------------------


class MeetingCreate(BaseModel):
    """Request schema for creating a meeting."""

    title: str = Field(..., min_length=1, max_length=255)
    question: str = Field(..., min_length=1)
    participant_ids: List[UUID] = Field(default_factory=list)
    upcoming_date: Optional[datetime] = Field(
        None, description="Scheduled activation time; defaults to now"
    )


class MeetingUpdate(BaseModel):
    """Request schema for updating a meeting. Only provided fields change."""

    title: Optional[str] = Field(None, min_length=1, max_length=255)
    question: Optional[str] = Field(None, min_length=1)
    participant_ids: Optional[List[UUID]] = None
    upcoming_date: Optional[datetime] = None


class PhaseChange(BaseModel):
    """Request schema for moving a meeting to another phase."""

    phase: MeetingPhase


MeetingListFilter = Literal["current", "past", "upcoming"]


# ---------------------------------------------------------------------------
# Submissions
# ---------------------------------------------------------------------------


class EmotionalEvaluationItem(BaseModel):
    target_participant_id: UUID
    emotional_scale: float = Field(..., ge=-100, le=100)
    is_toxic: bool = False


class EmotionalEvaluationSubmit(BaseModel):
    evaluations: List[EmotionalEvaluationItem] = Field(default_factory=list)


class ContributionItem(BaseModel):
    participant_id: UUID
    contribution_percentage: float = Field(..., ge=0, le=100)


class UnderstandingContributionSubmit(BaseModel):
    understanding_score: float = Field(..., ge=0, le=100)
    contributions: List[ContributionItem] = Field(default_factory=list)


class TaskPlanningSubmit(BaseModel):
    task_description: str = Field(..., min_length=1)
    common_question: str = Field(..., min_length=1)
    deadline: datetime
    expected_contribution_percentage: float = Field(..., ge=0, le=100)


class TaskEvaluationItem(BaseModel):
    task_author_id: UUID
    importance_score: float = Field(..., ge=0, le=100)


class TaskEvaluationSubmit(BaseModel):
    evaluations: List[TaskEvaluationItem] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Meeting responses
# ---------------------------------------------------------------------------


class EmotionalEvaluationEntry(BaseModel):
    participant: ParticipantRef
    evaluations: List[Dict[str, Any]]
    submitted_at: Optional[datetime] = None


class UnderstandingContributionEntry(BaseModel):
    participant: ParticipantRef
    understanding_score: float
    contributions: List[Dict[str, Any]]
    submitted_at: Optional[datetime] = None


class TaskPlanningEntry(BaseModel):
    participant: ParticipantRef
    task_id: Optional[str] = None
    task_description: str
    common_question: Optional[str] = None
    deadline: Optional[datetime] = None
    expected_contribution_percentage: float
    approved: bool = False
    submitted_at: Optional[datetime] = None


class TaskEvaluationEntry(BaseModel):
    participant: ParticipantRef
    evaluations: List[Dict[str, Any]]
    submitted_at: Optional[datetime] = None


class DurablePresenceEntry(BaseModel):
    participant: ParticipantRef
    joined_at: Optional[datetime] = None
    last_seen: Optional[datetime] = None


class MeetingOut(BaseModel):
    """Full meeting detail."""

    id: str
    title: str
    question: str
    creator: ParticipantRef
    participant_ids: List[str]
    participants: List[ParticipantRef]
    current_phase: MeetingPhase
    status: MeetingStatus
    upcoming_date: Optional[datetime] = None
    active_participants: List[DurablePresenceEntry] = Field(default_factory=list)
    emotional_evaluations: List[EmotionalEvaluationEntry] = Field(default_factory=list)
    understanding_contributions: List[UnderstandingContributionEntry] = Field(
        default_factory=list
    )
    task_plannings: List[TaskPlanningEntry] = Field(default_factory=list)
    task_evaluations: List[TaskEvaluationEntry] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class MeetingListItem(BaseModel):
    """Simplified response schema for meeting list."""

    id: str
    title: str
    question: str
    creator_id: str
    participant_count: int
    current_phase: MeetingPhase
    status: MeetingStatus
    upcoming_date: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# ---------------------------------------------------------------------------
# Presence & voting views
# ---------------------------------------------------------------------------


class LiveParticipant(BaseModel):
    id: str
    full_name: Optional[str] = None
    email: Optional[str] = None
    joined_at: datetime
    last_seen: datetime


class ActiveParticipantsOut(BaseModel):
    meeting_id: str
    active_participants: List[LiveParticipant]
    total_participants: int
    active_count: int
    source: str = "websocket"


class SubmissionStatus(BaseModel):
    phase: MeetingPhase
    submitted: List[str]


class VotingProgress(BaseModel):
    submitted: int
    total: int
    percentage: int


class VotingInfoOut(BaseModel):
    meeting_id: str
    current_phase: MeetingPhase
    voting_participants: List[LiveParticipant]
    total_voting_participants: int
    submission_status: SubmissionStatus
    voting_progress: VotingProgress


class PendingVotersOut(BaseModel):
    meeting_id: str
    phase: MeetingPhase
    pending_count: int
    pending_participants: List[LiveParticipant]


class DurableJoinOut(BaseModel):
    meeting_id: str
    user_id: str
    joined_at: datetime
    active_participants: List[DurablePresenceEntry]


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------


class ParticipantStatistics(BaseModel):
    participant: ParticipantRef
    understanding_score: float
    average_emotional_scale: float
    toxicity_flags: int
    average_contribution: float


class StatisticsOut(BaseModel):
    meeting_id: str
    question: str
    avg_understanding: float
    participant_stats: List[ParticipantStatistics]


class ScoreSummary(BaseModel):
    count: int
    average: float
    min: float
    max: float
    median: float
    scores: List[float]


class TaskAnalytics(BaseModel):
    task_author: ParticipantRef
    task_id: Optional[str] = None
    task_description: str
    common_question: Optional[str] = None
    deadline: Optional[datetime] = None
    original_contribution_percentage: float
    evaluations: ScoreSummary
    evaluation_difference: float


class TaskEvaluationAnalyticsOut(BaseModel):
    meeting_id: str
    meeting_title: str
    message: Optional[str] = None
    total_tasks: int = 0
    total_evaluators: int = 0
    total_participants: int = 0
    task_analytics: List[TaskAnalytics] = Field(default_factory=list)
