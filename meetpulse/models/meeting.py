"""Meeting model: the aggregate root holding phase state and all submission ledgers."""
import enum
import uuid

from sqlalchemy import JSON, Column, DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.sql import func

from meetpulse.db.base import Base


class MeetingPhase(str, enum.Enum):
    EMOTIONAL_EVALUATION = "emotional_evaluation"
    UNDERSTANDING_CONTRIBUTION = "understanding_contribution"
    TASK_PLANNING = "task_planning"
    TASK_EVALUATION = "task_evaluation"
    FINISHED = "finished"


class MeetingStatus(str, enum.Enum):
    UPCOMING = "upcoming"
    ACTIVE = "active"
    FINISHED = "finished"


# Phase -> name of the ledger column that collects submissions for it
LEDGER_COLUMNS = {
    MeetingPhase.EMOTIONAL_EVALUATION: "emotional_evaluations",
    MeetingPhase.UNDERSTANDING_CONTRIBUTION: "understanding_contributions",
    MeetingPhase.TASK_PLANNING: "task_plannings",
    MeetingPhase.TASK_EVALUATION: "task_evaluations",
}


class Meeting(Base):
    """
    A meeting and everything submitted during it.

    The four ledgers are JSON objects keyed by the submitting participant's id
    (as a string), so a participant can only ever hold one entry per phase.
    The row is re-read and re-written as a whole on every mutation.
    """
    __tablename__ = "meetings"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    title = Column(String(255), nullable=False)
    question = Column(Text, nullable=False)
    creator_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # Invited user ids as strings, creator included
    participant_ids = Column(JSON, nullable=False, default=list)

    current_phase = Column(
        String(32), nullable=False, default=MeetingPhase.EMOTIONAL_EVALUATION.value
    )
    status = Column(
        String(16), nullable=False, default=MeetingStatus.UPCOMING.value, index=True
    )
    upcoming_date = Column(DateTime(timezone=True), nullable=True)

    emotional_evaluations = Column(JSON, nullable=False, default=dict)
    understanding_contributions = Column(JSON, nullable=False, default=dict)
    task_plannings = Column(JSON, nullable=False, default=dict)
    task_evaluations = Column(JSON, nullable=False, default=dict)

    # Durable presence fed by the deprecated join/leave endpoints
    active_participants = Column(JSON, nullable=False, default=list)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def ledger(self, phase: MeetingPhase) -> dict:
        """Return the ledger for a submission phase (empty dict for 'finished')."""
        column = LEDGER_COLUMNS.get(MeetingPhase(phase))
        if column is None:
            return {}
        return getattr(self, column) or {}

    def is_creator(self, user_id) -> bool:
        return str(self.creator_id) == str(user_id)

    def is_member(self, user_id) -> bool:
        return self.is_creator(user_id) or str(user_id) in (self.participant_ids or [])
