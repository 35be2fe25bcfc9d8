"""Task model: the follow-up a participant commits to during task planning."""
import uuid

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from meetpulse.db.base import Base


class Task(Base):
    """
    One task per (meeting, author).

    The meeting reference is a back-reference only: deleting a meeting
    detaches its tasks instead of deleting them. ``approved`` is the single
    source of truth for approval; meeting views join it at read time.
    """
    __tablename__ = "tasks"
    __table_args__ = (
        UniqueConstraint("meeting_id", "author_id", name="uq_tasks_meeting_author"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    description = Column(Text, nullable=False)
    common_question = Column(Text, nullable=True)
    author_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    meeting_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("meetings.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    deadline = Column(DateTime(timezone=True), nullable=False)
    contribution_importance = Column(Float, nullable=False, default=0)
    is_completed = Column(Boolean, nullable=False, default=False)
    approved = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    author = relationship("User", lazy="joined")
