"""
Tests for the scheduled activation of upcoming meetings.
"""
from datetime import datetime, timedelta, timezone

from sqlalchemy.orm import Session

from meetpulse.celery_app import celery_app
from meetpulse.celery_app.tasks import activate_due_meetings_task
from meetpulse.models.meeting import Meeting, MeetingStatus
from meetpulse.models.user import User
from meetpulse.schemas.meeting import MeetingCreate
from meetpulse.services.meetings import activate_due_meetings, create_meeting


def schedule(db: Session, creator: User, start: datetime, title: str = "Later") -> Meeting:
    return create_meeting(
        db, MeetingCreate(title=title, question="Agenda?", upcoming_date=start), creator
    )


def test_only_due_meetings_are_activated(db: Session, creator: User):
    now = datetime(2030, 5, 1, 9, 0, tzinfo=timezone.utc)
    due = schedule(db, creator, datetime(2030, 5, 1, 8, 0, tzinfo=timezone.utc), "Due")
    later = schedule(db, creator, datetime(2030, 5, 2, 8, 0, tzinfo=timezone.utc), "Later")
    assert due.status == MeetingStatus.UPCOMING.value

    activated = activate_due_meetings(db, now=now)

    assert activated == 1
    db.refresh(due)
    db.refresh(later)
    assert due.status == "active"
    assert later.status == "upcoming"


def test_active_and_finished_meetings_are_untouched(db: Session, meeting: Meeting):
    meeting.status = MeetingStatus.FINISHED.value
    db.commit()

    assert activate_due_meetings(db) == 0
    db.refresh(meeting)
    assert meeting.status == "finished"


def test_task_runs_the_sweep(db: Session, creator: User):
    due = schedule(db, creator, datetime.now(timezone.utc) + timedelta(days=1))
    due.upcoming_date = datetime.now(timezone.utc) - timedelta(minutes=5)
    db.commit()

    result = activate_due_meetings_task.apply().get()

    assert result == {"status": "completed", "activated": 1}
    db.expire_all()
    assert db.query(Meeting).filter(Meeting.id == due.id).one().status == "active"


def test_beat_schedule_registered():
    entry = celery_app.conf.beat_schedule["activate-due-meetings"]
    assert entry["task"] == activate_due_meetings_task.name
