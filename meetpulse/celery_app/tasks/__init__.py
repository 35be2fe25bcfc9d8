"""
Celery tasks package.

This package contains task definitions for background operations:
- meeting_status: scheduled activation of upcoming meetings
"""

from meetpulse.celery_app.tasks.meeting_status import activate_due_meetings_task

__all__ = [
    "activate_due_meetings_task",
]
