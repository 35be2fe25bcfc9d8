"""
Scheduled meeting status maintenance.
"""

import logging

from celery import shared_task

from meetpulse.celery_app.config import RETRY_CONFIG, RETRYABLE_EXCEPTIONS
from meetpulse.celery_app.tasks.base import DatabaseTask

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    base=DatabaseTask,
    name="meetpulse.celery_app.tasks.meeting_status.activate_due_meetings",
    queue="maintenance",
    autoretry_for=RETRYABLE_EXCEPTIONS,
    **RETRY_CONFIG,
)
def activate_due_meetings_task(self):
    """
    Activate every upcoming meeting whose scheduled date has passed.

    Runs on the beat schedule. Overlapping runs are harmless: each one
    locks the upcoming rows it inspects.
    """
    from meetpulse.services.meetings import activate_due_meetings

    db = self.db
    try:
        activated = activate_due_meetings(db)
    except RETRYABLE_EXCEPTIONS as e:
        db.rollback()
        logger.warning(
            f"Retryable error while activating meetings: {e}, "
            f"attempt {self.request.retries + 1}/{RETRY_CONFIG['max_retries'] + 1}"
        )
        raise

    if activated:
        logger.info(f"Activated {activated} due meeting(s)")
    return {"status": "completed", "activated": activated}
