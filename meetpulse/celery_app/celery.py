"""
Celery application initialization.

This module creates and configures the Celery app instance, registers the
beat schedule and runs one activation sweep as soon as a worker is ready.
"""

import logging
from celery import Celery
from celery.signals import worker_ready

from meetpulse.celery_app.config import CeleryConfig
from meetpulse.core.config import settings

logger = logging.getLogger(__name__)

ACTIVATE_DUE_MEETINGS = "meetpulse.celery_app.tasks.meeting_status.activate_due_meetings"

# Create Celery app
celery_app = Celery("meetpulse")

# Load configuration
celery_app.config_from_object(CeleryConfig)

# Periodic sweep flipping upcoming meetings to active once they are due
celery_app.conf.beat_schedule = {
    "activate-due-meetings": {
        "task": ACTIVATE_DUE_MEETINGS,
        "schedule": float(settings.ACTIVATION_SWEEP_INTERVAL_SECONDS),
    },
}

# Auto-discover tasks in the tasks package
celery_app.autodiscover_tasks(
    [
        "meetpulse.celery_app.tasks",
    ],
    force=True,
)


@worker_ready.connect
def on_worker_ready(sender, **kwargs):
    """
    Called when a Celery worker is ready to accept tasks.

    Meetings that became due while no worker was running are activated right
    away instead of waiting for the first beat tick.
    """
    logger.info("Celery worker ready, sweeping due meetings...")
    celery_app.send_task(ACTIVATE_DUE_MEETINGS)
