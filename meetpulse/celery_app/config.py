"""
Celery configuration settings.

This module provides configuration values for Celery workers,
including queue routing, timeouts, and retry settings.
"""

from meetpulse.core.config import settings


class CeleryConfig:
    """Celery configuration class."""

    # Broker and backend URLs
    broker_url = settings.celery_broker_url
    result_backend = settings.celery_result_backend

    # Serialization
    task_serializer = "json"
    result_serializer = "json"
    accept_content = ["json"]

    # Timezone
    timezone = "UTC"
    enable_utc = True

    # Task settings
    task_track_started = True
    task_time_limit = 300  # sweeps are short; 5 minutes hard limit
    task_soft_time_limit = 240

    # Result settings
    result_expires = 3600  # 1 hour

    # Worker settings
    worker_prefetch_multiplier = 1
    worker_concurrency = 1

    # Task routing
    task_routes = {
        "meetpulse.celery_app.tasks.meeting_status.*": {"queue": "maintenance"},
    }

    # Default queue
    task_default_queue = "default"

    # Retry settings
    task_acks_late = True  # Acknowledge after task completion
    task_reject_on_worker_lost = True  # Requeue if worker dies


# Retry configuration for tasks
RETRY_CONFIG = {
    "max_retries": 3,
    "retry_backoff": True,  # Exponential backoff
    "retry_backoff_max": 60,
    "retry_jitter": True,  # Add randomness to backoff
}

# Retryable exceptions
RETRYABLE_EXCEPTIONS = (
    ConnectionError,
    TimeoutError,
    OSError,
)
