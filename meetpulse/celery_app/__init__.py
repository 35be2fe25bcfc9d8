"""
Celery application package for background processing.

This package provides:
- Celery app configuration
- The beat schedule for periodic meeting maintenance
- Task definitions
"""

from meetpulse.celery_app.celery import celery_app

__all__ = ["celery_app"]
