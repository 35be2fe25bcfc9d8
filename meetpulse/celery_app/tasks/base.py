"""
Base task classes for Celery tasks.
"""

import logging
from typing import Optional

from celery import Task
from sqlalchemy.orm import Session

from meetpulse.db.session import SessionLocal

logger = logging.getLogger(__name__)


class DatabaseTask(Task):
    """
    Base task class with database session management.

    Provides a database session that is automatically closed
    after the task completes.
    """

    _db_session: Optional[Session] = None

    @property
    def db(self) -> Session:
        """Get or create a database session."""
        if self._db_session is None:
            self._db_session = SessionLocal()
        return self._db_session

    def after_return(self, status, retval, task_id, args, kwargs, einfo):
        """Clean up database session after task completion."""
        if self._db_session is not None:
            self._db_session.close()
            self._db_session = None
