from meetpulse.db.base import Base  # noqa: F401

from .user import User  # noqa: F401
from .meeting import Meeting  # noqa: F401
from .task import Task  # noqa: F401
from .audit_log import AuditLog  # noqa: F401
