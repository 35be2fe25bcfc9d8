"""
Audit logging service.

Records who changed what on meetings and tasks, next to the regular
application log.
"""
import json
import logging
from typing import Optional
from uuid import UUID

from fastapi import Request
from sqlalchemy.orm import Session

from meetpulse.models.audit_log import AuditLog

logger = logging.getLogger(__name__)


class AuditAction:
    """Constants for audit actions."""

    # Authentication
    LOGIN = "login"
    REGISTER = "register"
    LOGIN_FAILED = "login_failed"

    # Meetings
    CREATE_MEETING = "create_meeting"
    UPDATE_MEETING = "update_meeting"
    DELETE_MEETING = "delete_meeting"
    CHANGE_PHASE = "change_phase"

    # Tasks
    APPROVE_TASK = "approve_task"
    DELETE_TASK = "delete_task"


class TargetType:
    """Constants for audit target types."""

    USER = "user"
    MEETING = "meeting"
    TASK = "task"


def get_client_info(request: Request) -> tuple[Optional[str], Optional[str]]:
    """
    Extract client IP and user agent from request.

    Returns:
        Tuple of (ip_address, user_agent)
    """
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        ip_address = forwarded.split(",")[0].strip()
    else:
        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            ip_address = real_ip.strip()
        elif request.client:
            ip_address = request.client.host
        else:
            ip_address = None

    return ip_address, request.headers.get("User-Agent")


def log_action(
    db: Session,
    action: str,
    user_id: Optional[UUID] = None,
    target_type: Optional[str] = None,
    target_id: Optional[str] = None,
    details: Optional[dict] = None,
    request: Optional[Request] = None,
) -> AuditLog:
    """
    Log an audit event.

    Args:
        db: Database session
        action: Action type (use AuditAction constants)
        user_id: User who performed the action
        target_type: Type of resource affected (use TargetType constants)
        target_id: ID of the affected resource
        details: Additional details as a dictionary
        request: Incoming request, used for client IP and user agent

    Returns:
        Created AuditLog record
    """
    ip_address, user_agent = get_client_info(request) if request else (None, None)
    log = AuditLog(
        user_id=user_id,
        action=action,
        target_type=target_type,
        target_id=target_id,
        details=json.dumps(details, default=str) if details else None,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    db.add(log)
    db.commit()
    db.refresh(log)
    logger.info(f"Audit: {action} by {user_id} on {target_type}:{target_id}")
    return log
