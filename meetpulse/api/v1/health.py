"""
Health check endpoints for system status and backing-service connectivity.
"""
import logging

import redis
from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session

from meetpulse.core.config import settings
from meetpulse.core.deps import get_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
async def health_check():
    """
    Basic health check endpoint.

    Returns:
        Simple status message indicating the API is running
    """
    return {
        "status": "ok",
        "service": settings.PROJECT_NAME,
    }


def _database_status(db: Session) -> dict:
    try:
        db.execute(text("SELECT 1"))
        return {"status": "healthy"}
    except Exception as e:
        logger.warning(f"Database health check failed: {e}")
        return {"status": "unhealthy", "error": str(e)}


def _broker_status() -> dict:
    try:
        client = redis.Redis.from_url(settings.celery_broker_url, socket_connect_timeout=1)
        client.ping()
        return {"status": "healthy"}
    except Exception as e:
        logger.warning(f"Broker health check failed: {e}")
        return {"status": "unhealthy", "error": str(e)}


@router.get("/full")
def full_health_check(db: Session = Depends(get_db)):
    """
    Comprehensive health check for all services.

    Returns:
        Status of the API, the database and the task broker
    """
    database = _database_status(db)
    broker = _broker_status()
    all_healthy = database["status"] == "healthy" and broker["status"] == "healthy"

    return {
        "status": "healthy" if all_healthy else "degraded",
        "services": {
            "api": {"status": "healthy"},
            "database": database,
            "broker": broker,
        },
        "config": {
            "env": settings.ENV,
            "submission_policy": settings.SUBMISSION_POLICY,
        },
    }
