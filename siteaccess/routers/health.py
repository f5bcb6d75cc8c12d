# siteaccess/routers/health.py
"""
System health check endpoint.
Returns status of backend + DB + notification relay reachability.
"""

import requests
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from sqlalchemy import text
from siteaccess.database import get_db
from siteaccess.config import settings
from siteaccess.utils.clock import utcnow

router = APIRouter()


@router.get("/health", summary="System health check")
def health_check(db: Session = Depends(get_db)):
    """
    Returns:
    - Backend status
    - Database connectivity
    - Notification relay reachability (when NOTIFY_WEBHOOK_URL is set)
    """
    result = {
        "status": "ok",
        "timestamp": utcnow().isoformat(),
        "backend": "ok",
        "database": "unknown",
        "notifications": "log-only",
    }

    try:
        db.execute(text("SELECT 1"))
        result["database"] = "ok"
    except Exception as e:
        result["database"] = f"error: {str(e)}"
        result["status"] = "degraded"

    # Relay down only degrades notifications, never the gate
    if settings.NOTIFY_WEBHOOK_URL:
        try:
            resp = requests.get(settings.NOTIFY_WEBHOOK_URL, timeout=3)
            result["notifications"] = "ok" if resp.status_code < 500 else f"http_{resp.status_code}"
        except requests.exceptions.ConnectionError:
            result["notifications"] = "unreachable"
        except requests.exceptions.RequestException as e:
            result["notifications"] = f"error: {str(e)}"

    return result
