# siteaccess/services/audit_service.py
"""
Shared audit log writer.
Used by visitor_service for check-in, reception confirmation and check-out.
Entries join the caller's unit of work so a transition and its audit row
commit (or roll back) together.
"""

from typing import Optional
from sqlalchemy.orm import Session
from siteaccess.config import settings
from siteaccess.models.audit_entry import AuditEntry
from siteaccess.utils.clock import utcnow
from siteaccess.utils.logger import get_logger

logger = get_logger(__name__)


def append_audit_entry(db: Session, subject_id: str, actor_id: str, action: str,
                       location: Optional[str] = None, note: Optional[str] = None,
                       subject_type: str = "visitor") -> AuditEntry:
    """Add an immutable audit entry to the session. The caller commits."""
    entry = AuditEntry(
        subject_id=subject_id,
        subject_type=subject_type,
        actor_id=actor_id,
        action=getattr(action, "value", action),
        location=location or settings.DEFAULT_GATE_LOCATION,
        timestamp=utcnow(),
        note=note,
    )
    db.add(entry)
    logger.info(f"[AUDIT] {entry.action} subject={subject_id} actor={actor_id} @ {entry.location}")
    return entry


def list_audit_entries(db: Session, subject_id: Optional[str] = None,
                       action: Optional[str] = None, limit: int = 50):
    q = db.query(AuditEntry)
    if subject_id:
        q = q.filter(AuditEntry.subject_id == subject_id)
    if action:
        q = q.filter(AuditEntry.action == action)
    return q.order_by(AuditEntry.timestamp.desc(), AuditEntry.id.desc()).limit(limit).all()
