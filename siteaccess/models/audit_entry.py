# siteaccess/models/audit_entry.py
"""
Access log table: immutable audit trail of consequential transitions
(check-in, reception confirmation, check-out).
Append-only: nothing in this codebase updates or deletes a row.
"""

from sqlalchemy import Column, Integer, String, DateTime, Index
from siteaccess.database import Base


class AuditEntry(Base):
    __tablename__ = "access_logs"
    __table_args__ = (
        Index("ix_access_logs_subject_ts", "subject_id", "timestamp"),
        Index("ix_access_logs_action_ts", "action", "timestamp"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    subject_id = Column(String(36), nullable=False)
    subject_type = Column(String(20), nullable=False, default="visitor")  # visitor | employee
    actor_id = Column(String(36), nullable=False)
    action = Column(String(30), nullable=False)
    location = Column(String(100), nullable=False)
    timestamp = Column(DateTime, nullable=False, index=True)
    note = Column(String(500))

    def __repr__(self):
        return f"<AuditEntry {self.id} {self.action} subject={self.subject_id}>"
