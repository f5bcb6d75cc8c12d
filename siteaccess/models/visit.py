# siteaccess/models/visit.py
"""
Visits table: one visitor's request-to-departure record.
Mutated only through services/visitor_service.py transitions.
The version column makes every transition a compare-and-swap: a second writer
holding a stale row gets StaleDataError instead of overwriting.
"""

import uuid
from sqlalchemy import Column, Integer, String, DateTime, Date, Index
from siteaccess.database import Base
from siteaccess.models.enums import VisitStatus
from siteaccess.utils.clock import utcnow


def new_visit_id():
    return str(uuid.uuid4())


class Visit(Base):
    __tablename__ = "visits"
    __table_args__ = (
        Index("ix_visits_host_status", "host_employee", "status"),
    )

    id = Column(String(36), primary_key=True, default=new_visit_id)
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    email = Column(String(100))
    phone = Column(String(20), nullable=False)
    id_number = Column(String(50), nullable=False, index=True)  # not unique: repeat visitors
    company = Column(String(100))
    vehicle_number = Column(String(20))

    host_employee = Column(String(100), nullable=False)   # email when resolved, else as entered
    host_employee_id = Column(String(36), index=True)     # resolved employees.id
    host_department = Column(String(100), nullable=False)
    visit_purpose = Column(String(20), nullable=False)
    expected_date = Column(Date, nullable=False, index=True)
    expected_time = Column(String(5), nullable=False)     # HH:MM

    status = Column(String(20), nullable=False, default=VisitStatus.PENDING.value, index=True)
    qr_code = Column(String(255))
    approved_by_id = Column(String(36))
    rejection_reason = Column(String(500))

    actual_check_in = Column(DateTime)
    actual_check_out = Column(DateTime)
    reception_confirmed_at = Column(DateTime)
    reception_confirmed_by_id = Column(String(36))

    notes = Column(String(500))
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def is_reception_confirmed(self) -> bool:
        return self.reception_confirmed_at is not None

    @property
    def visit_duration(self):
        """'Hh Mm' between check-in and check-out, or None while either is missing."""
        if not self.actual_check_in or not self.actual_check_out:
            return None
        minutes = int((self.actual_check_out - self.actual_check_in).total_seconds() // 60)
        return f"{minutes // 60}h {minutes % 60}m"

    def __repr__(self):
        return f"<Visit {self.id} {self.full_name} status={self.status}>"
