# siteaccess/services/employee_directory.py
"""
Read-only employee directory lookups.
Used by visitor_service to resolve visit hosts and by approval_token_service
to map approval tokens back to employees.

A host reference is free-form: an employee id, an email address, or a full
display name. resolve_host() tries those in that order.
"""

from typing import Optional
from sqlalchemy import func
from sqlalchemy.orm import Session
from siteaccess.models.employee import Employee
from siteaccess.utils.logger import get_logger

logger = get_logger(__name__)


def get_employee_by_id(db: Session, employee_id: str) -> Optional[Employee]:
    return db.query(Employee).filter(Employee.id == employee_id).first()


def get_employee_by_email(db: Session, email: str) -> Optional[Employee]:
    return db.query(Employee).filter(func.lower(Employee.email) == email.strip().lower()).first()


def get_employee_by_full_name(db: Session, full_name: str) -> Optional[Employee]:
    """Exact display-name match. Returns None when the name is ambiguous."""
    parts = full_name.strip().split(" ", 1)
    if len(parts) != 2:
        return None
    matches = (
        db.query(Employee)
        .filter(func.lower(Employee.first_name) == parts[0].lower(),
                func.lower(Employee.last_name) == parts[1].strip().lower())
        .limit(2)
        .all()
    )
    if len(matches) > 1:
        logger.warning(f"Host name '{full_name}' matches several employees, not resolved")
        return None
    return matches[0] if matches else None


def resolve_host(db: Session, host_ref: str) -> Optional[Employee]:
    """Resolve a free-form host reference to an employee, or None."""
    ref = (host_ref or "").strip()
    if not ref:
        return None
    employee = get_employee_by_id(db, ref)
    if employee is None and "@" in ref:
        employee = get_employee_by_email(db, ref)
    if employee is None:
        employee = get_employee_by_full_name(db, ref)
    return employee


def list_active_employees(db: Session):
    return db.query(Employee).filter(Employee.is_active.is_(True)).all()


def resolve_display_name(db: Session, host_ref: str) -> Optional[str]:
    """Host reference → employee full name, or None when unresolved."""
    employee = resolve_host(db, host_ref)
    return employee.full_name if employee else None
