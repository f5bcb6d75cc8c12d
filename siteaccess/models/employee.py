# siteaccess/models/employee.py
"""
Employee directory table.
Owned by the HR/roster side of the system; this core only reads it to resolve
visit hosts and to derive approval tokens.
"""

import uuid
from sqlalchemy import Boolean, Column, String, DateTime
from siteaccess.database import Base
from siteaccess.utils.clock import utcnow


class Employee(Base):
    __tablename__ = "employees"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    employee_code = Column(String(20), unique=True, nullable=False)
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    email = Column(String(100), unique=True, nullable=False, index=True)
    phone = Column(String(20))
    department = Column(String(100), nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def __repr__(self):
        return f"<Employee {self.employee_code} {self.email}>"
