# siteaccess/models/enums.py
"""
String enums shared by models, schemas and services.
Stored as plain VARCHAR values so reports can query them directly.
"""

from enum import Enum


class VisitStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CHECKED_IN = "checked_in"
    CHECKED_OUT = "checked_out"
    EXPIRED = "expired"     # reserved, no operation moves a visit here


class VisitPurpose(str, Enum):
    MEETING = "meeting"
    DELIVERY = "delivery"
    MAINTENANCE = "maintenance"
    INTERVIEW = "interview"
    PERSONAL = "personal"
    OTHER = "other"


class AuditAction(str, Enum):
    CHECK_IN = "check_in"
    CHECK_OUT = "check_out"
    RECEPTION_CONFIRMED = "reception_confirmed"
    ACCESS_GRANTED = "access_granted"
    ACCESS_DENIED = "access_denied"


class MovementType(str, Enum):
    ENTRY = "entry"
    EXIT = "exit"


class MovementStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class VehicleStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    MAINTENANCE = "maintenance"
    RETIRED = "retired"


class SiteStatus(str, Enum):
    ON_SITE = "on_site"
    OFF_SITE = "off_site"


class Role(str, Enum):
    ADMIN = "admin"
    SECURITY_GUARD = "security_guard"
    RECEPTIONIST = "receptionist"
    LOGISTICS_MANAGER = "logistics_manager"
    EMPLOYEE = "employee"
