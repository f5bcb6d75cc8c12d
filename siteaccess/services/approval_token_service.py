# siteaccess/services/approval_token_service.py
"""
Approval tokens for the unauthenticated email-link path.

Two token forms are understood:

  * signed tokens (current): an HS256 JWT over the employee id and a digest
    of the employee email, signed with APPROVAL_SECRET. Verification decodes
    straight to the employee id, so there is no directory scan. Rotating the
    secret revokes every outstanding link; changing an employee's email
    revokes theirs. Without APPROVAL_TOKEN_TTL_HOURS the token is a pure
    function of (id, email, secret) and never expires.

  * legacy digest tokens: sha256("{id}-{email}-approval-token"). These carry
    no employee id, so verifying one means recomputing the digest for every
    active employee and comparing. Accepted only while
    APPROVAL_ACCEPT_LEGACY_TOKENS is on.
"""

import hashlib
import hmac
from datetime import timedelta
from typing import Optional
from urllib.parse import urlencode

import jwt
from sqlalchemy.orm import Session

from siteaccess.config import settings
from siteaccess.errors import NotFoundError
from siteaccess.models.employee import Employee
from siteaccess.services.employee_directory import get_employee_by_id, list_active_employees
from siteaccess.utils.clock import utcnow
from siteaccess.utils.logger import get_logger

logger = get_logger(__name__)

TOKEN_PURPOSE = "visit-approval"
_ALGORITHM = "HS256"


def _email_digest(email: str) -> str:
    return hashlib.sha256(email.strip().lower().encode()).hexdigest()[:16]


def derive_legacy_token(employee: Employee) -> str:
    """Deterministic digest of (id, email). No expiry, no storage."""
    return hashlib.sha256(f"{employee.id}-{employee.email}-approval-token".encode()).hexdigest()


def issue_approval_token(employee: Employee, ttl_hours: Optional[int] = None) -> str:
    """Signed approval token for one employee."""
    claims = {"sub": str(employee.id), "eh": _email_digest(employee.email), "pur": TOKEN_PURPOSE}
    ttl = ttl_hours if ttl_hours is not None else settings.APPROVAL_TOKEN_TTL_HOURS
    if ttl:
        claims["exp"] = utcnow() + timedelta(hours=ttl)
    return jwt.encode(claims, settings.APPROVAL_SECRET, algorithm=_ALGORITHM)


def build_approval_links(employee: Employee, base_url: Optional[str] = None) -> dict:
    """Approve / reject URLs embedded in the approval-request notification."""
    token = issue_approval_token(employee)
    root = (base_url or settings.BASE_URL).rstrip("/")
    endpoint = f"{root}/api/v1/visitors/approve-email"
    return {
        "approve_url": f"{endpoint}?{urlencode({'token': token, 'action': 'approve'})}",
        "reject_url": f"{endpoint}?{urlencode({'token': token, 'action': 'reject'})}",
    }


def _looks_signed(token: str) -> bool:
    return token.count(".") == 2


def _verify_signed(db: Session, token: str) -> Employee:
    try:
        claims = jwt.decode(token, settings.APPROVAL_SECRET, algorithms=[_ALGORITHM],
                            options={"require": ["sub", "eh", "pur"]})
    except jwt.ExpiredSignatureError:
        raise NotFoundError("This approval link has expired")
    except jwt.PyJWTError as e:
        logger.warning(f"[APPROVAL] signed token rejected: {e}")
        raise NotFoundError("This approval link is not valid")

    if claims.get("pur") != TOKEN_PURPOSE:
        raise NotFoundError("This approval link is not valid")

    employee = get_employee_by_id(db, claims["sub"])
    if employee is None or not employee.is_active:
        raise NotFoundError("This approval link is not valid")
    if not hmac.compare_digest(str(claims["eh"]).encode(), _email_digest(employee.email).encode()):
        logger.warning(f"[APPROVAL] token for {employee.id} issued to a previous email, revoked")
        raise NotFoundError("This approval link is not valid")
    return employee


def _verify_legacy(db: Session, token: str) -> Employee:
    # O(directory size) per click
    for employee in list_active_employees(db):
        if hmac.compare_digest(derive_legacy_token(employee).encode(), token.encode()):
            return employee
    raise NotFoundError("This approval link is not valid")


def verify_approval_token(db: Session, token: str) -> Employee:
    """Map an approval token to its employee. Raises NotFoundError when nothing matches."""
    if not token:
        raise NotFoundError("This approval link is not valid")
    if _looks_signed(token):
        return _verify_signed(db, token)
    if settings.APPROVAL_ACCEPT_LEGACY_TOKENS:
        return _verify_legacy(db, token)
    raise NotFoundError("This approval link is not valid")
