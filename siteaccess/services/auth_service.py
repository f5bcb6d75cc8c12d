# siteaccess/services/auth_service.py
"""
Principal resolution for the HTTP layer.
Sign-in happens upstream; requests carry a Bearer JWT signed with AUTH_SECRET
whose claims are sub (user id), email and role.
"""

from dataclasses import dataclass
from typing import Optional

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from siteaccess.config import settings
from siteaccess.errors import ForbiddenError, UnauthorizedError
from siteaccess.models.enums import Role
from siteaccess.utils.logger import get_logger

logger = get_logger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)

# Who may do what
ADMIN_ONLY = (Role.ADMIN,)
GUARD_ROLES = (Role.ADMIN, Role.SECURITY_GUARD, Role.LOGISTICS_MANAGER)
GATE_ROLES = GUARD_ROLES + (Role.RECEPTIONIST,)
RECEPTION_ROLES = (Role.ADMIN, Role.RECEPTIONIST)


@dataclass
class Principal:
    id: str
    email: Optional[str]
    role: str


def decode_principal(token: str) -> Principal:
    try:
        payload = jwt.decode(token, settings.AUTH_SECRET, algorithms=[settings.AUTH_ALGORITHM])
    except jwt.PyJWTError as e:
        logger.warning(f"[AUTH] rejected bearer token: {e}")
        raise UnauthorizedError("Invalid or expired credentials")

    user_id, role = payload.get("sub"), payload.get("role")
    if not user_id or role not in {r.value for r in Role}:
        raise UnauthorizedError("Invalid or expired credentials")
    return Principal(id=str(user_id), email=payload.get("email"), role=role)


def get_current_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Principal:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise UnauthorizedError("Authentication required")
    return decode_principal(credentials.credentials)


def require_roles(*roles: Role):
    """Dependency factory: the current principal must hold one of `roles`."""
    allowed = {r.value for r in roles}

    def _check(principal: Principal = Depends(get_current_principal)) -> Principal:
        if principal.role not in allowed:
            logger.warning(f"[AUTH] {principal.id} ({principal.role}) denied; needs one of {sorted(allowed)}")
            raise ForbiddenError("You do not have permission to perform this action")
        return principal

    return _check
