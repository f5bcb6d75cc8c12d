# siteaccess/errors.py
"""
Typed failures raised by the services.
Each carries the HTTP status it maps to; main.py turns them into the
standard {success, message, data} envelope.
"""

from typing import Any, Optional


class SiteAccessError(Exception):
    status_code = 400

    def __init__(self, message: str, data: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.data = data


class NotFoundError(SiteAccessError):
    status_code = 404


class InvalidStateError(SiteAccessError):
    status_code = 409


class ValidationError(SiteAccessError):
    status_code = 400


class UnauthorizedError(SiteAccessError):
    status_code = 401


class ForbiddenError(UnauthorizedError):
    """Authenticated, but the role is not allowed to perform the operation."""
    status_code = 403


class ConflictError(SiteAccessError):
    status_code = 409


class DependencyUnavailableError(SiteAccessError):
    status_code = 503
