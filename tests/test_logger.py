# tests/test_logger.py
"""The security trail only takes records from gate/approval/auth loggers."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import logging
import pytest
from siteaccess.utils.logger import _SecurityFilter


def _record(name):
    return logging.LogRecord(name, logging.INFO, __file__, 1, "msg", None, None)


@pytest.mark.parametrize("name,expected", [
    ("siteaccess.services.audit_service", True),
    ("siteaccess.services.email_approval_service", True),
    ("siteaccess.services.auth_service", True),
    ("siteaccess.services.vehicle_movement_service", False),
    ("siteaccess.main", False),
])
def test_security_filter(name, expected):
    assert _SecurityFilter().filter(_record(name)) is expected
