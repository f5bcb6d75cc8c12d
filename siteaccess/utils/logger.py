# siteaccess/utils/logger.py
"""
Logging setup shared by every module.

Three sinks, configured once on first get_logger() call:
  - console
  - logs/siteaccess.log        everything at LOG_LEVEL
  - logs/security.log          gate, approval and auth decisions only, so the
                               access trail survives a noisy application log
"""

import logging
import os
from logging.handlers import RotatingFileHandler

from siteaccess.config import settings

DEFAULT_LOG_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.dirname(__file__))), "logs")

# Loggers whose records also go to security.log
SECURITY_LOGGERS = (
    "siteaccess.services.audit_service",
    "siteaccess.services.approval_token_service",
    "siteaccess.services.email_approval_service",
    "siteaccess.services.auth_service",
)

_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
_configured = False


class _SecurityFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        return record.name.startswith(SECURITY_LOGGERS)


def _rotating(path: str, level: str, fmt: logging.Formatter) -> RotatingFileHandler:
    handler = RotatingFileHandler(path, maxBytes=5 * 1024 * 1024, backupCount=10, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(fmt)
    return handler


def _configure_root_logger():
    global _configured
    if _configured:
        return
    _configured = True

    level = settings.LOG_LEVEL.upper()
    log_dir = settings.LOG_DIR or DEFAULT_LOG_DIR
    os.makedirs(log_dir, exist_ok=True)
    fmt = logging.Formatter(fmt=_FORMAT, datefmt=_DATE_FORMAT)

    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(fmt)

    security = _rotating(os.path.join(log_dir, "security.log"), "INFO", fmt)
    security.addFilter(_SecurityFilter())

    root = logging.getLogger()
    root.setLevel(level)
    root.addHandler(console)
    root.addHandler(_rotating(os.path.join(log_dir, "siteaccess.log"), level, fmt))
    root.addHandler(security)

    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Named logger; call at module import time."""
    _configure_root_logger()
    return logging.getLogger(name)
