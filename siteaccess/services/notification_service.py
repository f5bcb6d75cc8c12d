# siteaccess/services/notification_service.py
"""
Notification dispatch: approval requests to hosts, status updates to
visitors, and check-in alerts to hosts.

Transport is a JSON webhook (mail relay, chat bridge, ...) at
NOTIFY_WEBHOOK_URL. With no URL configured notifications are only logged.

send() never raises: every failure is logged and reported as False.
dispatch_in_background() submits a send as an asyncio task so the calling
operation completes regardless of the outcome; nothing is retried.
"""

import asyncio
from typing import Optional
import httpx
from siteaccess.config import settings
from siteaccess.utils.logger import get_logger

logger = get_logger(__name__)

# Notification kinds
VISIT_APPROVAL_REQUEST = "visit_approval_request"
VISIT_STATUS_UPDATE = "visit_status_update"
VISITOR_CHECKED_IN = "visitor_checked_in"

# Strong references so in-flight tasks are not garbage collected
_background_tasks: set = set()


class Notifier:
    def __init__(self, webhook_url: Optional[str] = None, timeout: float = 5.0):
        self.webhook_url = webhook_url
        self.timeout = timeout

    async def send(self, kind: str, recipient: Optional[str], payload: dict) -> bool:
        if not recipient:
            logger.warning(f"[NOTIFY] {kind} skipped, no recipient address")
            return False
        if not self.webhook_url:
            logger.info(f"[NOTIFY] {kind} → {recipient} (no transport configured, logged only)")
            return False

        body = {"kind": kind, "recipient": recipient, "payload": payload}
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.webhook_url, json=body)
            if response.status_code >= 300:
                logger.warning(f"[NOTIFY] {kind} → {recipient} rejected: HTTP {response.status_code}")
                return False
        except httpx.HTTPError as e:
            logger.error(f"[NOTIFY] {kind} → {recipient} failed: {e}")
            return False
        except Exception as e:
            logger.error(f"[NOTIFY] {kind} → {recipient} unexpected error: {e}", exc_info=True)
            return False

        logger.info(f"[NOTIFY] {kind} → {recipient} delivered")
        return True


def _log_task_outcome(task: asyncio.Task):
    _background_tasks.discard(task)
    if task.cancelled():
        logger.warning(f"[NOTIFY] background task {task.get_name()} cancelled")
        return
    exc = task.exception()
    if exc is not None:
        logger.error(f"[NOTIFY] background task {task.get_name()} crashed: {exc}",
                     exc_info=(type(exc), exc, exc.__traceback__))


def dispatch_in_background(notifier: Notifier, kind: str, recipient: Optional[str],
                           payload: dict) -> Optional[asyncio.Task]:
    """
    Fire-and-forget: schedule notifier.send() on the running loop and return
    immediately. Returns the task (tests await it), or None when no loop runs.
    """
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        logger.error(f"[NOTIFY] {kind} → {recipient} dropped, no running event loop")
        return None

    task = loop.create_task(notifier.send(kind, recipient, payload), name=f"notify-{kind}")
    _background_tasks.add(task)
    task.add_done_callback(_log_task_outcome)
    return task


_notifier = Notifier(settings.NOTIFY_WEBHOOK_URL, settings.NOTIFY_TIMEOUT_SECONDS)


def get_notifier() -> Notifier:
    """FastAPI dependency: the process-wide notifier."""
    return _notifier
