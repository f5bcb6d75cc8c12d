# siteaccess/services/email_approval_service.py
"""
Out-of-band approval: a host clicks the approve/reject link from the
approval-request notification. No session or principal: the token alone
identifies the employee.

Resolution picks the newest PENDING visit hosted by that employee (matched by
email, full display name, or resolved employee id). When the employee has
several pending visits only the newest is decided by a click; the others stay
pending. That case is logged and reported back as other_pending_visits, and
APPROVAL_STRICT_SINGLE_PENDING turns it into a ConflictError instead.
"""

from sqlalchemy import or_
from sqlalchemy.orm import Session

from siteaccess.config import settings
from siteaccess.errors import ConflictError, NotFoundError, ValidationError
from siteaccess.models.enums import VisitStatus
from siteaccess.models.visit import Visit
from siteaccess.services import notification_service, visitor_service
from siteaccess.services.approval_token_service import verify_approval_token
from siteaccess.utils.logger import get_logger

logger = get_logger(__name__)

EMAIL_ACTIONS = {"approve", "reject"}


def _pending_visits_for(db: Session, employee):
    return (
        db.query(Visit)
        .filter(
            Visit.status == VisitStatus.PENDING.value,
            or_(Visit.host_employee == employee.email,
                Visit.host_employee == employee.full_name,
                Visit.host_employee_id == employee.id),
        )
        .order_by(Visit.created_at.desc())
    )


async def resolve_email_approval(db: Session, token: str, action: str,
                                 notifier: notification_service.Notifier):
    """Apply an email-link decision. Returns (visit, details)."""
    action = (action or "").strip().lower()
    if action not in EMAIL_ACTIONS:
        raise ValidationError("Invalid approval action specified")

    try:
        employee = verify_approval_token(db, token)
    except NotFoundError:
        logger.warning(f"[APPROVAL] no employee for token {str(token)[:10]}...")
        raise

    pending = _pending_visits_for(db, employee)
    pending_count = pending.count()
    if pending_count == 0:
        logger.warning(f"[APPROVAL] no pending visitor for {employee.full_name} ({employee.email})")
        raise NotFoundError("No pending visitor found for this approval link")

    if pending_count > 1:
        logger.warning(f"[APPROVAL] {employee.email} has {pending_count} pending visits, "
                       f"link resolves only the newest")
        if settings.APPROVAL_STRICT_SINGLE_PENDING:
            raise ConflictError("Approval link matches more than one pending visit",
                                data={"pending_visits": pending_count})

    visit = pending.first()
    if action == "approve":
        visit = await visitor_service.approve_visit(db, visit.id, employee.id)
    else:
        visit = await visitor_service.reject_visit(db, visit.id, settings.EMAIL_REJECTION_REASON,
                                                   employee.id)
    logger.info(f"[APPROVAL] {visit.full_name} {visit.status} by {employee.full_name} via email")

    notification_service.dispatch_in_background(
        notifier, notification_service.VISIT_STATUS_UPDATE, visit.email,
        {
            "visit_id": visit.id,
            "visitor_name": visit.full_name,
            "status": visit.status,
            "host_name": employee.full_name,
            "host_department": employee.department,
            "visit_purpose": visit.visit_purpose,
            "expected_date": visit.expected_date.isoformat(),
            "expected_time": visit.expected_time,
        },
    )
    return visit, {"other_pending_visits": pending_count - 1, "host": employee.full_name}
