# siteaccess/services/visitor_service.py
"""
Visitor lifecycle: the state machine behind every visit request.

    PENDING ──approve──▶ APPROVED ──check in──▶ CHECKED_IN ──check out──▶ CHECKED_OUT
       └────reject────▶ REJECTED                    │
                                                    └─ reception confirmation (gate on check-out)

EXPIRED exists as a status value but nothing moves a visit there.

Every transition is a read-modify-write on one row. Visit.version makes the
write conditional: if another request changed the row in between, SQLAlchemy
raises StaleDataError and the caller gets a ConflictError instead of a lost
update.
"""

from typing import Optional
from sqlalchemy import or_
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from siteaccess.config import settings
from siteaccess.errors import ConflictError, InvalidStateError, NotFoundError, ValidationError
from siteaccess.models.enums import AuditAction, VisitStatus
from siteaccess.models.visit import Visit, new_visit_id
from siteaccess.services import notification_service
from siteaccess.services.approval_token_service import build_approval_links
from siteaccess.services.audit_service import append_audit_entry
from siteaccess.services.employee_directory import resolve_display_name, resolve_host
from siteaccess.utils.clock import epoch_millis, utcnow
from siteaccess.utils.logger import get_logger

logger = get_logger(__name__)

ALLOWED_TRANSITIONS = {
    VisitStatus.PENDING: {VisitStatus.APPROVED, VisitStatus.REJECTED},
    VisitStatus.APPROVED: {VisitStatus.CHECKED_IN},
    VisitStatus.CHECKED_IN: {VisitStatus.CHECKED_OUT},
}

CREDENTIAL_STATUSES = {VisitStatus.APPROVED.value, VisitStatus.CHECKED_IN.value}


def can_transition(current: str, target: VisitStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(VisitStatus(current), set())


def _guard(visit: Visit, target: VisitStatus, message: str):
    if not can_transition(visit.status, target):
        raise InvalidStateError(message, data={"status": visit.status})


def _commit(db: Session, visit: Visit):
    try:
        db.commit()
    except StaleDataError:
        db.rollback()
        logger.warning(f"[VISIT] concurrent update lost on {visit.id}")
        raise ConflictError("Visit was modified by another request; reload and retry")
    db.refresh(visit)


def _host_display_name(db: Session, visit: Visit) -> Optional[str]:
    # Runs after the check-in commit; a directory failure only costs the name
    try:
        return resolve_display_name(db, visit.host_employee_id or visit.host_employee)
    except Exception as e:
        logger.warning(f"[VISIT] host name lookup failed for {visit.id}: {e}")
        return None


def generate_credential(visit: Visit) -> str:
    """Opaque gate credential. Unique through the (id, id-document, time) composite."""
    return f"VISITOR:{visit.id}:{visit.id_number}:{epoch_millis(utcnow())}"


def _apply_approval(visit: Visit, actor_id: Optional[str]):
    visit.status = VisitStatus.APPROVED.value
    visit.approved_by_id = actor_id
    visit.rejection_reason = None
    if not visit.qr_code:
        visit.qr_code = generate_credential(visit)


def _apply_rejection(visit: Visit, reason: str):
    visit.status = VisitStatus.REJECTED.value
    visit.rejection_reason = reason
    visit.approved_by_id = None


def get_visit(db: Session, visit_id: str) -> Visit:
    visit = db.query(Visit).filter(Visit.id == visit_id).first()
    if not visit:
        raise NotFoundError("Visitor not found")
    return visit


def list_visits(db: Session, status: Optional[str] = None, host: Optional[str] = None,
                search: Optional[str] = None, limit: int = 50, offset: int = 0):
    q = db.query(Visit)
    if status:
        q = q.filter(Visit.status == status)
    if host:
        q = q.filter(or_(Visit.host_employee == host, Visit.host_employee_id == host))
    if search:
        term = f"%{search.strip()}%"
        q = q.filter(or_(Visit.first_name.ilike(term), Visit.last_name.ilike(term),
                         Visit.email.ilike(term), Visit.phone.ilike(term),
                         Visit.id_number.ilike(term), Visit.company.ilike(term)))
    return q.order_by(Visit.created_at.desc()).offset(offset).limit(limit).all()


async def create_visit(db: Session, data: dict, auto_approve: bool, actor_id: str,
                       notifier: notification_service.Notifier) -> Visit:
    """
    Register a visit. The host reference must resolve to an employee.
    auto_approve issues the credential straight away; otherwise the host is
    sent approve/reject links in the background.
    """
    fields = dict(data)
    host = resolve_host(db, fields.pop("host_employee", ""))
    if host is None:
        raise ValidationError("Selected host employee not found")

    purpose = fields.pop("visit_purpose")
    visit = Visit(
        id=new_visit_id(),
        host_employee=host.email,
        host_employee_id=host.id,
        visit_purpose=getattr(purpose, "value", purpose),
        status=VisitStatus.PENDING.value,
        created_at=utcnow(),
        **fields,
    )
    if auto_approve:
        _apply_approval(visit, actor_id)

    db.add(visit)
    db.commit()
    db.refresh(visit)
    logger.info(f"[VISIT] created {visit.id} ({visit.full_name}) host={host.email} by {actor_id}"
                f"{' (auto-approved)' if auto_approve else ''}")

    if not auto_approve:
        payload = {
            "visit_id": visit.id,
            "visitor_name": visit.full_name,
            "visitor_email": visit.email,
            "visitor_phone": visit.phone,
            "company": visit.company,
            "visit_purpose": visit.visit_purpose,
            "expected_date": visit.expected_date.isoformat(),
            "expected_time": visit.expected_time,
            "host_name": host.full_name,
            **build_approval_links(host),
        }
        notification_service.dispatch_in_background(
            notifier, notification_service.VISIT_APPROVAL_REQUEST, host.email, payload)
    return visit


async def approve_visit(db: Session, visit_id: str, actor_id: Optional[str]) -> Visit:
    visit = get_visit(db, visit_id)
    _guard(visit, VisitStatus.APPROVED, "Only pending visitors can be approved")
    _apply_approval(visit, actor_id)
    _commit(db, visit)
    logger.info(f"[VISIT] approved {visit.id} ({visit.full_name}) by {actor_id}")
    return visit


async def reject_visit(db: Session, visit_id: str, reason: Optional[str],
                       actor_id: Optional[str]) -> Visit:
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("Rejection reason is required")
    if len(reason) < settings.MIN_REJECTION_REASON_LENGTH:
        raise ValidationError(
            f"Rejection reason must be at least {settings.MIN_REJECTION_REASON_LENGTH} characters")

    visit = get_visit(db, visit_id)
    _guard(visit, VisitStatus.REJECTED, "Only pending visitors can be rejected")
    _apply_rejection(visit, reason)
    _commit(db, visit)
    logger.info(f"[VISIT] rejected {visit.id} ({visit.full_name}) by {actor_id}: {reason}")
    return visit


async def check_in_visit(db: Session, visit_id: str, actor_id: str,
                         notifier: notification_service.Notifier,
                         location: Optional[str] = None, notes: Optional[str] = None) -> Visit:
    visit = get_visit(db, visit_id)
    _guard(visit, VisitStatus.CHECKED_IN, "Only approved visitors can check in")

    visit.status = VisitStatus.CHECKED_IN.value
    visit.actual_check_in = utcnow()
    note = f"Visitor checked in: {visit.full_name}" + (f". {notes}" if notes else "")
    append_audit_entry(db, visit.id, actor_id, AuditAction.CHECK_IN, location, note)
    _commit(db, visit)
    logger.info(f"[VISIT] checked in {visit.id} ({visit.full_name}) by {actor_id}")

    # Host alert must never hold up or fail the check-in
    notification_service.dispatch_in_background(
        notifier, notification_service.VISITOR_CHECKED_IN,
        visit.host_employee if "@" in visit.host_employee else None,
        {
            "visit_id": visit.id,
            "visitor_name": visit.full_name,
            "company": visit.company,
            "host_name": _host_display_name(db, visit),
            "checked_in_at": visit.actual_check_in.isoformat(),
            "location": location or settings.DEFAULT_GATE_LOCATION,
        },
    )
    return visit


async def confirm_visit(db: Session, visit_id: str, actor_id: str):
    """
    Reception confirmation. Idempotent: a second call leaves the first
    timestamp and actor untouched. Returns (visit, confirmed_now).
    """
    visit = get_visit(db, visit_id)
    if visit.status != VisitStatus.CHECKED_IN.value:
        raise InvalidStateError("Only checked-in visitors can be confirmed at reception",
                                data={"status": visit.status})
    if visit.reception_confirmed_at is not None:
        return visit, False

    visit.reception_confirmed_at = utcnow()
    visit.reception_confirmed_by_id = actor_id
    append_audit_entry(db, visit.id, actor_id, AuditAction.RECEPTION_CONFIRMED, "Reception",
                       f"Reception confirmed arrival of {visit.full_name}")
    _commit(db, visit)
    logger.info(f"[RECEPTION] confirmed {visit.id} ({visit.full_name}) by {actor_id}")
    return visit, True


async def check_out_visit(db: Session, visit_id: str, actor_id: str,
                          location: Optional[str] = None, notes: Optional[str] = None) -> Visit:
    visit = get_visit(db, visit_id)
    _guard(visit, VisitStatus.CHECKED_OUT, "Only checked-in visitors can check out")
    if visit.reception_confirmed_at is None:
        raise InvalidStateError("Visitor must be confirmed at reception first",
                                data={"status": visit.status, "reception_confirmed": False})

    visit.status = VisitStatus.CHECKED_OUT.value
    visit.actual_check_out = utcnow()
    note = f"Visitor checked out: {visit.full_name}. Duration: {visit.visit_duration or 'N/A'}"
    if notes:
        note += f". {notes}"
    append_audit_entry(db, visit.id, actor_id, AuditAction.CHECK_OUT, location, note)
    _commit(db, visit)
    logger.info(f"[VISIT] checked out {visit.id} ({visit.full_name}) after {visit.visit_duration}")
    return visit


async def delete_visit(db: Session, visit_id: str, actor_id: Optional[str] = None):
    visit = get_visit(db, visit_id)
    if visit.status == VisitStatus.CHECKED_IN.value:
        raise InvalidStateError("Cannot delete checked-in visitors", data={"status": visit.status})
    name = visit.full_name
    db.delete(visit)
    try:
        db.commit()
    except StaleDataError:
        db.rollback()
        raise ConflictError("Visit was modified by another request; reload and retry")
    logger.info(f"[VISIT] deleted {visit_id} ({name}) by {actor_id}")


def get_visit_credential(db: Session, visit_id: str) -> dict:
    visit = get_visit(db, visit_id)
    if visit.status not in CREDENTIAL_STATUSES:
        raise InvalidStateError("QR code only available for approved or checked-in visitors",
                                data={"status": visit.status})
    if not visit.qr_code:
        raise InvalidStateError("QR code not generated for this visitor")
    return {
        "qr_code": visit.qr_code,
        "visitor": {"id": visit.id, "name": visit.full_name,
                    "status": visit.status, "visit_purpose": visit.visit_purpose},
    }
