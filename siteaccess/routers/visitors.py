# siteaccess/routers/visitors.py
"""Visitor lifecycle + reception gate endpoints"""

from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from siteaccess.database import get_db
from siteaccess.schemas.common import ApiResponse
from siteaccess.schemas.visit import VisitCreate, VisitReject, GateAction, VisitOut
from siteaccess.services import visitor_service
from siteaccess.services.auth_service import (
    ADMIN_ONLY, GATE_ROLES, GUARD_ROLES, RECEPTION_ROLES, Principal,
    get_current_principal, require_roles,
)
from siteaccess.services.email_approval_service import resolve_email_approval
from siteaccess.services.notification_service import Notifier, get_notifier

router = APIRouter()


def _out(visit) -> dict:
    return VisitOut.model_validate(visit).model_dump(mode="json")


@router.get("/visitors/approve-email", response_model=ApiResponse, summary="Approve/reject from email link")
async def approve_from_email(token: str = Query(...), action: str = Query(...),
                             db: Session = Depends(get_db),
                             notifier: Notifier = Depends(get_notifier)):
    """Unauthenticated: the signed token in the link identifies the host employee."""
    visit, details = await resolve_email_approval(db, token, action, notifier)
    return ApiResponse(
        success=True,
        message=f"Visitor {visit.full_name} has been {visit.status} by {details['host']}",
        data={"visitor": _out(visit), "other_pending_visits": details["other_pending_visits"]},
    )


@router.get("/visitors", response_model=ApiResponse, summary="List visits")
def list_visitors(status: Optional[str] = None, host: Optional[str] = None,
                  search: Optional[str] = None, limit: int = Query(50, ge=1, le=500),
                  offset: int = Query(0, ge=0), db: Session = Depends(get_db),
                  principal: Principal = Depends(get_current_principal)):
    visits = visitor_service.list_visits(db, status, host, search, limit, offset)
    return ApiResponse(success=True, message=f"{len(visits)} visitors",
                       data=[_out(v) for v in visits])


@router.get("/visitors/{visit_id}", response_model=ApiResponse, summary="Get one visit")
def get_visitor(visit_id: str, db: Session = Depends(get_db),
                principal: Principal = Depends(get_current_principal)):
    return ApiResponse(success=True, message="Visitor found",
                       data=_out(visitor_service.get_visit(db, visit_id)))


@router.post("/visitors", response_model=ApiResponse, status_code=201, summary="Register a visit")
async def create_visitor(body: VisitCreate, auto_approve: bool = False,
                         db: Session = Depends(get_db),
                         notifier: Notifier = Depends(get_notifier),
                         principal: Principal = Depends(require_roles(*GUARD_ROLES))):
    visit = await visitor_service.create_visit(db, body.model_dump(), auto_approve,
                                               principal.id, notifier)
    message = "Visitor registered and approved" if auto_approve else \
        "Visitor registered, approval request sent to host"
    return ApiResponse(success=True, message=message, data=_out(visit))


@router.post("/visitors/{visit_id}/approve", response_model=ApiResponse, summary="Approve a pending visit")
async def approve_visitor(visit_id: str, db: Session = Depends(get_db),
                          principal: Principal = Depends(require_roles(*GUARD_ROLES))):
    visit = await visitor_service.approve_visit(db, visit_id, principal.id)
    return ApiResponse(success=True, message="Visitor approved", data=_out(visit))


@router.post("/visitors/{visit_id}/reject", response_model=ApiResponse, summary="Reject a pending visit")
async def reject_visitor(visit_id: str, body: VisitReject, db: Session = Depends(get_db),
                         principal: Principal = Depends(require_roles(*GUARD_ROLES))):
    visit = await visitor_service.reject_visit(db, visit_id, body.reason, principal.id)
    return ApiResponse(success=True, message="Visitor rejected", data=_out(visit))


@router.post("/visitors/{visit_id}/checkin", response_model=ApiResponse, summary="Check a visitor in")
async def check_in_visitor(visit_id: str, body: Optional[GateAction] = None,
                           db: Session = Depends(get_db),
                           notifier: Notifier = Depends(get_notifier),
                           principal: Principal = Depends(require_roles(*GATE_ROLES))):
    body = body or GateAction()
    visit = await visitor_service.check_in_visit(db, visit_id, principal.id, notifier,
                                                 body.location, body.notes)
    return ApiResponse(success=True, message="Visitor checked in", data=_out(visit))


@router.post("/visitors/{visit_id}/confirm", response_model=ApiResponse, summary="Reception confirmation")
async def confirm_visitor(visit_id: str, db: Session = Depends(get_db),
                          principal: Principal = Depends(require_roles(*RECEPTION_ROLES))):
    visit, confirmed_now = await visitor_service.confirm_visit(db, visit_id, principal.id)
    message = "Visitor confirmed at reception" if confirmed_now else "Visitor already confirmed at reception"
    return ApiResponse(success=True, message=message, data=_out(visit))


@router.post("/visitors/{visit_id}/checkout", response_model=ApiResponse, summary="Check a visitor out")
async def check_out_visitor(visit_id: str, body: Optional[GateAction] = None,
                            db: Session = Depends(get_db),
                            principal: Principal = Depends(require_roles(*GATE_ROLES))):
    body = body or GateAction()
    visit = await visitor_service.check_out_visit(db, visit_id, principal.id,
                                                  body.location, body.notes)
    return ApiResponse(success=True, message=f"Visitor checked out after {visit.visit_duration}",
                       data=_out(visit))


@router.get("/visitors/{visit_id}/qrcode", response_model=ApiResponse, summary="Gate credential")
def get_visitor_qrcode(visit_id: str, db: Session = Depends(get_db),
                       principal: Principal = Depends(get_current_principal)):
    return ApiResponse(success=True, message="QR code retrieved",
                       data=visitor_service.get_visit_credential(db, visit_id))


@router.delete("/visitors/{visit_id}", response_model=ApiResponse, summary="Delete a visit")
async def delete_visitor(visit_id: str, db: Session = Depends(get_db),
                         principal: Principal = Depends(require_roles(*ADMIN_ONLY))):
    await visitor_service.delete_visit(db, visit_id, principal.id)
    return ApiResponse(success=True, message="Visitor deleted successfully")
