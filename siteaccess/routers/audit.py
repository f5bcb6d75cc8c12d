# siteaccess/routers/audit.py
"""Gate audit log (read-only)"""

from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from siteaccess.database import get_db
from siteaccess.schemas.common import ApiResponse
from siteaccess.schemas.movement import AuditEntryOut
from siteaccess.services.audit_service import list_audit_entries
from siteaccess.services.auth_service import GATE_ROLES, Principal, require_roles

router = APIRouter()


@router.get("/audit-log", response_model=ApiResponse, summary="Gate audit entries, newest first")
def get_audit_log(subject_id: Optional[str] = None, action: Optional[str] = None,
                  limit: int = Query(50, ge=1, le=500), db: Session = Depends(get_db),
                  principal: Principal = Depends(require_roles(*GATE_ROLES))):
    entries = list_audit_entries(db, subject_id, action, limit)
    return ApiResponse(success=True, message=f"{len(entries)} entries",
                       data=[AuditEntryOut.model_validate(e).model_dump(mode="json") for e in entries])
