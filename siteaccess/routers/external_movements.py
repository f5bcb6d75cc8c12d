# siteaccess/routers/external_movements.py
"""External vehicle ledger + combined site activity feed"""

from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from siteaccess.database import get_db
from siteaccess.schemas.common import ApiResponse
from siteaccess.schemas.movement import ExternalMovementCreate, ExternalMovementOut, SiteActivityOut
from siteaccess.services import external_movement_service
from siteaccess.services.auth_service import GUARD_ROLES, Principal, get_current_principal, require_roles

router = APIRouter()


def _out(movement) -> dict:
    return ExternalMovementOut.model_validate(movement).model_dump(mode="json")


@router.get("/external-vehicle-movements", response_model=ApiResponse, summary="List external movements")
def list_external_movements(plate: Optional[str] = None, area: Optional[str] = None,
                            movement_type: Optional[str] = None,
                            limit: int = Query(50, ge=1, le=500), offset: int = Query(0, ge=0),
                            db: Session = Depends(get_db),
                            principal: Principal = Depends(get_current_principal)):
    movements = external_movement_service.list_external_movements(
        db, plate, area, movement_type, limit, offset)
    return ApiResponse(success=True, message=f"{len(movements)} movements",
                       data=[_out(m) for m in movements])


@router.post("/external-vehicle-movements", response_model=ApiResponse, status_code=201,
             summary="Record an external vehicle movement")
async def record_external_movement(body: ExternalMovementCreate, db: Session = Depends(get_db),
                                   principal: Principal = Depends(require_roles(*GUARD_ROLES))):
    movement = await external_movement_service.record_external_movement(
        db, body.vehicle_plate, body.movement_type, body.area, body.driver_name,
        principal.id, recorded_at=body.recorded_at, notes=body.notes,
    )
    return ApiResponse(success=True, message="External vehicle movement recorded", data=_out(movement))


@router.get("/site-activity", response_model=ApiResponse, summary="Latest gate activity (fleet + external)")
def site_activity(limit: int = Query(50, ge=1, le=200), db: Session = Depends(get_db),
                  principal: Principal = Depends(get_current_principal)):
    feed = external_movement_service.get_site_activity(db, limit)
    on_site = external_movement_service.derive_external_site_statuses(db, on_site_only=True)
    return ApiResponse(
        success=True,
        message=f"{len(feed)} recent movements",
        data={
            "activity": [SiteActivityOut(**row).model_dump(mode="json") for row in feed],
            "external_on_site": [s.license_plate for s in on_site],
        },
    )
