# siteaccess/routers/vehicle_movements.py
"""Fleet movement ledger endpoints"""

from datetime import date, datetime
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from siteaccess.database import get_db
from siteaccess.schemas.common import ApiResponse
from siteaccess.schemas.movement import MovementCreate, MovementUpdate, MovementOut, MovementStatsOut
from siteaccess.services import vehicle_movement_service
from siteaccess.services.auth_service import (
    ADMIN_ONLY, GUARD_ROLES, Principal, get_current_principal, require_roles,
)

router = APIRouter()


def _out(movement) -> dict:
    return MovementOut.model_validate(movement).model_dump(mode="json")


@router.get("/vehicle-movements", response_model=ApiResponse, summary="List fleet movements")
def list_movements(vehicle_id: Optional[int] = None, area: Optional[str] = None,
                   movement_type: Optional[str] = None, driver_name: Optional[str] = None,
                   start: Optional[datetime] = None, end: Optional[datetime] = None,
                   limit: int = Query(50, ge=1, le=500), offset: int = Query(0, ge=0),
                   db: Session = Depends(get_db),
                   principal: Principal = Depends(get_current_principal)):
    movements = vehicle_movement_service.list_movements(
        db, vehicle_id, area, movement_type, driver_name, start, end, limit, offset)
    return ApiResponse(success=True, message=f"{len(movements)} movements",
                       data=[_out(m) for m in movements])


@router.post("/vehicle-movements", response_model=ApiResponse, status_code=201, summary="Record a fleet movement")
async def record_movement(body: MovementCreate, db: Session = Depends(get_db),
                          principal: Principal = Depends(require_roles(*GUARD_ROLES))):
    movement = await vehicle_movement_service.record_movement(
        db, body.vehicle_id, body.movement_type, body.area, body.mileage, body.driver_name,
        principal.id, recorded_at=body.recorded_at, driver_phone=body.driver_phone,
        driver_license=body.driver_license, purpose=body.purpose,
        destination=body.destination, notes=body.notes,
    )
    return ApiResponse(success=True, message="Vehicle movement recorded", data=_out(movement))


@router.get("/vehicle-movements/stats", response_model=ApiResponse, summary="Daily movement statistics")
def movement_stats(target_date: Optional[date] = None, db: Session = Depends(get_db),
                   principal: Principal = Depends(get_current_principal)):
    stats = MovementStatsOut(**vehicle_movement_service.get_movement_stats(db, target_date))
    return ApiResponse(success=True, message="Movement statistics", data=stats.model_dump())


@router.get("/vehicle-movements/{movement_id}", response_model=ApiResponse, summary="Get one movement")
def get_movement(movement_id: int, db: Session = Depends(get_db),
                 principal: Principal = Depends(get_current_principal)):
    return ApiResponse(success=True, message="Vehicle movement found",
                       data=_out(vehicle_movement_service.get_movement(db, movement_id)))


@router.put("/vehicle-movements/{movement_id}", response_model=ApiResponse, summary="Correct a movement")
async def update_movement(movement_id: int, body: MovementUpdate, db: Session = Depends(get_db),
                          principal: Principal = Depends(require_roles(*ADMIN_ONLY))):
    movement = await vehicle_movement_service.update_movement(
        db, movement_id, body.model_dump(exclude_unset=True), principal.id)
    return ApiResponse(success=True, message="Vehicle movement updated", data=_out(movement))


@router.delete("/vehicle-movements/{movement_id}", response_model=ApiResponse, summary="Delete a movement")
async def delete_movement(movement_id: int, db: Session = Depends(get_db),
                          principal: Principal = Depends(require_roles(*ADMIN_ONLY))):
    await vehicle_movement_service.delete_movement(db, movement_id, principal.id)
    return ApiResponse(success=True, message="Vehicle movement deleted successfully")
