# siteaccess/routers/vehicles.py
"""Fleet registry + on-site status endpoints"""

from dataclasses import asdict
from typing import Optional
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from siteaccess.database import get_db
from siteaccess.schemas.common import ApiResponse
from siteaccess.schemas.vehicle import VehicleCreate, VehicleOut, OnSiteStatsOut, VehicleSiteStatusOut
from siteaccess.services import vehicle_movement_service, vehicle_service
from siteaccess.services.auth_service import GUARD_ROLES, Principal, get_current_principal, require_roles

router = APIRouter()


def _out(vehicle) -> dict:
    return VehicleOut.model_validate(vehicle).model_dump(mode="json")


@router.get("/vehicles", response_model=ApiResponse, summary="List fleet vehicles")
def list_vehicles(status: Optional[str] = None, vehicle_type: Optional[str] = None,
                  db: Session = Depends(get_db),
                  principal: Principal = Depends(get_current_principal)):
    vehicles = vehicle_service.list_vehicles(db, status, vehicle_type)
    return ApiResponse(success=True, message=f"{len(vehicles)} vehicles", data=[_out(v) for v in vehicles])


@router.post("/vehicles", response_model=ApiResponse, status_code=201, summary="Register a fleet vehicle")
def register_vehicle(body: VehicleCreate, db: Session = Depends(get_db),
                     principal: Principal = Depends(require_roles(*GUARD_ROLES))):
    vehicle = vehicle_service.register_vehicle(db, body.model_dump())
    return ApiResponse(success=True, message="Vehicle registered", data=_out(vehicle))


@router.get("/vehicles/stats/on-site", response_model=ApiResponse, summary="On-site fleet counts")
def on_site_stats(db: Session = Depends(get_db),
                  principal: Principal = Depends(get_current_principal)):
    """Derived from the movement ledger on every call."""
    stats = OnSiteStatsOut(**vehicle_movement_service.get_vehicle_on_site_stats(db))
    return ApiResponse(success=True, message="On-site statistics", data=stats.model_dump())


@router.get("/vehicles/{vehicle_id}", response_model=ApiResponse, summary="Get one fleet vehicle")
def get_vehicle(vehicle_id: int, db: Session = Depends(get_db),
                principal: Principal = Depends(get_current_principal)):
    return ApiResponse(success=True, message="Vehicle found",
                       data=_out(vehicle_service.get_vehicle(db, vehicle_id)))


@router.get("/vehicles/{vehicle_id}/status", response_model=ApiResponse, summary="Is this vehicle on site")
def vehicle_site_status(vehicle_id: int, db: Session = Depends(get_db),
                        principal: Principal = Depends(get_current_principal)):
    status = vehicle_movement_service.get_vehicle_site_status(db, vehicle_id)
    out = VehicleSiteStatusOut(**asdict(status))
    return ApiResponse(success=True, message=out.status, data=out.model_dump(mode="json"))
