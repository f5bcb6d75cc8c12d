# siteaccess/schemas/vehicle.py
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional


class VehicleCreate(BaseModel):
    license_plate: str = Field(min_length=1, max_length=20)
    make: Optional[str] = None
    model: Optional[str] = None
    vehicle_type: str = "car"        # car | truck | van | motorcycle | bus | other
    department: Optional[str] = None
    assigned_driver: Optional[str] = None
    current_mileage: Optional[float] = Field(default=None, ge=0)
    notes: Optional[str] = None


class VehicleOut(BaseModel):
    id: int
    license_plate: str
    make: Optional[str]
    model: Optional[str]
    vehicle_type: str
    status: str
    is_active: bool
    department: Optional[str]
    assigned_driver: Optional[str]
    current_mileage: Optional[float]
    registered_at: Optional[datetime]
    notes: Optional[str]

    class Config:
        from_attributes = True


class AreaCount(BaseModel):
    area: str
    count: int


class OnSiteStatsOut(BaseModel):
    total_vehicles: int
    active_vehicles: int
    inactive_vehicles: int
    maintenance_vehicles: int
    retired_vehicles: int
    on_site: int
    off_site: int
    on_site_by_area: list[AreaCount]


class VehicleSiteStatusOut(BaseModel):
    vehicle_id: int
    license_plate: str
    status: str                       # on_site | off_site
    area: Optional[str]
    since: Optional[datetime]
