# siteaccess/schemas/movement.py
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional
from siteaccess.schemas.vehicle import VehicleOut, AreaCount


class MovementCreate(BaseModel):
    vehicle_id: int
    area: str
    movement_type: str               # entry | exit
    mileage: float
    driver_name: str
    driver_phone: Optional[str] = None
    driver_license: Optional[str] = None
    purpose: Optional[str] = None
    destination: Optional[str] = None
    notes: Optional[str] = None
    recorded_at: Optional[datetime] = None


class MovementUpdate(BaseModel):
    """Administrative correction. Every field optional."""
    area: Optional[str] = None
    movement_type: Optional[str] = None
    mileage: Optional[float] = None
    driver_name: Optional[str] = None
    driver_phone: Optional[str] = None
    driver_license: Optional[str] = None
    purpose: Optional[str] = None
    destination: Optional[str] = None
    notes: Optional[str] = None
    status: Optional[str] = None
    recorded_at: Optional[datetime] = None


class MovementOut(BaseModel):
    id: int
    vehicle_id: int
    area: str
    movement_type: str
    status: str
    mileage: float
    driver_name: str
    driver_phone: Optional[str]
    driver_license: Optional[str]
    purpose: Optional[str]
    destination: Optional[str]
    notes: Optional[str]
    recorded_by_id: str
    recorded_at: datetime
    vehicle: Optional[VehicleOut] = None

    class Config:
        from_attributes = True


class ExternalMovementCreate(BaseModel):
    vehicle_plate: str
    area: str
    movement_type: str
    driver_name: str
    notes: Optional[str] = None
    recorded_at: Optional[datetime] = None


class ExternalMovementOut(BaseModel):
    id: int
    vehicle_plate: str
    area: str
    movement_type: str
    status: str
    driver_name: str
    destination: Optional[str]
    notes: Optional[str]
    recorded_by_id: str
    recorded_at: datetime

    class Config:
        from_attributes = True


class MovementStatsOut(BaseModel):
    date: str
    total_movements: int
    entries: int
    exits: int
    movements_by_area: list[AreaCount]
    last_7_days: int


class SiteActivityOut(BaseModel):
    source: str                       # fleet | external
    movement_id: int
    plate: str
    movement_type: str
    area: str
    driver_name: str
    recorded_at: datetime


class AuditEntryOut(BaseModel):
    id: int
    subject_id: str
    subject_type: str
    actor_id: str
    action: str
    location: str
    timestamp: datetime
    note: Optional[str]

    class Config:
        from_attributes = True
