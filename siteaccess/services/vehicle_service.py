# siteaccess/services/vehicle_service.py
"""
Fleet vehicle lookup and registration helpers.
Used by vehicle_movement_service and the vehicles router.
"""

from typing import Optional
from decimal import Decimal
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from siteaccess.errors import ConflictError, NotFoundError, ValidationError
from siteaccess.models.enums import VehicleStatus
from siteaccess.models.vehicle import Vehicle
from siteaccess.utils.clock import utcnow
from siteaccess.utils.logger import get_logger
from siteaccess.utils.plates import normalize_plate

logger = get_logger(__name__)


def lookup_vehicle_by_plate(db: Session, plate_number: str) -> Optional[Vehicle]:
    """Find a registered vehicle by plate number. Returns None if not found."""
    return db.query(Vehicle).filter(Vehicle.license_plate == normalize_plate(plate_number)).first()


def is_registered(db: Session, plate_number: str) -> bool:
    """Check if a plate number belongs to the fleet."""
    return lookup_vehicle_by_plate(db, plate_number) is not None


def get_vehicle(db: Session, vehicle_id: int) -> Vehicle:
    vehicle = db.query(Vehicle).filter(Vehicle.id == vehicle_id).first()
    if not vehicle:
        raise NotFoundError("Vehicle not found")
    return vehicle


def list_vehicles(db: Session, status: Optional[str] = None, vehicle_type: Optional[str] = None):
    q = db.query(Vehicle)
    if status:
        q = q.filter(Vehicle.status == status)
    if vehicle_type:
        q = q.filter(Vehicle.vehicle_type == vehicle_type)
    return q.order_by(Vehicle.license_plate).all()


def register_vehicle(db: Session, data: dict) -> Vehicle:
    """Add a fleet vehicle. Plates are stored normalized and must be unique."""
    fields = dict(data)
    plate = normalize_plate(fields.pop("license_plate", None))
    if not plate:
        raise ValidationError("License plate is required")
    if lookup_vehicle_by_plate(db, plate):
        raise ConflictError(f"Plate {plate} already registered")

    mileage = fields.pop("current_mileage", None)
    vehicle = Vehicle(
        license_plate=plate,
        current_mileage=Decimal(str(mileage)) if mileage is not None else None,
        status=VehicleStatus.ACTIVE.value,
        is_active=True,
        registered_at=utcnow(),
        **fields,
    )
    db.add(vehicle)
    try:
        db.commit()
    except IntegrityError:
        # lost a race with a concurrent registration of the same plate
        db.rollback()
        raise ConflictError(f"Plate {plate} already registered")
    db.refresh(vehicle)
    logger.info(f"[VEHICLE] registered {plate} (id={vehicle.id})")
    return vehicle
