# siteaccess/services/external_movement_service.py
"""
External vehicle ledger: contractors, suppliers, visitors' cars.

How it works:
  - Rows are keyed by the normalized plate string, never by a fleet vehicle id
  - No mileage, no destination, no approval phase: every row is COMPLETED
  - On-site status per plate uses the same latest-movement rule as the fleet
  - get_site_activity merges both ledgers into one gate feed for the dashboard
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from siteaccess.errors import ValidationError
from siteaccess.models.enums import MovementStatus, MovementType, SiteStatus
from siteaccess.models.external_movement import ExternalVehicleMovement
from siteaccess.models.vehicle_movement import VehicleMovement
from siteaccess.services.vehicle_movement_service import VehicleSiteStatus, parse_movement_type
from siteaccess.services.vehicle_service import lookup_vehicle_by_plate
from siteaccess.utils.clock import as_naive_utc, utcnow
from siteaccess.utils.logger import get_logger
from siteaccess.utils.plates import normalize_plate

logger = get_logger(__name__)


async def record_external_movement(db: Session, plate: str, movement_type: str, area: str,
                                   driver_name: str, actor_id: str,
                                   recorded_at: Optional[datetime] = None,
                                   notes: Optional[str] = None) -> ExternalVehicleMovement:
    plate = normalize_plate(plate)
    area = (area or "").strip()
    driver_name = (driver_name or "").strip()
    if not plate or not area or not movement_type or not driver_name:
        raise ValidationError("Vehicle plate, area, movement type, and driver name are required")
    movement_type = parse_movement_type(movement_type)

    if lookup_vehicle_by_plate(db, plate):
        # Allowed, but the fleet ledger will not see this movement
        logger.warning(f"[EXTERNAL] {plate} is a registered fleet vehicle, recorded as external")

    movement = ExternalVehicleMovement(
        vehicle_plate=plate,
        area=area,
        movement_type=movement_type,
        status=MovementStatus.COMPLETED.value,
        driver_name=driver_name,
        destination=None,
        notes=notes,
        recorded_by_id=actor_id,
        recorded_at=as_naive_utc(recorded_at) if recorded_at else utcnow(),
        created_at=utcnow(),
    )
    db.add(movement)
    db.commit()
    db.refresh(movement)
    logger.info(f"[EXTERNAL] {plate} {movement_type} @ {area} | driver={driver_name} | by {actor_id}")
    return movement


def list_external_movements(db: Session, plate: Optional[str] = None, area: Optional[str] = None,
                            movement_type: Optional[str] = None, limit: int = 50, offset: int = 0):
    q = db.query(ExternalVehicleMovement)
    if plate:
        q = q.filter(ExternalVehicleMovement.vehicle_plate == normalize_plate(plate))
    if area:
        q = q.filter(ExternalVehicleMovement.area.ilike(f"%{area}%"))
    if movement_type:
        q = q.filter(ExternalVehicleMovement.movement_type == parse_movement_type(movement_type))
    return (q.order_by(ExternalVehicleMovement.recorded_at.desc(), ExternalVehicleMovement.id.desc())
            .offset(offset).limit(limit).all())


def derive_external_site_statuses(db: Session, on_site_only: bool = False) -> list[VehicleSiteStatus]:
    """Latest-movement status per external plate. vehicle_id is 0: there is no fleet record."""
    rank = func.row_number().over(
        partition_by=ExternalVehicleMovement.vehicle_plate,
        order_by=(ExternalVehicleMovement.recorded_at.desc(), ExternalVehicleMovement.id.desc()),
    ).label("recency_rank")
    latest = db.query(
        ExternalVehicleMovement.vehicle_plate.label("plate"),
        ExternalVehicleMovement.movement_type.label("movement_type"),
        ExternalVehicleMovement.area.label("area"),
        ExternalVehicleMovement.recorded_at.label("recorded_at"),
        rank,
    ).subquery()

    q = db.query(latest.c.plate, latest.c.movement_type, latest.c.area, latest.c.recorded_at) \
        .filter(latest.c.recency_rank == 1)
    if on_site_only:
        q = q.filter(latest.c.movement_type == MovementType.ENTRY.value)

    return [
        VehicleSiteStatus(
            vehicle_id=0,
            license_plate=plate,
            status=(SiteStatus.ON_SITE if movement_type == MovementType.ENTRY.value
                    else SiteStatus.OFF_SITE).value,
            area=area,
            since=recorded_at,
        )
        for plate, movement_type, area, recorded_at in q.order_by(latest.c.plate).all()
    ]


def get_site_activity(db: Session, limit: int = 50) -> list[dict]:
    """Newest gate activity across the fleet and external ledgers."""
    fleet = (
        db.query(VehicleMovement)
        .order_by(VehicleMovement.recorded_at.desc(), VehicleMovement.id.desc())
        .limit(limit)
        .all()
    )
    external = list_external_movements(db, limit=limit)

    feed = [
        {
            "source": "fleet",
            "movement_id": m.id,
            "plate": m.vehicle.license_plate if m.vehicle else "",
            "movement_type": m.movement_type,
            "area": m.area,
            "driver_name": m.driver_name,
            "recorded_at": m.recorded_at,
        }
        for m in fleet
    ] + [
        {
            "source": "external",
            "movement_id": m.id,
            "plate": m.vehicle_plate,
            "movement_type": m.movement_type,
            "area": m.area,
            "driver_name": m.driver_name,
            "recorded_at": m.recorded_at,
        }
        for m in external
    ]
    feed.sort(key=lambda row: row["recorded_at"], reverse=True)
    return feed[:limit]
