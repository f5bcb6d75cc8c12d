# siteaccess/services/vehicle_movement_service.py
"""
Fleet movement ledger + on-site derivation.

How it works:
  - Gate staff record an entry or exit per vehicle → one immutable row in
    vehicle_movements (recorded_at may be backdated)
  - The vehicle's current_mileage snapshot only ever moves forward, through a
    single conditional UPDATE so concurrent inserts cannot drag it back
  - "Is this vehicle on site" is never stored: it is the type of the latest
    movement per vehicle, latest = max(recorded_at), ties broken by the
    insertion sequence (id). No movements at all = off site.
  - update/delete are administrative corrections; they edit history directly
    and do not recompute the mileage snapshot
"""

from collections import Counter
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import Optional

from sqlalchemy import and_, func, or_
from sqlalchemy.orm import Session

from siteaccess.errors import NotFoundError, ValidationError
from siteaccess.models.enums import MovementStatus, MovementType, SiteStatus, VehicleStatus
from siteaccess.models.vehicle import Vehicle
from siteaccess.models.vehicle_movement import VehicleMovement
from siteaccess.services.vehicle_service import get_vehicle
from siteaccess.utils.clock import as_naive_utc, utcnow
from siteaccess.utils.logger import get_logger

logger = get_logger(__name__)

MOVEMENT_TYPES = {t.value for t in MovementType}


@dataclass
class VehicleSiteStatus:
    vehicle_id: int
    license_plate: str
    status: str                          # on_site | off_site
    area: Optional[str] = None           # area of the latest movement
    since: Optional[datetime] = None     # recorded_at of the latest movement


def parse_movement_type(movement_type) -> str:
    value = str(movement_type or "").strip().lower()
    if value not in MOVEMENT_TYPES:
        raise ValidationError('Invalid movement type. Must be "entry" or "exit"')
    return value


def parse_mileage(mileage) -> Decimal:
    try:
        value = Decimal(str(mileage))
    except (InvalidOperation, ValueError):
        raise ValidationError("Mileage must be a number")
    if not value.is_finite() or value < 0:
        raise ValidationError("Mileage must be a non-negative number")
    return value


def _clean_optional(text: Optional[str]) -> Optional[str]:
    if text is None:
        return None
    text = str(text).strip()
    return text or None


def latest_movement(movements):
    """Latest by (recorded_at, id). None for an empty ledger."""
    return max(movements, key=lambda m: (m.recorded_at, m.id), default=None)


def derive_site_status(movements) -> SiteStatus:
    """ON_SITE iff the latest movement is an entry; no movements → OFF_SITE."""
    latest = latest_movement(movements)
    if latest is not None and latest.movement_type == MovementType.ENTRY.value:
        return SiteStatus.ON_SITE
    return SiteStatus.OFF_SITE


def advance_mileage_snapshot(db: Session, vehicle_id: int, reading: Decimal) -> bool:
    """
    current_mileage = reading iff it is greater (or unset).
    One statement, so two concurrent movements cannot overwrite each other
    with a lower value. Returns True when the snapshot moved.
    """
    updated = (
        db.query(Vehicle)
        .filter(Vehicle.id == vehicle_id,
                or_(Vehicle.current_mileage.is_(None), Vehicle.current_mileage < reading))
        .update({Vehicle.current_mileage: reading}, synchronize_session=False)
    )
    return updated > 0


async def record_movement(db: Session, vehicle_id: int, movement_type: str, area: str,
                          mileage, driver_name: str, actor_id: str,
                          recorded_at: Optional[datetime] = None,
                          driver_phone: Optional[str] = None, driver_license: Optional[str] = None,
                          purpose: Optional[str] = None, destination: Optional[str] = None,
                          notes: Optional[str] = None) -> VehicleMovement:
    area = _clean_optional(area)
    driver_name = _clean_optional(driver_name)
    if vehicle_id is None or not area or movement_type is None or mileage is None or not driver_name:
        raise ValidationError("Vehicle ID, area, movement type, mileage, and driver name are required")
    movement_type = parse_movement_type(movement_type)
    reading = parse_mileage(mileage)

    vehicle = get_vehicle(db, vehicle_id)
    if not vehicle.is_active or vehicle.status == VehicleStatus.RETIRED.value:
        raise ValidationError("Vehicle is inactive and cannot be used for movements")

    movement = VehicleMovement(
        vehicle_id=vehicle.id,
        area=area,
        movement_type=movement_type,
        status=MovementStatus.COMPLETED.value,
        mileage=reading,
        driver_name=driver_name,
        driver_phone=_clean_optional(driver_phone),
        driver_license=_clean_optional(driver_license),
        purpose=purpose,
        destination=_clean_optional(destination),
        notes=notes,
        recorded_by_id=actor_id,
        recorded_at=as_naive_utc(recorded_at) if recorded_at else utcnow(),
        created_at=utcnow(),
    )
    db.add(movement)
    db.flush()
    moved = advance_mileage_snapshot(db, vehicle.id, reading)
    db.commit()
    db.refresh(movement)
    db.refresh(vehicle)

    logger.info(f"[MOVEMENT] {vehicle.license_plate} {movement_type} @ {area} | "
                f"driver={driver_name} mileage={reading} snapshot={'advanced' if moved else 'kept'} "
                f"| by {actor_id}")
    return movement


def get_movement(db: Session, movement_id: int) -> VehicleMovement:
    movement = db.query(VehicleMovement).filter(VehicleMovement.id == movement_id).first()
    if not movement:
        raise NotFoundError("Vehicle movement not found")
    return movement


def list_movements(db: Session, vehicle_id: Optional[int] = None, area: Optional[str] = None,
                   movement_type: Optional[str] = None, driver_name: Optional[str] = None,
                   start: Optional[datetime] = None, end: Optional[datetime] = None,
                   limit: int = 50, offset: int = 0):
    q = db.query(VehicleMovement)
    if vehicle_id is not None:
        q = q.filter(VehicleMovement.vehicle_id == vehicle_id)
    if area:
        q = q.filter(VehicleMovement.area.ilike(f"%{area}%"))
    if movement_type:
        q = q.filter(VehicleMovement.movement_type == parse_movement_type(movement_type))
    if driver_name:
        q = q.filter(VehicleMovement.driver_name.ilike(f"%{driver_name}%"))
    if start:
        q = q.filter(VehicleMovement.recorded_at >= as_naive_utc(start))
    if end:
        q = q.filter(VehicleMovement.recorded_at <= as_naive_utc(end))
    return (q.order_by(VehicleMovement.recorded_at.desc(), VehicleMovement.id.desc())
            .offset(offset).limit(limit).all())


async def update_movement(db: Session, movement_id: int, changes: dict, actor_id: str) -> VehicleMovement:
    """Administrative correction. Edits the row only; snapshot and derivations are not re-run."""
    movement = get_movement(db, movement_id)
    for field, value in changes.items():
        if field == "movement_type" and value is not None:
            value = parse_movement_type(value)
        elif field == "mileage" and value is not None:
            value = parse_mileage(value)
        elif field == "status" and value is not None:
            if value not in {s.value for s in MovementStatus}:
                raise ValidationError("Invalid movement status")
        elif field == "recorded_at" and value is not None:
            value = as_naive_utc(value)
        elif field in ("destination", "driver_phone", "driver_license"):
            value = _clean_optional(value)
        elif field in ("area", "driver_name"):
            value = _clean_optional(value)
            if not value:
                raise ValidationError(f"{field.replace('_', ' ').capitalize()} cannot be empty")
        elif value is None and field in ("movement_type", "mileage", "status", "recorded_at"):
            continue
        setattr(movement, field, value)

    db.commit()
    db.refresh(movement)
    logger.info(f"[MOVEMENT] correction on {movement.id} (vehicle={movement.vehicle_id}) "
                f"fields={sorted(changes)} by {actor_id}")
    return movement


async def delete_movement(db: Session, movement_id: int, actor_id: str):
    movement = get_movement(db, movement_id)
    vehicle_id = movement.vehicle_id
    db.delete(movement)
    db.commit()
    logger.warning(f"[MOVEMENT] deleted {movement_id} (vehicle={vehicle_id}) by {actor_id}")


# ── On-site derivation ──────────────────────────────────────────────────────

def _latest_per_vehicle(db: Session):
    rank = func.row_number().over(
        partition_by=VehicleMovement.vehicle_id,
        order_by=(VehicleMovement.recorded_at.desc(), VehicleMovement.id.desc()),
    ).label("recency_rank")
    return db.query(
        VehicleMovement.vehicle_id.label("vehicle_id"),
        VehicleMovement.movement_type.label("movement_type"),
        VehicleMovement.area.label("area"),
        VehicleMovement.recorded_at.label("recorded_at"),
        rank,
    ).subquery()


def derive_site_statuses(db: Session) -> list[VehicleSiteStatus]:
    """Status for every active, non-retired fleet vehicle. Computed per call."""
    latest = _latest_per_vehicle(db)
    rows = (
        db.query(Vehicle.id, Vehicle.license_plate, latest.c.movement_type,
                 latest.c.area, latest.c.recorded_at)
        .outerjoin(latest, and_(latest.c.vehicle_id == Vehicle.id, latest.c.recency_rank == 1))
        .filter(Vehicle.is_active.is_(True), Vehicle.status != VehicleStatus.RETIRED.value)
        .order_by(Vehicle.license_plate)
        .all()
    )
    return [
        VehicleSiteStatus(
            vehicle_id=vehicle_id,
            license_plate=plate,
            status=(SiteStatus.ON_SITE if movement_type == MovementType.ENTRY.value
                    else SiteStatus.OFF_SITE).value,
            area=area,
            since=recorded_at,
        )
        for vehicle_id, plate, movement_type, area, recorded_at in rows
    ]


def get_vehicle_site_status(db: Session, vehicle_id: int) -> VehicleSiteStatus:
    """
    Ledger status for one vehicle, whatever its registry state. Unlike
    derive_site_statuses this includes retired and inactive vehicles, which
    keep reporting the position of their last recorded movement.
    """
    vehicle = get_vehicle(db, vehicle_id)
    latest = (
        db.query(VehicleMovement)
        .filter(VehicleMovement.vehicle_id == vehicle.id)
        .order_by(VehicleMovement.recorded_at.desc(), VehicleMovement.id.desc())
        .first()
    )
    status = derive_site_status([latest] if latest else [])
    return VehicleSiteStatus(
        vehicle_id=vehicle.id,
        license_plate=vehicle.license_plate,
        status=status.value,
        area=latest.area if latest else None,
        since=latest.recorded_at if latest else None,
    )


def _count_vehicles(db: Session, *criteria) -> int:
    return db.query(func.count(Vehicle.id)).filter(*criteria).scalar() or 0


def get_vehicle_on_site_stats(db: Session) -> dict:
    """
    On-site counts come from the ledger; inactive/maintenance/retired are
    plain attribute counts on the vehicles table.
    """
    statuses = derive_site_statuses(db)
    on_site = [s for s in statuses if s.status == SiteStatus.ON_SITE.value]
    by_area = Counter(s.area for s in on_site)

    return {
        "total_vehicles": _count_vehicles(db),
        "active_vehicles": _count_vehicles(db, Vehicle.status == VehicleStatus.ACTIVE.value,
                                           Vehicle.is_active.is_(True)),
        "inactive_vehicles": _count_vehicles(db, Vehicle.status == VehicleStatus.INACTIVE.value),
        "maintenance_vehicles": _count_vehicles(db, Vehicle.status == VehicleStatus.MAINTENANCE.value),
        "retired_vehicles": _count_vehicles(db, Vehicle.status == VehicleStatus.RETIRED.value),
        "on_site": len(on_site),
        "off_site": len(statuses) - len(on_site),
        "on_site_by_area": [{"area": area, "count": count}
                            for area, count in sorted(by_area.items(), key=lambda kv: (-kv[1], kv[0]))],
    }


def get_movement_stats(db: Session, target_date: Optional[date] = None) -> dict:
    """Daily movement totals, entries/exits, per-area counts and a 7-day total."""
    day = target_date or utcnow().date()
    start = datetime.combine(day, datetime.min.time())
    end = start + timedelta(days=1)
    in_day = and_(VehicleMovement.recorded_at >= start, VehicleMovement.recorded_at < end)

    def _count(*criteria):
        return db.query(func.count(VehicleMovement.id)).filter(*criteria).scalar() or 0

    by_area = (
        db.query(VehicleMovement.area, func.count(VehicleMovement.id).label("count"))
        .filter(in_day)
        .group_by(VehicleMovement.area)
        .order_by(func.count(VehicleMovement.id).desc(), VehicleMovement.area)
        .all()
    )
    week_start = utcnow() - timedelta(days=7)

    return {
        "date": day.isoformat(),
        "total_movements": _count(in_day),
        "entries": _count(in_day, VehicleMovement.movement_type == MovementType.ENTRY.value),
        "exits": _count(in_day, VehicleMovement.movement_type == MovementType.EXIT.value),
        "movements_by_area": [{"area": area, "count": count} for area, count in by_area],
        "last_7_days": _count(VehicleMovement.recorded_at >= week_start),
    }
