# siteaccess/models/external_movement.py
"""
External (non-fleet) vehicle movements.
Keyed by the normalized plate string instead of a vehicle reference;
no mileage, no approval phase.
"""

from sqlalchemy import Column, Integer, String, DateTime, Text, Index
from siteaccess.database import Base
from siteaccess.models.enums import MovementStatus
from siteaccess.utils.clock import utcnow


class ExternalVehicleMovement(Base):
    __tablename__ = "external_vehicle_movements"
    __table_args__ = (
        Index("ix_external_movements_plate_recorded", "vehicle_plate", "recorded_at"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    vehicle_plate = Column(String(50), nullable=False)
    area = Column(String(100), nullable=False, index=True)
    movement_type = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False, default=MovementStatus.COMPLETED.value)
    driver_name = Column(String(100), nullable=False)
    destination = Column(String(100))   # never captured for external vehicles
    notes = Column(Text)
    recorded_by_id = Column(String(36), nullable=False, index=True)
    recorded_at = Column(DateTime, nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    def __repr__(self):
        return f"<ExternalVehicleMovement {self.id} plate={self.vehicle_plate} {self.movement_type}>"
