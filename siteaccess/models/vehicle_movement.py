# siteaccess/models/vehicle_movement.py
"""
Fleet movement ledger: one row per vehicle entry or exit.
Append-only in normal flow. The autoincrement id is the insertion sequence
and breaks ties between rows sharing a recorded_at.
"""

from sqlalchemy import Column, Integer, String, DateTime, Numeric, Text, ForeignKey, Index
from sqlalchemy.orm import relationship
from siteaccess.database import Base
from siteaccess.models.enums import MovementStatus
from siteaccess.utils.clock import utcnow


class VehicleMovement(Base):
    __tablename__ = "vehicle_movements"
    __table_args__ = (
        Index("ix_vehicle_movements_vehicle_recorded", "vehicle_id", "recorded_at"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id"), nullable=False)
    area = Column(String(100), nullable=False, index=True)
    movement_type = Column(String(20), nullable=False)   # entry | exit
    status = Column(String(20), nullable=False, default=MovementStatus.COMPLETED.value)
    mileage = Column(Numeric(10, 2), nullable=False)
    driver_name = Column(String(100), nullable=False)
    driver_phone = Column(String(20))
    driver_license = Column(String(100))
    purpose = Column(Text)
    destination = Column(String(100))
    notes = Column(Text)
    recorded_by_id = Column(String(36), nullable=False, index=True)
    recorded_at = Column(DateTime, nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    vehicle = relationship("Vehicle", lazy="joined")

    def __repr__(self):
        return f"<VehicleMovement {self.id} vehicle={self.vehicle_id} {self.movement_type}>"
