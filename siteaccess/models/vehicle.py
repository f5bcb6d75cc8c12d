# siteaccess/models/vehicle.py
"""
Registered fleet vehicles.
current_mileage is a snapshot moved forward by the movement ledger; the
ledger rows are the history.
"""

from sqlalchemy import Boolean, Column, Integer, String, DateTime, Numeric, Text
from siteaccess.database import Base
from siteaccess.models.enums import VehicleStatus


class Vehicle(Base):
    __tablename__ = "vehicles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    license_plate = Column(String(20), unique=True, nullable=False, index=True)
    make = Column(String(50))
    model = Column(String(50))
    vehicle_type = Column(String(20), nullable=False, default="car")  # car | truck | van | motorcycle | bus | other
    status = Column(String(20), nullable=False, default=VehicleStatus.ACTIVE.value, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    department = Column(String(100))
    assigned_driver = Column(String(100))
    current_mileage = Column(Numeric(10, 2))
    registered_at = Column(DateTime)
    notes = Column(Text)

    def __repr__(self):
        return f"<Vehicle {self.license_plate} status={self.status}>"
