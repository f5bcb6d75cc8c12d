# tests/conftest.py
"""Shared fixtures: an in-memory database per test plus small row factories."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("NOTIFY_WEBHOOK_URL", "")

import asyncio
import pytest
from datetime import date
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import siteaccess.models  # noqa: F401  (registers every table on Base)
from siteaccess.database import Base
from siteaccess.models.employee import Employee
from siteaccess.models.vehicle import Vehicle
from siteaccess.services import notification_service


@pytest.fixture
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def notifier():
    fake = MagicMock(spec=notification_service.Notifier)
    fake.send = AsyncMock(return_value=True)
    return fake


@pytest.fixture
def make_employee(db):
    counter = {"n": 0}

    def _make(first_name="Amina", last_name="Hassan", email=None, department="Engineering",
              is_active=True):
        counter["n"] += 1
        employee = Employee(
            employee_code=f"EMP{counter['n']:04d}",
            first_name=first_name,
            last_name=last_name,
            email=email or f"{first_name}.{last_name}{counter['n']}@example.com".lower(),
            department=department,
            is_active=is_active,
        )
        db.add(employee)
        db.commit()
        db.refresh(employee)
        return employee

    return _make


@pytest.fixture
def make_vehicle(db):
    counter = {"n": 0}

    def _make(plate=None, status="active", is_active=True, mileage=None):
        counter["n"] += 1
        vehicle = Vehicle(
            license_plate=plate or f"KDA{counter['n']:03d}X",
            make="Toyota",
            model="Hilux",
            vehicle_type="truck",
            status=status,
            is_active=is_active,
            current_mileage=Decimal(str(mileage)) if mileage is not None else None,
        )
        db.add(vehicle)
        db.commit()
        db.refresh(vehicle)
        return vehicle

    return _make


def visit_data(host_ref, **overrides):
    data = {
        "first_name": "John",
        "last_name": "Mwangi",
        "email": "john.mwangi@example.com",
        "phone": "+254700000001",
        "id_number": "ID-12345678",
        "company": "Acme Supplies",
        "vehicle_number": None,
        "host_employee": host_ref,
        "host_department": "Engineering",
        "visit_purpose": "meeting",
        "expected_date": date(2026, 10, 20),
        "expected_time": "10:30",
        "notes": None,
    }
    data.update(overrides)
    return data


async def drain_notifications():
    """Wait for every fire-and-forget notification scheduled so far."""
    pending = list(notification_service._background_tasks)
    if pending:
        await asyncio.gather(*pending, return_exceptions=True)
