# siteaccess/database.py
"""
Database connection, session management, and table creation.
Uses SQLAlchemy with PostgreSQL (SQLite is accepted for local runs and tests).
All models are auto-imported here so create_tables() creates every table in one call.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from siteaccess.config import settings

_engine_options = {"pool_pre_ping": True, "echo": False}
if not settings.DATABASE_URL.startswith("sqlite"):
    _engine_options.update(pool_size=10, max_overflow=20)

engine = create_engine(settings.DATABASE_URL, **_engine_options)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """FastAPI dependency: yields a DB session and closes it after request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables(bind=None):
    """
    Creates all DB tables. Safe to call multiple times.
    Import all models here so SQLAlchemy knows about them.
    """
    from siteaccess.models.employee import Employee                      # noqa
    from siteaccess.models.visit import Visit                            # noqa
    from siteaccess.models.audit_entry import AuditEntry                 # noqa
    from siteaccess.models.vehicle import Vehicle                        # noqa
    from siteaccess.models.vehicle_movement import VehicleMovement       # noqa
    from siteaccess.models.external_movement import ExternalVehicleMovement  # noqa

    Base.metadata.create_all(bind=bind or engine)
