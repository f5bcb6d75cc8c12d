# Site Access: Database Models
# Import all models here for SQLAlchemy discovery

from siteaccess.models.employee import Employee                          # noqa
from siteaccess.models.visit import Visit                                # noqa
from siteaccess.models.audit_entry import AuditEntry                     # noqa
from siteaccess.models.vehicle import Vehicle                            # noqa
from siteaccess.models.vehicle_movement import VehicleMovement           # noqa
from siteaccess.models.external_movement import ExternalVehicleMovement  # noqa
