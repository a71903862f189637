"""Import all models to register them with SQLAlchemy metadata."""
from frostline.models.base import Base
from frostline.models.vehicle import Vehicle
from frostline.models.sensor_reading import SensorReading
from frostline.models.alert import Alert
from frostline.models.trip import Trip
from frostline.models.trip_reading import TripReading
from frostline.models.trip_alert import TripAlert
from frostline.models.risk_snapshot import VehicleRiskSnapshot, TripRiskSnapshot

__all__ = [
    "Base",
    "Vehicle",
    "SensorReading",
    "Alert",
    "Trip",
    "TripReading",
    "TripAlert",
    "VehicleRiskSnapshot",
    "TripRiskSnapshot",
]
