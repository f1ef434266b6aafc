"""ORM model package."""

from analytics_service.models.entities import (
    Camera,
    CleaningArea,
    Contract,
    Driver,
    LprEvent,
    Organization,
    Polygon,
    Ticket,
    Trip,
    TripViolation,
    Vehicle,
    VolumeEvent,
)
from analytics_service.models.rollups import (
    contract_usage,
    mv_cleaning_area_daily,
    mv_trip_daily,
    mv_violation_daily,
)

__all__ = [
    "Camera",
    "CleaningArea",
    "Contract",
    "Driver",
    "LprEvent",
    "Organization",
    "Polygon",
    "Ticket",
    "Trip",
    "TripViolation",
    "Vehicle",
    "VolumeEvent",
    "contract_usage",
    "mv_cleaning_area_daily",
    "mv_trip_daily",
    "mv_violation_daily",
]
