"""Per-driver and per-vehicle KPIs."""

from __future__ import annotations

from collections import defaultdict
from uuid import UUID

from sqlalchemy.orm import Session

from analytics_service.core.filters import AnalyticsFilter, as_utc
from analytics_service.core.scope import Scope
from analytics_service.db.availability import DataAvailability
from analytics_service.repositories.trip_repository import TripRepository
from analytics_service.schemas.analytics import DriverKPI, VehicleKPI
from analytics_service.services.metrics import duration_minutes, idle_hours, mean, safe_ratio

DRIVER_RELATIONS = ("trips", "tickets", "drivers", "organizations")
VEHICLE_RELATIONS = ("trips", "tickets", "vehicles", "organizations")


class FleetKpiAggregator:
    def __init__(self, db: Session, availability: DataAvailability) -> None:
        self.trips = TripRepository(db)
        self.availability = availability

    def _durations_by_driver(self, scope: Scope, filter_: AnalyticsFilter) -> dict[UUID, list[float]]:
        durations: dict[UUID, list[float]] = defaultdict(list)
        for row in self.trips.trip_timings(scope, filter_):
            if row.driver_id is not None:
                durations[row.driver_id].append(duration_minutes(row.entry_at, row.exit_at))
        return durations

    def drivers(self, scope: Scope, filter_: AnalyticsFilter, *, limit: int | None = None) -> list[DriverKPI]:
        if not self.availability.all_exist(*DRIVER_RELATIONS):
            return []
        rows = self.trips.driver_activity(scope, filter_, limit)
        durations = self._durations_by_driver(scope, filter_) if rows else {}
        return [
            DriverKPI(
                driver_id=row.entity_id,
                driver_name=row.name,
                contractor_id=row.contractor_id,
                contractor_name=row.contractor_name,
                trip_count=int(row.trips),
                avg_volume=safe_ratio(row.volume, row.measured),
                violation_rate=safe_ratio(row.violations, row.trips),
                avg_duration_minutes=mean(durations.get(row.entity_id, [])),
                idle_hours=idle_hours(filter_.period, row.last_activity),
                last_trip_at=as_utc(row.last_activity),
            )
            for row in rows
        ]

    def vehicles(self, scope: Scope, filter_: AnalyticsFilter, *, limit: int | None = None) -> list[VehicleKPI]:
        if not self.availability.all_exist(*VEHICLE_RELATIONS):
            return []
        return [
            VehicleKPI(
                vehicle_id=row.entity_id,
                plate_number=row.name,
                contractor_id=row.contractor_id,
                contractor_name=row.contractor_name,
                trip_count=int(row.trips),
                # Body volume is fixed per vehicle.
                avg_fill_rate=safe_ratio(safe_ratio(row.volume, row.measured), row.body_volume),
                violation_rate=safe_ratio(row.violations, row.trips),
                idle_hours=idle_hours(filter_.period, row.last_activity),
                last_trip_at=as_utc(row.last_activity),
            )
            for row in self.trips.vehicle_activity(scope, filter_, limit)
        ]
