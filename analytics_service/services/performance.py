"""Contractor, driver and vehicle performance rankings."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy.orm import Session

from analytics_service.core.filters import AnalyticsFilter
from analytics_service.core.scope import Scope
from analytics_service.db.availability import DataAvailability
from analytics_service.repositories.trip_repository import TripRepository
from analytics_service.schemas.analytics import (
    ContractorPerformance,
    DriverPerformance,
    PerformanceAnalytics,
    VehiclePerformance,
)
from analytics_service.services.fleet import FleetKpiAggregator
from analytics_service.services.metrics import safe_ratio

PERFORMANCE_LIMIT = 10


class PerformanceAggregator:
    def __init__(self, db: Session, availability: DataAvailability) -> None:
        self.trips = TripRepository(db)
        self.fleet = FleetKpiAggregator(db, availability)
        self.availability = availability

    def build(self, scope: Scope, filter_: AnalyticsFilter) -> PerformanceAnalytics:
        drivers = [
            DriverPerformance(
                driver_id=kpi.driver_id,
                driver_name=kpi.driver_name,
                trip_count=kpi.trip_count,
                avg_volume=kpi.avg_volume,
                violation_rate=kpi.violation_rate,
                avg_duration_minutes=kpi.avg_duration_minutes,
            )
            for kpi in self.fleet.drivers(scope, filter_, limit=PERFORMANCE_LIMIT)
        ]
        vehicles = [
            VehiclePerformance(
                vehicle_id=kpi.vehicle_id,
                plate_number=kpi.plate_number,
                trip_count=kpi.trip_count,
                avg_fill_rate=kpi.avg_fill_rate,
                violation_rate=kpi.violation_rate,
                idle_hours=kpi.idle_hours,
            )
            for kpi in self.fleet.vehicles(scope, filter_, limit=PERFORMANCE_LIMIT)
        ]
        return PerformanceAnalytics(contractors=self.contractors(scope, filter_), drivers=drivers, vehicles=vehicles)

    def contractors(self, scope: Scope, filter_: AnalyticsFilter) -> list[ContractorPerformance]:
        """Top contractors by trip count.

        Utilization is the share of the contractor's registered vehicles that
        made at least one trip in range.
        """

        if not self.availability.all_exist("trips", "tickets", "organizations"):
            return []
        rows = self.trips.contractor_performance(scope, filter_, PERFORMANCE_LIMIT)
        fleet_sizes: dict[UUID, int] = {}
        if rows and self.availability.exists("vehicles"):
            fleet_sizes = self.trips.registered_vehicle_counts([row.entity_id for row in rows])
        return [
            ContractorPerformance(
                contractor_id=row.entity_id,
                contractor_name=row.name,
                trip_count=int(row.trips),
                avg_volume=safe_ratio(row.volume, row.measured),
                violation_rate=safe_ratio(row.violations, row.trips),
                active_drivers=int(row.active_drivers),
                utilization=safe_ratio(row.active_vehicles, fleet_sizes.get(row.entity_id, 0)),
            )
            for row in rows
        ]
