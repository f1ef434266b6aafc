"""Cleaning-area analytics from the daily area rollup."""

from __future__ import annotations

from sqlalchemy.orm import Session

from analytics_service.core.filters import AnalyticsFilter, as_utc
from analytics_service.core.scope import Scope
from analytics_service.db.availability import DataAvailability
from analytics_service.repositories.rollup_repository import RollupRepository
from analytics_service.schemas.analytics import CleaningAreaAnalytics
from analytics_service.services.metrics import SECONDS_PER_HOUR, finite_or_zero, idle_hours

DEFAULT_AREA_NAME = "Cleaning area"


class CleaningAreaAggregator:
    def __init__(self, db: Session, availability: DataAvailability) -> None:
        self.rollups = RollupRepository(db)
        self.availability = availability

    def build(self, scope: Scope, filter_: AnalyticsFilter) -> list[CleaningAreaAnalytics]:
        if not self.availability.exists("mv_cleaning_area_daily"):
            return []
        with_details = self.availability.exists("cleaning_areas")
        result: list[CleaningAreaAnalytics] = []
        for row in self.rollups.area_totals(scope, filter_, with_details=with_details):
            trips = int(row.trips)
            first_entry = as_utc(row.first_entry_at)
            last_exit = as_utc(row.last_exit_at)
            avg_interval = 0.0
            if trips > 1 and first_entry is not None and last_exit is not None:
                span_hours = (last_exit - first_entry).total_seconds() / SECONDS_PER_HOUR
                avg_interval = max(0.0, finite_or_zero(span_hours / (trips - 1)))
            result.append(
                CleaningAreaAnalytics(
                    cleaning_area_id=row.area_id,
                    name=getattr(row, "area_name", None) or DEFAULT_AREA_NAME,
                    description=getattr(row, "area_description", None),
                    trip_count=trips,
                    total_volume_m3=finite_or_zero(row.volume),
                    violation_count=int(row.violations),
                    active_drivers=int(row.active_drivers),
                    active_vehicles=int(row.active_vehicles),
                    avg_interval_hours=avg_interval,
                    idle_hours=idle_hours(filter_.period, last_exit),
                    last_trip_at=last_exit,
                    geometry_geojson=getattr(row, "area_geometry", None),
                )
            )
        return result
