"""Camera and sensor telemetry analytics.

Technical figures are always city-wide; only the dashboard narrows the camera
list to an organization's scope.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import Select
from sqlalchemy.orm import Session

from analytics_service.core.filters import DateRange
from analytics_service.db.availability import DataAvailability
from analytics_service.repositories.telemetry_repository import TelemetryRepository
from analytics_service.schemas.analytics import CameraLoadMetric, PolygonLoadMetric, TechnicalAnalytics
from analytics_service.services.metrics import finite_or_zero, safe_ratio

CAMERA_LOAD_RELATIONS = ("cameras", "polygons", "trips", "lpr_events", "volume_events")


class TechnicalAggregator:
    def __init__(self, db: Session, availability: DataAvailability) -> None:
        self.telemetry = TelemetryRepository(db)
        self.availability = availability

    def camera_load(self, period: DateRange, camera_ids: Select[Any] | None = None) -> list[CameraLoadMetric]:
        if not self.availability.all_exist(*CAMERA_LOAD_RELATIONS):
            return []
        return [
            CameraLoadMetric(
                camera_id=row.camera_id,
                camera_name=row.camera_name,
                polygon_id=row.polygon_id,
                polygon_name=row.polygon_name,
                lpr_events=int(row.lpr_events),
                volume_events=int(row.volume_events),
                error_events=int(row.error_events),
                error_rate=safe_ratio(row.error_events, row.lpr_events + row.volume_events),
            )
            for row in self.telemetry.camera_load(period, camera_ids)
        ]

    def build(self, period: DateRange) -> TechnicalAnalytics:
        if not self.availability.exists("cameras"):
            return TechnicalAnalytics()
        cameras = self.camera_load(period)

        polygons: list[PolygonLoadMetric] = []
        if self.availability.all_exist("polygons", "trips"):
            polygons = [
                PolygonLoadMetric(
                    polygon_id=row.polygon_id,
                    polygon_name=row.polygon_name,
                    trip_count=int(row.trips),
                    volume_m3=finite_or_zero(row.volume),
                    error_events=int(row.errors),
                )
                for row in self.telemetry.polygon_load(period)
            ]

        last_event_at = None
        if self.availability.all_exist("lpr_events", "volume_events"):
            last_event_at = self.telemetry.last_event_at(period)

        total_events = sum(camera.lpr_events + camera.volume_events for camera in cameras)
        error_events = sum(camera.error_events for camera in cameras)
        return TechnicalAnalytics(
            cameras=cameras,
            polygons=polygons,
            error_rate=safe_ratio(error_events, total_events),
            last_event_at=last_event_at,
            total_events=total_events,
            event_frequency_per_hour=safe_ratio(total_events, period.hours),
        )
