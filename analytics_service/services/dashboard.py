"""Operational dashboard assembled from independent sub-aggregations."""

from __future__ import annotations

from datetime import datetime
from typing import assert_never
from uuid import UUID

from sqlalchemy.orm import Session

from analytics_service.core.filters import AnalyticsFilter, DateRange
from analytics_service.core.scope import CityScope, ContractorScope, RegionalScope, Scope, TechnicalScope
from analytics_service.db.availability import DataAvailability
from analytics_service.repositories.organization_repository import OrganizationRepository
from analytics_service.repositories.scoping import scope_restricts_cameras
from analytics_service.repositories.telemetry_repository import TelemetryRepository
from analytics_service.repositories.trip_repository import TripRepository
from analytics_service.schemas.analytics import (
    CameraLoadMetric,
    CleaningAreaActivity,
    DashboardContractors,
    DashboardMetrics,
    DashboardStats,
    DateRangeOut,
    EntityMetric,
    MapAreaState,
    MapCameraState,
    MapPolygonState,
    MapSummary,
)
from analytics_service.services.contracts import ContractAggregator
from analytics_service.services.metrics import entity_metrics, finite_or_zero, heat_intensities
from analytics_service.services.technical import TechnicalAggregator

TRIP_RELATIONS = ("trips", "tickets")


class DashboardAggregator:
    def __init__(self, db: Session, availability: DataAvailability) -> None:
        self.trips = TripRepository(db)
        self.organizations = OrganizationRepository(db)
        self.telemetry = TelemetryRepository(db)
        self.technical = TechnicalAggregator(db, availability)
        self.contracts = ContractAggregator(db, availability)
        self.availability = availability

    def build(self, scope: Scope, period: DateRange, *, now: datetime | None = None) -> DashboardMetrics:
        generated_for = DateRangeOut(start=period.start, end=period.end)
        cameras = self.cameras(scope, period)
        if isinstance(scope, TechnicalScope):
            return DashboardMetrics(cameras=cameras, generated_for=generated_for)

        areas = self.areas(scope, period)
        map_summary = MapSummary(
            areas=[
                MapAreaState(
                    id=area.cleaning_area_id,
                    has_trips=area.trips > 0,
                    has_active_trips=area.active_trips > 0,
                    has_violations=area.has_violations,
                    intensity=area.trip_heat,
                )
                for area in areas
            ],
            polygons=self.map_polygons(scope, period),
            cameras=self.map_cameras(scope, period),
        )
        return DashboardMetrics(
            stats=self.stats(scope, period),
            areas=areas,
            contractors=self.contractors(scope, period),
            cameras=cameras,
            contracts=self.contracts.progress(scope, now=now),
            map=map_summary,
            generated_for=generated_for,
        )

    def stats(self, scope: Scope, period: DateRange) -> DashboardStats:
        if not self.availability.all_exist(*TRIP_RELATIONS):
            return DashboardStats()
        totals = self.trips.activity_totals(scope, period)
        return DashboardStats(
            active_trips=int(totals.active_trips),
            completed_trips=int(totals.completed_trips),
            tickets_in_progress=self.trips.count_tickets_in_progress(scope),
            violations=int(totals.violations),
        )

    def areas(self, scope: Scope, period: DateRange) -> list[CleaningAreaActivity]:
        if not self.availability.all_exist(*TRIP_RELATIONS):
            return []
        rows = self.trips.area_activity(scope, period)
        heat = heat_intensities([int(row.trips) for row in rows])
        return [
            CleaningAreaActivity(
                cleaning_area_id=row.area_id,
                trips=int(row.trips),
                active_trips=int(row.active_trips),
                has_violations=int(row.violations) > 0,
                trip_heat=intensity,
            )
            for row, intensity in zip(rows, heat)
        ]

    def contractors(self, scope: Scope, period: DateRange) -> DashboardContractors:
        if not self.availability.all_exist(*TRIP_RELATIONS, "organizations"):
            return DashboardContractors()
        active = entity_metrics(self.trips.contractor_leaders(scope, AnalyticsFilter(period=period), None))
        active_ids = {metric.id for metric in active if metric.id is not None}
        return DashboardContractors(active=active, idle=self._idle_contractors(scope, active_ids))

    def _idle_contractors(self, scope: Scope, active_ids: set[UUID]) -> list[EntityMetric]:
        if isinstance(scope, CityScope):
            idle = self.organizations.list_active_contractors(exclude_ids=active_ids)
        elif isinstance(scope, RegionalScope):
            idle = self.organizations.list_active_contractors(parent_org_id=scope.org_id, exclude_ids=active_ids)
        elif isinstance(scope, (ContractorScope, TechnicalScope)):
            idle = []
        else:
            assert_never(scope)
        return [EntityMetric(id=org.id, name=org.name) for org in idle]

    def cameras(self, scope: Scope, period: DateRange) -> list[CameraLoadMetric]:
        if not scope_restricts_cameras(scope):
            return self.technical.camera_load(period)
        if not self.availability.all_exist(*TRIP_RELATIONS):
            return []
        return self.technical.camera_load(period, self.telemetry.scoped_camera_ids(scope, period))

    def map_polygons(self, scope: Scope, period: DateRange) -> list[MapPolygonState]:
        if not self.availability.all_exist(*TRIP_RELATIONS, "polygons"):
            return []
        return [
            MapPolygonState(
                id=row.entity_id,
                name=row.name,
                trip_count=int(row.trips),
                volume_m3=finite_or_zero(row.volume),
            )
            for row in self.trips.polygon_activity(scope, period)
        ]

    def map_cameras(self, scope: Scope, period: DateRange) -> list[MapCameraState]:
        if not self.availability.all_exist("cameras", "lpr_events", *TRIP_RELATIONS):
            return []
        camera_ids = self.telemetry.scoped_camera_ids(scope, period) if scope_restricts_cameras(scope) else None
        return [
            MapCameraState(
                id=row.camera_id,
                name=row.camera_name,
                events=int(row.events),
                error_events=int(row.error_events),
            )
            for row in self.telemetry.camera_map_states(period, camera_ids)
        ]
