"""Violation report: series, breakdown by type and top offenders."""

from __future__ import annotations

from sqlalchemy.orm import Session

from analytics_service.core.filters import AnalyticsFilter
from analytics_service.core.scope import Scope
from analytics_service.db.availability import DataAvailability
from analytics_service.repositories.rollup_repository import RollupRepository
from analytics_service.repositories.trip_repository import LeaderDimension, TripRepository
from analytics_service.schemas.analytics import CameraLoadMetric, EntityMetric, ViolationAnalytics, ViolationBreakdown
from analytics_service.services.metrics import entity_metrics, rebucket, shares

TOP_LIMIT = 5

# Relation naming each leader dimension, on top of trips and tickets.
LEADER_RELATIONS = {
    LeaderDimension.BY_CONTRACTOR: "organizations",
    LeaderDimension.BY_DRIVER: "drivers",
    LeaderDimension.BY_CAMERA: "cameras",
}


class ViolationAggregator:
    def __init__(self, db: Session, availability: DataAvailability) -> None:
        self.trips = TripRepository(db)
        self.rollups = RollupRepository(db)
        self.availability = availability

    def build(self, scope: Scope, filter_: AnalyticsFilter) -> ViolationAnalytics:
        series, breakdown = [], []
        if self.availability.exists("mv_violation_daily"):
            series = rebucket(
                self.rollups.daily_violation_totals(scope, filter_),
                filter_.group_by,
                count_field="violations",
            )
            breakdown = self.breakdown(scope, filter_)

        cameras = [
            CameraLoadMetric(camera_id=leader.id, camera_name=leader.name, error_events=leader.count)
            for leader in self.leaders(scope, filter_, LeaderDimension.BY_CAMERA)
        ]
        return ViolationAnalytics(
            series=series,
            breakdown=breakdown,
            top_contractors=self.leaders(scope, filter_, LeaderDimension.BY_CONTRACTOR),
            top_drivers=self.leaders(scope, filter_, LeaderDimension.BY_DRIVER),
            top_cameras=cameras,
        )

    def breakdown(self, scope: Scope, filter_: AnalyticsFilter) -> list[ViolationBreakdown]:
        rows = self.rollups.violation_type_totals(scope, filter_)
        counts = [int(row.violations) for row in rows]
        return [
            ViolationBreakdown(type=row.violation_type, count=count, share=share)
            for row, count, share in zip(rows, counts, shares(counts))
        ]

    def leaders(self, scope: Scope, filter_: AnalyticsFilter, dimension: LeaderDimension) -> list[EntityMetric]:
        if not self.availability.all_exist("trips", "tickets", LEADER_RELATIONS[dimension]):
            return []
        return entity_metrics(self.trips.violation_leaders(scope, filter_, dimension, TOP_LIMIT))
