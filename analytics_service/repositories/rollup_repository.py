"""Queries over the precomputed daily rollups."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from sqlalchemy import ColumnElement, Row, Text, func, select
from sqlalchemy.orm import Session

from analytics_service.core.filters import AnalyticsFilter
from analytics_service.core.scope import Scope
from analytics_service.models.entities import CleaningArea
from analytics_service.models.rollups import mv_cleaning_area_daily, mv_trip_daily, mv_violation_daily
from analytics_service.repositories.scoping import apply_scope, rollup_filter_conditions, rollup_scope


def geojson_column(dialect_name: str) -> ColumnElement[Any]:
    """Area boundary as GeoJSON text.

    PostGIS stores a geometry, converted server-side; other backends hold the
    GeoJSON text as is.
    """

    if dialect_name == "postgresql":
        return func.ST_AsGeoJSON(CleaningArea.geometry, type_=Text)
    return CleaningArea.geometry


class RollupRepository:
    """Scoped reads of ``mv_*`` daily aggregates; callers check availability first."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def daily_trip_totals(self, scope: Scope, filter_: AnalyticsFilter) -> Sequence[Row[Any]]:
        table = mv_trip_daily
        stmt = (
            select(
                table.c.bucket.label("bucket"),
                func.coalesce(func.sum(table.c.total_trips), 0).label("trips"),
                func.coalesce(func.sum(table.c.total_volume_m3), 0).label("volume"),
            )
            .where(*rollup_filter_conditions(table, filter_))
            .group_by(table.c.bucket)
            .order_by(table.c.bucket.asc())
        )
        return self.db.execute(apply_scope(stmt, scope, rollup_scope(table))).all()

    def daily_violation_totals(self, scope: Scope, filter_: AnalyticsFilter) -> Sequence[Row[Any]]:
        table = mv_violation_daily
        stmt = (
            select(
                table.c.bucket.label("bucket"),
                func.coalesce(func.sum(table.c.violation_count), 0).label("violations"),
            )
            .where(*rollup_filter_conditions(table, filter_))
            .group_by(table.c.bucket)
            .order_by(table.c.bucket.asc())
        )
        return self.db.execute(apply_scope(stmt, scope, rollup_scope(table))).all()

    def violation_type_totals(self, scope: Scope, filter_: AnalyticsFilter) -> Sequence[Row[Any]]:
        table = mv_violation_daily
        total = func.coalesce(func.sum(table.c.violation_count), 0)
        stmt = (
            select(table.c.violation_type.label("violation_type"), total.label("violations"))
            .where(*rollup_filter_conditions(table, filter_))
            .group_by(table.c.violation_type)
            .order_by(total.desc(), table.c.violation_type.asc())
        )
        return self.db.execute(apply_scope(stmt, scope, rollup_scope(table))).all()

    def area_totals(self, scope: Scope, filter_: AnalyticsFilter, *, with_details: bool) -> Sequence[Row[Any]]:
        """Per-area sums; ``with_details`` joins ``cleaning_areas`` for name and geometry."""

        table = mv_cleaning_area_daily
        columns: list[Any] = [
            table.c.cleaning_area_id.label("area_id"),
            func.coalesce(func.sum(table.c.total_trips), 0).label("trips"),
            func.coalesce(func.sum(table.c.total_volume_m3), 0).label("volume"),
            func.coalesce(func.sum(table.c.violation_count), 0).label("violations"),
            func.coalesce(func.sum(table.c.active_drivers), 0).label("active_drivers"),
            func.coalesce(func.sum(table.c.active_vehicles), 0).label("active_vehicles"),
            func.min(table.c.first_entry_at).label("first_entry_at"),
            func.max(table.c.last_exit_at).label("last_exit_at"),
        ]
        group_by: list[Any] = [table.c.cleaning_area_id]
        if with_details:
            detail_columns = [CleaningArea.name, CleaningArea.description, CleaningArea.geometry]
            columns.extend(
                [
                    CleaningArea.name.label("area_name"),
                    CleaningArea.description.label("area_description"),
                    geojson_column(self.db.get_bind().dialect.name).label("area_geometry"),
                ]
            )
            group_by.extend(detail_columns)

        stmt = select(*columns).select_from(table)
        if with_details:
            stmt = stmt.outerjoin(CleaningArea, CleaningArea.id == table.c.cleaning_area_id)
        stmt = (
            stmt.where(table.c.cleaning_area_id.is_not(None), *rollup_filter_conditions(table, filter_))
            .group_by(*group_by)
            .order_by(table.c.cleaning_area_id.asc())
        )
        return self.db.execute(apply_scope(stmt, scope, rollup_scope(table))).all()
