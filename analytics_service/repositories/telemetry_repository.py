"""Camera, polygon and sensor event queries."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Any

from sqlalchemy import Row, Select, case, func, select
from sqlalchemy.orm import Session

from analytics_service.core.filters import DateRange, as_utc
from analytics_service.core.scope import Scope
from analytics_service.models.entities import (
    CAMERA_ERROR_STATUSES,
    TRIP_STATUS_OK,
    Camera,
    LprEvent,
    Polygon,
    Ticket,
    Trip,
    VolumeEvent,
)
from analytics_service.repositories.scoping import TICKET_SCOPE, apply_scope, in_period


def _events_per_camera(model: type[LprEvent] | type[VolumeEvent], period: DateRange):
    return (
        select(model.camera_id.label("camera_id"), func.count(model.id).label("events"))
        .where(*in_period(model.detected_at, period))
        .group_by(model.camera_id)
        .subquery()
    )


def _trips_per_camera(period: DateRange, *conditions: Any):
    return (
        select(Trip.camera_id.label("camera_id"), func.count(Trip.id).label("events"))
        .where(Trip.camera_id.is_not(None), *conditions, *in_period(Trip.entry_at, period))
        .group_by(Trip.camera_id)
        .subquery()
    )


class TelemetryRepository:
    """Event counts per camera and polygon. Trip-derived error counts are never scope-filtered."""

    def __init__(self, db: Session) -> None:
        self.db = db

    @staticmethod
    def scoped_camera_ids(scope: Scope, period: DateRange) -> Select[Any]:
        """Cameras seen on in-scope trips during ``period``."""

        stmt = (
            select(Trip.camera_id)
            .select_from(Trip)
            .outerjoin(Ticket, Ticket.id == Trip.ticket_id)
            .where(Trip.camera_id.is_not(None), *in_period(Trip.entry_at, period))
            .distinct()
        )
        return apply_scope(stmt, scope, TICKET_SCOPE)

    def camera_load(self, period: DateRange, camera_ids: Select[Any] | None = None) -> Sequence[Row[Any]]:
        lpr = _events_per_camera(LprEvent, period)
        volume = _events_per_camera(VolumeEvent, period)
        errors = _trips_per_camera(period, Trip.status.in_(CAMERA_ERROR_STATUSES))
        stmt = (
            select(
                Camera.id.label("camera_id"),
                func.coalesce(Camera.name, "Camera").label("camera_name"),
                Camera.polygon_id.label("polygon_id"),
                Polygon.name.label("polygon_name"),
                func.coalesce(lpr.c.events, 0).label("lpr_events"),
                func.coalesce(volume.c.events, 0).label("volume_events"),
                func.coalesce(errors.c.events, 0).label("error_events"),
            )
            .select_from(Camera)
            .outerjoin(Polygon, Polygon.id == Camera.polygon_id)
            .outerjoin(lpr, lpr.c.camera_id == Camera.id)
            .outerjoin(volume, volume.c.camera_id == Camera.id)
            .outerjoin(errors, errors.c.camera_id == Camera.id)
            .order_by(Camera.id.asc())
        )
        if camera_ids is not None:
            stmt = stmt.where(Camera.id.in_(camera_ids))
        return self.db.execute(stmt).all()

    def camera_map_states(self, period: DateRange, camera_ids: Select[Any] | None = None) -> Sequence[Row[Any]]:
        lpr = _events_per_camera(LprEvent, period)
        errors = _trips_per_camera(period, Trip.status != TRIP_STATUS_OK)
        stmt = (
            select(
                Camera.id.label("camera_id"),
                func.coalesce(Camera.name, "Camera").label("camera_name"),
                func.coalesce(lpr.c.events, 0).label("events"),
                func.coalesce(errors.c.events, 0).label("error_events"),
            )
            .select_from(Camera)
            .outerjoin(lpr, lpr.c.camera_id == Camera.id)
            .outerjoin(errors, errors.c.camera_id == Camera.id)
            .order_by(Camera.id.asc())
        )
        if camera_ids is not None:
            stmt = stmt.where(Camera.id.in_(camera_ids))
        return self.db.execute(stmt).all()

    def polygon_load(self, period: DateRange) -> Sequence[Row[Any]]:
        trips = (
            select(
                Trip.polygon_id.label("polygon_id"),
                func.count(Trip.id).label("trips"),
                func.coalesce(func.sum(Trip.detected_volume_entry), 0).label("volume"),
                func.coalesce(func.sum(case((Trip.status != TRIP_STATUS_OK, 1), else_=0)), 0).label("errors"),
            )
            .where(Trip.polygon_id.is_not(None), *in_period(Trip.entry_at, period))
            .group_by(Trip.polygon_id)
            .subquery()
        )
        stmt = (
            select(
                Polygon.id.label("polygon_id"),
                Polygon.name.label("polygon_name"),
                func.coalesce(trips.c.trips, 0).label("trips"),
                func.coalesce(trips.c.volume, 0).label("volume"),
                func.coalesce(trips.c.errors, 0).label("errors"),
            )
            .select_from(Polygon)
            .outerjoin(trips, trips.c.polygon_id == Polygon.id)
            .order_by(Polygon.id.asc())
        )
        return self.db.execute(stmt).all()

    def last_event_at(self, period: DateRange) -> datetime | None:
        latest = [
            self.db.scalar(select(func.max(model.detected_at)).where(*in_period(model.detected_at, period)))
            for model in (LprEvent, VolumeEvent)
        ]
        present = [as_utc(value) for value in latest if value is not None]
        return max(present) if present else None
