"""Live trip queries: activity counts, leaders, fleet metrics and details."""

from __future__ import annotations

import enum
from collections.abc import Collection, Sequence
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from sqlalchemy import ColumnElement, Row, Select, and_, case, func, select, true
from sqlalchemy.orm import Session

from analytics_service.core.filters import AnalyticsFilter, DateRange
from analytics_service.core.scope import Scope
from analytics_service.models.entities import (
    TICKET_STATUS_IN_PROGRESS,
    TRIP_STATUS_OK,
    Camera,
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
from analytics_service.repositories.scoping import TICKET_SCOPE, apply_scope, in_period, trip_filter_conditions

IS_VIOLATION = Trip.status != TRIP_STATUS_OK
LAST_ACTIVITY = func.max(func.coalesce(Trip.exit_at, Trip.entry_at))


def _count_where(condition: ColumnElement[bool]) -> ColumnElement[Any]:
    return func.coalesce(func.sum(case((condition, 1), else_=0)), 0)


def _volume_columns() -> tuple[ColumnElement[Any], ColumnElement[Any]]:
    return (
        func.coalesce(func.sum(Trip.detected_volume_entry), 0).label("volume"),
        func.count(Trip.detected_volume_entry).label("measured"),
    )


class LeaderDimension(str, enum.Enum):
    BY_CONTRACTOR = "contractor"
    BY_DRIVER = "driver"
    BY_CAMERA = "camera"


@dataclass(frozen=True, slots=True)
class LeaderStrategy:
    """How one leader-board dimension is keyed, named and joined."""

    id_column: ColumnElement[Any]
    name_column: ColumnElement[Any]
    entity: type
    join_on: ColumnElement[bool]
    fallback_name: str


LEADER_STRATEGIES: dict[LeaderDimension, LeaderStrategy] = {
    LeaderDimension.BY_CONTRACTOR: LeaderStrategy(
        id_column=Ticket.contractor_id,
        name_column=Organization.name,
        entity=Organization,
        join_on=Organization.id == Ticket.contractor_id,
        fallback_name="Contractor",
    ),
    LeaderDimension.BY_DRIVER: LeaderStrategy(
        id_column=Trip.driver_id,
        name_column=Driver.full_name,
        entity=Driver,
        join_on=Driver.id == Trip.driver_id,
        fallback_name="Driver",
    ),
    LeaderDimension.BY_CAMERA: LeaderStrategy(
        id_column=Trip.camera_id,
        name_column=Camera.name,
        entity=Camera,
        join_on=Camera.id == Trip.camera_id,
        fallback_name="Camera",
    ),
}


@dataclass(slots=True)
class TripDetailRecord:
    trip: Trip
    ticket: Ticket | None
    driver: Driver | None
    vehicle: Vehicle | None
    contractor: Organization | None


class TripRepository:
    """Scoped read queries over trips joined to their tickets."""

    def __init__(self, db: Session) -> None:
        self.db = db

    @staticmethod
    def _trips(*columns: Any) -> Select[Any]:
        return select(*columns).select_from(Trip).outerjoin(Ticket, Ticket.id == Trip.ticket_id)

    @staticmethod
    def _ranked(stmt: Select[Any], id_column: ColumnElement[Any], limit: int | None) -> Select[Any]:
        stmt = stmt.order_by(func.count(Trip.id).desc(), id_column.asc())
        if limit is not None:
            stmt = stmt.limit(limit)
        return stmt

    # ---------- Dashboard ----------
    def activity_totals(self, scope: Scope, period: DateRange) -> Row[Any]:
        """Open trips (any time), completed trips and violations entered in ``period``."""

        in_range = and_(true(), *in_period(Trip.entry_at, period))
        stmt = self._trips(
            _count_where(Trip.exit_at.is_(None)).label("active_trips"),
            _count_where(and_(Trip.exit_at.is_not(None), in_range)).label("completed_trips"),
            _count_where(and_(IS_VIOLATION, in_range)).label("violations"),
        )
        return self.db.execute(apply_scope(stmt, scope, TICKET_SCOPE)).one()

    def count_tickets_in_progress(self, scope: Scope) -> int:
        stmt = select(func.count(Ticket.id)).where(Ticket.status == TICKET_STATUS_IN_PROGRESS)
        return int(self.db.scalar(apply_scope(stmt, scope, TICKET_SCOPE)) or 0)

    def area_activity(self, scope: Scope, period: DateRange) -> Sequence[Row[Any]]:
        stmt = (
            self._trips(
                Ticket.cleaning_area_id.label("area_id"),
                func.count(Trip.id).label("trips"),
                _count_where(Trip.exit_at.is_(None)).label("active_trips"),
                _count_where(IS_VIOLATION).label("violations"),
            )
            .where(Ticket.cleaning_area_id.is_not(None), *in_period(Trip.entry_at, period))
            .group_by(Ticket.cleaning_area_id)
            .order_by(Ticket.cleaning_area_id.asc())
        )
        return self.db.execute(apply_scope(stmt, scope, TICKET_SCOPE)).all()

    def polygon_activity(self, scope: Scope, period: DateRange) -> Sequence[Row[Any]]:
        stmt = (
            self._trips(
                Trip.polygon_id.label("entity_id"),
                func.coalesce(Polygon.name, "Polygon").label("name"),
                func.count(Trip.id).label("trips"),
                func.coalesce(func.sum(Trip.detected_volume_entry), 0).label("volume"),
            )
            .outerjoin(Polygon, Polygon.id == Trip.polygon_id)
            .where(Trip.polygon_id.is_not(None), *in_period(Trip.entry_at, period))
            .group_by(Trip.polygon_id, Polygon.name)
            .order_by(Trip.polygon_id.asc())
        )
        return self.db.execute(apply_scope(stmt, scope, TICKET_SCOPE)).all()

    # ---------- Leaders ----------
    def contractor_leaders(self, scope: Scope, filter_: AnalyticsFilter, limit: int | None) -> Sequence[Row[Any]]:
        stmt = (
            self._trips(
                Ticket.contractor_id.label("entity_id"),
                func.coalesce(Organization.name, "Contractor").label("name"),
                func.count(Trip.id).label("trips"),
                func.coalesce(func.sum(Trip.detected_volume_entry), 0).label("volume"),
            )
            .outerjoin(Organization, Organization.id == Ticket.contractor_id)
            .where(Ticket.contractor_id.is_not(None), *trip_filter_conditions(filter_))
            .group_by(Ticket.contractor_id, Organization.name)
        )
        stmt = self._ranked(stmt, Ticket.contractor_id, limit)
        return self.db.execute(apply_scope(stmt, scope, TICKET_SCOPE)).all()

    def driver_leaders(self, scope: Scope, filter_: AnalyticsFilter, limit: int | None) -> Sequence[Row[Any]]:
        stmt = (
            self._trips(
                Trip.driver_id.label("entity_id"),
                func.coalesce(Driver.full_name, "Driver").label("name"),
                func.count(Trip.id).label("trips"),
                func.coalesce(func.sum(Trip.detected_volume_entry), 0).label("volume"),
            )
            .outerjoin(Driver, Driver.id == Trip.driver_id)
            .where(Trip.driver_id.is_not(None), *trip_filter_conditions(filter_))
            .group_by(Trip.driver_id, Driver.full_name)
        )
        stmt = self._ranked(stmt, Trip.driver_id, limit)
        return self.db.execute(apply_scope(stmt, scope, TICKET_SCOPE)).all()

    def violation_leaders(
        self,
        scope: Scope,
        filter_: AnalyticsFilter,
        dimension: LeaderDimension,
        limit: int,
    ) -> Sequence[Row[Any]]:
        strategy = LEADER_STRATEGIES[dimension]
        stmt = (
            self._trips(
                strategy.id_column.label("entity_id"),
                func.coalesce(strategy.name_column, strategy.fallback_name).label("name"),
                func.count(Trip.id).label("trips"),
            )
            .outerjoin(strategy.entity, strategy.join_on)
            .where(
                IS_VIOLATION,
                strategy.id_column.is_not(None),
                *trip_filter_conditions(filter_, include_violation_type=True),
            )
            .group_by(strategy.id_column, strategy.name_column)
        )
        stmt = self._ranked(stmt, strategy.id_column, limit)
        return self.db.execute(apply_scope(stmt, scope, TICKET_SCOPE)).all()

    # ---------- Trip statistics ----------
    def trip_timings(self, scope: Scope, filter_: AnalyticsFilter) -> Sequence[Row[Any]]:
        """Per-trip timestamps for duration statistics."""

        stmt = self._trips(Trip.driver_id, Trip.entry_at, Trip.exit_at).where(*trip_filter_conditions(filter_))
        return self.db.execute(apply_scope(stmt, scope, TICKET_SCOPE)).all()

    def volume_totals(self, scope: Scope, filter_: AnalyticsFilter) -> Row[Any]:
        stmt = self._trips(
            *_volume_columns(),
            func.max(Trip.detected_volume_entry).label("max_volume"),
            func.min(Trip.detected_volume_entry).label("min_volume"),
        ).where(*trip_filter_conditions(filter_))
        return self.db.execute(apply_scope(stmt, scope, TICKET_SCOPE)).one()

    # ---------- Performance and KPIs ----------
    def contractor_performance(self, scope: Scope, filter_: AnalyticsFilter, limit: int) -> Sequence[Row[Any]]:
        stmt = (
            self._trips(
                Ticket.contractor_id.label("entity_id"),
                func.coalesce(Organization.name, "Contractor").label("name"),
                func.count(Trip.id).label("trips"),
                *_volume_columns(),
                _count_where(IS_VIOLATION).label("violations"),
                func.count(Trip.driver_id.distinct()).label("active_drivers"),
                func.count(Trip.vehicle_id.distinct()).label("active_vehicles"),
            )
            .outerjoin(Organization, Organization.id == Ticket.contractor_id)
            .where(Ticket.contractor_id.is_not(None), *trip_filter_conditions(filter_))
            .group_by(Ticket.contractor_id, Organization.name)
        )
        stmt = self._ranked(stmt, Ticket.contractor_id, limit)
        return self.db.execute(apply_scope(stmt, scope, TICKET_SCOPE)).all()

    def driver_activity(self, scope: Scope, filter_: AnalyticsFilter, limit: int | None = None) -> Sequence[Row[Any]]:
        stmt = (
            self._trips(
                Trip.driver_id.label("entity_id"),
                func.coalesce(Driver.full_name, "Driver").label("name"),
                Driver.contractor_id.label("contractor_id"),
                Organization.name.label("contractor_name"),
                func.count(Trip.id).label("trips"),
                *_volume_columns(),
                _count_where(IS_VIOLATION).label("violations"),
                LAST_ACTIVITY.label("last_activity"),
            )
            .outerjoin(Driver, Driver.id == Trip.driver_id)
            .outerjoin(Organization, Organization.id == Driver.contractor_id)
            .where(Trip.driver_id.is_not(None), *trip_filter_conditions(filter_))
            .group_by(Trip.driver_id, Driver.full_name, Driver.contractor_id, Organization.name)
        )
        stmt = self._ranked(stmt, Trip.driver_id, limit)
        return self.db.execute(apply_scope(stmt, scope, TICKET_SCOPE)).all()

    def vehicle_activity(self, scope: Scope, filter_: AnalyticsFilter, limit: int | None = None) -> Sequence[Row[Any]]:
        stmt = (
            self._trips(
                Trip.vehicle_id.label("entity_id"),
                func.coalesce(Vehicle.plate_number, "Vehicle").label("name"),
                Vehicle.body_volume_m3.label("body_volume"),
                Vehicle.contractor_id.label("contractor_id"),
                Organization.name.label("contractor_name"),
                func.count(Trip.id).label("trips"),
                *_volume_columns(),
                _count_where(IS_VIOLATION).label("violations"),
                LAST_ACTIVITY.label("last_activity"),
            )
            .outerjoin(Vehicle, Vehicle.id == Trip.vehicle_id)
            .outerjoin(Organization, Organization.id == Vehicle.contractor_id)
            .where(Trip.vehicle_id.is_not(None), *trip_filter_conditions(filter_))
            .group_by(
                Trip.vehicle_id,
                Vehicle.plate_number,
                Vehicle.body_volume_m3,
                Vehicle.contractor_id,
                Organization.name,
            )
        )
        stmt = self._ranked(stmt, Trip.vehicle_id, limit)
        return self.db.execute(apply_scope(stmt, scope, TICKET_SCOPE)).all()

    def registered_vehicle_counts(self, contractor_ids: Collection[UUID]) -> dict[UUID, int]:
        if not contractor_ids:
            return {}
        rows = self.db.execute(
            select(Vehicle.contractor_id, func.count(Vehicle.id))
            .where(Vehicle.contractor_id.in_(list(contractor_ids)))
            .group_by(Vehicle.contractor_id)
        ).all()
        return {contractor_id: int(total) for contractor_id, total in rows}

    # ---------- Trip details ----------
    def get_trip_detail(self, scope: Scope, trip_id: UUID) -> TripDetailRecord | None:
        stmt = (
            select(Trip, Ticket, Driver, Vehicle, Organization)
            .select_from(Trip)
            .outerjoin(Ticket, Ticket.id == Trip.ticket_id)
            .outerjoin(Driver, Driver.id == Trip.driver_id)
            .outerjoin(Vehicle, Vehicle.id == Trip.vehicle_id)
            .outerjoin(Organization, Organization.id == Ticket.contractor_id)
            .where(Trip.id == trip_id)
        )
        row = self.db.execute(apply_scope(stmt, scope, TICKET_SCOPE)).first()
        if row is None:
            return None
        trip, ticket, driver, vehicle, contractor = row
        return TripDetailRecord(trip=trip, ticket=ticket, driver=driver, vehicle=vehicle, contractor=contractor)

    def list_trip_violations(self, trip_id: UUID) -> list[TripViolation]:
        return list(
            self.db.scalars(
                select(TripViolation)
                .where(TripViolation.trip_id == trip_id)
                .order_by(TripViolation.detected_at.asc(), TripViolation.id.asc())
            ).all()
        )

    def get_lpr_event(self, event_id: UUID | None) -> LprEvent | None:
        if event_id is None:
            return None
        return self.db.get(LprEvent, event_id)

    def get_volume_event(self, event_id: UUID | None) -> VolumeEvent | None:
        if event_id is None:
            return None
        return self.db.get(VolumeEvent, event_id)
