"""Trip report: time series, leaders, duration and volume statistics, details."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy.orm import Session

from analytics_service.core.errors import NotFoundError
from analytics_service.core.filters import AnalyticsFilter, as_utc
from analytics_service.core.scope import Scope
from analytics_service.db.availability import DataAvailability
from analytics_service.models.entities import LprEvent, VolumeEvent
from analytics_service.repositories.rollup_repository import RollupRepository
from analytics_service.repositories.trip_repository import TripRepository
from analytics_service.schemas.analytics import (
    TripAnalytics,
    TripDetails,
    TripDurationStats,
    TripEvent,
    TripEventDetails,
    TripVolumeStats,
    ViolationRecord,
)
from analytics_service.services.metrics import (
    discrete_percentile,
    duration_minutes,
    entity_metrics,
    finite_or_zero,
    mean,
    rebucket,
    safe_ratio,
)

TOP_LIMIT = 5
TRIP_RELATIONS = ("trips", "tickets")
DETAIL_RELATIONS = ("trips", "tickets", "drivers", "vehicles", "organizations")


def _event(event: LprEvent | VolumeEvent | None) -> TripEvent | None:
    if event is None:
        return None
    return TripEvent(
        event_id=event.id,
        camera_id=event.camera_id,
        photo_url=event.photo_url,
        captured_at=as_utc(event.detected_at),
    )


class TripAggregator:
    def __init__(self, db: Session, availability: DataAvailability) -> None:
        self.trips = TripRepository(db)
        self.rollups = RollupRepository(db)
        self.availability = availability

    def build(self, scope: Scope, filter_: AnalyticsFilter) -> TripAnalytics:
        series, volume_series = [], []
        if self.availability.exists("mv_trip_daily"):
            rows = self.rollups.daily_trip_totals(scope, filter_)
            series = rebucket(rows, filter_.group_by, count_field="trips")
            volume_series = rebucket(rows, filter_.group_by, count_field="trips", value_field="volume")

        top_drivers, top_contractors = [], []
        if self.availability.all_exist(*TRIP_RELATIONS, "drivers"):
            top_drivers = entity_metrics(self.trips.driver_leaders(scope, filter_, TOP_LIMIT))
        if self.availability.all_exist(*TRIP_RELATIONS, "organizations"):
            top_contractors = entity_metrics(self.trips.contractor_leaders(scope, filter_, TOP_LIMIT))

        duration_stats, volume_stats = TripDurationStats(), TripVolumeStats()
        if self.availability.all_exist(*TRIP_RELATIONS):
            duration_stats = self.duration_stats(scope, filter_)
            volume_stats = self.volume_stats(scope, filter_)

        return TripAnalytics(
            series=series,
            volume_series=volume_series,
            top_drivers=top_drivers,
            top_contractors=top_contractors,
            duration_stats=duration_stats,
            volume_stats=volume_stats,
        )

    def duration_stats(self, scope: Scope, filter_: AnalyticsFilter) -> TripDurationStats:
        durations = [duration_minutes(row.entry_at, row.exit_at) for row in self.trips.trip_timings(scope, filter_)]
        return TripDurationStats(
            avg_minutes=mean(durations),
            p90_minutes=discrete_percentile(durations, 0.90),
            p95_minutes=discrete_percentile(durations, 0.95),
        )

    def volume_stats(self, scope: Scope, filter_: AnalyticsFilter) -> TripVolumeStats:
        totals = self.trips.volume_totals(scope, filter_)
        return TripVolumeStats(
            avg_volume=safe_ratio(totals.volume, totals.measured),
            max_volume=finite_or_zero(totals.max_volume),
            min_volume=finite_or_zero(totals.min_volume),
        )

    def details(self, scope: Scope, trip_id: UUID) -> TripDetails:
        """Trip with its ticket, crew, violations and sensor events.

        Raises :class:`NotFoundError` when the trip is outside ``scope``.
        """

        if not self.availability.all_exist(*DETAIL_RELATIONS):
            raise NotFoundError()
        record = self.trips.get_trip_detail(scope, trip_id)
        if record is None:
            raise NotFoundError()

        trip, ticket = record.trip, record.ticket
        violations: list[ViolationRecord] = []
        if self.availability.exists("trip_violations"):
            violations = [
                ViolationRecord(type=row.type, source=row.source, at=as_utc(row.detected_at), note=row.note)
                for row in self.trips.list_trip_violations(trip.id)
            ]

        events = TripEventDetails()
        if self.availability.exists("lpr_events"):
            events.entry_lpr = _event(self.trips.get_lpr_event(trip.entry_lpr_event_id))
            events.exit_lpr = _event(self.trips.get_lpr_event(trip.exit_lpr_event_id))
        if self.availability.exists("volume_events"):
            events.entry_volume = _event(self.trips.get_volume_event(trip.entry_volume_event_id))
            events.exit_volume = _event(self.trips.get_volume_event(trip.exit_volume_event_id))

        return TripDetails(
            trip_id=trip.id,
            ticket_id=trip.ticket_id,
            ticket_name=ticket.name if ticket else None,
            driver_id=trip.driver_id,
            driver_name=record.driver.full_name if record.driver else None,
            vehicle_id=trip.vehicle_id,
            vehicle_plate=record.vehicle.plate_number if record.vehicle else None,
            contractor_id=ticket.contractor_id if ticket else None,
            contractor_name=record.contractor.name if record.contractor else None,
            cleaning_area_id=ticket.cleaning_area_id if ticket else None,
            polygon_id=trip.polygon_id,
            status=trip.status,
            entry_at=as_utc(trip.entry_at),
            exit_at=as_utc(trip.exit_at),
            detected_volume_entry=trip.detected_volume_entry,
            detected_volume_exit=trip.detected_volume_exit,
            violations=violations,
            events=events,
        )
