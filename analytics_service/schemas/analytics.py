"""Response DTOs for analytics reports."""

from __future__ import annotations

import enum
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class ContractStatus(str, enum.Enum):
    PLANNED = "PLANNED"
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"


class ContractResult(str, enum.Enum):
    NONE = "NONE"
    SUCCESS = "SUCCESS"
    FAIL = "FAIL"


class DateRangeOut(BaseModel):
    start: datetime = Field(serialization_alias="from")
    end: datetime = Field(serialization_alias="to")


class EntityMetric(BaseModel):
    """Ranked entity; ``share`` is relative to the returned set."""

    id: UUID | None
    name: str
    count: int = 0
    volume: float = 0.0
    share: float = 0.0


class SeriesPoint(BaseModel):
    bucket: datetime
    count: int
    value: float


# ---------- Dashboard ----------
class DashboardStats(BaseModel):
    active_trips: int = 0
    completed_trips: int = 0
    tickets_in_progress: int = 0
    violations: int = 0


class CleaningAreaActivity(BaseModel):
    cleaning_area_id: UUID
    trips: int
    active_trips: int
    has_violations: bool
    trip_heat: float


class DashboardContractors(BaseModel):
    active: list[EntityMetric] = Field(default_factory=list)
    idle: list[EntityMetric] = Field(default_factory=list)


class CameraLoadMetric(BaseModel):
    camera_id: UUID
    camera_name: str
    polygon_id: UUID | None = None
    polygon_name: str | None = None
    lpr_events: int = 0
    volume_events: int = 0
    error_events: int = 0
    error_rate: float = 0.0


class ContractProgress(BaseModel):
    contract_id: UUID
    name: str
    contractor_id: UUID
    contractor_name: str
    budget_total: float
    total_cost: float
    budget_progress: float
    minimal_volume_m3: float
    total_volume_m3: float
    volume_progress: float
    ui_status: ContractStatus
    result: ContractResult
    start_at: datetime
    end_at: datetime


class MapAreaState(BaseModel):
    id: UUID
    has_trips: bool
    has_active_trips: bool
    has_violations: bool
    intensity: float


class MapPolygonState(BaseModel):
    id: UUID
    name: str
    trip_count: int
    volume_m3: float


class MapCameraState(BaseModel):
    id: UUID
    name: str
    events: int
    error_events: int


class MapSummary(BaseModel):
    areas: list[MapAreaState] = Field(default_factory=list)
    polygons: list[MapPolygonState] = Field(default_factory=list)
    cameras: list[MapCameraState] = Field(default_factory=list)


class DashboardMetrics(BaseModel):
    stats: DashboardStats = Field(default_factory=DashboardStats)
    areas: list[CleaningAreaActivity] = Field(default_factory=list)
    contractors: DashboardContractors = Field(default_factory=DashboardContractors)
    cameras: list[CameraLoadMetric] = Field(default_factory=list)
    contracts: list[ContractProgress] = Field(default_factory=list)
    map: MapSummary = Field(default_factory=MapSummary)
    generated_for: DateRangeOut


# ---------- Trips ----------
class TripDurationStats(BaseModel):
    avg_minutes: float = 0.0
    p90_minutes: float = 0.0
    p95_minutes: float = 0.0


class TripVolumeStats(BaseModel):
    avg_volume: float = 0.0
    max_volume: float = 0.0
    min_volume: float = 0.0


class TripAnalytics(BaseModel):
    series: list[SeriesPoint] = Field(default_factory=list)
    volume_series: list[SeriesPoint] = Field(default_factory=list)
    top_drivers: list[EntityMetric] = Field(default_factory=list)
    top_contractors: list[EntityMetric] = Field(default_factory=list)
    duration_stats: TripDurationStats = Field(default_factory=TripDurationStats)
    volume_stats: TripVolumeStats = Field(default_factory=TripVolumeStats)


class TripEvent(BaseModel):
    event_id: UUID
    camera_id: UUID
    photo_url: str | None = None
    captured_at: datetime


class TripEventDetails(BaseModel):
    entry_lpr: TripEvent | None = None
    exit_lpr: TripEvent | None = None
    entry_volume: TripEvent | None = None
    exit_volume: TripEvent | None = None


class ViolationRecord(BaseModel):
    type: str
    source: str
    at: datetime
    note: str | None = None


class TripDetails(BaseModel):
    trip_id: UUID
    ticket_id: UUID | None = None
    ticket_name: str | None = None
    driver_id: UUID | None = None
    driver_name: str | None = None
    vehicle_id: UUID | None = None
    vehicle_plate: str | None = None
    contractor_id: UUID | None = None
    contractor_name: str | None = None
    cleaning_area_id: UUID | None = None
    polygon_id: UUID | None = None
    status: str
    entry_at: datetime
    exit_at: datetime | None = None
    detected_volume_entry: float | None = None
    detected_volume_exit: float | None = None
    violations: list[ViolationRecord] = Field(default_factory=list)
    events: TripEventDetails = Field(default_factory=TripEventDetails)


# ---------- Violations ----------
class ViolationBreakdown(BaseModel):
    type: str
    count: int
    share: float


class ViolationAnalytics(BaseModel):
    series: list[SeriesPoint] = Field(default_factory=list)
    breakdown: list[ViolationBreakdown] = Field(default_factory=list)
    top_contractors: list[EntityMetric] = Field(default_factory=list)
    top_drivers: list[EntityMetric] = Field(default_factory=list)
    top_cameras: list[CameraLoadMetric] = Field(default_factory=list)


# ---------- Performance ----------
class ContractorPerformance(BaseModel):
    contractor_id: UUID
    contractor_name: str
    trip_count: int
    avg_volume: float
    violation_rate: float
    active_drivers: int
    utilization: float


class DriverPerformance(BaseModel):
    driver_id: UUID
    driver_name: str
    trip_count: int
    avg_volume: float
    violation_rate: float
    avg_duration_minutes: float


class VehiclePerformance(BaseModel):
    vehicle_id: UUID
    plate_number: str
    trip_count: int
    avg_fill_rate: float
    violation_rate: float
    idle_hours: float


class PerformanceAnalytics(BaseModel):
    contractors: list[ContractorPerformance] = Field(default_factory=list)
    drivers: list[DriverPerformance] = Field(default_factory=list)
    vehicles: list[VehiclePerformance] = Field(default_factory=list)


# ---------- Contracts ----------
class ContractAnalytics(BaseModel):
    summary: list[ContractProgress] = Field(default_factory=list)
    top_budget: list[ContractProgress] = Field(default_factory=list)
    at_risk: list[ContractProgress] = Field(default_factory=list)
    budget_issues: list[ContractProgress] = Field(default_factory=list)


# ---------- Cleaning areas ----------
class CleaningAreaAnalytics(BaseModel):
    cleaning_area_id: UUID
    name: str
    description: str | None = None
    trip_count: int
    total_volume_m3: float
    violation_count: int
    active_drivers: int
    active_vehicles: int
    avg_interval_hours: float
    idle_hours: float
    last_trip_at: datetime | None = None
    geometry_geojson: str | None = None


# ---------- Driver and vehicle KPIs ----------
class DriverKPI(BaseModel):
    driver_id: UUID
    driver_name: str
    contractor_id: UUID | None = None
    contractor_name: str | None = None
    trip_count: int
    avg_volume: float
    violation_rate: float
    avg_duration_minutes: float
    idle_hours: float
    last_trip_at: datetime | None = None


class VehicleKPI(BaseModel):
    vehicle_id: UUID
    plate_number: str
    contractor_id: UUID | None = None
    contractor_name: str | None = None
    trip_count: int
    avg_fill_rate: float
    violation_rate: float
    idle_hours: float
    last_trip_at: datetime | None = None


# ---------- Technical ----------
class PolygonLoadMetric(BaseModel):
    polygon_id: UUID
    polygon_name: str
    trip_count: int
    volume_m3: float
    error_events: int


class TechnicalAnalytics(BaseModel):
    cameras: list[CameraLoadMetric] = Field(default_factory=list)
    polygons: list[PolygonLoadMetric] = Field(default_factory=list)
    error_rate: float = 0.0
    last_event_at: datetime | None = None
    total_events: int = 0
    event_frequency_per_hour: float = 0.0
