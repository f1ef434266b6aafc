"""Report orchestration: eligibility, scope, range normalization, aggregation."""

from __future__ import annotations

import enum
import logging
from datetime import datetime
from uuid import UUID

from sqlalchemy.orm import Session

from analytics_service.core.auth import Principal, Role
from analytics_service.core.config import get_settings
from analytics_service.core.errors import PermissionDeniedError, ScopeUnsupportedError
from analytics_service.core.filters import AnalyticsFilter, DateRange, RangeNormalizer
from analytics_service.core.scope import Scope, ScopeResolver
from analytics_service.db.availability import DataAvailability
from analytics_service.repositories.organization_repository import OrganizationRepository
from analytics_service.schemas.analytics import (
    CleaningAreaAnalytics,
    ContractAnalytics,
    DashboardMetrics,
    DriverKPI,
    PerformanceAnalytics,
    TechnicalAnalytics,
    TripAnalytics,
    TripDetails,
    VehicleKPI,
    ViolationAnalytics,
)
from analytics_service.services.areas import CleaningAreaAggregator
from analytics_service.services.contracts import ContractAggregator
from analytics_service.services.dashboard import DashboardAggregator
from analytics_service.services.fleet import FleetKpiAggregator
from analytics_service.services.performance import PerformanceAggregator
from analytics_service.services.technical import TechnicalAggregator
from analytics_service.services.trips import TripAggregator
from analytics_service.services.violations import ViolationAggregator

logger = logging.getLogger(__name__)


class Report(str, enum.Enum):
    DASHBOARD = "dashboard"
    TRIPS = "trips"
    TRIP_DETAILS = "trip_details"
    VIOLATIONS = "violations"
    PERFORMANCE = "performance"
    CONTRACTS = "contracts"
    AREAS = "areas"
    DRIVERS = "drivers"
    VEHICLES = "vehicles"
    TECHNICAL = "technical"


OPERATIONAL_ROLES = frozenset(
    {Role.CITY_AUTHORITY, Role.REGIONAL_AUTHORITY, Role.CONTRACTOR, Role.TECHNICAL_OPERATOR}
)
ORGANIZATION_ROLES = frozenset({Role.CITY_AUTHORITY, Role.REGIONAL_AUTHORITY, Role.CONTRACTOR})
TECHNICAL_ROLES = frozenset({Role.CITY_AUTHORITY, Role.REGIONAL_AUTHORITY, Role.TECHNICAL_OPERATOR})

# Report eligibility by role, checked before any query runs.
REPORT_ALLOWED_ROLES: dict[Report, frozenset[Role]] = {
    Report.DASHBOARD: OPERATIONAL_ROLES,
    Report.TRIPS: OPERATIONAL_ROLES,
    Report.TRIP_DETAILS: OPERATIONAL_ROLES,
    Report.VIOLATIONS: OPERATIONAL_ROLES,
    Report.PERFORMANCE: OPERATIONAL_ROLES,
    Report.CONTRACTS: OPERATIONAL_ROLES,
    Report.AREAS: ORGANIZATION_ROLES,
    Report.DRIVERS: ORGANIZATION_ROLES,
    Report.VEHICLES: ORGANIZATION_ROLES,
    Report.TECHNICAL: TECHNICAL_ROLES,
}


def is_report_allowed(report: Report, role: Role) -> bool:
    return role in REPORT_ALLOWED_ROLES[report]


class AnalyticsService:
    """Entry point for every analytics report.

    Each report runs the same sequence: role eligibility is checked before
    any query, the principal is resolved to a scope, the requested range is
    normalized and the matching aggregators run on the request session.
    """

    def __init__(self, db: Session) -> None:
        self.db = db
        self.settings = get_settings()
        self.availability = DataAvailability(db)
        self.scopes = ScopeResolver(OrganizationRepository(db))
        self.normalizer = RangeNormalizer(
            self.settings.analytics_default_range_days,
            self.settings.analytics_max_range_days,
        )

    # ---------- Access ----------
    def _require_eligible(self, principal: Principal, report: Report) -> None:
        if not is_report_allowed(report, principal.role):
            logger.info("Denied %s report to user %s with role %s", report.value, principal.user_id, principal.role.value)
            raise PermissionDeniedError()

    def _authorize(self, principal: Principal, report: Report) -> Scope:
        self._require_eligible(principal, report)
        try:
            return self.scopes.resolve(principal)
        except ScopeUnsupportedError as exc:
            raise PermissionDeniedError() from exc

    # ---------- Reports ----------
    def dashboard(self, principal: Principal, period: DateRange, *, now: datetime | None = None) -> DashboardMetrics:
        scope = self._authorize(principal, Report.DASHBOARD)
        normalized = self.normalizer.normalize_range(period, now=now)
        return DashboardAggregator(self.db, self.availability).build(scope, normalized, now=now)

    def trips(self, principal: Principal, filter_: AnalyticsFilter, *, now: datetime | None = None) -> TripAnalytics:
        scope = self._authorize(principal, Report.TRIPS)
        normalized = self.normalizer.normalize_filter(filter_, now=now)
        return TripAggregator(self.db, self.availability).build(scope, normalized)

    def trip_details(self, principal: Principal, trip_id: UUID) -> TripDetails:
        scope = self._authorize(principal, Report.TRIP_DETAILS)
        return TripAggregator(self.db, self.availability).details(scope, trip_id)

    def violations(
        self,
        principal: Principal,
        filter_: AnalyticsFilter,
        *,
        now: datetime | None = None,
    ) -> ViolationAnalytics:
        scope = self._authorize(principal, Report.VIOLATIONS)
        normalized = self.normalizer.normalize_filter(filter_, now=now)
        return ViolationAggregator(self.db, self.availability).build(scope, normalized)

    def performance(
        self,
        principal: Principal,
        filter_: AnalyticsFilter,
        *,
        now: datetime | None = None,
    ) -> PerformanceAnalytics:
        scope = self._authorize(principal, Report.PERFORMANCE)
        normalized = self.normalizer.normalize_filter(filter_, now=now)
        return PerformanceAggregator(self.db, self.availability).build(scope, normalized)

    def contracts(self, principal: Principal, *, now: datetime | None = None) -> ContractAnalytics:
        scope = self._authorize(principal, Report.CONTRACTS)
        return ContractAggregator(self.db, self.availability).build(scope, now=now)

    def areas(
        self,
        principal: Principal,
        filter_: AnalyticsFilter,
        *,
        now: datetime | None = None,
    ) -> list[CleaningAreaAnalytics]:
        scope = self._authorize(principal, Report.AREAS)
        normalized = self.normalizer.normalize_filter(filter_, now=now)
        return CleaningAreaAggregator(self.db, self.availability).build(scope, normalized)

    def drivers(self, principal: Principal, filter_: AnalyticsFilter, *, now: datetime | None = None) -> list[DriverKPI]:
        scope = self._authorize(principal, Report.DRIVERS)
        normalized = self.normalizer.normalize_filter(filter_, now=now)
        return FleetKpiAggregator(self.db, self.availability).drivers(scope, normalized)

    def vehicles(
        self,
        principal: Principal,
        filter_: AnalyticsFilter,
        *,
        now: datetime | None = None,
    ) -> list[VehicleKPI]:
        scope = self._authorize(principal, Report.VEHICLES)
        normalized = self.normalizer.normalize_filter(filter_, now=now)
        return FleetKpiAggregator(self.db, self.availability).vehicles(scope, normalized)

    def technical(self, principal: Principal, period: DateRange, *, now: datetime | None = None) -> TechnicalAnalytics:
        # City-wide report: no scope is resolved.
        self._require_eligible(principal, Report.TECHNICAL)
        normalized = self.normalizer.normalize_range(period, now=now)
        return TechnicalAggregator(self.db, self.availability).build(normalized)
