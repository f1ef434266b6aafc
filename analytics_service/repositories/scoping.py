"""Scope and filter predicates shared by analytics queries."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, TypeVar, assert_never

from sqlalchemy import ColumnElement, Select, Table, false, or_

from analytics_service.core.filters import AnalyticsFilter, DateRange, GroupBy, bucket_start
from analytics_service.core.scope import CityScope, ContractorScope, RegionalScope, Scope, TechnicalScope
from analytics_service.models.entities import Contract, Ticket, Trip

SelectT = TypeVar("SelectT", bound=Select[Any])


@dataclass(frozen=True, slots=True)
class ScopeColumns:
    """Columns a scope predicate is evaluated against for one relation."""

    contractor: ColumnElement[Any]
    creator: ColumnElement[Any]


TICKET_SCOPE = ScopeColumns(contractor=Ticket.contractor_id, creator=Ticket.created_by_org_id)
CONTRACT_SCOPE = ScopeColumns(contractor=Contract.contractor_id, creator=Contract.created_by_org_id)


def rollup_scope(table: Table) -> ScopeColumns:
    return ScopeColumns(contractor=table.c.contractor_id, creator=table.c.created_by_org_id)


def scope_condition(scope: Scope, columns: ScopeColumns) -> ColumnElement[bool] | None:
    """Predicate for ``scope``; ``None`` means every row is visible."""

    if isinstance(scope, CityScope):
        return None
    if isinstance(scope, RegionalScope):
        own = columns.creator == scope.org_id
        if not scope.contractor_ids:
            return own
        return or_(own, columns.contractor.in_(scope.contractor_ids))
    if isinstance(scope, ContractorScope):
        return columns.contractor == scope.org_id
    if isinstance(scope, TechnicalScope):
        return false()
    assert_never(scope)


def apply_scope(stmt: SelectT, scope: Scope, columns: ScopeColumns) -> SelectT:
    condition = scope_condition(scope, columns)
    if condition is None:
        return stmt
    return stmt.where(condition)


def in_period(column: ColumnElement[Any], period: DateRange) -> list[ColumnElement[bool]]:
    """Half-open ``[start, end)`` bounds on a timestamp column."""

    conditions: list[ColumnElement[bool]] = []
    if period.start is not None:
        conditions.append(column >= period.start)
    if period.end is not None:
        conditions.append(column < period.end)
    return conditions


def trip_filter_conditions(
    filter_: AnalyticsFilter,
    *,
    include_violation_type: bool = False,
) -> list[ColumnElement[bool]]:
    """Filter predicates for live trip queries joined to tickets."""

    conditions = in_period(Trip.entry_at, filter_.period)
    if filter_.contractor_id is not None:
        conditions.append(Ticket.contractor_id == filter_.contractor_id)
    if filter_.driver_id is not None:
        conditions.append(Trip.driver_id == filter_.driver_id)
    if filter_.polygon_id is not None:
        conditions.append(Trip.polygon_id == filter_.polygon_id)
    if filter_.camera_id is not None:
        conditions.append(Trip.camera_id == filter_.camera_id)
    if include_violation_type and filter_.violation_type:
        conditions.append(Trip.status == filter_.violation_type)
    return conditions


def rollup_filter_conditions(table: Table, filter_: AnalyticsFilter) -> list[ColumnElement[bool]]:
    """Filter predicates for a daily rollup; filters on absent columns are skipped."""

    conditions: list[ColumnElement[bool]] = []
    period = filter_.period
    if period.start is not None:
        conditions.append(table.c.bucket >= bucket_start(period.start, GroupBy.DAY))
    if period.end is not None:
        conditions.append(table.c.bucket < period.end)

    optional = {
        "contractor_id": filter_.contractor_id,
        "driver_id": filter_.driver_id,
        "polygon_id": filter_.polygon_id,
        "violation_type": filter_.violation_type or None,
    }
    for name, value in optional.items():
        if value is not None and name in table.c:
            conditions.append(table.c[name] == value)
    return conditions


def scope_restricts_cameras(scope: Scope) -> bool:
    """Camera telemetry is narrowed only for organization-bound scopes."""

    if isinstance(scope, (CityScope, TechnicalScope)):
        return False
    if isinstance(scope, (RegionalScope, ContractorScope)):
        return True
    assert_never(scope)
