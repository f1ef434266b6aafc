"""Analytics report endpoints."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from analytics_service.core.auth import Principal, get_current_principal
from analytics_service.core.filters import AnalyticsFilter, DateRange, GroupBy, as_utc
from analytics_service.db.dependencies import get_db_session
from analytics_service.services.analytics_service import AnalyticsService

router = APIRouter(prefix="/analytics", tags=["analytics"])


def _service(db: Session) -> AnalyticsService:
    return AnalyticsService(db)


def _parse_timestamp(value: str | None) -> datetime | None:
    """RFC3339 timestamp, or ``None`` when missing or unparsable."""

    if value is None or not value.strip():
        return None
    try:
        return as_utc(datetime.fromisoformat(value.strip()))
    except ValueError:
        return None


def _parse_uuid(value: str | None) -> UUID | None:
    if value is None or not value.strip():
        return None
    try:
        return UUID(value.strip())
    except ValueError:
        return None


def date_range_params(
    from_: str | None = Query(default=None, alias="from"),
    to: str | None = Query(default=None),
) -> DateRange:
    return DateRange(start=_parse_timestamp(from_), end=_parse_timestamp(to))


def analytics_filter_params(
    period: DateRange = Depends(date_range_params),
    group_by: str | None = None,
    contractor_id: str | None = None,
    driver_id: str | None = None,
    polygon_id: str | None = None,
    camera_id: str | None = None,
    violation_type: str | None = None,
) -> AnalyticsFilter:
    """Lenient filter parsing: malformed values are treated as absent."""

    return AnalyticsFilter(
        period=period,
        contractor_id=_parse_uuid(contractor_id),
        driver_id=_parse_uuid(driver_id),
        polygon_id=_parse_uuid(polygon_id),
        camera_id=_parse_uuid(camera_id),
        violation_type=(violation_type or "").strip() or None,
        group_by=GroupBy.parse(group_by),
    )


def _data(payload: BaseModel | list[BaseModel]) -> dict[str, object]:
    if isinstance(payload, list):
        return {"data": [item.model_dump(mode="json", by_alias=True) for item in payload]}
    return {"data": payload.model_dump(mode="json", by_alias=True)}


@router.get("/dashboard")
def get_dashboard(
    period: DateRange = Depends(date_range_params),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    return _data(_service(db).dashboard(principal, period))


@router.get("/trips")
def get_trip_analytics(
    filter_: AnalyticsFilter = Depends(analytics_filter_params),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    return _data(_service(db).trips(principal, filter_))


@router.get("/trips/{trip_id}")
def get_trip_details(
    trip_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    parsed = _parse_uuid(trip_id)
    if parsed is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="invalid trip id")
    return _data(_service(db).trip_details(principal, parsed))


@router.get("/violations")
def get_violation_analytics(
    filter_: AnalyticsFilter = Depends(analytics_filter_params),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    return _data(_service(db).violations(principal, filter_))


@router.get("/performance")
def get_performance_analytics(
    filter_: AnalyticsFilter = Depends(analytics_filter_params),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    return _data(_service(db).performance(principal, filter_))


@router.get("/contracts")
def get_contract_analytics(
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    return _data(_service(db).contracts(principal))


@router.get("/areas")
def list_areas(
    filter_: AnalyticsFilter = Depends(analytics_filter_params),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    return _data(_service(db).areas(principal, filter_))


@router.get("/drivers")
def list_drivers(
    filter_: AnalyticsFilter = Depends(analytics_filter_params),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    return _data(_service(db).drivers(principal, filter_))


@router.get("/vehicles")
def list_vehicles(
    filter_: AnalyticsFilter = Depends(analytics_filter_params),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    return _data(_service(db).vehicles(principal, filter_))


@router.get("/technical")
def get_technical_analytics(
    period: DateRange = Depends(date_range_params),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    return _data(_service(db).technical(principal, period))
