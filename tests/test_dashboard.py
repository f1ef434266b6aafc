from __future__ import annotations

import uuid
from collections.abc import Callable
from datetime import datetime, timezone

from fastapi.testclient import TestClient
from sqlalchemy import event
from sqlalchemy.orm import Session

from analytics_service.core.auth import Principal, Role
from analytics_service.core.filters import DateRange
from analytics_service.models.entities import OrganizationType, Trip, TripViolation
from analytics_service.schemas.analytics import ContractStatus
from analytics_service.services.analytics_service import AnalyticsService

PERIOD = {"from": "2025-01-01T00:00:00Z", "to": "2025-01-02T00:00:00Z"}


def _at(hour: int, minute: int = 0, day: int = 1) -> datetime:
    return datetime(2025, 1, day, hour, minute, tzinfo=timezone.utc)


def _seed_city(seed, *, with_usage: bool = True) -> dict[str, object]:
    city = seed.organization("City Akimat", OrganizationType.AKIMAT)
    busy = seed.organization("Busy Roads LLP", parent=city)
    quiet = seed.organization("Quiet Streets LLP", parent=city)
    seed.organization("Retired Contractor", parent=city, is_active=False)

    area = seed.cleaning_area("Esil")
    polygon = seed.polygon("North landfill")
    camera = seed.camera("Gate 1", polygon)
    driver = seed.driver("Aidos Serikov", busy)
    vehicle = seed.vehicle("123ABC01", busy)

    ticket = seed.ticket(busy, created_by=city, area=area)
    seed.ticket(busy, created_by=city, area=area, status="COMPLETED")

    common = {"driver": driver, "vehicle": vehicle, "camera": camera, "polygon": polygon}
    seed.trip(ticket, _at(8), exit_at=_at(8, 40), volume=12.0, **common)
    seed.trip(ticket, _at(9), volume=8.0, **common)
    seed.trip(ticket, _at(10), exit_at=_at(10, 30), volume=10.0, status="OVERLOAD", **common)
    seed.trip(ticket, datetime(2024, 12, 20, 8, tzinfo=timezone.utc), exit_at=datetime(2024, 12, 20, 9, tzinfo=timezone.utc), **common)

    seed.lpr_event(camera, _at(8))
    seed.volume_event(camera, _at(8, 1))

    contract = seed.contract(
        "Winter 2025",
        busy,
        start_at=datetime(2024, 11, 1, tzinfo=timezone.utc),
        end_at=datetime(2025, 3, 1, tzinfo=timezone.utc),
        created_by=city,
    )
    if with_usage:
        seed.contract_usage(contract, total_cost=250.0, total_volume_m3=30.0)
    return {"city": city, "busy": busy, "quiet": quiet, "area": area, "camera": camera, "polygon": polygon}


def test_city_dashboard_sections(client: TestClient, seed, token_headers: Callable[..., dict[str, str]]) -> None:
    data = _seed_city(seed)

    response = client.get("/analytics/dashboard", params=PERIOD, headers=token_headers("AKIMAT"))

    assert response.status_code == 200
    payload = response.json()["data"]
    assert payload["stats"] == {
        "active_trips": 1,
        "completed_trips": 2,
        "tickets_in_progress": 1,
        "violations": 1,
    }
    assert payload["generated_for"] == {"from": "2025-01-01T00:00:00Z", "to": "2025-01-02T00:00:00Z"}

    [area] = payload["areas"]
    assert area["cleaning_area_id"] == str(data["area"].id)
    assert area["trips"] == 3
    assert area["active_trips"] == 1
    assert area["has_violations"] is True
    assert area["trip_heat"] == 1.0

    contractors = payload["contractors"]
    assert [item["name"] for item in contractors["active"]] == ["Busy Roads LLP"]
    assert contractors["active"][0]["count"] == 3
    assert contractors["active"][0]["share"] == 1.0
    assert [item["name"] for item in contractors["idle"]] == ["Quiet Streets LLP"]

    [camera] = payload["cameras"]
    assert camera["camera_id"] == str(data["camera"].id)
    assert camera["lpr_events"] == 1
    assert camera["volume_events"] == 1

    [polygon] = payload["map"]["polygons"]
    assert polygon["trip_count"] == 3
    assert polygon["volume_m3"] == 30.0
    [map_camera] = payload["map"]["cameras"]
    assert map_camera["error_events"] == 1
    assert payload["map"]["areas"][0]["has_active_trips"] is True

    [contract] = payload["contracts"]
    assert contract["budget_progress"] == 0.25
    assert contract["volume_progress"] == 0.3


def test_dashboard_denies_driver_before_any_query(
    client: TestClient,
    db_session: Session,
    token_headers: Callable[..., dict[str, str]],
) -> None:
    statements: list[str] = []

    def record(conn, cursor, statement, parameters, context, executemany) -> None:
        statements.append(statement)

    engine = db_session.get_bind()
    event.listen(engine, "before_cursor_execute", record)
    try:
        response = client.get("/analytics/dashboard", headers=token_headers("DRIVER"))
    finally:
        event.remove(engine, "before_cursor_execute", record)

    assert response.status_code == 403
    assert response.json() == {"error": "permission denied"}
    assert statements == []


def test_dashboard_without_rollups_returns_empty_sections(
    operational_client: TestClient,
    operational_seed,
    token_headers: Callable[..., dict[str, str]],
) -> None:
    _seed_city(operational_seed, with_usage=False)

    response = operational_client.get("/analytics/dashboard", params=PERIOD, headers=token_headers("AKIMAT"))

    assert response.status_code == 200
    payload = response.json()["data"]
    assert payload["contracts"] == []
    assert payload["stats"]["completed_trips"] == 2


def test_dashboard_without_trip_relations_is_zeroed(
    operational_client: TestClient,
    operational_session: Session,
    token_headers: Callable[..., dict[str, str]],
) -> None:
    bind = operational_session.connection()
    TripViolation.__table__.drop(bind=bind)
    Trip.__table__.drop(bind=bind)

    response = operational_client.get("/analytics/dashboard", params=PERIOD, headers=token_headers("AKIMAT"))

    assert response.status_code == 200
    payload = response.json()["data"]
    assert payload["stats"] == {
        "active_trips": 0,
        "completed_trips": 0,
        "tickets_in_progress": 0,
        "violations": 0,
    }
    assert payload["areas"] == []
    assert payload["cameras"] == []
    assert payload["contractors"] == {"active": [], "idle": []}
    assert payload["map"] == {"areas": [], "polygons": [], "cameras": []}


def test_technical_operator_dashboard_shows_cameras_only(
    client: TestClient,
    seed,
    token_headers: Callable[..., dict[str, str]],
) -> None:
    _seed_city(seed)

    response = client.get("/analytics/dashboard", params=PERIOD, headers=token_headers("TOO"))

    assert response.status_code == 200
    payload = response.json()["data"]
    assert len(payload["cameras"]) == 1
    assert payload["stats"]["completed_trips"] == 0
    assert payload["areas"] == []
    assert payload["contracts"] == []


def test_regional_dashboard_lists_only_own_idle_contractors(
    client: TestClient,
    seed,
    token_headers: Callable[..., dict[str, str]],
) -> None:
    data = _seed_city(seed)
    district = seed.organization("District KGU", OrganizationType.KGU)
    seed.organization("District Contractor", parent=district)

    response = client.get(
        "/analytics/dashboard",
        params=PERIOD,
        headers=token_headers("KGU", district.id),
    )

    assert response.status_code == 200
    payload = response.json()["data"]
    assert payload["contractors"]["active"] == []
    assert [item["name"] for item in payload["contractors"]["idle"]] == ["District Contractor"]
    assert payload["stats"]["completed_trips"] == 0
    assert payload["cameras"] == []
    assert str(data["busy"].id) not in response.text


def test_dashboard_contract_status_uses_request_clock(db_session: Session, seed) -> None:
    _seed_city(seed)
    principal = Principal(user_id=uuid.uuid4(), org_id=None, role=Role.CITY_AUTHORITY)
    now = datetime(2025, 2, 15, tzinfo=timezone.utc)
    service = AnalyticsService(db_session)

    dashboard = service.dashboard(principal, DateRange(), now=now)
    contracts = service.contracts(principal, now=now)

    assert [item.ui_status for item in dashboard.contracts] == [ContractStatus.ACTIVE]
    assert [item.ui_status for item in contracts.summary] == [ContractStatus.ACTIVE]
    assert dashboard.generated_for.end == now
