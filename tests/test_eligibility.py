from __future__ import annotations

import uuid
from collections.abc import Callable

import pytest
from fastapi.testclient import TestClient

from analytics_service.core.auth import Role
from analytics_service.services.analytics_service import Report, is_report_allowed

DENIED_ROLES = {
    Report.DASHBOARD: {Role.DRIVER},
    Report.TRIPS: {Role.DRIVER},
    Report.TRIP_DETAILS: {Role.DRIVER},
    Report.VIOLATIONS: {Role.DRIVER},
    Report.PERFORMANCE: {Role.DRIVER},
    Report.CONTRACTS: {Role.DRIVER},
    Report.AREAS: {Role.DRIVER, Role.TECHNICAL_OPERATOR},
    Report.DRIVERS: {Role.DRIVER, Role.TECHNICAL_OPERATOR},
    Report.VEHICLES: {Role.DRIVER, Role.TECHNICAL_OPERATOR},
    Report.TECHNICAL: {Role.DRIVER, Role.CONTRACTOR},
}

REPORT_PATHS = {
    Report.DASHBOARD: "/analytics/dashboard",
    Report.TRIPS: "/analytics/trips",
    Report.VIOLATIONS: "/analytics/violations",
    Report.PERFORMANCE: "/analytics/performance",
    Report.CONTRACTS: "/analytics/contracts",
    Report.AREAS: "/analytics/areas",
    Report.DRIVERS: "/analytics/drivers",
    Report.VEHICLES: "/analytics/vehicles",
    Report.TECHNICAL: "/analytics/technical",
}


@pytest.mark.parametrize("report", list(Report))
@pytest.mark.parametrize("role", list(Role))
def test_eligibility_table(report: Report, role: Role) -> None:
    assert is_report_allowed(report, role) is (role not in DENIED_ROLES[report])


@pytest.mark.parametrize("report", list(REPORT_PATHS))
@pytest.mark.parametrize("role", list(Role))
def test_report_endpoints_enforce_eligibility(
    client: TestClient,
    token_headers: Callable[..., dict[str, str]],
    report: Report,
    role: Role,
) -> None:
    response = client.get(REPORT_PATHS[report], headers=token_headers(role.value, uuid.uuid4()))

    if role in DENIED_ROLES[report]:
        assert response.status_code == 403
        assert response.json() == {"error": "permission denied"}
    else:
        assert response.status_code == 200
        assert "data" in response.json()


@pytest.mark.parametrize("role", [Role.CITY_AUTHORITY, Role.REGIONAL_AUTHORITY, Role.CONTRACTOR, Role.TECHNICAL_OPERATOR])
def test_trip_details_for_unknown_trip_is_not_found_for_eligible_roles(
    client: TestClient,
    token_headers: Callable[..., dict[str, str]],
    role: Role,
) -> None:
    response = client.get(f"/analytics/trips/{uuid.uuid4()}", headers=token_headers(role.value, uuid.uuid4()))

    assert response.status_code == 404


def test_trip_details_denied_to_driver(client: TestClient, token_headers: Callable[..., dict[str, str]]) -> None:
    response = client.get(f"/analytics/trips/{uuid.uuid4()}", headers=token_headers("DRIVER", uuid.uuid4()))

    assert response.status_code == 403


def test_organization_role_without_org_is_denied(
    client: TestClient,
    token_headers: Callable[..., dict[str, str]],
) -> None:
    response = client.get("/analytics/trips", headers=token_headers("CONTRACTOR"))

    assert response.status_code == 403
