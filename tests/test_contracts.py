from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from analytics_service.core.scope import CityScope
from analytics_service.db.availability import DataAvailability
from analytics_service.schemas.analytics import ContractResult, ContractStatus
from analytics_service.services.contracts import ContractAggregator, contract_result, contract_status

START = datetime(2024, 11, 1, tzinfo=timezone.utc)
END = datetime(2025, 1, 2, tzinfo=timezone.utc)


def test_contract_status_follows_window() -> None:
    assert contract_status(START, END, START - timedelta(seconds=1)) is ContractStatus.PLANNED
    assert contract_status(START, END, START) is ContractStatus.ACTIVE
    assert contract_status(START, END, END) is ContractStatus.ACTIVE
    assert contract_status(START, END, END + timedelta(seconds=1)) is ContractStatus.EXPIRED


@pytest.mark.parametrize("status", [ContractStatus.PLANNED, ContractStatus.ACTIVE])
@pytest.mark.parametrize(("total", "minimal"), [(0.0, 0.0), (80.0, 100.0), (150.0, 100.0), (5.0, 0.0)])
def test_result_is_none_until_expired(status: ContractStatus, total: float, minimal: float) -> None:
    assert contract_result(status, total, minimal) is ContractResult.NONE


def test_expired_result_compares_total_with_minimal() -> None:
    assert contract_result(ContractStatus.EXPIRED, 80.0, 100.0) is ContractResult.FAIL
    assert contract_result(ContractStatus.EXPIRED, 100.0, 100.0) is ContractResult.SUCCESS
    assert contract_result(ContractStatus.EXPIRED, 0.0, 0.0) is ContractResult.SUCCESS


def test_expired_contract_below_minimal_volume_fails(db_session: Session, seed) -> None:
    contractor = seed.organization("Busy Roads LLP")
    contract = seed.contract(
        "Winter 2025",
        contractor,
        start_at=START,
        end_at=END,
        budget_total=1000.0,
        minimal_volume_m3=100.0,
    )
    seed.trip(
        seed.ticket(contractor),
        datetime(2025, 1, 1, 8, tzinfo=timezone.utc),
        exit_at=datetime(2025, 1, 1, 8, 40, tzinfo=timezone.utc),
        volume=12.0,
    )
    seed.contract_usage(contract, total_cost=400.0, total_volume_m3=80.0)

    aggregator = ContractAggregator(db_session, DataAvailability(db_session))
    [progress] = aggregator.progress(CityScope(), now=datetime(2025, 1, 3, tzinfo=timezone.utc))

    assert progress.ui_status is ContractStatus.EXPIRED
    assert progress.result is ContractResult.FAIL
    assert progress.volume_progress == 0.8
    assert progress.budget_progress == 0.4


def test_contract_report_subsets(client: TestClient, seed, token_headers: Callable[..., dict[str, str]]) -> None:
    contractor = seed.organization("Busy Roads LLP")
    past = datetime(2020, 1, 1, tzinfo=timezone.utc)
    future = datetime(2100, 1, 1, tzinfo=timezone.utc)

    failed = seed.contract("Failed", contractor, start_at=past, end_at=past + timedelta(days=90))
    seed.contract_usage(failed, total_cost=1500.0, total_volume_m3=40.0)
    met = seed.contract("Met", contractor, start_at=past, end_at=past + timedelta(days=60))
    seed.contract_usage(met, total_cost=500.0, total_volume_m3=120.0)
    seed.contract("Planned", contractor, start_at=future, end_at=future + timedelta(days=30))

    response = client.get("/analytics/contracts", headers=token_headers("AKIMAT"))

    assert response.status_code == 200
    data = response.json()["data"]
    statuses = {item["name"]: (item["ui_status"], item["result"]) for item in data["summary"]}
    assert statuses == {
        "Failed": ("EXPIRED", "FAIL"),
        "Met": ("EXPIRED", "SUCCESS"),
        "Planned": ("PLANNED", "NONE"),
    }
    assert [item["name"] for item in data["top_budget"]] == ["Failed", "Met", "Planned"]
    assert [item["name"] for item in data["at_risk"]] == ["Failed"]
    assert [item["name"] for item in data["budget_issues"]] == ["Failed"]


def test_contractor_sees_only_own_contracts(client: TestClient, seed, token_headers: Callable[..., dict[str, str]]) -> None:
    own = seed.organization("Busy Roads LLP")
    other = seed.organization("Quiet Streets LLP")
    for contractor in (own, other):
        contract = seed.contract(
            f"{contractor.name} contract",
            contractor,
            start_at=START,
            end_at=END,
        )
        seed.contract_usage(contract, total_cost=10.0, total_volume_m3=10.0)

    response = client.get("/analytics/contracts", headers=token_headers("CONTRACTOR", own.id))

    assert response.status_code == 200
    assert [item["contractor_id"] for item in response.json()["data"]["summary"]] == [str(own.id)]


def test_contracts_need_usage_relation(
    operational_client: TestClient,
    operational_seed,
    token_headers: Callable[..., dict[str, str]],
) -> None:
    contractor = operational_seed.organization("Busy Roads LLP")
    operational_seed.contract("Winter 2025", contractor, start_at=START, end_at=END)

    response = operational_client.get("/analytics/contracts", headers=token_headers("AKIMAT"))

    assert response.status_code == 200
    assert response.json()["data"] == {"summary": [], "top_budget": [], "at_risk": [], "budget_issues": []}
