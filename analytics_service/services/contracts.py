"""Contract progress, derived status and outcome."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy.orm import Session

from analytics_service.core.filters import as_utc, utc_now
from analytics_service.core.scope import Scope
from analytics_service.db.availability import DataAvailability
from analytics_service.repositories.contract_repository import ContractRepository
from analytics_service.schemas.analytics import ContractAnalytics, ContractProgress, ContractResult, ContractStatus
from analytics_service.services.metrics import finite_or_zero, safe_ratio

TOP_LIMIT = 5
CONTRACT_RELATIONS = ("contracts", "organizations", "contract_usage")


def contract_status(start_at: datetime, end_at: datetime, now: datetime) -> ContractStatus:
    if now < as_utc(start_at):
        return ContractStatus.PLANNED
    if now > as_utc(end_at):
        return ContractStatus.EXPIRED
    return ContractStatus.ACTIVE


def contract_result(status: ContractStatus, total_volume: float, minimal_volume: float) -> ContractResult:
    """Outcome is only decided once the contract window has closed."""

    if status is not ContractStatus.EXPIRED:
        return ContractResult.NONE
    if total_volume >= minimal_volume:
        return ContractResult.SUCCESS
    return ContractResult.FAIL


class ContractAggregator:
    def __init__(self, db: Session, availability: DataAvailability) -> None:
        self.contracts = ContractRepository(db)
        self.availability = availability

    def progress(self, scope: Scope, *, now: datetime | None = None) -> list[ContractProgress]:
        if not self.availability.all_exist(*CONTRACT_RELATIONS):
            return []
        now = as_utc(now) or utc_now()
        items: list[ContractProgress] = []
        for row in self.contracts.list_with_usage(scope):
            contract = row.Contract
            budget = finite_or_zero(contract.budget_total)
            minimal = finite_or_zero(contract.minimal_volume_m3)
            cost = finite_or_zero(row.total_cost)
            volume = finite_or_zero(row.total_volume)
            status = contract_status(contract.start_at, contract.end_at, now)
            items.append(
                ContractProgress(
                    contract_id=contract.id,
                    name=contract.name,
                    contractor_id=contract.contractor_id,
                    contractor_name=row.contractor_name,
                    budget_total=budget,
                    total_cost=cost,
                    budget_progress=safe_ratio(cost, budget),
                    minimal_volume_m3=minimal,
                    total_volume_m3=volume,
                    volume_progress=safe_ratio(volume, minimal),
                    ui_status=status,
                    result=contract_result(status, volume, minimal),
                    start_at=as_utc(contract.start_at),
                    end_at=as_utc(contract.end_at),
                )
            )
        return items

    def build(self, scope: Scope, *, now: datetime | None = None) -> ContractAnalytics:
        summary = self.progress(scope, now=now)
        top_budget = sorted(summary, key=lambda item: (-item.budget_progress, str(item.contract_id)))
        at_risk = sorted(
            (
                item
                for item in summary
                if item.ui_status is ContractStatus.EXPIRED and item.result is ContractResult.FAIL
            ),
            key=lambda item: (item.volume_progress, str(item.contract_id)),
        )
        budget_issues = sorted(
            (item for item in summary if item.budget_progress > 1.0),
            key=lambda item: (-item.budget_progress, str(item.contract_id)),
        )
        return ContractAnalytics(
            summary=summary,
            top_budget=top_budget[:TOP_LIMIT],
            at_risk=at_risk[:TOP_LIMIT],
            budget_issues=budget_issues[:TOP_LIMIT],
        )
