"""Contract queries joined with accumulated usage."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from sqlalchemy import Row, func, select
from sqlalchemy.orm import Session

from analytics_service.core.scope import Scope
from analytics_service.models.entities import Contract, Organization
from analytics_service.models.rollups import contract_usage
from analytics_service.repositories.scoping import CONTRACT_SCOPE, apply_scope


class ContractRepository:
    def __init__(self, db: Session) -> None:
        self.db = db

    def list_with_usage(self, scope: Scope) -> Sequence[Row[Any]]:
        stmt = (
            select(
                Contract,
                func.coalesce(Organization.name, "Contractor").label("contractor_name"),
                func.coalesce(contract_usage.c.total_cost, 0).label("total_cost"),
                func.coalesce(contract_usage.c.total_volume_m3, 0).label("total_volume"),
            )
            .select_from(Contract)
            .outerjoin(contract_usage, contract_usage.c.contract_id == Contract.id)
            .outerjoin(Organization, Organization.id == Contract.contractor_id)
            .order_by(Contract.end_at.asc(), Contract.id.asc())
        )
        return self.db.execute(apply_scope(stmt, scope, CONTRACT_SCOPE)).all()
