"""Organization directory lookups."""

from __future__ import annotations

from collections.abc import Collection
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from analytics_service.models.entities import Organization, OrganizationType


class OrganizationRepository:
    """Read access to the organization hierarchy."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def child_contractors_of(self, org_id: UUID) -> list[UUID]:
        return list(
            self.db.scalars(
                select(Organization.id)
                .where(
                    Organization.parent_org_id == org_id,
                    Organization.type == OrganizationType.CONTRACTOR.value,
                    Organization.is_active.is_(True),
                )
                .order_by(Organization.id.asc())
            ).all()
        )

    def list_active_contractors(
        self,
        *,
        parent_org_id: UUID | None = None,
        exclude_ids: Collection[UUID] = (),
    ) -> list[Organization]:
        stmt = select(Organization).where(
            Organization.type == OrganizationType.CONTRACTOR.value,
            Organization.is_active.is_(True),
        )
        if parent_org_id is not None:
            stmt = stmt.where(Organization.parent_org_id == parent_org_id)
        if exclude_ids:
            stmt = stmt.where(Organization.id.not_in(list(exclude_ids)))
        return list(self.db.scalars(stmt.order_by(Organization.name.asc(), Organization.id.asc())).all())
