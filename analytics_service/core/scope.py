"""Data-visibility scopes derived from the request principal."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Protocol, TypeAlias
from uuid import UUID

from analytics_service.core.auth import Principal, Role
from analytics_service.core.errors import ScopeUnsupportedError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CityScope:
    """Sees every row."""


@dataclass(frozen=True, slots=True)
class RegionalScope:
    """Own organization's rows plus rows of its child contractors."""

    org_id: UUID
    contractor_ids: tuple[UUID, ...] = ()


@dataclass(frozen=True, slots=True)
class ContractorScope:
    org_id: UUID


@dataclass(frozen=True, slots=True)
class TechnicalScope:
    """Camera and sensor telemetry only; operational relations are invisible."""


Scope: TypeAlias = CityScope | RegionalScope | ContractorScope | TechnicalScope


class OrgDirectory(Protocol):
    def child_contractors_of(self, org_id: UUID) -> Iterable[UUID]: ...


class ScopeResolver:
    """Map a principal onto its :data:`Scope`.

    Only Regional-Authority principals cause I/O: their child contractor ids
    are read from the organization directory.
    """

    def __init__(self, org_directory: OrgDirectory) -> None:
        self.org_directory = org_directory

    def resolve(self, principal: Principal) -> Scope:
        role = principal.role
        if role is Role.CITY_AUTHORITY:
            return CityScope()
        if role is Role.TECHNICAL_OPERATOR:
            return TechnicalScope()
        if role is Role.REGIONAL_AUTHORITY:
            org_id = self._require_org(principal)
            children = sorted(set(self.org_directory.child_contractors_of(org_id)), key=str)
            return RegionalScope(org_id=org_id, contractor_ids=tuple(children))
        if role is Role.CONTRACTOR:
            return ContractorScope(org_id=self._require_org(principal))
        logger.warning("No data scope for role %s (user %s)", role.value, principal.user_id)
        raise ScopeUnsupportedError(f"role {role.value} has no data scope")

    @staticmethod
    def _require_org(principal: Principal) -> UUID:
        if principal.org_id is None:
            logger.warning("Principal %s with role %s has no organization", principal.user_id, principal.role.value)
            raise ScopeUnsupportedError("organization is required for this role")
        return principal.org_id
