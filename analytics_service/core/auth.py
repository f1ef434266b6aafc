"""Principal extraction from bearer tokens."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol
from uuid import UUID

import jwt
from fastapi import Depends, Header, HTTPException, status

from analytics_service.core.config import get_settings

logger = logging.getLogger(__name__)

BEARER_PREFIX = "bearer"


class Role(str, Enum):
    """Organizational roles asserted by the token issuer."""

    CITY_AUTHORITY = "AKIMAT"
    REGIONAL_AUTHORITY = "KGU"
    CONTRACTOR = "CONTRACTOR"
    TECHNICAL_OPERATOR = "TOO"
    DRIVER = "DRIVER"


@dataclass(frozen=True)
class Principal:
    """Authenticated request actor, built once per request from verified claims."""

    user_id: UUID
    org_id: UUID | None
    role: Role
    driver_id: UUID | None = None


class AuthError(Exception):
    """Token could not be verified or carries unusable claims."""


class TokenVerifier(Protocol):
    def verify(self, token: str) -> Principal: ...


def _optional_uuid(claims: dict[str, Any], key: str) -> UUID | None:
    raw = claims.get(key)
    if raw in (None, ""):
        return None
    try:
        return UUID(str(raw))
    except ValueError as exc:
        raise AuthError(f"claim {key} is not a UUID") from exc


def principal_from_claims(claims: dict[str, Any]) -> Principal:
    """Map decoded token claims onto a :class:`Principal`."""

    user_id = _optional_uuid(claims, "user_id") or _optional_uuid(claims, "sub")
    if user_id is None:
        raise AuthError("token has no user id")

    raw_role = str(claims.get("role") or "").strip().upper()
    try:
        role = Role(raw_role)
    except ValueError as exc:
        raise AuthError(f"unknown role {raw_role!r}") from exc

    return Principal(
        user_id=user_id,
        org_id=_optional_uuid(claims, "org_id"),
        role=role,
        driver_id=_optional_uuid(claims, "driver_id"),
    )


class JwtTokenVerifier:
    """HMAC-signed JWT verifier for tokens minted by the platform auth service."""

    def __init__(self, secret: str, algorithm: str = "HS256") -> None:
        self.secret = secret
        self.algorithm = algorithm

    def verify(self, token: str) -> Principal:
        try:
            claims = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except jwt.PyJWTError as exc:
            raise AuthError("invalid token") from exc
        return principal_from_claims(claims)


def get_token_verifier() -> TokenVerifier:
    settings = get_settings()
    return JwtTokenVerifier(settings.auth_access_secret, settings.auth_algorithm)


def _extract_bearer(authorization: str | None) -> str:
    if not authorization or not authorization.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="authorization header missing",
        )
    parts = authorization.strip().split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != BEARER_PREFIX or not parts[1].strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="invalid authorization header",
        )
    return parts[1].strip()


def get_current_principal(
    authorization: str | None = Header(default=None),
    verifier: TokenVerifier = Depends(get_token_verifier),
) -> Principal:
    """Resolve the request principal from ``Authorization: Bearer <token>``."""

    token = _extract_bearer(authorization)
    try:
        return verifier.verify(token)
    except AuthError as exc:
        logger.info("Rejected bearer token: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="invalid token",
        ) from exc
