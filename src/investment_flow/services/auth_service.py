"""Bearer token issuing and verification for the read API.

Tokens are HS256 JWTs signed with ``auth_jwt_secret``:

    sub        wallet address of the caller (stored lower-case)
    tenant_id  tenant whose audit entries the caller may read
    roles      platform roles, informational for now
    iss/iat/exp

The tenant a request is scoped to always comes from a verified token, never
from a request header.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import jwt

from investment_flow.config import get_settings
from investment_flow.domain.addresses import normalize_address
from investment_flow.domain.exceptions import AuthenticationError
from investment_flow.logging_config import get_logger

if TYPE_CHECKING:
    from collections.abc import Iterable

    from investment_flow.config import Settings

logger = get_logger(__name__)


@dataclass(frozen=True)
class Principal:
    """The authenticated caller of an API request."""

    subject: str
    tenant_id: str | None = None
    roles: frozenset[str] = field(default_factory=frozenset)


def issue_access_token(
    subject: str,
    tenant_id: str | None = None,
    roles: Iterable[str] = (),
    expires_in: int | None = None,
    settings: Settings | None = None,
) -> str:
    """Sign a token for ``subject``; ``expires_in`` defaults to the configured TTL."""
    settings = settings or get_settings()
    now = int(time.time())
    ttl = settings.auth_token_ttl_seconds if expires_in is None else expires_in
    claims: dict[str, object] = {
        "sub": normalize_address(subject),
        "iss": settings.auth_jwt_issuer,
        "iat": now,
        "exp": now + ttl,
        "roles": sorted(roles),
    }
    if tenant_id:
        claims["tenant_id"] = tenant_id
    return jwt.encode(claims, settings.auth_jwt_secret, algorithm=settings.auth_jwt_algorithm)


def verify_access_token(token: str, settings: Settings | None = None) -> Principal:
    """Decode and validate a bearer token, raising AuthenticationError on any failure."""
    settings = settings or get_settings()
    try:
        claims = jwt.decode(
            token,
            settings.auth_jwt_secret,
            algorithms=[settings.auth_jwt_algorithm],
            issuer=settings.auth_jwt_issuer,
            options={"require": ["sub", "exp", "iss"]},
        )
    except jwt.ExpiredSignatureError as exc:
        logger.warning("auth.token_expired")
        raise AuthenticationError("Token has expired", code="TOKEN_EXPIRED") from exc
    except jwt.InvalidTokenError as exc:
        logger.warning("auth.token_invalid", error=str(exc))
        raise AuthenticationError("Invalid token", code="INVALID_TOKEN") from exc

    tenant_id = claims.get("tenant_id")
    return Principal(
        subject=normalize_address(str(claims["sub"])),
        tenant_id=str(tenant_id) if tenant_id else None,
        roles=frozenset(str(r) for r in claims.get("roles") or ()),
    )
