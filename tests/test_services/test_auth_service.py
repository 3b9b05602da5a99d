"""Tests for bearer token issuing and verification."""

from __future__ import annotations

import jwt
import pytest
from chain_helpers import ALICE, shout

from investment_flow.config import Settings, get_settings
from investment_flow.domain.exceptions import AuthenticationError
from investment_flow.services.auth_service import (
    Principal,
    issue_access_token,
    verify_access_token,
)


class TestIssueAndVerify:
    def test_claims_become_principal(self) -> None:
        token = issue_access_token(shout(ALICE), tenant_id="acme", roles=["issuer", "admin"])

        principal = verify_access_token(token)

        assert principal == Principal(
            subject=ALICE, tenant_id="acme", roles=frozenset({"admin", "issuer"})
        )

    def test_token_without_tenant(self) -> None:
        principal = verify_access_token(issue_access_token(ALICE))
        assert principal.tenant_id is None
        assert principal.roles == frozenset()

    def test_ttl_comes_from_settings(self) -> None:
        settings = Settings(auth_token_ttl_seconds=120)
        token = issue_access_token(ALICE, settings=settings)

        claims = jwt.decode(token, options={"verify_signature": False})

        assert claims["exp"] - claims["iat"] == 120
        assert claims["iss"] == settings.auth_jwt_issuer


class TestRejections:
    def test_expired(self) -> None:
        token = issue_access_token(ALICE, tenant_id="acme", expires_in=-1)
        with pytest.raises(AuthenticationError) as exc_info:
            verify_access_token(token)
        assert exc_info.value.code == "TOKEN_EXPIRED"

    def test_wrong_secret(self) -> None:
        other = Settings(auth_jwt_secret="a-different-secret-of-reasonable-length")
        token = issue_access_token(ALICE, tenant_id="acme", settings=other)
        with pytest.raises(AuthenticationError) as exc_info:
            verify_access_token(token)
        assert exc_info.value.code == "INVALID_TOKEN"

    def test_wrong_issuer(self) -> None:
        other = Settings(auth_jwt_issuer="somebody-else")
        token = issue_access_token(ALICE, tenant_id="acme", settings=other)
        with pytest.raises(AuthenticationError):
            verify_access_token(token)

    def test_missing_subject(self) -> None:
        settings = get_settings()
        token = jwt.encode(
            {"exp": 4_000_000_000, "iss": settings.auth_jwt_issuer, "tenant_id": "acme"},
            settings.auth_jwt_secret,
            algorithm=settings.auth_jwt_algorithm,
        )
        with pytest.raises(AuthenticationError) as exc_info:
            verify_access_token(token)
        assert exc_info.value.code == "INVALID_TOKEN"

    def test_unsigned_token(self) -> None:
        token = jwt.encode({"sub": ALICE, "exp": 4_000_000_000}, None, algorithm="none")
        with pytest.raises(AuthenticationError):
            verify_access_token(token)
