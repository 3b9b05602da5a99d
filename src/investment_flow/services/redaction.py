"""Field-level redaction for audit details.

Security-critical values are replaced outright; personally identifying values
are partially masked so entries stay useful for debugging. Keys are matched
case-insensitively and regardless of ``snake_case``/``camelCase`` spelling,
so ``private_key``, ``privateKey`` and ``PRIVATE-KEY`` are all redacted.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

REDACTED = "[REDACTED]"
MASKED = "[MASKED]"


def _normalize(key: str) -> str:
    return key.replace("_", "").replace("-", "").lower()


# Never persisted
REDACT_FIELDS = frozenset(
    _normalize(k)
    for k in (
        "jwt", "token", "access_token", "refresh_token", "api_key", "api_secret",
        "password", "password_hash", "secret", "private_key", "signing_key",
        "ssn", "social_security_number", "tax_id", "passport", "drivers_license",
        "credit_card", "card_number", "cvv", "bank_account", "routing_number",
    )
)

# Persisted as "ab***yz"
MASK_FIELDS = frozenset(
    _normalize(k)
    for k in (
        "email", "phone", "phone_number", "wallet_address", "address",
        "first_name", "last_name", "full_name", "date_of_birth", "dob",
    )
)


def mask_value(value: Any) -> str:
    """Keep the first and last two characters of strings longer than four."""
    if isinstance(value, str) and len(value) > 4:
        return f"{value[:2]}***{value[-2:]}"
    return MASKED


def redact_details(details: Mapping[str, Any] | None) -> dict[str, Any] | None:
    """Return a copy of ``details`` that is safe to store.

    Nested mappings are redacted recursively. Lists are kept as-is.
    """
    if details is None:
        return None

    redacted: dict[str, Any] = {}
    for key, value in details.items():
        normalized = _normalize(str(key))
        if normalized in REDACT_FIELDS:
            redacted[key] = REDACTED
        elif normalized in MASK_FIELDS:
            redacted[key] = mask_value(value)
        elif isinstance(value, Mapping):
            redacted[key] = redact_details(value)
        else:
            redacted[key] = value
    return redacted
