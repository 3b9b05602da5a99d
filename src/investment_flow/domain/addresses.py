"""Account address conventions.

Addresses are EVM-style hex strings: ``0x`` followed by 40 hex digits. The
zero address doubles as the identifier of the chain's native asset.

Hex digits are case-insensitive, so every address is stored and looked up in
lower case. ``0xAB...`` and ``0xab...`` name the same account.
"""

from __future__ import annotations

import re

from investment_flow.domain.exceptions import InvalidAddressError

ZERO_ADDRESS = "0x" + "0" * 40
NATIVE_ASSET = ZERO_ADDRESS

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


def is_address(value: object) -> bool:
    return isinstance(value, str) and bool(_ADDRESS_RE.match(value))


def normalize_address(value: str) -> str:
    """Lower-case a well-formed address; anything else is returned unchanged."""
    return value.lower() if is_address(value) else value


def require_address(value: object, allow_zero: bool = False) -> str:
    """Return ``value`` in canonical lower case, or raise InvalidAddressError."""
    if not is_address(value):
        raise InvalidAddressError(str(value))
    address = str(value).lower()
    if not allow_zero and address == ZERO_ADDRESS:
        raise InvalidAddressError(str(value))
    return address


def is_native(currency: str) -> bool:
    return normalize_address(currency) == NATIVE_ASSET
