"""Authorizer implementations.

Administrative calls never compare the caller against a hard-coded owner.
They ask an Authorizer whether the caller holds a Capability, so the role
system can change without touching the state machines.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from investment_flow.domain.addresses import normalize_address
from investment_flow.domain.enums import Capability
from investment_flow.domain.exceptions import UnauthorizedError

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from investment_flow.contracts.chain import Chain
    from investment_flow.domain.protocols import Authorizer


class OwnerAuthorizer:
    """A single owner holds every capability."""

    def __init__(self, owner: str) -> None:
        self.owner = normalize_address(owner)

    def has_capability(self, principal: str, capability: Capability) -> bool:
        return normalize_address(principal) == self.owner


class RoleAuthorizer:
    """Multi-principal grants, e.g. an owner plus tenant managers.

    Usage:
        auth = RoleAuthorizer({owner: set(Capability)})
        auth.grant(manager, Capability.MANAGE_WHITELIST, Capability.PAUSE)
    """

    def __init__(self, grants: Mapping[str, Iterable[Capability]] | None = None) -> None:
        self._grants: dict[str, set[Capability]] = {
            normalize_address(principal): set(caps) for principal, caps in (grants or {}).items()
        }

    def grant(self, principal: str, *capabilities: Capability) -> None:
        self._grants.setdefault(normalize_address(principal), set()).update(capabilities)

    def revoke(self, principal: str, *capabilities: Capability) -> None:
        principal = normalize_address(principal)
        held = self._grants.get(principal)
        if held is None:
            return
        held.difference_update(capabilities)
        if not held:
            del self._grants[principal]

    def has_capability(self, principal: str, capability: Capability) -> bool:
        return capability in self._grants.get(normalize_address(principal), ())


class EscrowAdminAuthorizer:
    """Grants ESCROW_ADMIN to whoever the escrow registry reports as an admin."""

    def __init__(self, chain: Chain, registry_address: str) -> None:
        self._chain = chain
        self._registry_address = registry_address

    def has_capability(self, principal: str, capability: Capability) -> bool:
        if capability is not Capability.ESCROW_ADMIN:
            return False
        registry = self._chain.find_contract(self._registry_address)
        is_admin = getattr(registry, "is_admin", None)
        return bool(is_admin is not None and is_admin(principal))


def require_capability(
    authorizer: Authorizer,
    principal: str,
    capability: Capability,
) -> None:
    """Raise UnauthorizedError unless ``principal`` holds ``capability``."""
    if not authorizer.has_capability(principal, capability):
        raise UnauthorizedError(principal, capability.value)
