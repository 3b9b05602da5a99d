"""In-process ledger runtime for the investment contracts.

Provides:
    - Chain: contract registry, native-asset balances, event log and clock.
    - Contract: base class with a deep-copyable storage record.
    - entrypoint: decorator giving each external call all-or-nothing semantics
      and moving attached native value.
    - non_reentrant: per-contract mutual-exclusion guard.

Atomicity:
    The outermost call snapshots every contract's storage, all native balances,
    the event log and the deployment registry. If the call raises, everything
    is restored before the exception propagates. Nested calls join the
    outermost snapshot unless they open an explicit savepoint (used by
    try_call around collaborator calls that are allowed to fail).
"""

from __future__ import annotations

import copy
import functools
import hashlib
from contextlib import contextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeVar

from investment_flow.contracts.clock import Clock, SystemClock
from investment_flow.domain.addresses import normalize_address
from investment_flow.domain.exceptions import (
    AlreadyInitializedError,
    ContractNotFoundError,
    InsufficientBalanceError,
    InvalidAmountError,
    NotInitializedError,
    ReentrancyError,
)
from investment_flow.domain.protocols import CallContext
from investment_flow.logging_config import get_logger

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

logger = get_logger(__name__)

C = TypeVar("C", bound="Contract")


@dataclass(frozen=True)
class ChainEvent:
    """A log entry emitted by a contract during a successful call."""

    index: int
    contract: str
    contract_type: str
    name: str
    payload: dict[str, Any]
    timestamp: int


@dataclass
class _Snapshot:
    storage: dict[str, Any]
    native: dict[str, int]
    event_count: int
    nonce: int


@dataclass
class ContractStorage:
    """Base storage record. Subclasses add their own fields."""

    initialized: bool = False


class Chain:
    """Registry and execution environment for deployed contracts.

    Usage:
        chain = Chain(clock=ManualClock())
        token = chain.deploy(FungibleToken)
        token.initialize(CallContext(sender=owner), name="Share", symbol="SHR")
    """

    def __init__(self, clock: Clock | None = None) -> None:
        self.clock: Clock = clock or SystemClock()
        self._contracts: dict[str, Contract] = {}
        self._native: dict[str, int] = {}
        self._events: list[ChainEvent] = []
        self._depth = 0
        self._nonce = 0

    @property
    def now(self) -> int:
        return self.clock.now()

    # ------------------------------------------------------------------
    # Deployment
    # ------------------------------------------------------------------

    def _next_address(self) -> str:
        self._nonce += 1
        digest = hashlib.sha256(f"contract:{self._nonce}".encode()).hexdigest()
        return "0x" + digest[:40]

    def deploy(self, contract_cls: type[C]) -> C:
        """Create an uninitialized contract at a fresh address."""
        address = self._next_address()
        contract = contract_cls(self, address)
        self._contracts[address] = contract
        logger.debug("chain.deployed", address=address, contract_type=contract.contract_type)
        return contract

    def find_contract(self, address: str) -> Contract | None:
        return self._contracts.get(normalize_address(address))

    def contract_at(self, address: str, expected: type[C]) -> C:
        """Return the contract at ``address``, checking its type."""
        contract = self._contracts.get(normalize_address(address))
        if contract is None or not isinstance(contract, expected):
            raise ContractNotFoundError(address)
        return contract

    def contracts_of(self, expected: type[C]) -> list[C]:
        """Deployed contracts of one type, in deployment order."""
        return [c for c in self._contracts.values() if isinstance(c, expected)]

    def is_contract(self, address: str) -> bool:
        return normalize_address(address) in self._contracts

    @property
    def contract_count(self) -> int:
        return len(self._contracts)

    # ------------------------------------------------------------------
    # Native asset
    # ------------------------------------------------------------------

    def native_balance_of(self, account: str) -> int:
        return self._native.get(normalize_address(account), 0)

    def mint_native(self, account: str, amount: int) -> None:
        """Credit native balance out of thin air (genesis allocation / faucet)."""
        if amount <= 0:
            raise InvalidAmountError("Native allocation must be positive")
        account = normalize_address(account)
        self._native[account] = self.native_balance_of(account) + amount

    def transfer_native(self, sender: str, to: str, amount: int, notify: bool = True) -> None:
        """Move native value; a receiving contract gets its on_native_received hook."""
        if amount < 0:
            raise InvalidAmountError("Native transfer amount cannot be negative")
        if amount == 0:
            return
        sender, to = normalize_address(sender), normalize_address(to)
        available = self.native_balance_of(sender)
        if available < amount:
            raise InsufficientBalanceError(sender, amount, available)
        self._native[sender] = available - amount
        self._native[to] = self.native_balance_of(to) + amount

        receiver = self._contracts.get(to)
        if notify and receiver is not None:
            receiver.on_native_received(CallContext(sender=sender, value=amount))

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def emit(self, contract: Contract, name: str, **payload: Any) -> ChainEvent:
        evt = ChainEvent(
            index=len(self._events),
            contract=contract.address,
            contract_type=contract.contract_type,
            name=name,
            payload=payload,
            timestamp=self.now,
        )
        self._events.append(evt)
        return evt

    @property
    def events(self) -> list[ChainEvent]:
        return list(self._events)

    def events_since(self, index: int) -> list[ChainEvent]:
        return self._events[index:]

    # ------------------------------------------------------------------
    # Atomicity
    # ------------------------------------------------------------------

    def _snapshot(self) -> _Snapshot:
        return _Snapshot(
            storage={addr: c.snapshot_storage() for addr, c in self._contracts.items()},
            native=dict(self._native),
            event_count=len(self._events),
            nonce=self._nonce,
        )

    def _restore(self, snap: _Snapshot) -> None:
        for address in list(self._contracts):
            if address not in snap.storage:
                del self._contracts[address]
            else:
                self._contracts[address].restore_storage(snap.storage[address])
        self._native = snap.native
        del self._events[snap.event_count:]
        self._nonce = snap.nonce

    @contextmanager
    def atomic(self, savepoint: bool = False) -> Iterator[None]:
        """Run a block with all-or-nothing effects on chain state."""
        snap = self._snapshot() if (self._depth == 0 or savepoint) else None
        self._depth += 1
        try:
            yield
        except Exception as exc:
            if snap is not None:
                self._restore(snap)
                logger.debug(
                    "chain.reverted",
                    depth=self._depth,
                    savepoint=savepoint,
                    error=str(exc),
                )
            raise
        finally:
            self._depth -= 1

    def savepoint(self) -> Any:
        """Context manager that rolls back only the enclosed block on failure."""
        return self.atomic(savepoint=True)


class Contract:
    """Base class for everything deployed on a Chain.

    State that must roll back with a failed call lives in ``self._storage``
    (a dataclass that deep-copies cleanly). References to collaborators are
    stored as addresses and resolved through the chain on each use.
    """

    contract_type = "contract"
    storage_class: type[ContractStorage] = ContractStorage

    def __init__(self, chain: Chain, address: str) -> None:
        self.chain = chain
        self.address = address
        self._storage = self.storage_class()
        self._entered = False

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.address}>"

    # --- storage ---

    def snapshot_storage(self) -> ContractStorage:
        return copy.deepcopy(self._storage)

    def restore_storage(self, storage: ContractStorage) -> None:
        # In place: frames still running below a savepoint hold this object.
        vars(self._storage).update(vars(storage))

    # --- lifecycle ---

    @property
    def initialized(self) -> bool:
        return self._storage.initialized

    def _initialize_once(self) -> None:
        if self._storage.initialized:
            raise AlreadyInitializedError(self.address)
        self._storage.initialized = True

    def _require_initialized(self) -> None:
        if not self._storage.initialized:
            raise NotInitializedError(self.address)

    # --- helpers ---

    def _as_caller(self, value: int = 0) -> CallContext:
        """Context for a call this contract makes to another contract."""
        return CallContext(sender=self.address, value=value)

    def _emit(self, name: str, **payload: Any) -> ChainEvent:
        return self.chain.emit(self, name, **payload)

    def on_native_received(self, ctx: CallContext) -> None:
        """Hook run when native value is sent here outside a payable call."""

    @property
    def native_balance(self) -> int:
        return self.chain.native_balance_of(self.address)


def entrypoint(payable: bool = False) -> Callable:
    """Mark a method as an external call: atomic, with optional native value."""

    def decorator(fn: Callable) -> Callable:
        @functools.wraps(fn)
        def wrapper(self: Contract, ctx: CallContext, *args: Any, **kwargs: Any) -> Any:
            with self.chain.atomic():
                if ctx.value:
                    if not payable:
                        raise InvalidAmountError(f"{fn.__name__} does not accept native value")
                    self.chain.transfer_native(ctx.sender, self.address, ctx.value, notify=False)
                return fn(self, ctx, *args, **kwargs)

        return wrapper

    return decorator


def non_reentrant(fn: Callable) -> Callable:
    """Reject any nested call into a guarded function of the same contract."""

    @functools.wraps(fn)
    def wrapper(self: Contract, *args: Any, **kwargs: Any) -> Any:
        if self._entered:
            raise ReentrancyError(self.address, fn.__name__)
        self._entered = True
        try:
            return fn(self, *args, **kwargs)
        finally:
            self._entered = False

    return wrapper


__all__ = [
    "Chain",
    "ChainEvent",
    "Contract",
    "ContractStorage",
    "entrypoint",
    "non_reentrant",
]
