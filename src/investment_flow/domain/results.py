"""Fallible-call abstraction.

Calls into external collaborators (fee oracles, partially implemented
interfaces) may revert. ``try_call`` turns such a call into a ``CallResult``
that callers inspect and replace with a default, instead of letting the
exception abort the surrounding operation.
"""

from __future__ import annotations

import contextlib
from dataclasses import dataclass
from typing import TYPE_CHECKING, Generic, TypeVar

if TYPE_CHECKING:
    from collections.abc import Callable
    from contextlib import AbstractContextManager

T = TypeVar("T")


@dataclass(frozen=True)
class CallResult(Generic[T]):
    """Outcome of a fallible call: either a value or the error it raised."""

    value: T | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap_or(self, default: T) -> T:
        """Return the value on success, otherwise ``default``."""
        if self.error is not None or self.value is None:
            return default
        return self.value


def try_call(
    fn: Callable[..., T],
    *args: object,
    savepoint: Callable[[], AbstractContextManager[None]] | None = None,
) -> CallResult[T]:
    """Invoke ``fn`` and capture any exception as a failed ``CallResult``.

    Args:
        fn: The collaborator method to call. A missing method should be
            resolved by the caller with getattr and reported as an error.
        savepoint: Optional context manager factory that isolates state
            changes made by ``fn`` so they are rolled back when it raises.
    """
    scope = savepoint() if savepoint is not None else contextlib.nullcontext()
    try:
        with scope:
            return CallResult(value=fn(*args))
    except Exception as exc:
        return CallResult(error=exc)
