"""Process-wide Chain instance served by the read API.

Provides:
    - init_chain: create (or replace) the shared chain at startup.
    - get_chain: return it, creating one on a system clock if needed.
    - close_chain: drop it at shutdown.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from investment_flow.contracts.chain import Chain
from investment_flow.logging_config import get_logger

if TYPE_CHECKING:
    from investment_flow.contracts.clock import Clock

logger = get_logger(__name__)

_chain: Chain | None = None


def init_chain(clock: Clock | None = None) -> Chain:
    global _chain
    _chain = Chain(clock=clock)
    logger.info("chain.initialized", clock=type(_chain.clock).__name__)
    return _chain


def get_chain() -> Chain:
    """Return the shared chain (lazy singleton)."""
    if _chain is None:
        return init_chain()
    return _chain


def close_chain() -> None:
    global _chain
    if _chain is not None:
        logger.info("chain.closed", contracts=_chain.contract_count, events=len(_chain.events))
        _chain = None
