"""structlog setup shared by the contracts, services, API and simulation.

Log events use dotted names (``sale.purchased``, ``escrow.refunded``,
``chain.reverted``) with addresses and integer amounts as key/value context.
The API binds ``request_id`` through structlog's context variables, so every
contract call made while serving a request carries it.

Console output abbreviates 42-character addresses to ``0xa1a1…a1a1``; JSON
output keeps them whole for log search.

Usage:
    from investment_flow.logging_config import setup_logging, get_logger
    setup_logging(log_level="INFO", json_logs=True)
    logger = get_logger(__name__)
    logger.info("sale.purchased", buyer="0xa1...", tokens=100)
"""

from __future__ import annotations

import logging
import re
import sys
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from collections.abc import MutableMapping

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")

# Libraries that log every statement or request at INFO
_CHATTY_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "aiosqlite", "httpx", "httpcore")


def shorten_addresses(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """Abbreviate address values (and lists of them) for console readability."""
    for key, value in event_dict.items():
        if isinstance(value, str) and _ADDRESS_RE.match(value):
            event_dict[key] = _short(value)
        elif isinstance(value, list | tuple) and value and all(
            isinstance(v, str) and _ADDRESS_RE.match(v) for v in value
        ):
            event_dict[key] = [_short(v) for v in value]
    return event_dict


def _short(address: str) -> str:
    return f"{address[:6]}…{address[-4:]}"


def setup_logging(log_level: str = "DEBUG", json_logs: bool = False) -> None:
    """Route structlog through the stdlib root logger.

    Args:
        log_level: Level name for the root logger; unknown names fall back to DEBUG.
        json_logs: JSON lines (staging/production) instead of the console renderer.
    """
    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    renderer: structlog.types.Processor
    if json_logs:
        renderer = structlog.processors.JSONRenderer()
    else:
        processors.append(shorten_addresses)
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    structlog.configure(
        processors=[*processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.DEBUG))

    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Module-level logger; pass ``__name__``."""
    return structlog.get_logger(name)
