"""Tests for the logging setup."""

from __future__ import annotations

import logging

import structlog
from chain_helpers import ALICE, BOB

from investment_flow.logging_config import setup_logging, shorten_addresses


class TestShortenAddresses:
    def test_single_and_list_values(self) -> None:
        event = {
            "event": "sale.whitelist_added",
            "sale": ALICE,
            "accounts": [ALICE, BOB],
            "tokens": 100,
            "reason": "0x1234",
        }

        out = shorten_addresses(None, "info", event)

        assert out["sale"] == "0xa1a1…a1a1"
        assert out["accounts"] == ["0xa1a1…a1a1", "0xb2b2…b2b2"]
        assert out["tokens"] == 100
        assert out["reason"] == "0x1234"

    def test_mixed_list_left_alone(self) -> None:
        event = {"items": [ALICE, "not-an-address"]}
        assert shorten_addresses(None, "info", event)["items"] == [ALICE, "not-an-address"]


class TestSetupLogging:
    def test_console_mode_shortens_addresses(self) -> None:
        setup_logging(log_level="warning", json_logs=False)
        assert logging.getLogger().level == logging.WARNING
        assert shorten_addresses in structlog.get_config()["processors"]
        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING

    def test_json_mode_keeps_full_addresses(self) -> None:
        setup_logging(log_level="nonsense", json_logs=True)
        assert logging.getLogger().level == logging.DEBUG
        assert shorten_addresses not in structlog.get_config()["processors"]
