"""Escrow and token-sale state machines for tokenized investment offerings."""

__version__ = "0.1.0"
