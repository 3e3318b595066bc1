"""
Wallet error taxonomy.

Core operations raise these and let them propagate; only the CLI layer
turns them into a logged message and a ``0`` result.
"""

from __future__ import annotations


class WalletError(Exception):
    """Base class for all wallet errors."""


class ValidationError(WalletError):
    """Malformed user input (names, addresses, quantities, flags)."""


class InvalidSeed(WalletError):
    """Wallet has no usable seed material."""


class InsufficientFunds(WalletError):
    """Not enough of an asset to pay a fee or cover an amount."""


class NoUsableUTXO(WalletError):
    """No single UTXO is large enough, even if the aggregate balance is."""


class IncompleteSignature(WalletError):
    """A transaction still has empty credential slots."""


class NetworkError(WalletError):
    """A chain service call failed or was rejected."""


class DeserializationError(WalletError):
    """Malformed hex, binary or JSON at a protocol boundary."""
