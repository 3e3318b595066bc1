"""
avawallet - HD wallet for the Avalanche X-Chain

Provides balance scanning, UTXO selection, transaction building, partial
signing and a two-party token offer flow.
"""

__version__ = "1.0.0"

from avawallet.config import Settings, get_settings
from avawallet.errors import (
    DeserializationError,
    IncompleteSignature,
    InsufficientFunds,
    InvalidSeed,
    NetworkError,
    NoUsableUTXO,
    ValidationError,
    WalletError,
)
from avawallet.models import UTXO, AddressReferences, OfferMessage, WalletState
from avawallet.offer import OfferProtocol, OfferState
from avawallet.wallet.service import WalletService

__all__ = [
    "AddressReferences",
    "DeserializationError",
    "IncompleteSignature",
    "InsufficientFunds",
    "InvalidSeed",
    "NetworkError",
    "NoUsableUTXO",
    "OfferMessage",
    "OfferProtocol",
    "OfferState",
    "Settings",
    "UTXO",
    "ValidationError",
    "WalletError",
    "WalletService",
    "WalletState",
    "get_settings",
]
