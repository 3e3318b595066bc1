"""
Chain service backends.
"""

from avawallet.backends.avalanche import AvalancheBackend
from avawallet.backends.base import AssetBalance, AssetDescription, ChainService

__all__ = ["AssetBalance", "AssetDescription", "AvalancheBackend", "ChainService"]
