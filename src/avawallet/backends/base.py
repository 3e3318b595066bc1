"""
Base chain service interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from avawallet.tx.codec import ChainUTXO, SignedTx
from avawallet.wallet.address import cb58_decode, cb58_encode


@dataclass
class AssetDescription:
    asset_id: bytes
    name: str
    symbol: str
    denomination: int

    @property
    def asset_id_str(self) -> str:
        return cb58_encode(self.asset_id)


@dataclass
class AssetBalance:
    """One entry of an address' balance list. ``asset`` may be an alias such as AVAX."""

    asset: str
    balance: int


class ChainService(ABC):
    """
    Abstract X-Chain service.

    Everything the wallet needs from the network: asset metadata, balances,
    UTXOs, fees and broadcast. Implementations raise NetworkError on failure.
    """

    def __init__(self, network_id: int, blockchain_id: str, hrp: str):
        self.network_id = network_id
        self.blockchain_id = cb58_decode(blockchain_id)
        self.hrp = hrp
        self._avax_asset_id: bytes | None = None

    @abstractmethod
    async def get_asset_description(self, asset_id: str) -> AssetDescription:
        """Describe an asset by cb58 id or alias"""

    @abstractmethod
    async def get_all_balances(self, address: str) -> list[AssetBalance]:
        """Get every asset balance held by an address"""

    @abstractmethod
    async def get_utxos(self, addresses: list[str]) -> list[ChainUTXO]:
        """Get all UTXOs controlled by the given addresses"""

    @abstractmethod
    async def get_fees(self) -> tuple[int, int]:
        """Return (tx fee, asset creation fee) in nAVAX"""

    @abstractmethod
    async def issue_tx(self, signed_tx: SignedTx) -> str:
        """Broadcast a fully signed transaction, returns txid"""

    async def get_avax_asset_id(self) -> bytes:
        if self._avax_asset_id is None:
            description = await self.get_asset_description("AVAX")
            self._avax_asset_id = description.asset_id
        return self._avax_asset_id

    async def get_default_fee(self) -> int:
        fee, _ = await self.get_fees()
        return fee

    async def get_creation_fee(self) -> int:
        _, creation_fee = await self.get_fees()
        return creation_fee

    async def close(self) -> None:
        """Release network resources"""
