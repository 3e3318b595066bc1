"""
Test configuration for avawallet tests.
"""

from __future__ import annotations

import hashlib
from pathlib import Path

import pytest

from avawallet.backends.base import AssetBalance, AssetDescription, ChainService
from avawallet.config import Settings
from avawallet.constants import DEFAULT_CREATION_TX_FEE, DEFAULT_TX_FEE, X_CHAIN_IDS
from avawallet.errors import NetworkError
from avawallet.models import WalletState
from avawallet.tx.codec import (
    ChainUTXO,
    OpaqueOutput,
    SECPMintOutput,
    SECPTransferOutput,
    SignedTx,
)
from avawallet.wallet.address import cb58_decode, cb58_encode, parse_address
from avawallet.wallet.deriver import AddressDeriver
from avawallet.wallet.service import WalletService
from avawallet.wallet.store import WalletStore

AVAX_ASSET_ID = hashlib.sha256(b"avax").digest()

SELLER_MNEMONIC = (
    "abandon abandon abandon abandon abandon abandon "
    "abandon abandon abandon abandon abandon about"
)
BUYER_MNEMONIC = (
    "legal winner thank year wave sausage worth useful legal winner thank yellow"
)


class FakeChainService(ChainService):
    """In-memory X-Chain: assets, UTXOs and a record of issued transactions."""

    def __init__(self, fee: int = DEFAULT_TX_FEE, creation_fee: int = DEFAULT_CREATION_TX_FEE):
        super().__init__(1, X_CHAIN_IDS["mainnet"], "avax")
        self.fee = fee
        self.creation_fee = creation_fee
        self.assets: dict[bytes, AssetDescription] = {
            AVAX_ASSET_ID: AssetDescription(AVAX_ASSET_ID, "Avalanche", "AVAX", 9)
        }
        self.utxos: list[ChainUTXO] = []
        self.issued: list[SignedTx] = []
        # Outputs the wallet cannot parse, keyed by the owner the node indexed them under
        self.opaque_utxos: dict[bytes, list[ChainUTXO]] = {}
        self._tx_counter = 0

    def add_asset(self, name: str, symbol: str, denomination: int) -> str:
        asset_id = hashlib.sha256(name.encode()).digest()
        self.assets[asset_id] = AssetDescription(asset_id, name, symbol, denomination)
        return cb58_encode(asset_id)

    def add_utxo(
        self,
        address: str,
        amount: int,
        asset_id: str | None = None,
        mint: bool = False,
    ) -> ChainUTXO:
        self._tx_counter += 1
        tx_id = hashlib.sha256(f"tx-{self._tx_counter}".encode()).digest()
        asset = cb58_decode(asset_id) if asset_id else AVAX_ASSET_ID
        owner = [parse_address(address)]
        output = (
            SECPMintOutput(addresses=owner)
            if mint
            else SECPTransferOutput(amount=amount, addresses=owner)
        )
        utxo = ChainUTXO(tx_id=tx_id, output_idx=0, asset_id=asset, output=output)
        self.utxos.append(utxo)
        return utxo

    def add_nft_utxo(self, address: str, type_id: int = 11) -> ChainUTXO:
        self._tx_counter += 1
        tx_id = hashlib.sha256(f"tx-{self._tx_counter}".encode()).digest()
        nft_id = hashlib.sha256(b"nft").digest()
        utxo = ChainUTXO(tx_id, 0, nft_id, OpaqueOutput(type_id, b"\x00" * 24))
        self.opaque_utxos.setdefault(parse_address(address), []).append(utxo)
        return utxo

    async def get_asset_description(self, asset_id: str) -> AssetDescription:
        if asset_id == "AVAX":
            return self.assets[AVAX_ASSET_ID]
        try:
            return self.assets[cb58_decode(asset_id)]
        except KeyError as e:
            raise NetworkError(f"Unknown asset {asset_id}") from e

    async def get_all_balances(self, address: str) -> list[AssetBalance]:
        short_id = parse_address(address)
        totals: dict[bytes, int] = {}
        for utxo in self.utxos:
            if short_id in utxo.addresses and isinstance(utxo.output, SECPTransferOutput):
                totals[utxo.asset_id] = totals.get(utxo.asset_id, 0) + utxo.amount
        return [
            AssetBalance("AVAX" if asset_id == AVAX_ASSET_ID else cb58_encode(asset_id), total)
            for asset_id, total in totals.items()
        ]

    async def get_utxos(self, addresses: list[str]) -> list[ChainUTXO]:
        short_ids = {parse_address(a) for a in addresses}
        utxos = [u for u in self.utxos if short_ids.intersection(u.addresses)]
        for short_id in short_ids:
            utxos.extend(self.opaque_utxos.get(short_id, []))
        return utxos

    async def get_fees(self) -> tuple[int, int]:
        return self.fee, self.creation_fee

    async def issue_tx(self, signed_tx: SignedTx) -> str:
        if not signed_tx.is_fully_signed:
            raise NetworkError("Transaction is not fully signed")
        self.issued.append(signed_tx)
        return signed_tx.txid


def save_wallet(store: WalletStore, name: str, mnemonic: str, next_address: int = 1) -> WalletState:
    deriver = AddressDeriver(mnemonic, "avax")
    first = deriver.derive(0)
    wallet = WalletState(
        mnemonic=mnemonic,
        address_string=first.address,
        private_key=first.private_key_string,
        next_address=next_address,
        addresses={0: first.address},
    )
    store.save(name, wallet)
    return wallet


@pytest.fixture
def sample_mnemonic() -> str:
    """Test mnemonic (not for production use!)."""
    return SELLER_MNEMONIC


@pytest.fixture
def seller_deriver() -> AddressDeriver:
    return AddressDeriver(SELLER_MNEMONIC, "avax")


@pytest.fixture
def buyer_deriver() -> AddressDeriver:
    return AddressDeriver(BUYER_MNEMONIC, "avax")


@pytest.fixture
def chain() -> FakeChainService:
    return FakeChainService()


@pytest.fixture
def wallets_dir(tmp_path: Path) -> Path:
    return tmp_path / "wallets"


@pytest.fixture
def settings(wallets_dir: Path) -> Settings:
    return Settings(wallets_dir=wallets_dir)


@pytest.fixture
def store(wallets_dir: Path) -> WalletStore:
    return WalletStore(wallets_dir)


@pytest.fixture
def service(settings: Settings, chain: FakeChainService, store: WalletStore) -> WalletService:
    return WalletService(settings, chain, store)
