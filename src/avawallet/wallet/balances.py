"""
Balance aggregation across the wallet's HD addresses.

Addresses are scanned in pages of at most 20 (the node's batch ceiling).
Scanning continues while pages keep showing balances and at least until the
previously recorded ``next_address`` is covered.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from decimal import Decimal

from loguru import logger

from avawallet.backends.base import AssetDescription, ChainService
from avawallet.constants import (
    AVAX_DENOMINATION,
    MAX_ADDRESS_BATCH,
    MAX_SCAN_INDEX,
    MAX_SECP_TYPE_ID,
)
from avawallet.errors import ValidationError
from avawallet.models import (
    UTXO,
    AddressBalance,
    AddressData,
    AddressUtxos,
    AssetAmount,
    WalletState,
)
from avawallet.tx.codec import ChainUTXO
from avawallet.wallet.address import cb58_encode, parse_address
from avawallet.wallet.deriver import AddressDeriver
from avawallet.wallet.store import WalletStore

AVAX_ALIAS = "AVAX"


@dataclass
class TokenSummary:
    asset_id: str
    symbol: str
    total: Decimal


class BalanceAggregator:
    def __init__(
        self,
        backend: ChainService,
        store: WalletStore | None = None,
        page_size: int = MAX_ADDRESS_BATCH,
    ):
        if not 0 < page_size <= MAX_ADDRESS_BATCH:
            raise ValidationError(f"limit must be {MAX_ADDRESS_BATCH} or less.")
        self.backend = backend
        self.store = store
        self.page_size = page_size
        self._derivers: dict[tuple[str, str], AddressDeriver] = {}

    def deriver_for(self, wallet: WalletState) -> AddressDeriver:
        key = (wallet.mnemonic, wallet.network)
        deriver = self._derivers.get(key)
        if deriver is None:
            deriver = AddressDeriver.from_wallet(wallet)
            self._derivers[key] = deriver
        return deriver

    def check_network(self, wallet: WalletState) -> None:
        """
        Raises:
            ValidationError: If the wallet belongs to another network than the node
        """
        if self.deriver_for(wallet).hrp != self.backend.hrp:
            raise ValidationError(
                f"This is a {wallet.network} wallet; "
                f"the node is on the '{self.backend.hrp}' network"
            )

    async def get_address_balances(
        self, address: str, avax_description: AssetDescription, hd_index: int
    ) -> AddressBalance:
        """
        Balance of every asset held by one address.

        Asset descriptions are fetched concurrently and reattached in the
        order the node listed the balances.
        """
        entries = [b for b in await self.backend.get_all_balances(address) if b.balance > 0]
        if not entries:
            return AddressBalance(address=address, hd_index=hd_index)

        async def describe(asset: str) -> AssetDescription:
            if asset == AVAX_ALIAS or asset == avax_description.asset_id_str:
                return avax_description
            return await self.backend.get_asset_description(asset)

        details = await asyncio.gather(*(describe(entry.asset) for entry in entries))

        navax_amount = 0
        assets: list[AssetAmount] = []
        for entry, detail in zip(entries, details):
            if detail is avax_description:
                navax_amount = entry.balance
            assets.append(
                AssetAmount(
                    asset_id=detail.asset_id_str,
                    name=detail.name,
                    symbol=detail.symbol,
                    denomination=detail.denomination,
                    amount=entry.balance,
                )
            )

        return AddressBalance(
            address=address, hd_index=hd_index, navax_amount=navax_amount, assets=assets
        )

    def filter_utxos(
        self, utxos_by_address: list[tuple[str, int, list[ChainUTXO]]], avax_asset_id: bytes
    ) -> tuple[list[AddressUtxos], list[AddressUtxos]]:
        """
        Split chain UTXOs into native-asset and other-asset lists per address.

        Transfer outputs keep their amount; any other output kind counts as 1.
        Addresses without UTXOs are dropped from both lists.
        """
        avax_utxos: list[AddressUtxos] = []
        other_utxos: list[AddressUtxos] = []

        for address, hd_index, chain_utxos in utxos_by_address:
            avax_group = AddressUtxos(address=address, hd_index=hd_index)
            other_group = AddressUtxos(address=address, hd_index=hd_index)

            for chain_utxo in chain_utxos:
                utxo = UTXO(
                    txid=chain_utxo.txid,
                    output_idx=chain_utxo.output_idx,
                    amount=chain_utxo.amount,
                    asset_id=cb58_encode(chain_utxo.asset_id),
                    type_id=chain_utxo.type_id,
                    hd_index=hd_index,
                    address=address,
                )
                if chain_utxo.asset_id == avax_asset_id:
                    avax_group.utxos.append(utxo)
                else:
                    other_group.utxos.append(utxo)

            if avax_group.utxos:
                avax_utxos.append(avax_group)
            if other_group.utxos:
                other_utxos.append(other_group)

        return avax_utxos, other_utxos

    async def get_address_data(self, wallet: WalletState, index: int, limit: int) -> AddressData:
        """
        Balances and UTXOs for the addresses [index, index + limit).

        Raises:
            ValidationError: If index is negative or limit is not in 1..20
        """
        if not isinstance(index, int) or index < 0:
            raise ValidationError("index must be supplied as a number.")
        if not isinstance(limit, int) or limit <= 0:
            raise ValidationError("limit must be supplied as a non-zero number.")
        if limit > MAX_ADDRESS_BATCH:
            raise ValidationError(f"limit must be {MAX_ADDRESS_BATCH} or less.")

        self.check_network(wallet)
        logger.debug(f"Getting address data at index {index} up to index {index + limit}")

        addresses = self.deriver_for(wallet).addresses(index, limit)

        avax_asset_id = await self.backend.get_avax_asset_id()
        avax_description = await self.backend.get_asset_description(cb58_encode(avax_asset_id))

        data = AddressData()
        for i, address in enumerate(addresses):
            balance = await self.get_address_balances(address, avax_description, index + i)
            # Empty addresses still consume their index
            if not balance.assets:
                continue
            data.balances.append(balance)
            data.navax_amount += balance.navax_amount

        chain_utxos = await self.backend.get_utxos(addresses)

        grouped: list[tuple[str, int, list[ChainUTXO]]] = []
        for i, address in enumerate(addresses):
            short_id = parse_address(address)
            owned = [
                u
                for u in chain_utxos
                if short_id in u.addresses and u.type_id < MAX_SECP_TYPE_ID
            ]
            grouped.append((address, index + i, owned))

        data.avax_utxos, data.other_utxos = self.filter_utxos(grouped, avax_asset_id)
        return data

    @staticmethod
    def detect_balance(balances: list[AddressBalance]) -> bool:
        return any(balance.assets for balance in balances)

    async def get_all_address_data(self, wallet: WalletState) -> AddressData:
        """
        Scan pages until one has no balance and next_address is covered.

        Pages without balance are not included in the result.
        """
        result = AddressData()
        current_index = 0
        batch_has_balance = True

        while batch_has_balance or current_index < wallet.next_address:
            page = await self.get_address_data(wallet, current_index, self.page_size)
            current_index += self.page_size

            batch_has_balance = self.detect_balance(page.balances)
            if batch_has_balance:
                result.extend(page)

            if current_index > MAX_SCAN_INDEX:
                logger.warning(f"Stopping address scan at index {current_index}")
                break

        logger.info(
            f"Scanned {current_index} addresses: {len(result.balances)} with balance, "
            f"{sum(len(g.utxos) for g in result.avax_utxos)} AVAX UTXOs, "
            f"{sum(len(g.utxos) for g in result.other_utxos)} other UTXOs"
        )
        return result

    @staticmethod
    def update_addresses(wallet: WalletState, balances: list[AddressBalance]) -> dict[int, str]:
        addresses = dict(wallet.addresses)
        for balance in balances:
            addresses[balance.hd_index] = balance.address
        return addresses

    @staticmethod
    def summarize_token_balances(balances: list[AddressBalance]) -> list[TokenSummary]:
        """Total per asset across all addresses, in display units."""
        totals: dict[str, int] = {}
        meta: dict[str, tuple[str, int]] = {}
        for balance in balances:
            for asset in balance.assets:
                totals[asset.asset_id] = totals.get(asset.asset_id, 0) + asset.amount
                meta[asset.asset_id] = (asset.symbol, asset.denomination)

        summary = []
        for asset_id, total in totals.items():
            symbol, denomination = meta[asset_id]
            summary.append(TokenSummary(asset_id, symbol, Decimal(total).scaleb(-denomination)))

        logger.info("Avalanche Token Summary:")
        logger.info("Balance Name TokenID")
        for row in summary:
            logger.info(f"{str(row.total):>7} {row.symbol:>4} {row.asset_id}")
        return summary

    def apply(self, wallet: WalletState, data: AddressData) -> WalletState:
        """Write a scan result into the wallet state."""
        wallet.balances = data.balances
        wallet.avax_utxos = data.avax_utxos
        wallet.other_utxos = data.other_utxos
        wallet.addresses = self.update_addresses(wallet, data.balances)
        wallet.avax_amount = float(Decimal(data.navax_amount).scaleb(-AVAX_DENOMINATION))
        if wallet.addresses:
            wallet.next_address = max(wallet.next_address, max(wallet.addresses) + 1)
        return wallet

    async def update_balances(self, name: str) -> WalletState:
        if self.store is None:
            raise ValidationError("A wallet store is required to update balances")

        wallet = self.store.load(name)
        data = await self.get_all_address_data(wallet)
        self.summarize_token_balances(data.balances)
        self.apply(wallet, data)
        self.store.save(name, wallet)
        return wallet
