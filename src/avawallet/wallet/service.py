"""
Avalanche wallet service: the command-level wallet operations.

Every spending operation refreshes balances, selects inputs, builds the
transaction, signs it with the keys of the input owners and broadcasts it.
Change always goes to a freshly derived address.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from loguru import logger

from avawallet.backends.base import ChainService
from avawallet.config import Settings
from avawallet.constants import NETWORK_HRPS, SECP_TRANSFER_OUTPUT_TYPE_ID
from avawallet.errors import IncompleteSignature, InsufficientFunds, NoUsableUTXO, ValidationError
from avawallet.models import UTXO, AddressUtxos, WalletState
from avawallet.tx.builder import BuiltTx, TransactionBuilder
from avawallet.tx.codec import SignedTx
from avawallet.tx.signer import PartialSigner
from avawallet.wallet.address import parse_address
from avawallet.wallet.balances import BalanceAggregator
from avawallet.wallet.bip32 import generate_mnemonic, mnemonic_to_seed
from avawallet.wallet.deriver import AddressDeriver, KeyChain
from avawallet.wallet.selector import scale_amount, select_utxo
from avawallet.wallet.store import WalletStore


@dataclass
class KeyPair:
    private_key: str
    address: str
    public_key_hex: str


class WalletService:
    def __init__(
        self,
        settings: Settings,
        backend: ChainService,
        store: WalletStore,
        aggregator: BalanceAggregator | None = None,
    ):
        self.settings = settings
        self.backend = backend
        self.store = store
        self.aggregator = aggregator or BalanceAggregator(
            backend, store, page_size=settings.address_page_size
        )

    def deriver_for(self, wallet: WalletState) -> AddressDeriver:
        return self.aggregator.deriver_for(wallet)

    # Wallet lifecycle

    def create_wallet(
        self, name: str, description: str = "", network: str | None = None
    ) -> WalletState:
        if self.store.exists(name):
            raise ValidationError("filename already exist")

        network = network or self.settings.network
        mnemonic = generate_mnemonic(256)
        deriver = AddressDeriver(mnemonic, NETWORK_HRPS[network])
        first = deriver.derive(0)

        wallet = WalletState(
            network=network,
            type="mnemonic",
            seed=mnemonic_to_seed(mnemonic).hex(),
            mnemonic=mnemonic,
            address_string=first.address,
            private_key=first.private_key_string,
            description=description,
            avax_amount=0,
            next_address=1,
            addresses={0: first.address},
        )
        self.store.save(name, wallet)
        logger.info(f"Created {network} wallet {name}")
        return wallet

    def get_address(self, name: str, save: bool = True) -> str:
        """Advance next_address and return the newest address."""
        wallet = self.store.load(name)
        wallet.next_address += 1

        addresses = self.deriver_for(wallet).addresses(0, wallet.next_address)
        wallet.addresses = dict(enumerate(addresses))

        if save:
            self.store.save(name, wallet)
        return addresses[-1]

    def get_key_pair(self, name: str, index: int | None = None) -> KeyPair:
        wallet = self.store.load(name)
        if index is None or index < 0:
            index = wallet.next_address

        derived = self.deriver_for(wallet).derive(index)
        return KeyPair(
            private_key=derived.private_key_string,
            address=derived.address,
            public_key_hex=derived.public_key_hex,
        )

    def list_wallets(self) -> list[tuple[str, str, float]]:
        rows = []
        for name in self.store.list_names():
            wallet = self.store.load(name)
            rows.append((name, wallet.network, wallet.avax_amount))
        return rows

    @staticmethod
    def get_index(address: str, wallet: WalletState) -> int | None:
        for index, known in wallet.addresses.items():
            if known == address:
                return index
        return None

    async def update_balances(self, name: str) -> WalletState:
        return await self.aggregator.update_balances(name)

    # Input selection

    def select_avax_utxo(
        self,
        avax_utxos: list[AddressUtxos],
        target: Decimal | int | str,
        fee: int,
        denomination: int = 0,
        already_scaled: bool = False,
    ) -> UTXO:
        utxo = select_utxo(target, avax_utxos, fee, denomination, already_scaled)
        if utxo is None:
            raise NoUsableUTXO("Could not find a UTXO big enough for this transaction")
        return utxo

    @staticmethod
    def get_token_utxos(asset_id: str, wallet: WalletState) -> list[UTXO]:
        utxos = [
            utxo
            for group in wallet.other_utxos
            for utxo in group.utxos
            if utxo.asset_id == asset_id and utxo.type_id == SECP_TRANSFER_OUTPUT_TYPE_ID
        ]
        if not utxos:
            raise InsufficientFunds("No tokens in the wallet matched the given token ID.")
        return utxos

    # Transaction helpers

    async def get_builder(self) -> TransactionBuilder:
        return TransactionBuilder(
            self.backend.network_id,
            self.backend.blockchain_id,
            await self.backend.get_avax_asset_id(),
        )

    def keychain_for(self, wallet: WalletState, indices: list[int] | range) -> KeyChain:
        return self.deriver_for(wallet).keychain(indices)

    def _validate_address(self, address: str) -> None:
        parse_address(address, self.backend.hrp)

    async def sign_and_broadcast(
        self, wallet: WalletState, built: BuiltTx, utxos: list[UTXO]
    ) -> str:
        keychain = self.keychain_for(wallet, sorted({u.hd_index for u in utxos}))
        signed: SignedTx = PartialSigner(keychain).sign(built.tx, built.references)
        if not signed.is_fully_signed:
            raise IncompleteSignature("The transaction is not fully signed")
        return await self.backend.issue_tx(signed)

    # Spending operations

    async def send(self, name: str, amount: Decimal | str, to_address: str, memo: str = "") -> str:
        """Send an amount of AVAX (display units)."""
        self._validate_address(to_address)
        wallet = await self.update_balances(name)

        avax = await self.backend.get_asset_description("AVAX")
        fee = await self.backend.get_default_fee()
        navax = scale_amount(amount, avax.denomination)

        try:
            utxo = self.select_avax_utxo(wallet.avax_utxos, navax, fee, already_scaled=True)
        except NoUsableUTXO:
            logger.warning("Could not find a UTXO big enough for this transaction.")
            raise

        change_address = self.get_address(name)
        builder = await self.get_builder()
        built = builder.build_transfer(
            utxo, navax, to_address, change_address, fee, memo.encode("utf-8")
        )
        return await self.sign_and_broadcast(wallet, built, [utxo])

    async def send_all(self, name: str, to_address: str, memo: str = "") -> str:
        """Sweep every fungible UTXO of the wallet to one address."""
        self._validate_address(to_address)
        wallet = await self.update_balances(name)
        fee = await self.backend.get_default_fee()

        builder = await self.get_builder()
        built = builder.build_send_all(
            wallet.avax_utxos, wallet.other_utxos, to_address, fee, memo.encode("utf-8")
        )
        spent = [
            u for g in [*wallet.avax_utxos, *wallet.other_utxos] for u in g.utxos if u.is_transfer
        ]
        return await self.sign_and_broadcast(wallet, built, spent)

    async def send_tokens(
        self,
        name: str,
        token_id: str,
        quantity: Decimal | str,
        to_address: str,
        memo: str = "",
    ) -> str:
        self._validate_address(to_address)
        wallet = await self.update_balances(name)

        token_utxos = self.get_token_utxos(token_id, wallet)
        fee = await self.backend.get_default_fee()
        avax_utxo = self.select_avax_utxo(wallet.avax_utxos, 0, fee, already_scaled=True)

        description = await self.backend.get_asset_description(token_id)
        amount = scale_amount(quantity, description.denomination)

        change_address = self.get_address(name)
        builder = await self.get_builder()
        built = builder.build_token_transfer(
            token_utxos, avax_utxo, amount, to_address, change_address, fee, memo.encode("utf-8")
        )
        return await self.sign_and_broadcast(wallet, built, [*token_utxos, avax_utxo])

    async def burn_tokens(
        self, name: str, token_id: str, quantity: Decimal | str, memo: str = ""
    ) -> str:
        wallet = await self.update_balances(name)

        token_utxos = self.get_token_utxos(token_id, wallet)
        fee = await self.backend.get_default_fee()
        avax_utxo = self.select_avax_utxo(wallet.avax_utxos, 0, fee, already_scaled=True)

        description = await self.backend.get_asset_description(token_id)
        amount = scale_amount(quantity, description.denomination)

        change_address = self.get_address(name)
        builder = await self.get_builder()
        built = builder.build_burn(
            token_utxos, avax_utxo, amount, change_address, fee, memo.encode("utf-8")
        )
        return await self.sign_and_broadcast(wallet, built, [*token_utxos, avax_utxo])

    async def create_token(
        self,
        name: str,
        token_name: str,
        symbol: str,
        denomination: int = 9,
        initial: int = 0,
        memo: str = "",
        to_address: str | None = None,
    ) -> str:
        """Create a new asset; supply and mint authority go to to_address."""
        if to_address:
            self._validate_address(to_address)
        wallet = await self.update_balances(name)

        change_address = self.get_address(name)
        to_address = to_address or change_address

        fee = await self.backend.get_creation_fee()
        avax_utxo = self.select_avax_utxo(wallet.avax_utxos, 0, fee, already_scaled=True)

        builder = await self.get_builder()
        built = builder.build_create_asset(
            avax_utxo,
            token_name,
            symbol,
            denomination,
            initial,
            to_address,
            change_address,
            fee,
            memo.encode("utf-8"),
        )
        return await self.sign_and_broadcast(wallet, built, [avax_utxo])

    async def close(self) -> None:
        await self.backend.close()
