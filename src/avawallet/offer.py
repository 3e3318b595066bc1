"""
Two-party token offer on the X-Chain.

1. sell:   the seller builds an unsigned tx with their token inputs, the AVAX
           they want and their token change.
2. buy:    the buyer appends an AVAX input, a token receive output and AVAX
           change, then signs only their own input.
3. accept: the seller signs the remaining input and broadcasts.

Offers have no expiry or cancellation; a countered offer stays valid until
one of its inputs is spent elsewhere.
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum

from loguru import logger

from avawallet.errors import IncompleteSignature, InsufficientFunds, NoUsableUTXO
from avawallet.models import OfferMessage
from avawallet.tx.codec import SignedTx, tx_from_hex
from avawallet.tx.signer import PartialSigner
from avawallet.wallet.selector import scale_amount
from avawallet.wallet.service import WalletService


class OfferState(str, Enum):
    OFFERED = "offered"
    COUNTERED = "countered"
    ACCEPTED = "accepted"


def offer_state(signed_tx: SignedTx) -> OfferState:
    """Infer the offer stage from the credential slots."""
    if signed_tx.is_fully_signed:
        return OfferState.ACCEPTED
    if any(not cred.is_empty for cred in signed_tx.credentials):
        return OfferState.COUNTERED
    return OfferState.OFFERED


class OfferProtocol:
    def __init__(self, service: WalletService):
        self.service = service
        self.backend = service.backend

    async def sell(
        self, name: str, token_id: str, amount: Decimal | str | int, avax_amount: int
    ) -> OfferMessage:
        """
        Offer `amount` tokens (display units) for `avax_amount` nAVAX.
        """
        wallet = await self.service.update_balances(name)
        token_utxos = self.service.get_token_utxos(token_id, wallet)

        description = await self.backend.get_asset_description(token_id)
        token_amount = scale_amount(amount, description.denomination)

        builder = await self.service.get_builder()
        built = builder.build_sell_offer(token_utxos, token_amount, int(avax_amount))

        logger.info(f"Offering {token_amount} units of {token_id} for {avax_amount} nAVAX")
        return OfferMessage(tx_hex=built.tx.to_hex(), addr_references=built.references.to_json())

    async def buy(self, name: str, offer: OfferMessage) -> OfferMessage:
        """Pay for an offer and sign the payment input."""
        references = offer.references
        partial = tx_from_hex(offer.tx_hex)

        wallet = await self.service.update_balances(name)
        builder = await self.service.get_builder()
        price = builder.find_avax_output(partial.unsigned).amount
        fee = await self.backend.get_default_fee()

        try:
            avax_utxo = self.service.select_avax_utxo(
                wallet.avax_utxos, price, fee, already_scaled=True
            )
        except NoUsableUTXO as e:
            raise InsufficientFunds("Not enough avax in the selected utxo") from e

        receive_address = self.service.get_address(name)
        countered = builder.build_counter_offer(
            partial.unsigned, avax_utxo, receive_address, receive_address, fee
        )
        merged = references.merge(countered.references)

        keychain = self.service.keychain_for(wallet, [avax_utxo.hd_index])
        signed = PartialSigner(keychain).sign(countered.tx, merged)

        logger.info(f"Countered offer: paying {price} nAVAX ({offer_state(signed).value})")
        return OfferMessage(tx_hex=signed.to_hex(), addr_references=merged.to_json())

    async def accept(self, name: str, offer: OfferMessage) -> str:
        """Sign the seller's inputs and broadcast. Returns the txid."""
        references = offer.references
        partial = tx_from_hex(offer.tx_hex)

        wallet = self.service.store.load(name)
        self.service.aggregator.check_network(wallet)
        keychain = self.service.keychain_for(wallet, range(wallet.next_address + 1))
        signed = PartialSigner(keychain).sign(partial, references)

        if not signed.is_fully_signed:
            raise IncompleteSignature("The transaction is not fully signed")

        txid = await self.backend.issue_tx(signed)
        logger.info(f"Offer accepted: {txid}")
        return txid
