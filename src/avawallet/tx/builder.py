"""
Transaction assembly for every wallet operation.

All builders share the same accounting: remainder = inputs - fee - sent.
A negative remainder raises InsufficientFunds and a zero remainder produces
no change output.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from loguru import logger

from avawallet.constants import MAX_DENOMINATION, MAX_SYMBOL_LENGTH
from avawallet.errors import InsufficientFunds, ValidationError
from avawallet.models import UTXO, AddressReferences, AddressUtxos
from avawallet.tx.codec import (
    BaseTx,
    CreateAssetTx,
    InitialState,
    SECPMintOutput,
    SECPTransferOutput,
    TransferableInput,
    TransferableOutput,
)
from avawallet.wallet.address import cb58_decode, parse_address

MAX_ASSET_NAME_LENGTH = 128
SELL_OFFER_MEMO = b"sell offer"


@dataclass
class BuiltTx:
    """An unsigned transaction plus the owners of its inputs."""

    tx: BaseTx
    references: AddressReferences = field(default_factory=AddressReferences)


def compute_remainder(input_total: int, fee: int, sent: int, message: str) -> int:
    remainder = input_total - fee - sent
    if remainder < 0:
        raise InsufficientFunds(message)
    return remainder


class TransactionBuilder:
    def __init__(self, network_id: int, blockchain_id: bytes, avax_asset_id: bytes):
        self.network_id = network_id
        self.blockchain_id = blockchain_id
        self.avax_asset_id = avax_asset_id

    def _output(self, asset_id: bytes, amount: int, address: str) -> TransferableOutput:
        return TransferableOutput(
            asset_id=asset_id,
            output=SECPTransferOutput(amount=amount, addresses=[parse_address(address)]),
        )

    @staticmethod
    def _input(utxo: UTXO) -> TransferableInput:
        return TransferableInput(
            tx_id=cb58_decode(utxo.txid),
            output_idx=utxo.output_idx,
            asset_id=cb58_decode(utxo.asset_id),
            amount=utxo.amount,
        )

    def _inputs(
        self, utxos: Iterable[UTXO], references: AddressReferences
    ) -> list[TransferableInput]:
        inputs = []
        for utxo in utxos:
            if not utxo.is_transfer:
                raise ValidationError(f"UTXO {utxo.utxo_id} is not a transfer output")
            inp = self._input(utxo)
            references.add(inp.utxo_id, utxo.address)
            inputs.append(inp)
        return inputs

    def _base_tx(
        self, outputs: list[TransferableOutput], inputs: list[TransferableInput], memo: bytes
    ) -> BaseTx:
        return BaseTx(self.network_id, self.blockchain_id, outputs, inputs, memo)

    @staticmethod
    def _require_positive(amount: int, what: str) -> None:
        if amount <= 0:
            raise ValidationError(f"{what} must be greater than zero")

    def build_transfer(
        self,
        avax_utxo: UTXO,
        amount: int,
        to_address: str,
        change_address: str,
        fee: int,
        memo: bytes = b"",
    ) -> BuiltTx:
        """Send native asset from one pre-selected UTXO."""
        self._require_positive(amount, "Amount to send")
        references = AddressReferences()
        inputs = self._inputs([avax_utxo], references)

        remainder = compute_remainder(
            avax_utxo.amount, fee, amount, "Not enough avax in the selected utxo"
        )

        outputs = [self._output(self.avax_asset_id, amount, to_address)]
        if remainder:
            outputs.append(self._output(self.avax_asset_id, remainder, change_address))

        logger.debug(f"Built transfer of {amount} nAVAX, change {remainder}")
        return BuiltTx(self._base_tx(outputs, inputs, memo), references)

    def build_send_all(
        self,
        avax_utxos: list[AddressUtxos],
        other_utxos: list[AddressUtxos],
        to_address: str,
        fee: int,
        memo: bytes = b"",
    ) -> BuiltTx:
        """
        Sweep every transfer UTXO of every address to one destination.

        One output per asset; the native output pays the fee. Mint
        authorities and other non-transfer outputs are left behind.
        """
        references = AddressReferences()
        transfer_utxos = [
            utxo
            for group in [*avax_utxos, *other_utxos]
            for utxo in group.utxos
            if utxo.is_transfer
        ]
        if not transfer_utxos:
            raise InsufficientFunds("No UTXOs to send")

        inputs = self._inputs(transfer_utxos, references)

        totals: dict[bytes, int] = {}
        for inp in inputs:
            totals[inp.asset_id] = totals.get(inp.asset_id, 0) + inp.amount

        avax_total = totals.pop(self.avax_asset_id, 0)
        avax_out = compute_remainder(avax_total, fee, 0, "Not enough avax to pay the fee")

        outputs = []
        if avax_out:
            outputs.append(self._output(self.avax_asset_id, avax_out, to_address))
        for asset_id, total in totals.items():
            if total:
                outputs.append(self._output(asset_id, total, to_address))

        logger.debug(f"Built send-all with {len(inputs)} inputs and {len(outputs)} outputs")
        return BuiltTx(self._base_tx(outputs, inputs, memo), references)

    def build_token_transfer(
        self,
        token_utxos: list[UTXO],
        avax_utxo: UTXO,
        amount: int,
        to_address: str,
        change_address: str,
        fee: int,
        memo: bytes = b"",
    ) -> BuiltTx:
        self._require_positive(amount, "Token quantity")
        if not token_utxos:
            raise ValidationError("At least one utxo with tokens must be provided")

        references = AddressReferences()
        inputs = self._inputs(token_utxos, references)
        inputs += self._inputs([avax_utxo], references)

        asset_id = cb58_decode(token_utxos[0].asset_id)
        token_total = sum(u.amount for u in token_utxos)

        avax_remainder = compute_remainder(
            avax_utxo.amount, fee, 0, "Not enough avax in the selected utxo"
        )
        token_remainder = compute_remainder(
            token_total, 0, amount, "Not enough tokens in the selected utxos"
        )

        outputs = [self._output(asset_id, amount, to_address)]
        if token_remainder:
            outputs.append(self._output(asset_id, token_remainder, change_address))
        if avax_remainder:
            outputs.append(self._output(self.avax_asset_id, avax_remainder, change_address))

        return BuiltTx(self._base_tx(outputs, inputs, memo), references)

    def build_burn(
        self,
        token_utxos: list[UTXO],
        avax_utxo: UTXO,
        burn_amount: int,
        change_address: str,
        fee: int,
        memo: bytes = b"",
    ) -> BuiltTx:
        """A token transfer without a destination output for the burned part."""
        self._require_positive(burn_amount, "Burn quantity")
        if not token_utxos:
            raise ValidationError("At least one utxo with tokens must be provided")

        references = AddressReferences()
        inputs = self._inputs(token_utxos, references)
        inputs += self._inputs([avax_utxo], references)

        asset_id = cb58_decode(token_utxos[0].asset_id)
        token_total = sum(u.amount for u in token_utxos)

        avax_remainder = compute_remainder(
            avax_utxo.amount, fee, 0, "Not enough avax in the selected utxo"
        )
        token_remainder = compute_remainder(
            token_total, 0, burn_amount, "Not enough tokens in the selected utxos"
        )

        outputs = []
        if token_remainder:
            outputs.append(self._output(asset_id, token_remainder, change_address))
        if avax_remainder:
            outputs.append(self._output(self.avax_asset_id, avax_remainder, change_address))

        logger.debug(f"Built burn of {burn_amount} units, token change {token_remainder}")
        return BuiltTx(self._base_tx(outputs, inputs, memo), references)

    def build_create_asset(
        self,
        avax_utxo: UTXO,
        name: str,
        symbol: str,
        denomination: int,
        initial_amount: int,
        to_address: str,
        change_address: str,
        fee: int,
        memo: bytes = b"",
    ) -> BuiltTx:
        """
        Create a fungible asset.

        The initial supply (initial_amount * 10**denomination) and the minting
        authority both go to to_address.
        """
        if not name or len(name) > MAX_ASSET_NAME_LENGTH:
            raise ValidationError(f"Token name must be 1 to {MAX_ASSET_NAME_LENGTH} characters")
        if not symbol or len(symbol) > MAX_SYMBOL_LENGTH:
            raise ValidationError("Token symbol must be 1 to 4 characters")
        if not 0 <= denomination <= MAX_DENOMINATION:
            raise ValidationError(f"denomination must be between 0 and {MAX_DENOMINATION}")
        if initial_amount < 0:
            raise ValidationError("initial quantity must be a positive number")

        references = AddressReferences()
        inputs = self._inputs([avax_utxo], references)
        remainder = compute_remainder(
            avax_utxo.amount, fee, 0, "Not enough avax in the selected utxo"
        )

        outputs = []
        if remainder:
            outputs.append(self._output(self.avax_asset_id, remainder, change_address))

        owner = [parse_address(to_address)]
        initial_outputs: list[SECPTransferOutput | SECPMintOutput] = []
        supply = initial_amount * 10**denomination
        if supply:
            initial_outputs.append(SECPTransferOutput(amount=supply, addresses=owner))
        initial_outputs.append(SECPMintOutput(addresses=list(owner)))

        tx = CreateAssetTx(
            self.network_id,
            self.blockchain_id,
            outputs,
            inputs,
            memo,
            name=name,
            symbol=symbol,
            denomination=denomination,
            initial_states=[InitialState(initial_outputs)],
        )
        logger.debug(f"Built create-asset {name} ({symbol}) with supply {supply}")
        return BuiltTx(tx, references)

    def build_sell_offer(
        self,
        token_utxos: list[UTXO],
        amount: int,
        avax_amount: int,
        memo: bytes = SELL_OFFER_MEMO,
    ) -> BuiltTx:
        """
        First leg of an offer: the seller's token inputs, the native amount
        they want back and their token change. Left unsigned.

        Both outputs go to the address of the first token UTXO.
        """
        self._require_positive(amount, "Token quantity")
        self._require_positive(avax_amount, "Avax quantity")
        if not token_utxos:
            raise InsufficientFunds("No tokens in the wallet matched the given token ID.")

        token_total = sum(u.amount for u in token_utxos)
        if token_total < amount:
            raise InsufficientFunds("Not enough tokens to be send")

        references = AddressReferences()
        inputs = self._inputs(token_utxos, references)

        return_address = token_utxos[0].address
        asset_id = cb58_decode(token_utxos[0].asset_id)

        outputs = [self._output(self.avax_asset_id, avax_amount, return_address)]
        remainder = token_total - amount
        if remainder:
            outputs.append(self._output(asset_id, remainder, return_address))

        return BuiltTx(self._base_tx(outputs, inputs, memo), references)

    def find_avax_output(self, tx: BaseTx) -> TransferableOutput:
        for out in tx.outputs:
            if out.asset_id == self.avax_asset_id:
                return out
        raise ValidationError("The offer does not request any avax")

    def offered_token_amount(self, tx: BaseTx) -> tuple[bytes, int]:
        """Asset and quantity on offer: token inputs minus the seller's token change."""
        if not tx.inputs:
            raise ValidationError("The offer has no inputs")
        asset_id = tx.inputs[0].asset_id
        change = tx.output_total(asset_id)
        offered = tx.input_total(asset_id) - change
        if offered <= 0:
            raise ValidationError("The offer does not sell any tokens")
        return asset_id, offered

    def build_counter_offer(
        self,
        tx: BaseTx,
        avax_utxo: UTXO,
        receive_address: str,
        change_address: str,
        fee: int,
    ) -> BuiltTx:
        """
        Second leg of an offer: append the buyer's payment input, the token
        receive output and the buyer's native change.

        The returned references only cover the buyer's input.
        """
        if tx.network_id != self.network_id or tx.blockchain_id != self.blockchain_id:
            raise ValidationError("The offer was built for a different network")

        price = self.find_avax_output(tx).amount
        asset_id, offered = self.offered_token_amount(tx)

        references = AddressReferences()
        buyer_inputs = self._inputs([avax_utxo], references)

        remainder = compute_remainder(
            avax_utxo.amount, fee, price, "Not enough avax in the selected utxo"
        )

        outputs = list(tx.outputs)
        outputs.append(self._output(asset_id, offered, receive_address))
        if remainder:
            outputs.append(self._output(self.avax_asset_id, remainder, change_address))

        countered = BaseTx(
            tx.network_id,
            tx.blockchain_id,
            outputs,
            [*tx.inputs, *buyer_inputs],
            tx.memo,
        )
        logger.debug(f"Countered offer: paying {price} nAVAX for {offered} units")
        return BuiltTx(countered, references)
