"""
Tests for transaction assembly.
"""

from __future__ import annotations

import hashlib

import pytest

from avawallet.constants import X_CHAIN_IDS
from avawallet.errors import InsufficientFunds, ValidationError
from avawallet.models import UTXO, AddressReferences, AddressUtxos
from avawallet.tx.builder import TransactionBuilder
from avawallet.tx.codec import BaseTx, CreateAssetTx, SECPMintOutput, SECPTransferOutput
from avawallet.wallet.address import cb58_decode, cb58_encode, format_address, parse_address

AVAX = hashlib.sha256(b"avax").digest()
QUIK = hashlib.sha256(b"quik").digest()
FEE = 1_000_000

SELLER = format_address(b"\x01" * 20)
BUYER = format_address(b"\x02" * 20)
DEST = format_address(b"\x03" * 20)
CHANGE = format_address(b"\x04" * 20)

_counter = iter(range(1, 10_000))


def make_utxo(
    amount: int, asset: bytes = AVAX, address: str = SELLER, hd_index: int = 0, type_id: int = 7
) -> UTXO:
    tx_id = hashlib.sha256(str(next(_counter)).encode()).digest()
    return UTXO(
        txid=cb58_encode(tx_id),
        output_idx=0,
        amount=amount,
        asset_id=cb58_encode(asset),
        type_id=type_id,
        hd_index=hd_index,
        address=address,
    )


def assert_fee_conserved(tx: BaseTx, fee: int) -> None:
    """Every asset balances except the native asset, which pays the fee."""
    assets = {i.asset_id for i in tx.inputs} | {o.asset_id for o in tx.outputs}
    for asset in assets:
        expected = fee if asset == AVAX else 0
        assert tx.input_total(asset) - tx.output_total(asset) == expected


@pytest.fixture
def builder() -> TransactionBuilder:
    return TransactionBuilder(1, cb58_decode(X_CHAIN_IDS["mainnet"]), AVAX)


class TestTransfer:
    """Tests for simple AVAX transfers."""

    def test_with_change(self, builder: TransactionBuilder) -> None:
        utxo = make_utxo(10_000_000)
        built = builder.build_transfer(utxo, 2_000_000, DEST, CHANGE, FEE, b"hi")

        tx = built.tx
        assert tx.memo == b"hi"
        assert [o.amount for o in tx.outputs] == [2_000_000, 7_000_000]
        assert tx.outputs[0].output.addresses == [parse_address(DEST)]
        assert tx.outputs[1].output.addresses == [parse_address(CHANGE)]
        assert_fee_conserved(tx, FEE)
        assert built.references.get(tx.inputs[0].utxo_id) == SELLER

    def test_zero_remainder_omits_change(self, builder: TransactionBuilder) -> None:
        built = builder.build_transfer(make_utxo(3_000_000), 2_000_000, DEST, CHANGE, FEE)
        assert len(built.tx.outputs) == 1
        assert_fee_conserved(built.tx, FEE)

    def test_negative_remainder(self, builder: TransactionBuilder) -> None:
        with pytest.raises(InsufficientFunds, match="Not enough avax"):
            builder.build_transfer(make_utxo(2_999_999), 2_000_000, DEST, CHANGE, FEE)

    def test_zero_amount(self, builder: TransactionBuilder) -> None:
        with pytest.raises(ValidationError):
            builder.build_transfer(make_utxo(3_000_000), 0, DEST, CHANGE, FEE)


class TestSendAll:
    """Tests for consolidating the whole wallet."""

    def test_aggregates_per_asset(self, builder: TransactionBuilder) -> None:
        avax_pages = [
            AddressUtxos(address=SELLER, hd_index=0, utxos=[make_utxo(5_000_000)]),
            AddressUtxos(
                address=BUYER, hd_index=1, utxos=[make_utxo(7_000_000, address=BUYER, hd_index=1)]
            ),
        ]
        other_pages = [
            AddressUtxos(
                address=SELLER,
                hd_index=0,
                utxos=[make_utxo(400, asset=QUIK), make_utxo(1, asset=QUIK, type_id=6)],
            ),
            AddressUtxos(
                address=BUYER,
                hd_index=1,
                utxos=[make_utxo(90, asset=QUIK, address=BUYER, hd_index=1)],
            ),
        ]

        built = builder.build_send_all(avax_pages, other_pages, DEST, FEE)
        tx = built.tx

        assert len(tx.inputs) == 4
        assert {(o.asset_id, o.amount) for o in tx.outputs} == {
            (AVAX, 11_000_000),
            (QUIK, 490),
        }
        assert all(o.output.addresses == [parse_address(DEST)] for o in tx.outputs)
        assert_fee_conserved(tx, FEE)
        assert len(built.references) == 4

    def test_mint_outputs_excluded(self, builder: TransactionBuilder) -> None:
        mint = make_utxo(1, asset=QUIK, type_id=6)
        built = builder.build_send_all(
            [AddressUtxos(address=SELLER, hd_index=0, utxos=[make_utxo(5_000_000)])],
            [AddressUtxos(address=SELLER, hd_index=0, utxos=[mint])],
            DEST,
            FEE,
        )
        assert mint.utxo_id not in {i.utxo_id for i in built.tx.inputs}
        assert len(built.tx.outputs) == 1

    def test_not_enough_for_fee(self, builder: TransactionBuilder) -> None:
        with pytest.raises(InsufficientFunds):
            builder.build_send_all(
                [AddressUtxos(address=SELLER, hd_index=0, utxos=[make_utxo(999_999)])],
                [],
                DEST,
                FEE,
            )

    def test_exact_fee_leaves_no_avax_output(self, builder: TransactionBuilder) -> None:
        built = builder.build_send_all(
            [AddressUtxos(address=SELLER, hd_index=0, utxos=[make_utxo(FEE)])],
            [AddressUtxos(address=SELLER, hd_index=0, utxos=[make_utxo(5, asset=QUIK)])],
            DEST,
            FEE,
        )
        assert [(o.asset_id, o.amount) for o in built.tx.outputs] == [(QUIK, 5)]

    def test_empty_wallet(self, builder: TransactionBuilder) -> None:
        with pytest.raises(InsufficientFunds):
            builder.build_send_all([], [], DEST, FEE)


class TestTokenTransfer:
    """Tests for sending tokens."""

    def test_with_token_and_avax_change(self, builder: TransactionBuilder) -> None:
        tokens = [make_utxo(300, asset=QUIK), make_utxo(200, asset=QUIK)]
        built = builder.build_token_transfer(
            tokens, make_utxo(3_000_000), 450, DEST, CHANGE, FEE
        )
        tx = built.tx
        assert [(o.asset_id, o.amount) for o in tx.outputs] == [
            (QUIK, 450),
            (QUIK, 50),
            (AVAX, 2_000_000),
        ]
        assert_fee_conserved(tx, FEE)

    def test_not_enough_tokens(self, builder: TransactionBuilder) -> None:
        with pytest.raises(InsufficientFunds, match="tokens"):
            builder.build_token_transfer(
                [make_utxo(100, asset=QUIK)], make_utxo(3_000_000), 101, DEST, CHANGE, FEE
            )


class TestBurn:
    """Tests for burning tokens."""

    def test_burn_leaves_token_change(self, builder: TransactionBuilder) -> None:
        """Burning 2.00 of 4.90 QUIK (denomination 2) keeps 290 base units."""
        built = builder.build_burn(
            [make_utxo(490, asset=QUIK)], make_utxo(FEE), 200, CHANGE, FEE
        )
        tx = built.tx
        assert [(o.asset_id, o.amount) for o in tx.outputs] == [(QUIK, 290)]
        assert tx.outputs[0].output.addresses == [parse_address(CHANGE)]
        assert tx.input_total(QUIK) - tx.output_total(QUIK) == 200
        assert tx.input_total(AVAX) - tx.output_total(AVAX) == FEE

    def test_burn_everything(self, builder: TransactionBuilder) -> None:
        built = builder.build_burn(
            [make_utxo(490, asset=QUIK)], make_utxo(2_000_000), 490, CHANGE, FEE
        )
        assert [(o.asset_id, o.amount) for o in built.tx.outputs] == [(AVAX, 1_000_000)]

    def test_burn_more_than_held(self, builder: TransactionBuilder) -> None:
        with pytest.raises(InsufficientFunds, match="Not enough tokens"):
            builder.build_burn([make_utxo(490, asset=QUIK)], make_utxo(FEE), 491, CHANGE, FEE)

    def test_fee_not_covered(self, builder: TransactionBuilder) -> None:
        with pytest.raises(InsufficientFunds, match="Not enough avax"):
            builder.build_burn(
                [make_utxo(490, asset=QUIK)], make_utxo(FEE - 1), 200, CHANGE, FEE
            )


class TestCreateAsset:
    """Tests for token creation."""

    def test_initial_state(self, builder: TransactionBuilder) -> None:
        creation_fee = 10_000_000
        built = builder.build_create_asset(
            make_utxo(50_000_000), "Quick Token", "QUIK", 2, 1000, DEST, CHANGE, creation_fee
        )
        tx = built.tx
        assert isinstance(tx, CreateAssetTx)
        assert [o.amount for o in tx.outputs] == [40_000_000]
        assert_fee_conserved(tx, creation_fee)

        transfer, mint = tx.initial_states[0].outputs
        assert isinstance(transfer, SECPTransferOutput)
        assert transfer.amount == 100_000
        assert transfer.addresses == [parse_address(DEST)]
        assert isinstance(mint, SECPMintOutput)
        assert mint.addresses == [parse_address(DEST)]

    def test_zero_initial_supply(self, builder: TransactionBuilder) -> None:
        built = builder.build_create_asset(
            make_utxo(10_000_000), "Quick Token", "QUIK", 9, 0, DEST, CHANGE, 10_000_000
        )
        assert built.tx.outputs == []
        outputs = built.tx.initial_states[0].outputs
        assert len(outputs) == 1
        assert isinstance(outputs[0], SECPMintOutput)

    @pytest.mark.parametrize(
        ("symbol", "denomination", "initial"),
        [("", 2, 0), ("TOOLONG", 2, 0), ("QUIK", 33, 0), ("QUIK", -1, 0), ("QUIK", 2, -5)],
    )
    def test_validation(
        self, builder: TransactionBuilder, symbol: str, denomination: int, initial: int
    ) -> None:
        with pytest.raises(ValidationError):
            builder.build_create_asset(
                make_utxo(50_000_000), "Quick", symbol, denomination, initial, DEST, CHANGE, FEE
            )

    def test_not_enough_for_creation_fee(self, builder: TransactionBuilder) -> None:
        with pytest.raises(InsufficientFunds):
            builder.build_create_asset(
                make_utxo(9_999_999), "Quick", "QUIK", 2, 1, DEST, CHANGE, 10_000_000
            )


class TestOfferLegs:
    """Tests for the sell and counter-offer transactions."""

    def test_sell_offer(self, builder: TransactionBuilder) -> None:
        token = make_utxo(89_400, asset=QUIK)
        built = builder.build_sell_offer([token], 40_000, 100)
        tx = built.tx

        assert tx.memo == b"sell offer"
        assert [(o.asset_id, o.amount) for o in tx.outputs] == [(AVAX, 100), (QUIK, 49_400)]
        assert all(o.output.addresses == [parse_address(SELLER)] for o in tx.outputs)
        assert built.references.references == {token.utxo_id: SELLER}

    def test_sell_everything_omits_token_change(self, builder: TransactionBuilder) -> None:
        built = builder.build_sell_offer([make_utxo(400, asset=QUIK)], 400, 100)
        assert [(o.asset_id, o.amount) for o in built.tx.outputs] == [(AVAX, 100)]

    def test_sell_more_than_held(self, builder: TransactionBuilder) -> None:
        with pytest.raises(InsufficientFunds, match="Not enough tokens to be send"):
            builder.build_sell_offer([make_utxo(400, asset=QUIK)], 401, 100)

    def test_counter_offer(self, builder: TransactionBuilder) -> None:
        sell = builder.build_sell_offer([make_utxo(89_400, asset=QUIK)], 40_000, 100)
        payment = make_utxo(5_000_000, address=BUYER)

        built = builder.build_counter_offer(sell.tx, payment, BUYER, BUYER, FEE)
        tx = built.tx

        assert len(tx.inputs) == 2
        assert tx.inputs[1].utxo_id == payment.utxo_id
        assert [(o.asset_id, o.amount) for o in tx.outputs] == [
            (AVAX, 100),
            (QUIK, 49_400),
            (QUIK, 40_000),
            (AVAX, 3_999_900),
        ]
        assert_fee_conserved(tx, FEE)
        assert built.references.references == {payment.utxo_id: BUYER}

    def test_counter_offer_not_enough_avax(self, builder: TransactionBuilder) -> None:
        sell = builder.build_sell_offer([make_utxo(400, asset=QUIK)], 400, 100)
        with pytest.raises(InsufficientFunds, match="Not enough avax in the selected utxo"):
            builder.build_counter_offer(
                sell.tx, make_utxo(FEE + 99, address=BUYER), BUYER, BUYER, FEE
            )

    def test_counter_offer_other_network(self, builder: TransactionBuilder) -> None:
        sell = builder.build_sell_offer([make_utxo(400, asset=QUIK)], 400, 100)
        other = TransactionBuilder(5, cb58_decode(X_CHAIN_IDS["testnet"]), AVAX)
        with pytest.raises(ValidationError):
            other.build_counter_offer(sell.tx, make_utxo(5_000_000), BUYER, BUYER, FEE)

    def test_references_merge(self, builder: TransactionBuilder) -> None:
        sell = builder.build_sell_offer([make_utxo(400, asset=QUIK)], 400, 100)
        counter = builder.build_counter_offer(
            sell.tx, make_utxo(5_000_000, address=BUYER), BUYER, BUYER, FEE
        )
        merged: AddressReferences = sell.references.merge(counter.references)
        assert len(merged) == 2
        assert {merged.get(i.utxo_id) for i in counter.tx.inputs} == {SELLER, BUYER}
