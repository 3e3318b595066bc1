"""
Tests for the command line interface.
"""

from __future__ import annotations

import json
import sys
from collections.abc import Iterator
from pathlib import Path
from unittest.mock import patch

import pytest
from loguru import logger
from typer.testing import CliRunner

from avawallet.cli import app
from avawallet.wallet.deriver import AddressDeriver
from avawallet.wallet.store import WalletStore

from .conftest import BUYER_MNEMONIC, SELLER_MNEMONIC, FakeChainService, save_wallet

runner = CliRunner()


@pytest.fixture(autouse=True)
def reset_logging() -> Iterator[None]:
    """Commands point loguru at the runner's stderr, which is closed afterwards."""
    yield
    logger.remove()
    logger.add(sys.stderr)


@pytest.fixture
def fake_chain(chain: FakeChainService) -> Iterator[FakeChainService]:
    with patch("avawallet.cli.create_backend", return_value=chain):
        yield chain


def invoke(wallets_dir: Path, *args: str):
    return runner.invoke(app, ["--wallets-dir", str(wallets_dir), *args])


class TestWalletCommands:
    """Tests for wallet management commands."""

    def test_help(self) -> None:
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for command in ("create-wallet", "send-tokens", "make-offer"):
            assert command in result.stdout

    def test_create_and_list(self, fake_chain: FakeChainService, wallets_dir: Path) -> None:
        result = invoke(wallets_dir, "create-wallet", "-n", "alice", "-d", "savings")
        assert result.exit_code == 0
        assert "Wallet alice created" in result.stdout
        assert "X-Chain address: X-avax1" in result.stdout

        result = invoke(wallets_dir, "list-wallets")
        assert "alice" in result.stdout
        assert "mainnet" in result.stdout

    def test_create_testnet_wallet(self, fake_chain: FakeChainService, wallets_dir: Path) -> None:
        result = invoke(wallets_dir, "create-wallet", "-n", "bob", "--testnet")
        assert "X-Chain address: X-fuji1" in result.stdout

    def test_list_no_wallets(self, fake_chain: FakeChainService, wallets_dir: Path) -> None:
        result = invoke(wallets_dir, "list-wallets")
        assert result.stdout.strip() == "No wallets found."

    def test_missing_name_prints_zero(
        self, fake_chain: FakeChainService, wallets_dir: Path
    ) -> None:
        result = invoke(wallets_dir, "get-address")
        assert result.exit_code == 0
        assert result.stdout.strip() == "0"

    def test_duplicate_wallet_prints_zero(
        self, fake_chain: FakeChainService, wallets_dir: Path
    ) -> None:
        invoke(wallets_dir, "create-wallet", "-n", "alice")
        result = invoke(wallets_dir, "create-wallet", "-n", "alice")
        assert result.stdout.strip() == "0"

    def test_get_address(
        self,
        fake_chain: FakeChainService,
        store: WalletStore,
        wallets_dir: Path,
        seller_deriver: AddressDeriver,
    ) -> None:
        save_wallet(store, "seller", SELLER_MNEMONIC)

        result = invoke(wallets_dir, "get-address", "-n", "seller", "-u")

        assert f"X-Chain address: {seller_deriver.derive(1).address}" in result.stdout
        assert store.load("seller").next_address == 1

    def test_get_key(
        self,
        fake_chain: FakeChainService,
        store: WalletStore,
        wallets_dir: Path,
        seller_deriver: AddressDeriver,
    ) -> None:
        save_wallet(store, "seller", SELLER_MNEMONIC)

        result = invoke(wallets_dir, "get-key", "-n", "seller", "-i", "0")

        derived = seller_deriver.derive(0)
        lines = result.stdout.splitlines()
        assert lines[0] == f"Private Key: {derived.private_key_string}"
        assert lines[1] == f"Public Key hex: {derived.public_key_hex}"
        assert lines[2] == derived.address

    def test_update_balances(
        self,
        fake_chain: FakeChainService,
        store: WalletStore,
        wallets_dir: Path,
        seller_deriver: AddressDeriver,
    ) -> None:
        save_wallet(store, "seller", SELLER_MNEMONIC)
        fake_chain.add_utxo(seller_deriver.derive(0).address, 58_000_000)

        result = invoke(wallets_dir, "update-balances", "-n", "seller")

        assert "Existing balance: 0.058 AVAX" in result.stdout


class TestSpendCommands:
    """Tests for commands that broadcast transactions."""

    def test_send(
        self,
        fake_chain: FakeChainService,
        store: WalletStore,
        wallets_dir: Path,
        seller_deriver: AddressDeriver,
        buyer_deriver: AddressDeriver,
    ) -> None:
        save_wallet(store, "seller", SELLER_MNEMONIC)
        fake_chain.add_utxo(seller_deriver.derive(0).address, 58_000_000)

        result = invoke(
            wallets_dir,
            "send",
            "-n",
            "seller",
            "-q",
            "0.01",
            "-a",
            buyer_deriver.derive(0).address,
        )

        txid = fake_chain.issued[0].txid
        assert f"TXID: {txid}" in result.stdout
        assert f"https://explorer.avax.network/tx/{txid}" in result.stdout

    def test_send_requires_quantity(
        self, fake_chain: FakeChainService, store: WalletStore, wallets_dir: Path
    ) -> None:
        save_wallet(store, "seller", SELLER_MNEMONIC)
        result = invoke(wallets_dir, "send", "-n", "seller", "-a", "X-avax1x")
        assert result.stdout.strip() == "0"
        assert fake_chain.issued == []

    def test_send_insufficient_funds(
        self,
        fake_chain: FakeChainService,
        store: WalletStore,
        wallets_dir: Path,
        buyer_deriver: AddressDeriver,
    ) -> None:
        save_wallet(store, "seller", SELLER_MNEMONIC)
        result = invoke(
            wallets_dir, "send", "-n", "seller", "-q", "1", "-a", buyer_deriver.derive(0).address
        )
        assert result.stdout.strip() == "0"

    def test_create_token_bad_symbol(
        self, fake_chain: FakeChainService, store: WalletStore, wallets_dir: Path
    ) -> None:
        save_wallet(store, "seller", SELLER_MNEMONIC)
        result = invoke(
            wallets_dir, "create-token", "-n", "seller", "-t", "Quick Token", "-s", "QUICK"
        )
        assert result.stdout.strip() == "0"


class TestMakeOffer:
    """Tests for the make-offer command."""

    def test_sell_buy_accept(
        self,
        fake_chain: FakeChainService,
        store: WalletStore,
        wallets_dir: Path,
        seller_deriver: AddressDeriver,
        buyer_deriver: AddressDeriver,
    ) -> None:
        save_wallet(store, "seller", SELLER_MNEMONIC)
        save_wallet(store, "buyer", BUYER_MNEMONIC)
        quik = fake_chain.add_asset("Quick Token", "QUIK", 2)
        fake_chain.add_utxo(seller_deriver.derive(0).address, 89_400, asset_id=quik)
        fake_chain.add_utxo(buyer_deriver.derive(0).address, 10_000_000)

        sold = invoke(
            wallets_dir, "make-offer", "-n", "seller", "-o", "sell",
            "-t", quik, "-q", "400", "-a", "100",
        )
        offer = json.loads(sold.stdout)
        assert set(offer) == {"txHex", "addrReferences"}

        bought = invoke(
            wallets_dir, "make-offer", "-n", "buyer", "-o", "buy",
            "--hex", offer["txHex"], "-r", offer["addrReferences"],
        )
        counter = json.loads(bought.stdout)

        accepted = invoke(
            wallets_dir, "make-offer", "-n", "seller", "-o", "accept",
            "--hex", counter["txHex"], "-r", counter["addrReferences"],
        )

        assert len(fake_chain.issued) == 1
        assert f"TXID: {fake_chain.issued[0].txid}" in accepted.stdout

    def test_unknown_operation(
        self, fake_chain: FakeChainService, store: WalletStore, wallets_dir: Path
    ) -> None:
        save_wallet(store, "seller", SELLER_MNEMONIC)
        result = invoke(wallets_dir, "make-offer", "-n", "seller", "-o", "swap")
        assert result.stdout.strip() == "0"

    def test_buy_with_malformed_references(
        self, fake_chain: FakeChainService, store: WalletStore, wallets_dir: Path
    ) -> None:
        save_wallet(store, "buyer", BUYER_MNEMONIC)
        result = invoke(
            wallets_dir, "make-offer", "-n", "buyer", "-o", "buy", "--hex", "0x00", "-r", "{bad"
        )
        assert result.stdout.strip() == "0"
