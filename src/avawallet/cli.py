"""
Avalanche X-Chain wallet CLI.

Every command prints its result on success. On failure it logs the error
and prints ``0``, keeping the exit code at zero so scripts can test the
output instead.
"""

from __future__ import annotations

import asyncio
import sys
from collections.abc import Awaitable, Callable
from decimal import Decimal
from pathlib import Path
from typing import Annotated, Any, TypeVar

import typer
from loguru import logger

from avawallet.backends.avalanche import AvalancheBackend
from avawallet.backends.base import ChainService
from avawallet.config import Settings, get_settings
from avawallet.constants import MAX_DENOMINATION, MAX_SYMBOL_LENGTH
from avawallet.errors import ValidationError
from avawallet.models import AddressReferences, OfferMessage
from avawallet.offer import OfferProtocol
from avawallet.wallet.service import WalletService
from avawallet.wallet.store import WalletStore

T = TypeVar("T")

app = typer.Typer(
    name="avawallet",
    help="HD wallet for the Avalanche X-Chain",
    add_completion=False,
)


def setup_logging(level: str = "INFO") -> None:
    """Configure loguru logging."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
    )


def create_backend(settings: Settings) -> ChainService:
    return AvalancheBackend.from_settings(settings)


def create_service(settings: Settings) -> WalletService:
    return WalletService(settings, create_backend(settings), WalletStore(settings.wallets_dir))


def require_name(name: str | None) -> str:
    if not name:
        raise ValidationError("You must specify a wallet with the -n flag.")
    return name


def parse_quantity(value: str | None, message: str) -> Decimal:
    try:
        quantity = Decimal(value) if value is not None else None
    except ArithmeticError:
        quantity = None
    if quantity is None or not quantity.is_finite():
        raise ValidationError(message)
    return quantity


def fail(error: Exception) -> None:
    logger.error(f"{type(error).__name__}: {error}")
    typer.echo("0")


def run_with_service(settings: Settings, operation: Callable[[WalletService], Awaitable[T]]) -> T:
    async def runner() -> T:
        service = create_service(settings)
        try:
            return await operation(service)
        finally:
            await service.close()

    return asyncio.run(runner())


def display_txid(settings: Settings, txid: str) -> None:
    typer.echo(f"TXID: {txid}")
    typer.echo("Check transaction status on the block explorer:")
    typer.echo(f"{settings.explorer_url}{txid}")


def settings_of(ctx: typer.Context) -> Settings:
    return ctx.obj


@app.callback()
def main_callback(
    ctx: typer.Context,
    endpoint: Annotated[
        str | None, typer.Option("--endpoint", help="Avalanche node URL")
    ] = None,
    testnet: Annotated[bool, typer.Option("--testnet", help="Use the Fuji test network")] = False,
    wallets_dir: Annotated[
        Path | None, typer.Option("--wallets-dir", help="Directory holding wallet files")
    ] = None,
    log_level: Annotated[str | None, typer.Option("--log-level", "-l")] = None,
) -> None:
    overrides: dict[str, Any] = {}
    if endpoint:
        overrides["endpoint"] = endpoint
    if testnet:
        overrides["network"] = "testnet"
    if wallets_dir:
        overrides["wallets_dir"] = wallets_dir
    if log_level:
        overrides["log_level"] = log_level

    settings = get_settings(**overrides)
    setup_logging(settings.log_level)
    ctx.obj = settings


@app.command("create-wallet")
def create_wallet(
    ctx: typer.Context,
    name: Annotated[str | None, typer.Option("--name", "-n", help="Name of wallet")] = None,
    description: Annotated[
        str, typer.Option("--description", "-d", help="Description of the wallet")
    ] = "",
    testnet: Annotated[bool, typer.Option("--testnet", help="Create a testnet wallet")] = False,
) -> None:
    """Generate a new HD Wallet."""
    settings = settings_of(ctx)
    try:
        wallet_name = require_name(name)
        network = "testnet" if testnet else settings.network

        async def operation(service: WalletService):
            return service.create_wallet(wallet_name, description, network)

        wallet = run_with_service(settings, operation)
        typer.echo(f"Wallet {wallet_name} created")
        typer.echo(f"X-Chain address: {wallet.address_string}")
    except Exception as e:
        fail(e)


@app.command("get-address")
def get_address(
    ctx: typer.Context,
    name: Annotated[str | None, typer.Option("--name", "-n", help="Name of wallet")] = None,
    no_update: Annotated[
        bool, typer.Option("--no-update", "-u", help="Prevent updating the wallet")
    ] = False,
) -> None:
    """Generate a new address to receive funds in the X-Chain."""
    settings = settings_of(ctx)
    try:
        wallet_name = require_name(name)

        async def operation(service: WalletService) -> str:
            return service.get_address(wallet_name, save=not no_update)

        address = run_with_service(settings, operation)
        typer.echo(f"X-Chain address: {address}")
    except Exception as e:
        fail(e)


@app.command("get-key")
def get_key(
    ctx: typer.Context,
    name: Annotated[str | None, typer.Option("--name", "-n", help="Name of wallet")] = None,
    index: Annotated[
        int | None,
        typer.Option("--index", "-i", help="HD Address index (the default is the latest)"),
    ] = None,
) -> None:
    """Show the private/public key pair of an HD index."""
    settings = settings_of(ctx)
    try:
        wallet_name = require_name(name)

        async def operation(service: WalletService):
            return service.get_key_pair(wallet_name, index)

        pair = run_with_service(settings, operation)
        typer.echo(f"Private Key: {pair.private_key}")
        typer.echo(f"Public Key hex: {pair.public_key_hex}")
        typer.echo(pair.address)
    except Exception as e:
        fail(e)


@app.command("list-wallets")
def list_wallets(ctx: typer.Context) -> None:
    """List existing wallets."""
    settings = settings_of(ctx)
    try:
        async def operation(service: WalletService):
            return service.list_wallets()

        table = run_with_service(settings, operation)
        if not table:
            typer.echo("No wallets found.")
            return

        typer.echo(f"{'Name':<25}{'Network':<15}{'Balance (AVAX)':<20}")
        for wallet_name, network, amount in table:
            typer.echo(f"{wallet_name:<25}{network:<15}{amount:<20}")
    except Exception as e:
        fail(e)


@app.command("update-balances")
def update_balances(
    ctx: typer.Context,
    name: Annotated[str | None, typer.Option("--name", "-n", help="Name of wallet")] = None,
) -> None:
    """Poll the network and update the balances of the wallet."""
    settings = settings_of(ctx)
    try:
        wallet_name = require_name(name)

        async def operation(service: WalletService):
            return await service.update_balances(wallet_name)

        wallet = run_with_service(settings, operation)
        typer.echo(f"Existing balance: {wallet.avax_amount} AVAX")
    except Exception as e:
        fail(e)


@app.command("send")
def send(
    ctx: typer.Context,
    name: Annotated[str | None, typer.Option("--name", "-n", help="Name of wallet")] = None,
    avax: Annotated[str | None, typer.Option("--avax", "-q", help="Quantity of AVAX")] = None,
    send_addr: Annotated[
        str | None, typer.Option("--send-addr", "-a", help="AVAX address to send to")
    ] = None,
    memo: Annotated[
        str, typer.Option("--memo", "-m", help="A memo to attach to the transaction")
    ] = "",
) -> None:
    """Send an amount of AVAX."""
    settings = settings_of(ctx)
    try:
        wallet_name = require_name(name)
        quantity = parse_quantity(avax, "You must specify an avax quantity with the -q flag.")
        if not send_addr:
            raise ValidationError("You must specify a send-to address with the -a flag.")

        async def operation(service: WalletService) -> str:
            return await service.send(wallet_name, quantity, send_addr, memo)

        display_txid(settings, run_with_service(settings, operation))
    except Exception as e:
        fail(e)


@app.command("send-all")
def send_all(
    ctx: typer.Context,
    name: Annotated[str | None, typer.Option("--name", "-n", help="Name of wallet")] = None,
    send_addr: Annotated[
        str | None, typer.Option("--send-addr", "-a", help="AVAX address to send to")
    ] = None,
    memo: Annotated[
        str, typer.Option("--memo", "-m", help="A memo to attach to the transaction")
    ] = "",
) -> None:
    """Send all AVAX and tokens in the wallet to one address."""
    settings = settings_of(ctx)
    try:
        wallet_name = require_name(name)
        if not send_addr:
            raise ValidationError("You must specify a send-to address with the -a flag.")

        async def operation(service: WalletService) -> str:
            return await service.send_all(wallet_name, send_addr, memo)

        display_txid(settings, run_with_service(settings, operation))
    except Exception as e:
        fail(e)


@app.command("send-tokens")
def send_tokens(
    ctx: typer.Context,
    name: Annotated[str | None, typer.Option("--name", "-n", help="Name of wallet")] = None,
    token_id: Annotated[str | None, typer.Option("--token-id", "-t", help="Token ID")] = None,
    qty: Annotated[
        str | None, typer.Option("--qty", "-q", help="Quantity of tokens to send")
    ] = None,
    send_addr: Annotated[
        str | None, typer.Option("--send-addr", "-a", help="Avalanche address to send tokens to")
    ] = None,
    memo: Annotated[str, typer.Option("--memo", "-m", help="Memo field")] = "",
) -> None:
    """Send Avalanche native tokens (ANT)."""
    settings = settings_of(ctx)
    try:
        wallet_name = require_name(name)
        quantity = parse_quantity(qty, "You must specify a quantity of tokens with the -q flag.")
        if not send_addr:
            raise ValidationError("You must specify a send-to address with the -a flag.")
        if not token_id:
            raise ValidationError("You must specify the avalanche token ID")

        async def operation(service: WalletService) -> str:
            return await service.send_tokens(wallet_name, token_id, quantity, send_addr, memo)

        display_txid(settings, run_with_service(settings, operation))
    except Exception as e:
        fail(e)


@app.command("burn-tokens")
def burn_tokens(
    ctx: typer.Context,
    name: Annotated[str | None, typer.Option("--name", "-n", help="Name of wallet")] = None,
    token_id: Annotated[str | None, typer.Option("--token-id", "-t", help="Token ID")] = None,
    qty: Annotated[
        str | None, typer.Option("--qty", "-q", help="Quantity of tokens to burn")
    ] = None,
    memo: Annotated[str, typer.Option("--memo", "-m", help="Memo field")] = "",
) -> None:
    """Burn Avalanche native tokens."""
    settings = settings_of(ctx)
    try:
        wallet_name = require_name(name)
        quantity = parse_quantity(qty, "You must specify a quantity of tokens with the -q flag.")
        if not token_id:
            raise ValidationError("You must specify the avalanche token ID")

        async def operation(service: WalletService) -> str:
            return await service.burn_tokens(wallet_name, token_id, quantity, memo)

        display_txid(settings, run_with_service(settings, operation))
    except Exception as e:
        fail(e)


@app.command("create-token")
def create_token(
    ctx: typer.Context,
    name: Annotated[str | None, typer.Option("--name", "-n", help="Name of wallet")] = None,
    token: Annotated[
        str | None, typer.Option("--token", "-t", help="The descriptive name of the asset")
    ] = None,
    symbol: Annotated[
        str | None, typer.Option("--symbol", "-s", help="The ticker symbol of the asset")
    ] = None,
    denomination: Annotated[
        int,
        typer.Option("--denomination", "-d", help="Token denomination, 10^D with 0 <= D <= 32"),
    ] = 9,
    initial: Annotated[
        int, typer.Option("--initial", "-q", help="Initial amount minted with the asset")
    ] = 0,
    memo: Annotated[str, typer.Option("--memo", "-m", help="Memo field")] = "",
    send_addr: Annotated[
        str | None,
        typer.Option("--send-addr", "-a", help="Address receiving the supply and mint output"),
    ] = None,
) -> None:
    """Create a brand new ANT."""
    settings = settings_of(ctx)
    try:
        wallet_name = require_name(name)
        if not token:
            raise ValidationError("You must specify a name for the token with the -t flag.")
        if not symbol or len(symbol) > MAX_SYMBOL_LENGTH:
            raise ValidationError("The token symbol must be between 1 and 4 characters.")
        if not 0 <= denomination <= MAX_DENOMINATION:
            raise ValidationError(f"The denomination must be between 0 and {MAX_DENOMINATION}.")
        if initial < 0:
            raise ValidationError("The initial quantity must be a positive number.")

        async def operation(service: WalletService) -> str:
            return await service.create_token(
                wallet_name, token, symbol, denomination, initial, memo, send_addr
            )

        display_txid(settings, run_with_service(settings, operation))
    except Exception as e:
        fail(e)


@app.command("make-offer")
def make_offer(
    ctx: typer.Context,
    name: Annotated[str | None, typer.Option("--name", "-n", help="Name of wallet")] = None,
    operation_name: Annotated[
        str | None, typer.Option("--operation", "-o", help="sell, buy or accept")
    ] = None,
    token_id: Annotated[str | None, typer.Option("--token-id", "-t", help="Token ID")] = None,
    amount: Annotated[
        str | None, typer.Option("--amount", "-q", help="Quantity of tokens to sell")
    ] = None,
    avax: Annotated[
        int | None, typer.Option("--avax", "-a", help="Quantity of avax to request in nAVAX")
    ] = None,
    tx_hex: Annotated[str | None, typer.Option("--hex", help="Offer transaction hex")] = None,
    references: Annotated[
        str | None, typer.Option("--references", "-r", help="Address references JSON")
    ] = None,
) -> None:
    """Create, counter or accept an offer to trade tokens for AVAX."""
    settings = settings_of(ctx)
    try:
        wallet_name = require_name(name)

        if operation_name == "sell":
            quantity = parse_quantity(
                amount, "You must specify a token quantity with the -q flag."
            )
            if avax is None:
                raise ValidationError("You must specify an avax quantity with the -a flag.")
            if not token_id:
                raise ValidationError("You must specify the asset ID with the -t flag")

            async def sell(service: WalletService) -> OfferMessage:
                return await OfferProtocol(service).sell(wallet_name, token_id, quantity, avax)

            typer.echo(run_with_service(settings, sell).to_json())
            return

        if operation_name in ("buy", "accept"):
            if not tx_hex:
                raise ValidationError("You must specify the transaction hex with the --hex flag")
            if not references:
                raise ValidationError(
                    "You must specify the address references JSON object with the -r flag"
                )
            AddressReferences.from_json(references)
            offer = OfferMessage(tx_hex=tx_hex, addr_references=references)

            if operation_name == "buy":

                async def buy(service: WalletService) -> OfferMessage:
                    return await OfferProtocol(service).buy(wallet_name, offer)

                typer.echo(run_with_service(settings, buy).to_json())
                return

            async def accept(service: WalletService) -> str:
                return await OfferProtocol(service).accept(wallet_name, offer)

            display_txid(settings, run_with_service(settings, accept))
            return

        raise ValidationError(
            "You must specify the operation type (sell, buy or accept) with the -o flag"
        )
    except Exception as e:
        fail(e)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
