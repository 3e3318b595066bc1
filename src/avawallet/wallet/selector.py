"""
UTXO selection.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal, InvalidOperation

from loguru import logger

from avawallet.errors import ValidationError
from avawallet.models import UTXO, AddressUtxos


def scale_amount(amount: Decimal | int | str | float, denomination: int) -> int:
    """
    Convert a display quantity to integer base units.

    Raises:
        ValidationError: If the amount is not a number, is negative or has
            more decimal places than the denomination allows
    """
    try:
        value = Decimal(str(amount))
    except InvalidOperation as e:
        raise ValidationError(f"Invalid amount: {amount!r}") from e

    if not value.is_finite() or value < 0:
        raise ValidationError(f"Invalid amount: {amount!r}")

    scaled = value.scaleb(denomination)
    if scaled != scaled.to_integral_value():
        raise ValidationError(
            f"Amount {amount} has more precision than denomination {denomination} allows"
        )
    return int(scaled)


def select_utxo(
    target: Decimal | int | str,
    utxo_pages: Iterable[AddressUtxos],
    fee: int,
    denomination: int = 0,
    already_scaled: bool = False,
) -> UTXO | None:
    """
    Pick the smallest UTXO that covers target + fee.

    Args:
        target: Amount to cover, in display units unless already_scaled
        utxo_pages: UTXOs grouped by address, e.g. a wallet's avax_utxos
        fee: Flat network fee in base units
        denomination: Asset denomination used to scale target
        already_scaled: Whether target is already in base units

    Returns:
        The best-fit UTXO, or None when no single UTXO is large enough
    """
    if already_scaled:
        required = int(target) + fee
    else:
        required = scale_amount(target, denomination) + fee

    best: UTXO | None = None
    for page in utxo_pages:
        for utxo in page.utxos:
            if utxo.amount < required:
                continue
            if best is None or utxo.amount < best.amount:
                best = utxo

    if best is None:
        logger.debug(f"No UTXO covers {required} base units")
    else:
        logger.debug(f"Selected UTXO {best.txid}:{best.output_idx} ({best.amount}) for {required}")
    return best
