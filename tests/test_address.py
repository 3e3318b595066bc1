"""
Tests for X-Chain address and cb58 encoding.
"""

from __future__ import annotations

import pytest

from avawallet.constants import X_CHAIN_IDS
from avawallet.errors import DeserializationError, ValidationError
from avawallet.wallet.address import (
    cb58_decode,
    cb58_encode,
    format_address,
    hash160,
    parse_address,
)


class TestCb58:
    """Tests for cb58 (base58 with a 4-byte sha256 checksum)."""

    def test_encode_decode(self) -> None:
        data = bytes(range(32))
        assert cb58_decode(cb58_encode(data)) == data

    def test_known_chain_ids_decode(self) -> None:
        """The X-Chain ids are valid 32-byte cb58 strings."""
        for chain_id in X_CHAIN_IDS.values():
            assert len(cb58_decode(chain_id)) == 32

    def test_bad_checksum(self) -> None:
        encoded = cb58_encode(b"\x01" * 32)
        corrupted = encoded[:-1] + ("1" if encoded[-1] != "1" else "2")
        with pytest.raises(DeserializationError):
            cb58_decode(corrupted)

    def test_invalid_characters(self) -> None:
        """0, O, I and l are not in the base58 alphabet."""
        with pytest.raises(DeserializationError):
            cb58_decode("0OIl")

    def test_too_short(self) -> None:
        with pytest.raises(DeserializationError):
            cb58_decode("1")


class TestAddress:
    """Tests for bech32 X-Chain addresses."""

    def test_hash160_length(self) -> None:
        assert len(hash160(b"\x02" * 33)) == 20

    def test_format_mainnet(self) -> None:
        address = format_address(b"\x00" * 20)
        assert address.startswith("X-avax1")

    def test_format_testnet(self) -> None:
        address = format_address(b"\x00" * 20, hrp="fuji")
        assert address.startswith("X-fuji1")

    def test_parse_returns_short_id(self) -> None:
        short_id = bytes(range(20))
        assert parse_address(format_address(short_id)) == short_id

    def test_parse_checks_hrp(self) -> None:
        address = format_address(bytes(range(20)), hrp="fuji")
        with pytest.raises(ValidationError):
            parse_address(address, hrp="avax")

    def test_parse_checks_chain(self) -> None:
        address = format_address(bytes(range(20))).replace("X-", "P-")
        with pytest.raises(ValidationError):
            parse_address(address)

    def test_parse_rejects_garbage(self) -> None:
        with pytest.raises(ValidationError):
            parse_address("X-avax1notanaddress")
        with pytest.raises(ValidationError):
            parse_address("avax1nochainprefix")

    def test_format_rejects_wrong_length(self) -> None:
        with pytest.raises(ValueError):
            format_address(b"\x00" * 19)
