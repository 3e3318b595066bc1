"""
X-Chain address and cb58 encoding utilities.
"""

from __future__ import annotations

import hashlib

import base58
import bech32

from avawallet.constants import ADDRESS_LENGTH
from avawallet.errors import DeserializationError, ValidationError

CB58_CHECKSUM_LENGTH = 4


def hash160(data: bytes) -> bytes:
    """RIPEMD160(SHA256(data))"""
    h = hashlib.new("ripemd160")
    h.update(hashlib.sha256(data).digest())
    return h.digest()


def cb58_encode(data: bytes) -> str:
    """base58 with the last 4 bytes of SHA256(data) appended"""
    checksum = hashlib.sha256(data).digest()[-CB58_CHECKSUM_LENGTH:]
    return base58.b58encode(data + checksum).decode("ascii")


def cb58_decode(value: str) -> bytes:
    try:
        raw = base58.b58decode(value)
    except ValueError as e:
        raise DeserializationError(f"Invalid cb58 string: {value!r}") from e

    if len(raw) <= CB58_CHECKSUM_LENGTH:
        raise DeserializationError(f"cb58 string too short: {value!r}")

    data, checksum = raw[:-CB58_CHECKSUM_LENGTH], raw[-CB58_CHECKSUM_LENGTH:]
    if hashlib.sha256(data).digest()[-CB58_CHECKSUM_LENGTH:] != checksum:
        raise DeserializationError(f"Invalid cb58 checksum: {value!r}")
    return data


def pubkey_to_short_id(pubkey_bytes: bytes) -> bytes:
    """20-byte address id for a compressed secp256k1 public key."""
    if len(pubkey_bytes) != 33:
        raise ValueError(f"Invalid compressed pubkey length: {len(pubkey_bytes)}")
    return hash160(pubkey_bytes)


def format_address(short_id: bytes, hrp: str = "avax", chain: str = "X") -> str:
    """
    Encode a 20-byte address id as an X-Chain address, e.g. ``X-avax1...``.
    """
    if len(short_id) != ADDRESS_LENGTH:
        raise ValueError(f"Invalid address id length: {len(short_id)}")

    data = bech32.convertbits(short_id, 8, 5)
    encoded = bech32.bech32_encode(hrp, data)
    return f"{chain}-{encoded}"


def parse_address(address: str, hrp: str | None = None, chain: str = "X") -> bytes:
    """
    Decode an X-Chain address to its 20-byte id.

    Raises:
        ValidationError: On a wrong chain prefix, hrp, checksum or length
    """
    if not isinstance(address, str) or "-" not in address:
        raise ValidationError(f"Invalid avalanche address: {address!r}")

    prefix, encoded = address.split("-", 1)
    if prefix != chain:
        raise ValidationError(f"Address {address!r} is not on the {chain}-Chain")

    decoded_hrp, data = bech32.bech32_decode(encoded)
    if decoded_hrp is None or data is None:
        raise ValidationError(f"Invalid bech32 checksum in address {address!r}")
    if hrp is not None and decoded_hrp != hrp:
        raise ValidationError(f"Address {address!r} has hrp {decoded_hrp!r}, expected {hrp!r}")

    short_id = bech32.convertbits(data, 5, 8, False)
    if short_id is None or len(short_id) != ADDRESS_LENGTH:
        raise ValidationError(f"Invalid address length in {address!r}")
    return bytes(short_id)
