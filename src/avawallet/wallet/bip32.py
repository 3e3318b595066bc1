"""
BIP32 key tree and BIP39 mnemonics for Avalanche wallets.

Only private derivation is needed: every key the wallet uses descends from
its own mnemonic, so child keys are computed with coincurve's scalar tweak.
"""

from __future__ import annotations

import hashlib
import hmac

from coincurve import PrivateKey
from mnemonic import Mnemonic

from avawallet.wallet.address import cb58_encode, format_address, pubkey_to_short_id

HARDENED_OFFSET = 0x80000000
MASTER_HMAC_KEY = b"Bitcoin seed"
PRIVATE_KEY_PREFIX = "PrivateKey-"

_wordlist = Mnemonic("english")


def parse_path(path: str) -> list[int]:
    """Child indices of a path such as ``m/44'/9000'/0'`` (``h`` also marks hardened)."""
    head, *segments = path.split("/")
    if head != "m":
        raise ValueError(f"Derivation path must start with 'm': {path!r}")

    indices = []
    for segment in filter(None, segments):
        hardened = segment[-1] in "'h"
        number = int(segment[:-1] if hardened else segment)
        if not 0 <= number < HARDENED_OFFSET:
            raise ValueError(f"Derivation index out of range in {path!r}")
        indices.append(number + HARDENED_OFFSET if hardened else number)
    return indices


class HDKey:
    """A node of the key tree: secp256k1 private key plus chain code."""

    def __init__(self, private_key: PrivateKey, chain_code: bytes, depth: int = 0):
        self._private_key = private_key
        self.chain_code = chain_code
        self.depth = depth

    @classmethod
    def from_seed(cls, seed: bytes) -> HDKey:
        digest = hmac.new(MASTER_HMAC_KEY, seed, hashlib.sha512).digest()
        return cls(PrivateKey(digest[:32]), digest[32:])

    def child(self, index: int) -> HDKey:
        if index >= HARDENED_OFFSET:
            data = b"\x00" + self._private_key.secret
        else:
            data = self.get_public_key_bytes()
        digest = hmac.new(self.chain_code, data + index.to_bytes(4, "big"), hashlib.sha512).digest()

        # tweak add is mod n and rejects a zero result
        child_key = self._private_key.add(digest[:32])
        return HDKey(child_key, digest[32:], self.depth + 1)

    def derive(self, path: str) -> HDKey:
        key = self
        for index in parse_path(path):
            key = key.child(index)
        return key

    def get_private_key_bytes(self) -> bytes:
        return self._private_key.secret

    def get_public_key_bytes(self) -> bytes:
        """33-byte compressed public key"""
        return self._private_key.public_key.format(compressed=True)

    def get_short_id(self) -> bytes:
        """20-byte address id used inside transaction outputs"""
        return pubkey_to_short_id(self.get_public_key_bytes())

    def get_address(self, hrp: str = "avax") -> str:
        return format_address(self.get_short_id(), hrp)

    def get_private_key_string(self) -> str:
        return PRIVATE_KEY_PREFIX + cb58_encode(self.get_private_key_bytes())

    def sign_digest(self, digest: bytes) -> bytes:
        """
        Sign a 32-byte digest.

        Returns the 65-byte recoverable signature (r || s || recovery id)
        that X-Chain credentials carry.
        """
        if len(digest) != 32:
            raise ValueError(f"Digest must be 32 bytes, got {len(digest)}")
        return self._private_key.sign_recoverable(digest, hasher=None)


def mnemonic_to_seed(mnemonic: str, passphrase: str = "") -> bytes:
    return Mnemonic.to_seed(mnemonic, passphrase)


def generate_mnemonic(strength: int = 256) -> str:
    """BIP39 mnemonic; 256 bits of entropy gives 24 words."""
    return _wordlist.generate(strength=strength)


def validate_mnemonic(mnemonic: str) -> bool:
    return _wordlist.check(mnemonic)
