"""
Deterministic address derivation for Avalanche HD wallets.

Derivation path: m/44'/9000'/0'/0/{index}
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from loguru import logger

from avawallet.constants import AVA_ACCOUNT_PATH, NETWORK_HRPS
from avawallet.errors import InvalidSeed, ValidationError
from avawallet.models import WalletState
from avawallet.wallet.bip32 import HDKey, mnemonic_to_seed


@dataclass
class DerivedKey:
    index: int
    key: HDKey
    address: str

    @property
    def private_key_string(self) -> str:
        return self.key.get_private_key_string()

    @property
    def public_key_hex(self) -> str:
        return self.key.get_public_key_bytes().hex()


class KeyChain:
    """Signing keys indexed by the address they control."""

    def __init__(self, keys: Iterable[DerivedKey] = ()):
        self._keys: dict[str, HDKey] = {}
        for derived in keys:
            self.add(derived)

    def add(self, derived: DerivedKey) -> None:
        self._keys[derived.address] = derived.key

    def get(self, address: str) -> HDKey | None:
        return self._keys.get(address)

    def __contains__(self, address: object) -> bool:
        return address in self._keys

    def __len__(self) -> int:
        return len(self._keys)


class AddressDeriver:
    """
    Maps an HD index to a key pair and X-Chain address.

    The account key (m/44'/9000'/0') is derived once; each address then only
    costs two non-hardened steps.
    """

    def __init__(self, mnemonic: str, hrp: str = "avax"):
        if not mnemonic or not mnemonic.strip():
            raise InvalidSeed("mnemonic is undefined!")

        self.hrp = hrp
        seed = mnemonic_to_seed(mnemonic)
        self._account_key = HDKey.from_seed(seed).derive(AVA_ACCOUNT_PATH)
        self._cache: dict[int, DerivedKey] = {}

    @classmethod
    def from_wallet(cls, wallet: WalletState) -> AddressDeriver:
        """Deriver for the network the wallet was created on."""
        hrp = NETWORK_HRPS.get(wallet.network)
        if hrp is None:
            raise ValidationError(f"Unknown wallet network: {wallet.network}")
        return cls(wallet.mnemonic, hrp)

    def derive(self, index: int) -> DerivedKey:
        if index < 0:
            raise ValidationError(f"HD index must be a non-negative integer, got {index}")

        cached = self._cache.get(index)
        if cached is not None:
            return cached

        key = self._account_key.derive(f"m/0/{index}")
        derived = DerivedKey(index=index, key=key, address=key.get_address(self.hrp))
        self._cache[index] = derived
        return derived

    def derive_range(self, start: int, limit: int) -> list[DerivedKey]:
        """Derive the contiguous range [start, start + limit)"""
        return [self.derive(i) for i in range(start, start + limit)]

    def addresses(self, start: int, limit: int) -> list[str]:
        return [derived.address for derived in self.derive_range(start, limit)]

    def keychain(self, indices: Iterable[int]) -> KeyChain:
        chain = KeyChain(self.derive(i) for i in indices)
        logger.debug(f"Built keychain with {len(chain)} key(s)")
        return chain
