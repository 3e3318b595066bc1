"""
Partial signing of X-Chain transactions.

Each input is signed only if the signer holds the key for the address that
owns it; other slots are kept as they are or filled with an empty
placeholder credential.
"""

from __future__ import annotations

from loguru import logger

from avawallet.models import AddressReferences
from avawallet.tx.codec import BaseTx, Credential, SignedTx
from avawallet.wallet.deriver import KeyChain


class PartialSigner:
    def __init__(self, keychain: KeyChain):
        self.keychain = keychain

    def sign(
        self,
        tx: BaseTx | SignedTx,
        references: AddressReferences,
        credentials: list[Credential] | None = None,
    ) -> SignedTx:
        """
        Sign every input this keychain controls.

        Args:
            tx: Unsigned transaction, or a partially signed one whose
                credentials are reused when credentials is not given
            references: UTXO id -> owning address for the inputs
            credentials: Existing credential slots, by input position

        Returns:
            SignedTx with exactly one credential slot per input
        """
        if isinstance(tx, SignedTx):
            unsigned = tx.unsigned
            if credentials is None:
                credentials = tx.credentials
        else:
            unsigned = tx

        existing = list(credentials or [])
        digest = unsigned.signing_digest()

        slots: list[Credential] = []
        signed = 0
        for i, inp in enumerate(unsigned.inputs):
            current = existing[i] if i < len(existing) else Credential()
            if not current.is_empty:
                slots.append(current)
                continue

            address = references.get(inp.utxo_id)
            key = self.keychain.get(address) if address else None
            if key is None:
                logger.debug(f"Skipping input {i} ({inp.utxo_id}): no key for {address}")
                slots.append(current)
                continue

            slots.append(Credential([key.sign_digest(digest) for _ in inp.sig_indices]))
            signed += 1

        logger.debug(f"Signed {signed} of {len(unsigned.inputs)} input(s)")
        return SignedTx(unsigned, slots)
