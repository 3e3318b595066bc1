"""
Wallet and protocol data models using Pydantic for validation and serialization.
"""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from avawallet.constants import SECP_TRANSFER_OUTPUT_TYPE_ID
from avawallet.errors import DeserializationError
from avawallet.wallet.address import cb58_decode, cb58_encode

ADDRESS_REFERENCES_VERSION = 1


def make_utxo_id(tx_id: bytes, output_idx: int) -> str:
    """Deterministic UTXO identifier: cb58(tx_id || output_idx as u32)."""
    return cb58_encode(tx_id + output_idx.to_bytes(4, "big"))


class UTXO(BaseModel):
    """
    An unspent output owned by one of the wallet's HD addresses.

    Amounts are integers in the asset's smallest unit. Non-transfer outputs
    (mint authorities) carry an amount of 1.
    """

    model_config = ConfigDict(frozen=True)

    txid: str
    output_idx: int = Field(..., ge=0)
    amount: int = Field(..., ge=0)
    asset_id: str
    type_id: int = SECP_TRANSFER_OUTPUT_TYPE_ID
    hd_index: int = Field(..., ge=0)
    address: str

    @property
    def utxo_id(self) -> str:
        return make_utxo_id(cb58_decode(self.txid), self.output_idx)

    @property
    def is_transfer(self) -> bool:
        return self.type_id == SECP_TRANSFER_OUTPUT_TYPE_ID


class AddressUtxos(BaseModel):
    """UTXOs grouped by the address (and HD index) that controls them."""

    address: str
    hd_index: int = Field(..., ge=0)
    utxos: list[UTXO] = Field(default_factory=list)


class AssetAmount(BaseModel):
    """Balance of one asset held by one address."""

    asset_id: str
    name: str = ""
    symbol: str = ""
    denomination: int = Field(default=0, ge=0, le=32)
    amount: int = Field(default=0, ge=0)


class AddressBalance(BaseModel):
    address: str
    hd_index: int = Field(..., ge=0)
    navax_amount: int = Field(default=0, ge=0)
    assets: list[AssetAmount] = Field(default_factory=list)


class AddressData(BaseModel):
    """Result of scanning one page, or the whole wallet."""

    balances: list[AddressBalance] = Field(default_factory=list)
    avax_utxos: list[AddressUtxos] = Field(default_factory=list)
    other_utxos: list[AddressUtxos] = Field(default_factory=list)
    navax_amount: int = 0

    def extend(self, other: AddressData) -> None:
        self.balances.extend(other.balances)
        self.avax_utxos.extend(other.avax_utxos)
        self.other_utxos.extend(other.other_utxos)
        self.navax_amount += other.navax_amount


class WalletState(BaseModel):
    """Persisted wallet file contents."""

    network: str = "mainnet"
    type: str = "mnemonic"
    seed: str = ""
    mnemonic: str = ""
    address_string: str = ""
    private_key: str = ""
    description: str = ""

    next_address: int = Field(default=1, ge=0)
    addresses: dict[int, str] = Field(default_factory=dict)

    avax_amount: float = 0
    balances: list[AddressBalance] = Field(default_factory=list)
    avax_utxos: list[AddressUtxos] = Field(default_factory=list)
    other_utxos: list[AddressUtxos] = Field(default_factory=list)


class AddressReferences(BaseModel):
    """
    Map of UTXO id -> controlling address exchanged during an offer.

    Serialized as ``{"version": 1, "references": {...}}``. A bare
    ``{utxo_id: address}`` object is still accepted on input.
    """

    version: int = ADDRESS_REFERENCES_VERSION
    references: dict[str, str] = Field(default_factory=dict)

    @field_validator("version")
    @classmethod
    def validate_version(cls, v: int) -> int:
        if v != ADDRESS_REFERENCES_VERSION:
            raise ValueError(f"Unsupported address reference version: {v}")
        return v

    def get(self, utxo_id: str) -> str | None:
        return self.references.get(utxo_id)

    def add(self, utxo_id: str, address: str) -> None:
        self.references[utxo_id] = address

    def merge(self, other: AddressReferences) -> AddressReferences:
        return AddressReferences(references={**self.references, **other.references})

    def __len__(self) -> int:
        return len(self.references)

    def to_json(self) -> str:
        return self.model_dump_json()

    @classmethod
    def from_json(cls, data: str) -> AddressReferences:
        try:
            obj: Any = json.loads(data)
        except (TypeError, json.JSONDecodeError) as e:
            raise DeserializationError(f"Address references are not valid JSON: {e}") from e

        if not isinstance(obj, dict):
            raise DeserializationError("Address references must be a JSON object")

        if "version" not in obj:
            obj = {"references": obj}

        try:
            return cls.model_validate(obj)
        except ValidationError as e:
            raise DeserializationError(f"Invalid address references: {e}") from e


class OfferMessage(BaseModel):
    """The pair two offer participants exchange out of band."""

    model_config = ConfigDict(populate_by_name=True)

    tx_hex: str = Field(..., alias="txHex")
    addr_references: str = Field(..., alias="addrReferences")

    @property
    def references(self) -> AddressReferences:
        return AddressReferences.from_json(self.addr_references)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)
