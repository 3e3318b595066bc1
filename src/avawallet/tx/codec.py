"""
Binary codec for X-Chain transactions.

Layout (big-endian, codec version 0):
- unsigned tx: codec version u16 | type id u32 | body
- signed tx:   unsigned tx | credentials
A transaction without credentials is what the first leg of an offer emits;
decoding accepts both forms.
"""

from __future__ import annotations

import hashlib
import struct
from dataclasses import dataclass, field

from avawallet.constants import (
    ADDRESS_LENGTH,
    BASE_TX_TYPE_ID,
    CODEC_VERSION,
    CREATE_ASSET_TX_TYPE_ID,
    ID_LENGTH,
    SECP_CREDENTIAL_TYPE_ID,
    SECP_FX_INDEX,
    SECP_MINT_OUTPUT_TYPE_ID,
    SECP_TRANSFER_INPUT_TYPE_ID,
    SECP_TRANSFER_OUTPUT_TYPE_ID,
    SIGNATURE_LENGTH,
)
from avawallet.errors import DeserializationError
from avawallet.models import make_utxo_id
from avawallet.wallet.address import cb58_encode


class ByteReader:
    """Sequential reader that raises DeserializationError on truncation."""

    def __init__(self, data: bytes):
        self.data = data
        self.offset = 0

    def read(self, length: int) -> bytes:
        end = self.offset + length
        if length < 0 or end > len(self.data):
            raise DeserializationError(
                f"Trying to read {length} bytes at offset {self.offset}, "
                f"beyond buffer length {len(self.data)}"
            )
        chunk = self.data[self.offset : end]
        self.offset = end
        return chunk

    def u8(self) -> int:
        return self.read(1)[0]

    def u16(self) -> int:
        return struct.unpack(">H", self.read(2))[0]

    def u32(self) -> int:
        return struct.unpack(">I", self.read(4))[0]

    def u64(self) -> int:
        return struct.unpack(">Q", self.read(8))[0]

    @property
    def remaining(self) -> int:
        return len(self.data) - self.offset


def _pack_addresses(addresses: list[bytes]) -> bytes:
    result = struct.pack(">I", len(addresses))
    for addr in addresses:
        if len(addr) != ADDRESS_LENGTH:
            raise ValueError(f"Invalid address id length: {len(addr)}")
        result += addr
    return result


def _read_addresses(reader: ByteReader) -> list[bytes]:
    count = reader.u32()
    return [reader.read(ADDRESS_LENGTH) for _ in range(count)]


@dataclass
class SECPTransferOutput:
    """Fungible output (type 7)."""

    amount: int
    addresses: list[bytes]
    locktime: int = 0
    threshold: int = 1

    type_id = SECP_TRANSFER_OUTPUT_TYPE_ID

    def to_bytes(self) -> bytes:
        return (
            struct.pack(">QQI", self.amount, self.locktime, self.threshold)
            + _pack_addresses(self.addresses)
        )

    @classmethod
    def read(cls, reader: ByteReader) -> SECPTransferOutput:
        amount = reader.u64()
        locktime = reader.u64()
        threshold = reader.u32()
        return cls(amount, _read_addresses(reader), locktime, threshold)


@dataclass
class SECPMintOutput:
    """Minting authority output (type 6)."""

    addresses: list[bytes]
    locktime: int = 0
    threshold: int = 1

    type_id = SECP_MINT_OUTPUT_TYPE_ID

    def to_bytes(self) -> bytes:
        return struct.pack(">QI", self.locktime, self.threshold) + _pack_addresses(self.addresses)

    @classmethod
    def read(cls, reader: ByteReader) -> SECPMintOutput:
        locktime = reader.u64()
        threshold = reader.u32()
        return cls(_read_addresses(reader), locktime, threshold)


Output = SECPTransferOutput | SECPMintOutput


@dataclass
class OpaqueOutput:
    """
    A UTXO output of a type this wallet does not spend (NFT and other fx
    outputs). Kept as raw bytes; it owns no address the wallet can use.
    """

    type_id: int
    data: bytes

    @property
    def addresses(self) -> list[bytes]:
        return []

    def to_bytes(self) -> bytes:
        return self.data


OUTPUT_TYPES: dict[int, type[SECPTransferOutput] | type[SECPMintOutput]] = {
    SECP_TRANSFER_OUTPUT_TYPE_ID: SECPTransferOutput,
    SECP_MINT_OUTPUT_TYPE_ID: SECPMintOutput,
}


def read_typed_output(reader: ByteReader) -> Output:
    type_id = reader.u32()
    output_cls = OUTPUT_TYPES.get(type_id)
    if output_cls is None:
        raise DeserializationError(f"Unknown output type id: {type_id}")
    return output_cls.read(reader)


def typed_output_bytes(output: Output | OpaqueOutput) -> bytes:
    return struct.pack(">I", output.type_id) + output.to_bytes()


@dataclass
class TransferableOutput:
    asset_id: bytes
    output: SECPTransferOutput

    @property
    def amount(self) -> int:
        return self.output.amount

    def to_bytes(self) -> bytes:
        return self.asset_id + typed_output_bytes(self.output)

    @classmethod
    def read(cls, reader: ByteReader) -> TransferableOutput:
        asset_id = reader.read(ID_LENGTH)
        output = read_typed_output(reader)
        if not isinstance(output, SECPTransferOutput):
            raise DeserializationError("Transaction outputs must be transfer outputs")
        return cls(asset_id, output)


@dataclass
class TransferableInput:
    tx_id: bytes
    output_idx: int
    asset_id: bytes
    amount: int
    sig_indices: list[int] = field(default_factory=lambda: [0])

    @property
    def utxo_id(self) -> str:
        return make_utxo_id(self.tx_id, self.output_idx)

    def to_bytes(self) -> bytes:
        result = self.tx_id + struct.pack(">I", self.output_idx) + self.asset_id
        result += struct.pack(
            ">IQI", SECP_TRANSFER_INPUT_TYPE_ID, self.amount, len(self.sig_indices)
        )
        for idx in self.sig_indices:
            result += struct.pack(">I", idx)
        return result

    @classmethod
    def read(cls, reader: ByteReader) -> TransferableInput:
        tx_id = reader.read(ID_LENGTH)
        output_idx = reader.u32()
        asset_id = reader.read(ID_LENGTH)
        type_id = reader.u32()
        if type_id != SECP_TRANSFER_INPUT_TYPE_ID:
            raise DeserializationError(f"Unknown input type id: {type_id}")
        amount = reader.u64()
        sig_indices = [reader.u32() for _ in range(reader.u32())]
        return cls(tx_id, output_idx, asset_id, amount, sig_indices)


@dataclass
class InitialState:
    outputs: list[Output]
    fx_index: int = SECP_FX_INDEX

    def to_bytes(self) -> bytes:
        result = struct.pack(">II", self.fx_index, len(self.outputs))
        for out in self.outputs:
            result += typed_output_bytes(out)
        return result

    @classmethod
    def read(cls, reader: ByteReader) -> InitialState:
        fx_index = reader.u32()
        outputs = [read_typed_output(reader) for _ in range(reader.u32())]
        return cls(outputs, fx_index)


@dataclass
class BaseTx:
    network_id: int
    blockchain_id: bytes
    outputs: list[TransferableOutput]
    inputs: list[TransferableInput]
    memo: bytes = b""

    type_id = BASE_TX_TYPE_ID

    def _base_body(self) -> bytes:
        result = struct.pack(">I", self.network_id) + self.blockchain_id
        result += struct.pack(">I", len(self.outputs))
        for out in self.outputs:
            result += out.to_bytes()
        result += struct.pack(">I", len(self.inputs))
        for inp in self.inputs:
            result += inp.to_bytes()
        result += struct.pack(">I", len(self.memo)) + self.memo
        return result

    def body_bytes(self) -> bytes:
        return self._base_body()

    def to_bytes(self) -> bytes:
        return struct.pack(">HI", CODEC_VERSION, self.type_id) + self.body_bytes()

    def signing_digest(self) -> bytes:
        return hashlib.sha256(self.to_bytes()).digest()

    def to_hex(self) -> str:
        return self.to_bytes().hex()

    def input_total(self, asset_id: bytes) -> int:
        return sum(inp.amount for inp in self.inputs if inp.asset_id == asset_id)

    def output_total(self, asset_id: bytes) -> int:
        return sum(out.amount for out in self.outputs if out.asset_id == asset_id)

    @staticmethod
    def _read_base_fields(
        reader: ByteReader,
    ) -> tuple[int, bytes, list[TransferableOutput], list[TransferableInput], bytes]:
        network_id = reader.u32()
        blockchain_id = reader.read(ID_LENGTH)
        outputs = [TransferableOutput.read(reader) for _ in range(reader.u32())]
        inputs = [TransferableInput.read(reader) for _ in range(reader.u32())]
        memo = reader.read(reader.u32())
        return network_id, blockchain_id, outputs, inputs, memo


@dataclass
class CreateAssetTx(BaseTx):
    name: str = ""
    symbol: str = ""
    denomination: int = 0
    initial_states: list[InitialState] = field(default_factory=list)

    type_id = CREATE_ASSET_TX_TYPE_ID

    def body_bytes(self) -> bytes:
        name = self.name.encode("utf-8")
        symbol = self.symbol.encode("utf-8")
        result = self._base_body()
        result += struct.pack(">H", len(name)) + name
        result += struct.pack(">H", len(symbol)) + symbol
        result += struct.pack(">BI", self.denomination, len(self.initial_states))
        for state in self.initial_states:
            result += state.to_bytes()
        return result


@dataclass
class Credential:
    """Signatures for one input. No signatures means the slot is unsigned."""

    signatures: list[bytes] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.signatures

    def to_bytes(self) -> bytes:
        result = struct.pack(">II", SECP_CREDENTIAL_TYPE_ID, len(self.signatures))
        for sig in self.signatures:
            if len(sig) != SIGNATURE_LENGTH:
                raise ValueError(f"Invalid signature length: {len(sig)}")
            result += sig
        return result

    @classmethod
    def read(cls, reader: ByteReader) -> Credential:
        type_id = reader.u32()
        if type_id != SECP_CREDENTIAL_TYPE_ID:
            raise DeserializationError(f"Unknown credential type id: {type_id}")
        return cls([reader.read(SIGNATURE_LENGTH) for _ in range(reader.u32())])


@dataclass
class SignedTx:
    """
    An unsigned transaction plus one credential slot per input.

    With fewer credentials than inputs (or empty ones) the transaction is
    partial and must not be broadcast.
    """

    unsigned: BaseTx
    credentials: list[Credential] = field(default_factory=list)

    @property
    def is_fully_signed(self) -> bool:
        return len(self.credentials) == len(self.unsigned.inputs) and all(
            not cred.is_empty for cred in self.credentials
        )

    def to_bytes(self) -> bytes:
        result = self.unsigned.to_bytes()
        result += struct.pack(">I", len(self.credentials))
        for cred in self.credentials:
            result += cred.to_bytes()
        return result

    def to_hex(self) -> str:
        return self.to_bytes().hex()

    @property
    def txid(self) -> str:
        return cb58_encode(hashlib.sha256(self.to_bytes()).digest())


def _read_unsigned(reader: ByteReader) -> BaseTx:
    codec_version = reader.u16()
    if codec_version != CODEC_VERSION:
        raise DeserializationError(f"Unsupported codec version: {codec_version}")

    type_id = reader.u32()
    network_id, blockchain_id, outputs, inputs, memo = BaseTx._read_base_fields(reader)

    if type_id == BASE_TX_TYPE_ID:
        return BaseTx(network_id, blockchain_id, outputs, inputs, memo)

    if type_id == CREATE_ASSET_TX_TYPE_ID:
        name = reader.read(reader.u16()).decode("utf-8", errors="strict")
        symbol = reader.read(reader.u16()).decode("utf-8", errors="strict")
        denomination = reader.u8()
        initial_states = [InitialState.read(reader) for _ in range(reader.u32())]
        return CreateAssetTx(
            network_id,
            blockchain_id,
            outputs,
            inputs,
            memo,
            name=name,
            symbol=symbol,
            denomination=denomination,
            initial_states=initial_states,
        )

    raise DeserializationError(f"Unknown transaction type id: {type_id}")


def decode_tx(data: bytes) -> SignedTx:
    """
    Decode unsigned or signed transaction bytes.

    Raises:
        DeserializationError: On truncated data, unknown type ids or
            trailing bytes
    """
    reader = ByteReader(data)
    try:
        unsigned = _read_unsigned(reader)
    except UnicodeDecodeError as e:
        raise DeserializationError(f"Invalid text field in transaction: {e}") from e

    credentials: list[Credential] = []
    if reader.remaining:
        credentials = [Credential.read(reader) for _ in range(reader.u32())]
        if len(credentials) > len(unsigned.inputs):
            raise DeserializationError("More credentials than inputs")

    if reader.remaining:
        raise DeserializationError(f"{reader.remaining} trailing bytes after transaction")

    return SignedTx(unsigned, credentials)


def tx_from_hex(tx_hex: str) -> SignedTx:
    if not isinstance(tx_hex, str):
        raise DeserializationError("Transaction hex must be a string")
    cleaned = tx_hex[2:] if tx_hex.startswith("0x") else tx_hex
    try:
        data = bytes.fromhex(cleaned)
    except ValueError as e:
        raise DeserializationError(f"Invalid transaction hex: {e}") from e
    return decode_tx(data)


@dataclass
class ChainUTXO:
    """A UTXO as returned by the node, before wallet bookkeeping."""

    tx_id: bytes
    output_idx: int
    asset_id: bytes
    output: Output | OpaqueOutput

    @property
    def type_id(self) -> int:
        return self.output.type_id

    @property
    def addresses(self) -> list[bytes]:
        return self.output.addresses

    @property
    def amount(self) -> int:
        """Transfer amount; non-fungible outputs count as one unit."""
        if isinstance(self.output, SECPTransferOutput):
            return self.output.amount
        return 1

    @property
    def txid(self) -> str:
        return cb58_encode(self.tx_id)

    def to_bytes(self) -> bytes:
        return (
            struct.pack(">H", CODEC_VERSION)
            + self.tx_id
            + struct.pack(">I", self.output_idx)
            + self.asset_id
            + typed_output_bytes(self.output)
        )


def decode_utxo(data: bytes) -> ChainUTXO:
    reader = ByteReader(data)
    codec_version = reader.u16()
    if codec_version != CODEC_VERSION:
        raise DeserializationError(f"Unsupported codec version: {codec_version}")
    tx_id = reader.read(ID_LENGTH)
    output_idx = reader.u32()
    asset_id = reader.read(ID_LENGTH)

    type_id = reader.u32()
    output_cls = OUTPUT_TYPES.get(type_id)
    if output_cls is None:
        # Other fx outputs (NFTs, properties) are carried through unparsed
        opaque = OpaqueOutput(type_id, reader.read(reader.remaining))
        return ChainUTXO(tx_id, output_idx, asset_id, opaque)

    output = output_cls.read(reader)
    if reader.remaining:
        raise DeserializationError(f"{reader.remaining} trailing bytes after UTXO")
    return ChainUTXO(tx_id, output_idx, asset_id, output)
