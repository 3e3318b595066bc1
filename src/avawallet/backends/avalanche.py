"""
Avalanche node JSON-RPC backend.
Talks to the X-Chain (avm.*) and info (info.*) APIs of a public or local node.
"""

from __future__ import annotations

import hashlib
from typing import Any

import httpx
from loguru import logger

from avawallet.backends.base import AssetBalance, AssetDescription, ChainService
from avawallet.config import Settings
from avawallet.errors import DeserializationError, NetworkError
from avawallet.tx.codec import ChainUTXO, OpaqueOutput, SignedTx, decode_utxo
from avawallet.wallet.address import cb58_decode

DEFAULT_RPC_TIMEOUT = 30.0

# avm.getUTXOs returns at most this many UTXOs per page
UTXO_PAGE_LIMIT = 1024

HEX_CHECKSUM_LENGTH = 4


def encode_hex_with_checksum(data: bytes) -> str:
    """Node "hex" encoding: 0x-prefixed data followed by the last 4 bytes of its SHA256."""
    return "0x" + (data + hashlib.sha256(data).digest()[-HEX_CHECKSUM_LENGTH:]).hex()


def decode_hex_with_checksum(value: str) -> bytes:
    cleaned = value[2:] if value.startswith("0x") else value
    try:
        raw = bytes.fromhex(cleaned)
    except ValueError as e:
        raise DeserializationError(f"Invalid hex from node: {e}") from e

    if len(raw) <= HEX_CHECKSUM_LENGTH:
        raise DeserializationError("Hex payload from node is too short")

    data, checksum = raw[:-HEX_CHECKSUM_LENGTH], raw[-HEX_CHECKSUM_LENGTH:]
    if hashlib.sha256(data).digest()[-HEX_CHECKSUM_LENGTH:] != checksum:
        raise DeserializationError("Invalid checksum in hex payload from node")
    return data


class AvalancheBackend(ChainService):
    """
    Chain service backed by an Avalanche node's JSON-RPC endpoints.
    """

    def __init__(
        self,
        endpoint: str = "https://api.avax.network",
        network_id: int = 1,
        blockchain_id: str = "2oYMBNV4eNHyqk2fjjV5nVQLDbtmNJzq5s3qs3Lo6ftnC6FByM",
        hrp: str = "avax",
        timeout: float = DEFAULT_RPC_TIMEOUT,
    ):
        super().__init__(network_id, blockchain_id, hrp)
        self.endpoint = endpoint.rstrip("/")
        self.xchain_url = f"{self.endpoint}/ext/bc/X"
        self.info_url = f"{self.endpoint}/ext/info"
        self.client = httpx.AsyncClient(timeout=timeout)
        self._request_id = 0
        self._fees: tuple[int, int] | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> AvalancheBackend:
        return cls(
            endpoint=settings.endpoint,
            network_id=settings.network_id,
            blockchain_id=settings.blockchain_id,
            hrp=settings.hrp,
            timeout=settings.request_timeout,
        )

    async def _rpc_call(self, url: str, method: str, params: dict | None = None) -> Any:
        """
        Make a JSON-RPC call to the node.

        Args:
            url: Chain endpoint (X-Chain or info)
            method: RPC method name
            params: Method parameters

        Returns:
            RPC result

        Raises:
            NetworkError: On RPC errors, HTTP errors or timeouts
        """
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
            "params": params or {},
        }

        try:
            response = await self.client.post(url, json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException as e:
            logger.error(f"RPC call timed out: {method} - {e}")
            raise NetworkError(f"RPC call timed out: {method}") from e
        except httpx.HTTPError as e:
            logger.error(f"RPC call failed: {method} - {e}")
            raise NetworkError(f"RPC call failed: {method}: {e}") from e
        except ValueError as e:
            raise NetworkError(f"Invalid JSON in response to {method}") from e

        if "error" in data and data["error"]:
            error_info = data["error"]
            error_code = error_info.get("code", "unknown")
            error_msg = error_info.get("message", str(error_info))
            raise NetworkError(f"RPC error {error_code}: {error_msg}")

        return data.get("result")

    async def get_asset_description(self, asset_id: str) -> AssetDescription:
        result = await self._rpc_call(
            self.xchain_url, "avm.getAssetDescription", {"assetID": asset_id}
        )
        return AssetDescription(
            asset_id=cb58_decode(result["assetID"]),
            name=result.get("name", ""),
            symbol=result.get("symbol", ""),
            denomination=int(result.get("denomination", 0)),
        )

    async def get_all_balances(self, address: str) -> list[AssetBalance]:
        result = await self._rpc_call(self.xchain_url, "avm.getAllBalances", {"address": address})
        return [
            AssetBalance(asset=entry["asset"], balance=int(entry["balance"]))
            for entry in result.get("balances", [])
        ]

    async def get_utxos(self, addresses: list[str]) -> list[ChainUTXO]:
        utxos: list[ChainUTXO] = []
        if not addresses:
            return utxos

        start_index: dict | None = None
        while True:
            params: dict[str, Any] = {
                "addresses": addresses,
                "limit": UTXO_PAGE_LIMIT,
                "encoding": "hex",
            }
            if start_index:
                params["startIndex"] = start_index

            result = await self._rpc_call(self.xchain_url, "avm.getUTXOs", params)
            page = result.get("utxos", [])
            for encoded in page:
                utxo = decode_utxo(decode_hex_with_checksum(encoded))
                if isinstance(utxo.output, OpaqueOutput):
                    logger.debug(
                        f"UTXO {utxo.txid}:{utxo.output_idx} has output type {utxo.type_id}, "
                        "not spendable by this wallet"
                    )
                utxos.append(utxo)

            num_fetched = int(result.get("numFetched", len(page)))
            start_index = result.get("endIndex")
            if num_fetched < UTXO_PAGE_LIMIT or not start_index:
                break

        logger.debug(f"Fetched {len(utxos)} UTXOs for {len(addresses)} address(es)")
        return utxos

    async def get_fees(self) -> tuple[int, int]:
        if self._fees is None:
            result = await self._rpc_call(self.info_url, "info.getTxFee")
            self._fees = (int(result["txFee"]), int(result["createAssetTxFee"]))
        return self._fees

    async def issue_tx(self, signed_tx: SignedTx) -> str:
        tx = encode_hex_with_checksum(signed_tx.to_bytes())
        result = await self._rpc_call(
            self.xchain_url, "avm.issueTx", {"tx": tx, "encoding": "hex"}
        )
        txid = result["txID"]
        logger.info(f"Broadcast transaction {txid}")
        return txid

    async def close(self) -> None:
        await self.client.aclose()
