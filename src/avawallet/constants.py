"""
Avalanche X-Chain constants.

Type ids follow the AVM codec. Fees are in nAVAX (1 AVAX = 10^9 nAVAX) and
only serve as defaults; the live values come from the node.
"""

from __future__ import annotations

CODEC_VERSION = 0

# Transaction type ids
BASE_TX_TYPE_ID = 0
CREATE_ASSET_TX_TYPE_ID = 1

# Output/input/credential type ids
SECP_TRANSFER_INPUT_TYPE_ID = 5
SECP_MINT_OUTPUT_TYPE_ID = 6
SECP_TRANSFER_OUTPUT_TYPE_ID = 7
SECP_CREDENTIAL_TYPE_ID = 9

# Output type ids at or above this belong to other feature extensions (NFTs)
MAX_SECP_TYPE_ID = 10

SECP_FX_INDEX = 0

ADDRESS_LENGTH = 20
ID_LENGTH = 32
SIGNATURE_LENGTH = 65

DEFAULT_TX_FEE = 1_000_000  # 0.001 AVAX
DEFAULT_CREATION_TX_FEE = 10_000_000  # 0.01 AVAX

AVAX_DENOMINATION = 9
MAX_DENOMINATION = 32
MAX_SYMBOL_LENGTH = 4

# BIP44 coin type 9000
AVA_ACCOUNT_PATH = "m/44'/9000'/0'"

# getUTXOs and getAllBalances are limited to this many addresses per call
MAX_ADDRESS_BATCH = 20

# Safety cap for the gap-limit scan
MAX_SCAN_INDEX = 10_000

NETWORK_IDS = {"mainnet": 1, "testnet": 5}
NETWORK_HRPS = {"mainnet": "avax", "testnet": "fuji"}

X_CHAIN_IDS = {
    "mainnet": "2oYMBNV4eNHyqk2fjjV5nVQLDbtmNJzq5s3qs3Lo6ftnC6FByM",
    "testnet": "2JVSBoinj9C2J33VntvzYtVJNZdN2NKiwwKjcumHUWEb5DbBrm",
}

EXPLORER_URLS = {
    "mainnet": "https://explorer.avax.network/tx/",
    "testnet": "https://explorer.avax-test.network/tx/",
}
