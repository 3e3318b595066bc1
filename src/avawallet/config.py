"""
Configuration management using pydantic-settings.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from avawallet.constants import (
    EXPLORER_URLS,
    MAX_ADDRESS_BATCH,
    NETWORK_HRPS,
    NETWORK_IDS,
    X_CHAIN_IDS,
)


def default_wallets_dir() -> Path:
    return Path.home() / ".avawallet" / "wallets"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="AVAWALLET_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    endpoint: str = "https://api.avax.network"
    network: Literal["mainnet", "testnet"] = "mainnet"
    wallets_dir: Path = Field(default_factory=default_wallets_dir)

    request_timeout: float = Field(default=30.0, gt=0)
    address_page_size: int = Field(default=MAX_ADDRESS_BATCH, ge=1, le=MAX_ADDRESS_BATCH)

    log_level: str = "INFO"

    @property
    def hrp(self) -> str:
        return NETWORK_HRPS[self.network]

    @property
    def network_id(self) -> int:
        return NETWORK_IDS[self.network]

    @property
    def blockchain_id(self) -> str:
        return X_CHAIN_IDS[self.network]

    @property
    def explorer_url(self) -> str:
        return EXPLORER_URLS[self.network]


def get_settings(**overrides: object) -> Settings:
    return Settings(**overrides)
