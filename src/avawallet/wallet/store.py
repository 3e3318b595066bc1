"""
Wallet file persistence: one pretty-printed JSON file per wallet.
"""

from __future__ import annotations

import os
from pathlib import Path

from loguru import logger
from pydantic import ValidationError as ModelValidationError

from avawallet.errors import ValidationError
from avawallet.models import WalletState

WALLET_FILE_MODE = 0o600


class WalletStore:
    """
    Reads and writes WalletState files in a directory.

    Single writer, last write wins: concurrent invocations against the same
    wallet are not locked against each other.
    """

    def __init__(self, wallets_dir: Path):
        self.wallets_dir = Path(wallets_dir)

    def path_for(self, name: str) -> Path:
        if not name or "/" in name or "\\" in name or name.startswith("."):
            raise ValidationError(f"Invalid wallet name: {name!r}")
        return self.wallets_dir / f"{name}.json"

    def exists(self, name: str) -> bool:
        return self.path_for(name).exists()

    def load(self, name: str) -> WalletState:
        path = self.path_for(name)
        try:
            content = path.read_text()
        except OSError as e:
            raise ValidationError(f"Could not open {path}") from e

        try:
            return WalletState.model_validate_json(content)
        except ModelValidationError as e:
            raise ValidationError(f"Invalid wallet file {path}: {e}") from e

    def save(self, name: str, state: WalletState) -> Path:
        path = self.path_for(name)
        self.wallets_dir.mkdir(parents=True, exist_ok=True)

        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, WALLET_FILE_MODE)
        with os.fdopen(fd, "w") as f:
            f.write(state.model_dump_json(indent=2))
        os.chmod(path, WALLET_FILE_MODE)

        logger.debug(f"Saved wallet {name} to {path}")
        return path

    def list_names(self) -> list[str]:
        if not self.wallets_dir.exists():
            return []
        return sorted(p.stem for p in self.wallets_dir.glob("*.json"))
