# src/taskdapp/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- No secrets required at import time (the private key is optional).
- Without an RPC URL the app runs against the offline ledger.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

ENV_PREFIX = "TASKDAPP"

load_dotenv(override=False)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw, 0)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


DEFAULT_ABI_PATH = Path(__file__).resolve().parent / "chain" / "abi.json"

# Address the front-end was originally deployed against; override per network.
DEFAULT_CONTRACT_ADDRESS = "0x17282d6Ad90e84E24ee68fe68fD01014D9B8d7B3"


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str
    data_dir: Path

    # ---- Connector flags ----
    console_enabled: bool
    auto_connect: bool

    # ---- Chain ----
    rpc_url: Optional[str]
    expected_chain_id: int
    contract_address: str
    abi_path: Path
    private_key: Optional[str]

    # ---- Transactions ----
    add_gas_limit: int
    delete_gas_limit: int
    receipt_timeout_seconds: float

    # ---- Wallet watcher ----
    poll_interval_seconds: float

    @property
    def offline(self) -> bool:
        return not (self.rpc_url or "").strip()

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "taskdapp")
        log_level = _env(_k("LOG_LEVEL"), "INFO")
        data_dir = _env_path(_k("DATA_DIR"), Path(".local/taskdapp"))

        console_enabled = _env_bool(_k("CONSOLE_ENABLED"), True)
        auto_connect = _env_bool(_k("AUTO_CONNECT"), True)

        rpc_url = _first_env(_k("RPC_URL"), "WEB3_HTTP_PROVIDER_URI", default=None)
        # Mainnet by default, like the original front-end; real deployments set this.
        expected_chain_id = _env_int(_k("EXPECTED_CHAIN_ID"), 1)
        contract_address = _env(_k("CONTRACT_ADDRESS"), DEFAULT_CONTRACT_ADDRESS).strip()
        abi_path = _env_path(_k("ABI_PATH"), DEFAULT_ABI_PATH)
        private_key = _first_env(_k("PRIVATE_KEY"), default=None)

        add_gas_limit = _env_int(_k("ADD_GAS_LIMIT"), 200_000)
        delete_gas_limit = _env_int(_k("DELETE_GAS_LIMIT"), 100_000)
        receipt_timeout_seconds = _env_float(_k("RECEIPT_TIMEOUT_SECONDS"), 120.0)

        poll_interval_seconds = _env_float(_k("POLL_INTERVAL_SECONDS"), 2.0)

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            console_enabled=console_enabled,
            auto_connect=auto_connect,
            rpc_url=rpc_url,
            expected_chain_id=expected_chain_id,
            contract_address=contract_address,
            abi_path=abi_path,
            private_key=private_key,
            add_gas_limit=add_gas_limit,
            delete_gas_limit=delete_gas_limit,
            receipt_timeout_seconds=receipt_timeout_seconds,
            poll_interval_seconds=poll_interval_seconds,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
