# src/taskdapp/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures the local (gitignored) data dir exists,
- wires the web3 adapter (RPC URL configured) or the offline ledger into AppState,
- rebuilds the session after a network change ("full reload").
"""

from __future__ import annotations

import logging

from ..chain.offline import OfflineLedger, OfflineWallet
from ..config import get_settings
from ..core.errors import TaskAppError
from ..core.events import EventBus
from ..core.ports import ContractFactory, WalletProvider
from ..core.state import AppState
from ..session.manager import SessionManager
from ..tasks.task_sync import TaskSynchronizer

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)


def _web3_wiring(settings) -> tuple[WalletProvider, ContractFactory]:
    # Imported lazily so offline runs do not pay for web3's import time.
    from ..chain.web3_contract import Web3LedgerContract, load_abi
    from ..chain.web3_provider import Web3WalletProvider, create_web3

    w3, account = create_web3(str(settings.rpc_url), private_key=settings.private_key)
    provider = Web3WalletProvider(
        w3,
        account=account,
        poll_interval_seconds=settings.poll_interval_seconds,
    )
    abi = load_abi(settings.abi_path)

    def factory(address: str) -> Web3LedgerContract:
        return Web3LedgerContract(
            w3,
            address=settings.contract_address,
            abi=abi,
            account=address,
            add_gas_limit=settings.add_gas_limit,
            delete_gas_limit=settings.delete_gas_limit,
            receipt_timeout=settings.receipt_timeout_seconds,
        )

    logger.info("Using RPC node %s (contract %s)", settings.rpc_url, settings.contract_address)
    return provider, factory


def _offline_wiring(settings) -> tuple[WalletProvider, ContractFactory]:
    ledger = OfflineLedger(settings.contract_address)
    wallet = OfflineWallet(ledger, chain_id=settings.expected_chain_id)
    logger.info("No RPC URL configured: running against the offline ledger")
    return wallet, wallet.contract_for


def build_session(state: AppState) -> SessionManager:
    settings = state.settings

    async def _reload(chain_id: int | None) -> None:
        await reload_state(state, chain_id)

    return SessionManager(
        state.provider,
        contract_factory=state.contract_factory,
        contract_address=settings.contract_address,
        expected_chain_id=settings.expected_chain_id,
        synchronizer=TaskSynchronizer(state.events),
        events=state.events,
        on_reload=_reload,
    )


def create_initial_state(
    *,
    settings=None,
    provider: WalletProvider | None = None,
    contract_factory: ContractFactory | None = None,
) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    if provider is None or contract_factory is None:
        if settings.offline:
            provider, contract_factory = _offline_wiring(settings)
        else:
            provider, contract_factory = _web3_wiring(settings)

    events = EventBus()
    state = AppState(
        settings=settings,
        events=events,
        provider=provider,
        contract_factory=contract_factory,
        session=None,  # type: ignore[arg-type]
    )
    state.session = build_session(state)
    return state


async def reload_state(state: AppState, chain_id: int | None = None) -> None:
    """
    Network changed: throw the session and task state away and start over,
    the way a page reload would. Reconnects if auto_connect is on.
    """
    state.session.disconnect()
    state.session = build_session(state)
    state.reloads += 1
    logger.info("Reloaded after network change (chain=%s, reload #%d)", chain_id, state.reloads)

    if getattr(state.settings, "auto_connect", True):
        try:
            await state.session.connect()
        except TaskAppError as e:
            # Already surfaced as a notice by the session manager.
            logger.info("Reconnect after reload failed: %s", e.message)


async def shutdown_state(state: AppState) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    try:
        state.session.disconnect()
    except Exception:
        logger.exception("Failed to disconnect session.")

    aclose = getattr(state.provider, "aclose", None)
    if callable(aclose):
        try:
            await aclose()
        except Exception:
            logger.debug("Provider close failed.", exc_info=True)
