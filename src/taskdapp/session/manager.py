# src/taskdapp/session/manager.py

"""Session manager: one authenticated wallet session bound to one network.

The manager owns the session fields (address, network, status) and the
provider subscriptions. It hands a contract handle bound to the authorized
account to the task synchronizer and resets it whenever the session changes.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import replace
from typing import Any, Awaitable, Callable, Optional

from ..core.errors import (
    Busy,
    ContractUnavailable,
    ProviderError,
    ProviderMissing,
    WrongNetwork,
    classify_error,
    friendly_error_message,
)
from ..core.events import NOTICE_ERROR, NOTICE_INFO, NOTICE_SUCCESS, EventBus
from ..core.models import Session, SessionStatus, short_address
from ..core.ports import (
    ACCOUNTS_CHANGED,
    CHAIN_CHANGED,
    ContractFactory,
    LedgerContract,
    Subscription,
    WalletProvider,
)
from ..tasks.task_sync import TaskSynchronizer

logger = logging.getLogger(__name__)

ReloadHook = Callable[[Optional[int]], Optional[Awaitable[None]]]


def has_code(code: Any) -> bool:
    """True if a get_code probe returned deployed bytecode."""
    if code is None:
        return False
    if isinstance(code, str):
        return code.strip().lower() not in ("", "0x")
    return len(bytes(code)) > 0


class SessionManager:
    """Manages the wallet session and its provider subscriptions.

    State Machine:
        DISCONNECTED → CONNECTING → CONNECTED (connect)
        CONNECTING → DISCONNECTED (any connect failure)
        CONNECTED → DISCONNECTED (empty accountsChanged, disconnect, chainChanged)
        CONNECTED → CONNECTED (accountsChanged with another address)

    """

    def __init__(
        self,
        provider: WalletProvider | None,
        *,
        contract_factory: ContractFactory,
        contract_address: str,
        expected_chain_id: int,
        synchronizer: TaskSynchronizer | None = None,
        events: EventBus | None = None,
        on_reload: ReloadHook | None = None,
    ) -> None:
        """Initialize the SessionManager.

        Args:
            provider: Wallet provider, or None when no wallet is available
            contract_factory: Binds the ledger contract to an authorized account
            contract_address: Address probed for deployed code on connect
            expected_chain_id: Network the contract lives on
            synchronizer: Task synchronizer to drive (created if omitted)
            events: Event bus shared with the synchronizer
            on_reload: Called after a network change tore the session down

        """
        if synchronizer is None:
            synchronizer = TaskSynchronizer(events)
        self.tasks = synchronizer
        self.events = events or synchronizer.events

        self._provider = provider
        self._contract_factory = contract_factory
        self._contract_address = contract_address
        self._expected_chain_id = int(expected_chain_id)
        self._on_reload = on_reload

        self._session = Session()
        self._contract: LedgerContract | None = None
        self._subscriptions: list[Subscription] = []
        # Accounts reported while a connect was in flight, applied once it lands.
        self._pending_accounts: list[str] | None = None

        logger.info("SessionManager initialized (expected chain=%d)", self._expected_chain_id)

    # ========================================================================
    # State
    # ========================================================================

    @property
    def session(self) -> Session:
        return self._session

    @property
    def contract(self) -> LedgerContract | None:
        return self._contract

    @property
    def subscription_count(self) -> int:
        return len(self._subscriptions)

    # ========================================================================
    # Session Control Operations
    # ========================================================================

    async def connect(self) -> tuple[LedgerContract, str]:
        """Authorize an account and bind the ledger contract to it.

        Returns:
            (contract handle, authorized address)

        Raises:
            ProviderMissing: no wallet provider
            WrongNetwork: provider is on another chain
            ContractUnavailable: no code at the contract address
            ProviderError: rejection, cancellation or any other provider failure
            Busy: a connection attempt is already running

        """
        current = self._session
        if current.status == SessionStatus.CONNECTED and self._contract is not None:
            return self._contract, current.address
        if current.status == SessionStatus.CONNECTING:
            raise Busy("Connection already in progress.")

        provider = self._provider
        if provider is None:
            err = ProviderMissing("No wallet provider available.")
            self.events.notice(NOTICE_ERROR, friendly_error_message(err))
            raise err

        epoch = current.epoch + 1
        self._set_session(Session(status=SessionStatus.CONNECTING, epoch=epoch))
        self._pending_accounts = None
        logger.info("Connecting wallet...")

        try:
            network_id = int(await provider.get_network())
            self._ensure_current(epoch)
            if network_id != self._expected_chain_id:
                raise WrongNetwork(self._expected_chain_id, network_id)

            accounts = list(await provider.request_accounts())
            self._ensure_current(epoch)
            if not accounts:
                raise ProviderError("No account was authorized.")
            address = accounts[0]

            code = await provider.get_code_at(self._contract_address)
            self._ensure_current(epoch)
            if not has_code(code):
                raise ContractUnavailable(self._contract_address)

            contract = self._contract_factory(address)
            self._subscribe(provider)
        except Exception as e:
            err = classify_error(e)
            if self._session.epoch == epoch:
                logger.warning("Wallet connection failed: %s", err.message)
                self._teardown()
                self.events.notice(NOTICE_ERROR, friendly_error_message(err))
            else:
                logger.info("Connection attempt superseded: %s", err.message)
            if err is e:
                raise
            raise err from e

        self._contract = contract
        self._set_session(
            Session(
                address=address,
                network_id=network_id,
                status=SessionStatus.CONNECTED,
                epoch=epoch,
            )
        )
        self.tasks.bind(address=address, contract=contract, epoch=epoch)
        logger.info("Wallet connected: %s on chain %d", address, network_id)
        self.events.notice(NOTICE_SUCCESS, "Wallet connected successfully!")

        pending, self._pending_accounts = self._pending_accounts, None
        if pending and pending[0].lower() != address.lower():
            contract = self._switch_account(pending[0])
            address = pending[0]

        await self.tasks.refresh()
        return contract, address

    def disconnect(self) -> None:
        """Local-only teardown: no on-chain effect."""
        if self._session.status == SessionStatus.DISCONNECTED and not self._subscriptions:
            logger.debug("Session is already disconnected")
            return
        self._teardown()
        logger.info("Wallet disconnected")
        self.events.notice(NOTICE_INFO, "Wallet disconnected")

    # ========================================================================
    # Provider notifications
    # ========================================================================

    async def on_accounts_changed(self, accounts: Any) -> None:
        """React to the wallet switching or revoking accounts."""
        accounts = [str(a) for a in (accounts or []) if a]

        if not accounts:
            if self._session.status == SessionStatus.DISCONNECTED:
                return
            logger.info("Wallet revoked access; disconnecting")
            self._teardown()
            self.events.notice(NOTICE_INFO, "Wallet disconnected")
            return

        if self._session.status == SessionStatus.CONNECTING:
            logger.info("Accounts changed while connecting; applying once connected")
            self._pending_accounts = accounts
            return
        if self._session.status != SessionStatus.CONNECTED:
            return

        address = accounts[0]
        if address.lower() == self._session.address.lower():
            await self.tasks.refresh()
            return

        self._switch_account(address)
        await self.tasks.refresh()

    async def on_chain_changed(self, chain_id: Any) -> None:
        """A network switch invalidates everything: tear down and ask the host to reload."""
        try:
            new_chain: int | None = int(chain_id, 0) if isinstance(chain_id, str) else int(chain_id)
        except (TypeError, ValueError):
            new_chain = None

        logger.info("Network changed to %s; reloading", new_chain)
        self._teardown()
        self.events.emit("reload_requested", {"chain_id": new_chain})

        if self._on_reload is not None:
            result = self._on_reload(new_chain)
            if inspect.isawaitable(result):
                await result

    # ========================================================================
    # Internals
    # ========================================================================

    def _switch_account(self, address: str) -> LedgerContract:
        epoch = self._session.epoch + 1
        contract = self._contract_factory(address)
        self._contract = contract
        self._set_session(replace(self._session, address=address, epoch=epoch))
        self.tasks.bind(address=address, contract=contract, epoch=epoch)
        logger.info("Account switched to %s", address)
        self.events.notice(NOTICE_INFO, f"Switched to account {short_address(address)}")
        return contract

    def _subscribe(self, provider: WalletProvider) -> None:
        # Exactly one listener per notification, never stacked across reconnects.
        self._release_subscriptions()
        self._subscriptions = [
            provider.subscribe(ACCOUNTS_CHANGED, self.on_accounts_changed),
            provider.subscribe(CHAIN_CHANGED, self.on_chain_changed),
        ]

    def _release_subscriptions(self) -> None:
        subs, self._subscriptions = self._subscriptions, []
        for sub in subs:
            try:
                sub.unsubscribe()
            except Exception:
                logger.exception("Failed to release provider subscription")

    def _teardown(self) -> None:
        self._release_subscriptions()
        self._contract = None
        self._set_session(Session(epoch=self._session.epoch + 1))
        self.tasks.reset()

    def _ensure_current(self, epoch: int) -> None:
        if self._session.epoch != epoch:
            raise ProviderError("Connection cancelled.")

    def _set_session(self, session: Session) -> None:
        old = self._session
        self._session = session
        if old != session:
            logger.debug("Session %s -> %s (epoch=%d)", old.status.value, session.status.value, session.epoch)
            self.events.emit("state_changed", {"session": session})
