# src/taskdapp/chain/web3_provider.py

"""
Wallet provider over a JSON-RPC node.

Accounts come from a configured private key (signed locally) or, without one,
from the node's unlocked accounts. A JSON-RPC node does not push wallet
notifications, so accountsChanged / chainChanged are produced by a small
polling loop that runs while at least one listener is registered.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.middleware import SignAndSendRawMiddlewareBuilder

from ..core.ports import ACCOUNTS_CHANGED, CHAIN_CHANGED, NotificationHandler
from .subscriptions import ListenerRegistry, ListenerSubscription

logger = logging.getLogger(__name__)


def create_web3(rpc_url: str, *, private_key: str | None = None) -> tuple[AsyncWeb3, LocalAccount | None]:
    w3 = AsyncWeb3(AsyncHTTPProvider(rpc_url))
    account: LocalAccount | None = None
    if private_key:
        account = Account.from_key(private_key)
        # transact() signs locally and sends eth_sendRawTransaction.
        w3.middleware_onion.inject(SignAndSendRawMiddlewareBuilder.build(account), layer=0)
        logger.info("Using local signer %s", account.address)
    return w3, account


class Web3WalletProvider:
    def __init__(
        self,
        w3: AsyncWeb3,
        *,
        account: LocalAccount | None = None,
        poll_interval_seconds: float = 2.0,
    ) -> None:
        self.w3 = w3
        self._account = account
        self._poll_interval = max(0.2, float(poll_interval_seconds))
        self._listeners = ListenerRegistry()
        self._watcher: asyncio.Task[None] | None = None
        # Bumped when listeners come back from zero; the watcher re-baselines on change.
        self._generation = 0

    async def request_accounts(self) -> list[str]:
        if self._account is not None:
            return [self._account.address]
        return [str(a) for a in await self.w3.eth.accounts]

    async def get_network(self) -> int:
        return int(await self.w3.eth.chain_id)

    async def get_code_at(self, address: str) -> bytes:
        code = await self.w3.eth.get_code(AsyncWeb3.to_checksum_address(address))
        return bytes(code)

    def subscribe(self, event: str, handler: NotificationHandler) -> ListenerSubscription:
        if self._listeners.count() == 0:
            self._generation += 1
        sub = self._listeners.subscribe(event, handler)
        self._ensure_watcher()
        return sub

    def _ensure_watcher(self) -> None:
        if self._watcher is not None and not self._watcher.done():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop; wallet notifications disabled")
            return
        self._watcher = loop.create_task(self._watch(), name="wallet-watcher")

    async def _watch(self) -> None:
        """
        Poll accounts and chain id; dispatch on change.

        The first successful poll only records a baseline, and so does the first
        poll after listeners were re-added. The loop exits once every listener
        is gone.
        """
        last_accounts: list[str] | None = None
        last_chain: int | None = None
        generation = self._generation

        while self._listeners.count() > 0:
            if generation != self._generation:
                generation = self._generation
                last_accounts, last_chain = None, None
            try:
                accounts = await self.request_accounts()
                chain_id = await self.get_network()
            except Exception:
                logger.warning("Wallet poll failed", exc_info=True)
            else:
                if generation != self._generation:
                    # Listeners were re-added mid-poll; the next poll is the baseline.
                    logger.debug("Wallet watcher re-baselining")
                else:
                    await self._compare_and_dispatch(last_accounts, last_chain, accounts, chain_id)
                    last_accounts, last_chain = accounts, chain_id

            await asyncio.sleep(self._poll_interval)

        logger.debug("Wallet watcher stopped (no listeners)")

    async def _compare_and_dispatch(
        self,
        prev_accounts: list[str] | None,
        prev_chain: int | None,
        accounts: list[str],
        chain_id: int,
    ) -> None:
        if prev_chain is not None and chain_id != prev_chain:
            logger.info("Chain changed %s -> %s", prev_chain, chain_id)
            await self._listeners.dispatch(CHAIN_CHANGED, chain_id)
        elif prev_accounts is not None and accounts != prev_accounts:
            logger.info("Accounts changed: %s", accounts)
            await self._listeners.dispatch(ACCOUNTS_CHANGED, accounts)

    async def aclose(self) -> None:
        watcher, self._watcher = self._watcher, None
        if watcher is not None and not watcher.done():
            watcher.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await watcher
        disconnect: Any = getattr(self.w3.provider, "disconnect", None)
        if callable(disconnect):
            with contextlib.suppress(Exception):
                await disconnect()
