# src/taskdapp/chain/offline.py

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

from ..core.ports import ACCOUNTS_CHANGED, CHAIN_CHANGED, NotificationHandler
from ..tasks.task_models import ADD_TASK_EVENT, DELETE_TASK_EVENT
from .subscriptions import ListenerRegistry, ListenerSubscription

logger = logging.getLogger(__name__)

DEMO_ACCOUNT = "0x00000000000000000000000000000000000A11CE"


class LedgerRevert(Exception):
    """Raised by the offline ledger the way a node reports a reverted call."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"execution reverted: {reason}")
        self.reason = reason


@dataclass(slots=True)
class OfflineEvent:
    name: str
    args: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class OfflineReceipt:
    events: list[OfflineEvent]
    block_number: int


@dataclass(slots=True)
class _StoredTask:
    id: int
    owner: str
    text: str
    title: str
    is_deleted: bool


class OfflineTransaction:
    def __init__(self, ledger: OfflineLedger, receipt: OfflineReceipt) -> None:
        self._ledger = ledger
        self._receipt = receipt

    async def wait(self) -> OfflineReceipt:
        if self._ledger.confirm_delay > 0:
            await asyncio.sleep(self._ledger.confirm_delay)
        return self._receipt


class OfflineLedger:
    """
    In-memory stand-in for the task contract, used for demos when no RPC node
    is configured.

    Same rules as the deployed contract:
    - ids are assigned from 0 upwards in insertion order
    - getMyTask() returns every task of the caller, soft-deleted ones included
    - deleteTask() reverts unless the caller owns the task
    """

    def __init__(self, address: str, *, confirm_delay: float = 0.0) -> None:
        self.address = address
        self.confirm_delay = confirm_delay
        self._tasks: list[_StoredTask] = []
        self._block = 0

    def code(self) -> bytes:
        # Anything non-empty marks the address as a deployed contract.
        return b"\x60\x80\x60\x40"

    def get_my_task(self, caller: str) -> list[tuple[int, str, str, bool]]:
        owner = caller.lower()
        return [(t.id, t.text, t.title, t.is_deleted) for t in self._tasks if t.owner == owner]

    def add_task(self, caller: str, text: str, title: str, is_deleted: bool) -> OfflineReceipt:
        task = _StoredTask(
            id=len(self._tasks),
            owner=caller.lower(),
            text=text,
            title=title,
            is_deleted=bool(is_deleted),
        )
        self._tasks.append(task)
        logger.debug("Offline ledger: task %d added by %s", task.id, caller)
        return self._mine(OfflineEvent(ADD_TASK_EVENT, {"recipient": caller, "taskId": task.id}))

    def delete_task(self, caller: str, task_id: int) -> OfflineReceipt:
        if task_id < 0 or task_id >= len(self._tasks):
            raise LedgerRevert("task does not exist")
        task = self._tasks[task_id]
        if task.owner != caller.lower():
            raise LedgerRevert("caller is not the task owner")
        task.is_deleted = True
        logger.debug("Offline ledger: task %d deleted by %s", task_id, caller)
        return self._mine(OfflineEvent(DELETE_TASK_EVENT, {"taskId": task_id, "isDeleted": True}))

    def _mine(self, *events: OfflineEvent) -> OfflineReceipt:
        self._block += 1
        return OfflineReceipt(events=list(events), block_number=self._block)


class OfflineContract:
    """Ledger contract handle bound to one account."""

    def __init__(self, ledger: OfflineLedger, account: str) -> None:
        self._ledger = ledger
        self.account = account

    async def get_my_task(self) -> list[Any]:
        return self._ledger.get_my_task(self.account)

    async def add_task(self, text: str, title: str, is_deleted: bool) -> OfflineTransaction:
        return OfflineTransaction(self._ledger, self._ledger.add_task(self.account, text, title, is_deleted))

    async def delete_task(self, task_id: int) -> OfflineTransaction:
        return OfflineTransaction(self._ledger, self._ledger.delete_task(self.account, task_id))


class OfflineWallet:
    """
    Wallet provider over the offline ledger.

    switch_account(), revoke() and switch_chain() fire the same notifications a
    browser wallet would.
    """

    def __init__(
        self,
        ledger: OfflineLedger,
        *,
        chain_id: int,
        accounts: list[str] | None = None,
    ) -> None:
        self.ledger = ledger
        self.chain_id = chain_id
        self.accounts = list(accounts) if accounts is not None else [DEMO_ACCOUNT]
        self._listeners = ListenerRegistry()

    def contract_for(self, account: str) -> OfflineContract:
        return OfflineContract(self.ledger, account)

    async def request_accounts(self) -> list[str]:
        return list(self.accounts)

    async def get_network(self) -> int:
        return self.chain_id

    async def get_code_at(self, address: str) -> bytes:
        if address.lower() == self.ledger.address.lower():
            return self.ledger.code()
        return b""

    def subscribe(self, event: str, handler: NotificationHandler) -> ListenerSubscription:
        return self._listeners.subscribe(event, handler)

    def listener_count(self, event: str | None = None) -> int:
        return self._listeners.count(event)

    async def switch_account(self, account: str) -> None:
        self.accounts = [account] + [a for a in self.accounts if a != account]
        await self._listeners.dispatch(ACCOUNTS_CHANGED, list(self.accounts))

    async def revoke(self) -> None:
        self.accounts = []
        await self._listeners.dispatch(ACCOUNTS_CHANGED, [])

    async def switch_chain(self, chain_id: int) -> None:
        self.chain_id = chain_id
        await self._listeners.dispatch(CHAIN_CHANGED, chain_id)

    async def aclose(self) -> None:
        return None
