# src/taskdapp/core/ports.py

"""
Ports (interfaces) used by the core.

The session manager and task synchronizer depend on Protocols instead of
concrete implementations. This keeps the web3 adapter and the offline ledger
swappable and makes testing easier.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Iterable, Protocol

ACCOUNTS_CHANGED = "accountsChanged"
CHAIN_CHANGED = "chainChanged"

NotificationHandler = Callable[[Any], Awaitable[None]]


class Subscription(Protocol):
    """Handle for one registered listener. unsubscribe() must be idempotent."""

    def unsubscribe(self) -> None: ...


class WalletProvider(Protocol):
    """
    External agent holding keys: authorizes accounts and exposes the network.

    Every call may suspend (user prompt, RPC round-trip); nothing is assumed
    to complete synchronously.
    """

    def request_accounts(self) -> Awaitable[list[str]]: ...
    def get_network(self) -> Awaitable[int]: ...
    def get_code_at(self, address: str) -> Awaitable[bytes]: ...

    def subscribe(self, event: str, handler: NotificationHandler) -> Subscription:
        """
        Register handler for ACCOUNTS_CHANGED (payload: list[str]) or
        CHAIN_CHANGED (payload: int chain id).
        """
        ...


class ReceiptEvent(Protocol):
    name: str


class Receipt(Protocol):
    events: Iterable[ReceiptEvent]


class Transaction(Protocol):
    def wait(self) -> Awaitable[Receipt]: ...


class LedgerContract(Protocol):
    """Contract handle bound to one account (calls are made as that account)."""

    def get_my_task(self) -> Awaitable[list[Any]]: ...
    def add_task(self, text: str, title: str, is_deleted: bool) -> Awaitable[Transaction]: ...
    def delete_task(self, task_id: int) -> Awaitable[Transaction]: ...


# Binds the configured contract to an authorized account.
ContractFactory = Callable[[str], LedgerContract]
