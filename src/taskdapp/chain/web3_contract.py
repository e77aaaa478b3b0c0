# src/taskdapp/chain/web3_contract.py

"""
Ledger contract handle over web3.py.

Writes are pre-flighted with eth_call so a revert reason ("caller is not the
task owner") surfaces before anything is broadcast, then sent with a fixed gas
limit. Receipts are decoded against the ABI so the synchronizer can look for
the AddTask / DeleteTask completion events by name.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from web3 import AsyncWeb3
from web3.contract import AsyncContract
from web3.logs import DISCARD

from ..tasks.task_models import ADD_TASK_EVENT, DELETE_TASK_EVENT

logger = logging.getLogger(__name__)

DECODED_EVENTS = (ADD_TASK_EVENT, DELETE_TASK_EVENT)


class TransactionFailed(Exception):
    """Mined with status 0."""

    def __init__(self, tx_hash: str) -> None:
        super().__init__(f"Transaction {tx_hash} failed")
        self.reason = f"transaction failed ({tx_hash})"
        self.tx_hash = tx_hash


@dataclass(slots=True)
class Web3Event:
    name: str
    args: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class Web3Receipt:
    tx_hash: str
    block_number: int
    status: int
    events: list[Web3Event]


def load_abi(path: str | Path) -> list[dict[str, Any]]:
    data = json.loads(Path(path).read_text("utf-8"))
    # Hardhat/Truffle artifacts wrap the ABI.
    if isinstance(data, dict) and "abi" in data:
        data = data["abi"]
    if not isinstance(data, list):
        raise ValueError(f"Expected a JSON ABI list in {path}")
    return data


def decode_events(contract: AsyncContract, receipt: Any) -> list[Web3Event]:
    out: list[Web3Event] = []
    for name in DECODED_EVENTS:
        try:
            event = getattr(contract.events, name)()
        except Exception:
            logger.debug("ABI has no %s event", name)
            continue
        for log in event.process_receipt(receipt, errors=DISCARD):
            out.append(Web3Event(name=log["event"], args=dict(log["args"])))
    return out


class Web3Transaction:
    def __init__(self, w3: AsyncWeb3, contract: AsyncContract, tx_hash: Any, *, timeout: float) -> None:
        self._w3 = w3
        self._contract = contract
        self.tx_hash = tx_hash
        self._timeout = timeout

    async def wait(self) -> Web3Receipt:
        receipt = await self._w3.eth.wait_for_transaction_receipt(self.tx_hash, timeout=self._timeout)
        tx_hex = self._w3.to_hex(self.tx_hash)
        if int(receipt.get("status", 1)) == 0:
            raise TransactionFailed(tx_hex)
        events = decode_events(self._contract, receipt)
        logger.debug("Receipt %s: events=%s", tx_hex, [e.name for e in events])
        return Web3Receipt(
            tx_hash=tx_hex,
            block_number=int(receipt.get("blockNumber", 0)),
            status=int(receipt.get("status", 1)),
            events=events,
        )


class Web3LedgerContract:
    """Contract handle bound to one account (the `from` of every call)."""

    def __init__(
        self,
        w3: AsyncWeb3,
        *,
        address: str,
        abi: list[dict[str, Any]],
        account: str,
        add_gas_limit: int = 200_000,
        delete_gas_limit: int = 100_000,
        receipt_timeout: float = 120.0,
    ) -> None:
        self._w3 = w3
        self._contract = w3.eth.contract(address=AsyncWeb3.to_checksum_address(address), abi=abi)
        self.account = AsyncWeb3.to_checksum_address(account)
        self._add_gas = int(add_gas_limit)
        self._delete_gas = int(delete_gas_limit)
        self._timeout = float(receipt_timeout)

    async def get_my_task(self) -> list[Any]:
        return list(await self._contract.functions.getMyTask().call({"from": self.account}))

    async def add_task(self, text: str, title: str, is_deleted: bool) -> Web3Transaction:
        fn = self._contract.functions.addTask(text, title, bool(is_deleted))
        return await self._send(fn, gas=self._add_gas)

    async def delete_task(self, task_id: int) -> Web3Transaction:
        fn = self._contract.functions.deleteTask(int(task_id))
        return await self._send(fn, gas=self._delete_gas)

    async def _send(self, fn: Any, *, gas: int) -> Web3Transaction:
        # Raises ContractLogicError with the revert reason.
        await fn.call({"from": self.account})
        tx_hash = await fn.transact({"from": self.account, "gas": gas})
        logger.info("Sent %s from %s: %s", fn.fn_name, self.account, self._w3.to_hex(tx_hash))
        return Web3Transaction(self._w3, self._contract, tx_hash, timeout=self._timeout)
