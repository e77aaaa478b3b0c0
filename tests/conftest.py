# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from taskdapp.core.events import EventBus
from taskdapp.session.manager import SessionManager
from taskdapp.tasks.task_sync import TaskSynchronizer

from .fakes import ContractBook, FakeLedgerContract, FakeWalletProvider, RecordingEvents

CONTRACT_ADDRESS = "0x17282d6Ad90e84E24ee68fe68fD01014D9B8d7B3"


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the bootstrap helpers.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="taskdapp-test",
        data_dir=tmp_path / "data",
        offline=True,
        auto_connect=True,
        console_enabled=False,
        expected_chain_id=1,
        contract_address=CONTRACT_ADDRESS,
    )


@pytest.fixture()
def bus() -> EventBus:
    return EventBus()


@pytest.fixture()
def recorded(bus: EventBus) -> RecordingEvents:
    return RecordingEvents(bus)


@pytest.fixture()
def contract() -> FakeLedgerContract:
    return FakeLedgerContract(
        [
            {"id": 1, "taskTitle": "one", "taskText": "first", "isDeleted": False},
            {"id": 2, "taskTitle": "two", "taskText": "second", "isDeleted": True},
        ]
    )


@pytest.fixture()
def sync(bus: EventBus, contract: FakeLedgerContract) -> TaskSynchronizer:
    """Synchronizer bound to a session for 0xAAA, not loaded yet."""
    s = TaskSynchronizer(bus)
    s.bind(address="0xAAA", contract=contract, epoch=1)
    return s


@pytest.fixture()
def wallet() -> FakeWalletProvider:
    return FakeWalletProvider(accounts=["0xAAA"], chain_id=1)


@pytest.fixture()
def book() -> ContractBook:
    return ContractBook(
        {
            "0xAAA": [
                {"id": 1, "taskTitle": "one", "taskText": "first", "isDeleted": False},
                {"id": 2, "taskTitle": "two", "taskText": "second", "isDeleted": True},
            ],
            "0xBBB": [
                {"id": 3, "taskTitle": "three", "taskText": "third", "isDeleted": False},
            ],
        }
    )


@pytest.fixture()
def manager(wallet: FakeWalletProvider, book: ContractBook, bus: EventBus) -> SessionManager:
    return SessionManager(
        wallet,
        contract_factory=book,
        contract_address=CONTRACT_ADDRESS,
        expected_chain_id=1,
        events=bus,
    )
