# tests/test_offline_ledger.py

from __future__ import annotations

import pytest

from taskdapp.chain.offline import DEMO_ACCOUNT, LedgerRevert, OfflineLedger, OfflineWallet
from taskdapp.core.errors import NotOwner
from taskdapp.core.events import EventBus
from taskdapp.core.models import SessionStatus
from taskdapp.session.manager import SessionManager
from taskdapp.tasks.task_models import Draft

from .conftest import CONTRACT_ADDRESS
from .fakes import RecordingEvents

ALICE = "0x00000000000000000000000000000000000A11CE"
BOB = "0x0000000000000000000000000000000000000B0B"


@pytest.fixture()
def ledger() -> OfflineLedger:
    return OfflineLedger(CONTRACT_ADDRESS)


@pytest.fixture()
def offline_wallet(ledger: OfflineLedger) -> OfflineWallet:
    return OfflineWallet(ledger, chain_id=1, accounts=[ALICE, BOB])


@pytest.fixture()
def offline_manager(offline_wallet: OfflineWallet, bus: EventBus) -> SessionManager:
    return SessionManager(
        offline_wallet,
        contract_factory=offline_wallet.contract_for,
        contract_address=CONTRACT_ADDRESS,
        expected_chain_id=1,
        events=bus,
    )


def test_ledger_assigns_ids_and_scopes_by_caller(ledger: OfflineLedger) -> None:
    r0 = ledger.add_task(ALICE, "buy milk", "groceries", False)
    ledger.add_task(BOB, "fix bike", "chores", False)

    assert [e.name for e in r0.events] == ["AddTask"]
    assert r0.events[0].args == {"recipient": ALICE, "taskId": 0}
    assert ledger.get_my_task(ALICE) == [(0, "buy milk", "groceries", False)]
    assert ledger.get_my_task(BOB.lower()) == [(1, "fix bike", "chores", False)]


def test_ledger_soft_delete_keeps_entry(ledger: OfflineLedger) -> None:
    ledger.add_task(ALICE, "a", "A", False)

    receipt = ledger.delete_task(ALICE, 0)

    assert receipt.events[0].name == "DeleteTask"
    assert receipt.events[0].args == {"taskId": 0, "isDeleted": True}
    assert ledger.get_my_task(ALICE) == [(0, "a", "A", True)]


def test_ledger_rejects_foreign_and_unknown_ids(ledger: OfflineLedger) -> None:
    ledger.add_task(ALICE, "a", "A", False)

    with pytest.raises(LedgerRevert) as excinfo:
        ledger.delete_task(BOB, 0)
    assert "owner" in excinfo.value.reason
    assert str(excinfo.value).startswith("execution reverted")

    with pytest.raises(LedgerRevert):
        ledger.delete_task(ALICE, 7)


@pytest.mark.asyncio
async def test_wallet_reports_code_only_at_contract(offline_wallet: OfflineWallet) -> None:
    assert await offline_wallet.get_code_at(CONTRACT_ADDRESS.lower())
    assert await offline_wallet.get_code_at(BOB) == b""


def test_default_wallet_uses_demo_account(ledger: OfflineLedger) -> None:
    assert OfflineWallet(ledger, chain_id=1).accounts == [DEMO_ACCOUNT]


@pytest.mark.asyncio
async def test_add_and_delete_through_session(offline_manager: SessionManager, bus: EventBus) -> None:
    recorded = RecordingEvents(bus)
    await offline_manager.connect()
    sync = offline_manager.tasks

    await sync.add_task(Draft("first", "one"))
    await sync.add_task(Draft("second", "two"))
    assert [t.id for t in sync.tasks] == [1, 0]

    await sync.delete_task(0)
    assert [t.id for t in sync.tasks] == [1]
    assert "Task deleted successfully!" in recorded.notices("success")


@pytest.mark.asyncio
async def test_foreign_delete_surfaces_not_owner(
    offline_manager: SessionManager,
    offline_wallet: OfflineWallet,
    ledger: OfflineLedger,
    bus: EventBus,
) -> None:
    ledger.add_task(BOB, "bob's", "mine", False)
    recorded = RecordingEvents(bus)
    await offline_manager.connect()

    with pytest.raises(NotOwner):
        await offline_manager.tasks.delete_task(0)

    assert "You are not the owner of this task." in recorded.notices("error")
    assert ledger.get_my_task(BOB) == [(0, "bob's", "mine", False)]


@pytest.mark.asyncio
async def test_wallet_notifications_drive_session(
    offline_manager: SessionManager,
    offline_wallet: OfflineWallet,
    ledger: OfflineLedger,
) -> None:
    ledger.add_task(ALICE, "a", "A", False)
    ledger.add_task(BOB, "b", "B", False)
    await offline_manager.connect()
    assert offline_wallet.listener_count() == 2
    assert [t.id for t in offline_manager.tasks.tasks] == [0]

    await offline_wallet.switch_account(BOB)
    assert offline_manager.session.address == BOB
    assert [t.id for t in offline_manager.tasks.tasks] == [1]

    await offline_wallet.revoke()
    assert offline_manager.session.status == SessionStatus.DISCONNECTED
    assert offline_manager.tasks.tasks == ()
    assert offline_wallet.listener_count() == 0
