# tests/test_session_manager.py

from __future__ import annotations

import asyncio

import pytest

from taskdapp.core.errors import Busy, ContractUnavailable, ProviderError, ProviderMissing, WrongNetwork
from taskdapp.core.events import EventBus
from taskdapp.core.models import SessionStatus
from taskdapp.session.manager import SessionManager, has_code

from .conftest import CONTRACT_ADDRESS
from .fakes import ContractBook, FakeWalletProvider, RecordingEvents


def _states(recorded: RecordingEvents) -> list[SessionStatus]:
    return [d["session"].status for d in recorded.seen.get("state_changed", [])]


@pytest.mark.asyncio
async def test_connect_binds_contract_and_loads(manager: SessionManager, wallet, book: ContractBook, recorded) -> None:
    contract, address = await manager.connect()

    assert address == "0xAAA"
    assert contract is book.contracts["0xAAA"]
    assert manager.session.is_connected
    assert manager.session.network_id == 1
    assert [t.id for t in manager.tasks.tasks] == [1]
    assert wallet.code_probes == [CONTRACT_ADDRESS]
    assert _states(recorded) == [SessionStatus.CONNECTING, SessionStatus.CONNECTED]


@pytest.mark.asyncio
async def test_connect_registers_one_listener_each(manager: SessionManager, wallet) -> None:
    await manager.connect()
    manager.disconnect()
    await manager.connect()

    assert wallet.listener_count("accountsChanged") == 1
    assert wallet.listener_count("chainChanged") == 1
    assert manager.subscription_count == 2


@pytest.mark.asyncio
async def test_connect_twice_returns_current_handle(manager: SessionManager) -> None:
    first = await manager.connect()
    second = await manager.connect()
    assert first == second


@pytest.mark.asyncio
async def test_connect_without_provider(book: ContractBook, bus: EventBus) -> None:
    m = SessionManager(None, contract_factory=book, contract_address=CONTRACT_ADDRESS, expected_chain_id=1, events=bus)
    with pytest.raises(ProviderMissing):
        await m.connect()
    assert m.session.status == SessionStatus.DISCONNECTED


@pytest.mark.asyncio
async def test_connect_wrong_network_leaves_no_session(manager: SessionManager, wallet, recorded) -> None:
    wallet.chain_id = 5

    with pytest.raises(WrongNetwork) as excinfo:
        await manager.connect()

    assert excinfo.value.actual == 5
    assert manager.session.status == SessionStatus.DISCONNECTED
    assert manager.session.address == ""
    assert wallet.listener_count("accountsChanged") == 0
    assert any("correct network" in n for n in recorded.notices("error"))


@pytest.mark.asyncio
async def test_connect_without_contract_code(manager: SessionManager, wallet, book: ContractBook) -> None:
    wallet.code = b""

    with pytest.raises(ContractUnavailable):
        await manager.connect()

    assert manager.session.status == SessionStatus.DISCONNECTED
    assert manager.contract is None
    assert book.contracts == {}


@pytest.mark.asyncio
async def test_connect_user_rejection_is_provider_error(manager: SessionManager, wallet) -> None:
    wallet.request_error = RuntimeError("User rejected the request.")

    with pytest.raises(ProviderError) as excinfo:
        await manager.connect()

    assert "User rejected" in excinfo.value.message
    assert manager.session.status == SessionStatus.DISCONNECTED


@pytest.mark.asyncio
async def test_connect_while_connecting_is_busy(wallet, book: ContractBook, bus: EventBus) -> None:
    gate = asyncio.Event()

    class SlowWallet(FakeWalletProvider):
        async def request_accounts(self) -> list[str]:
            await gate.wait()
            return await super().request_accounts()

    slow = SlowWallet()
    m = SessionManager(slow, contract_factory=book, contract_address=CONTRACT_ADDRESS, expected_chain_id=1, events=bus)

    first = asyncio.create_task(m.connect())
    await asyncio.sleep(0)
    assert m.session.status == SessionStatus.CONNECTING
    with pytest.raises(Busy):
        await m.connect()

    gate.set()
    await first
    assert m.session.is_connected


@pytest.mark.asyncio
async def test_disconnect_during_connect_cancels_it(wallet, book: ContractBook, bus: EventBus) -> None:
    gate = asyncio.Event()

    class SlowWallet(FakeWalletProvider):
        async def request_accounts(self) -> list[str]:
            await gate.wait()
            return await super().request_accounts()

    slow = SlowWallet()
    m = SessionManager(slow, contract_factory=book, contract_address=CONTRACT_ADDRESS, expected_chain_id=1, events=bus)

    pending = asyncio.create_task(m.connect())
    await asyncio.sleep(0)
    m.disconnect()
    gate.set()

    with pytest.raises(ProviderError):
        await pending
    assert m.session.status == SessionStatus.DISCONNECTED
    assert slow.listener_count("accountsChanged") == 0


@pytest.mark.asyncio
async def test_empty_accounts_disconnects_and_clears_tasks(manager: SessionManager, wallet, recorded) -> None:
    await manager.connect()
    assert manager.tasks.tasks

    await wallet.fire("accountsChanged", [])

    assert manager.session.status == SessionStatus.DISCONNECTED
    assert manager.tasks.tasks == ()
    assert wallet.listener_count("accountsChanged") == 0
    assert "Wallet disconnected" in recorded.notices()


@pytest.mark.asyncio
async def test_empty_accounts_during_outstanding_mutation(manager: SessionManager, wallet, book: ContractBook) -> None:
    await manager.connect()
    contract = book.contracts["0xAAA"]
    contract.gate = asyncio.Event()

    pending = asyncio.create_task(manager.tasks.delete_task(1))
    for _ in range(5):
        await asyncio.sleep(0)

    await wallet.fire("accountsChanged", [])
    assert manager.session.status == SessionStatus.DISCONNECTED
    assert manager.tasks.tasks == ()

    contract.gate.set()
    await pending
    assert manager.tasks.tasks == ()
    assert contract.load_count == 1


@pytest.mark.asyncio
async def test_account_switch_rebinds_and_resyncs(manager: SessionManager, wallet, book: ContractBook) -> None:
    await manager.connect()
    epoch = manager.session.epoch

    await wallet.fire("accountsChanged", ["0xBBB", "0xAAA"])

    assert manager.session.address == "0xBBB"
    assert manager.session.status == SessionStatus.CONNECTED
    assert manager.session.epoch > epoch
    assert manager.contract is book.contracts["0xBBB"]
    assert [t.id for t in manager.tasks.tasks] == [3]


@pytest.mark.asyncio
async def test_same_account_notification_only_resyncs(manager: SessionManager, wallet, book: ContractBook) -> None:
    await manager.connect()
    session = manager.session
    contract = book.contracts["0xAAA"]

    await wallet.fire("accountsChanged", ["0xAAA"])

    assert manager.session == session
    assert contract.load_count == 2


@pytest.mark.asyncio
async def test_chain_change_tears_down_and_requests_reload(wallet, book: ContractBook, bus: EventBus) -> None:
    reloads: list[int | None] = []

    async def on_reload(chain_id: int | None) -> None:
        reloads.append(chain_id)

    recorded = RecordingEvents(bus)
    m = SessionManager(
        wallet,
        contract_factory=book,
        contract_address=CONTRACT_ADDRESS,
        expected_chain_id=1,
        events=bus,
        on_reload=on_reload,
    )
    await m.connect()

    await wallet.fire("chainChanged", "0x5")

    assert reloads == [5]
    assert recorded.seen["reload_requested"] == [{"chain_id": 5}]
    assert m.session.status == SessionStatus.DISCONNECTED
    assert wallet.listener_count("chainChanged") == 0


@pytest.mark.asyncio
async def test_disconnect_is_local_and_releases_listeners(manager: SessionManager, wallet, book: ContractBook) -> None:
    await manager.connect()
    calls_before = list(book.contracts["0xAAA"].calls)

    manager.disconnect()

    assert manager.session.status == SessionStatus.DISCONNECTED
    assert manager.tasks.tasks == ()
    assert manager.subscription_count == 0
    assert wallet.listener_count("accountsChanged") == 0
    assert book.contracts["0xAAA"].calls == calls_before


def test_has_code() -> None:
    assert not has_code(b"")
    assert not has_code("0x")
    assert not has_code(None)
    assert has_code(b"\x60\x80")
    assert has_code("0x6080")


@pytest.mark.asyncio
async def test_account_switch_during_connect_is_applied(book: ContractBook, bus: EventBus) -> None:
    gate = asyncio.Event()

    class SlowWallet(FakeWalletProvider):
        async def request_accounts(self) -> list[str]:
            await gate.wait()
            return await super().request_accounts()

    slow = SlowWallet(accounts=["0xAAA"])
    m = SessionManager(slow, contract_factory=book, contract_address=CONTRACT_ADDRESS, expected_chain_id=1, events=bus)

    pending = asyncio.create_task(m.connect())
    await asyncio.sleep(0)
    await m.on_accounts_changed(["0xBBB"])
    gate.set()

    contract, address = await pending

    assert address == "0xBBB"
    assert contract is book.contracts["0xBBB"]
    assert m.session.address == "0xBBB"
    assert m.session.is_connected
    assert [t.id for t in m.tasks.tasks] == [3]
    assert book.contracts["0xAAA"].load_count == 0
