# src/taskdapp/core/state.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..session.manager import SessionManager
from ..tasks.task_sync import TaskSynchronizer
from .events import EventBus
from .ports import ContractFactory, WalletProvider


@dataclass
class AppState:
    # Store Settings on the state for easy access in other modules later.
    settings: Any

    events: EventBus
    provider: WalletProvider | None
    contract_factory: ContractFactory
    session: SessionManager

    # Number of network-change reloads performed so far.
    reloads: int = 0

    @property
    def tasks(self) -> TaskSynchronizer:
        return self.session.tasks
