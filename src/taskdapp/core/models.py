# src/taskdapp/core/models.py

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class SessionStatus(StrEnum):
    """
    Wallet session lifecycle.

    DISCONNECTED -> CONNECTING -> CONNECTED
    CONNECTED -> DISCONNECTED (empty accounts, explicit disconnect, chain change)
    CONNECTED -> CONNECTED (account replaced)
    """

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


@dataclass(slots=True, frozen=True)
class Session:
    address: str = ""
    network_id: int | None = None
    status: SessionStatus = SessionStatus.DISCONNECTED
    # Bumped on every session change; results issued under an older epoch are dropped.
    epoch: int = 0

    @property
    def is_connected(self) -> bool:
        return self.status == SessionStatus.CONNECTED and bool(self.address)


def short_address(address: str) -> str:
    """0x1234...abcd form used by the UI."""
    if len(address) <= 10:
        return address
    return f"{address[:6]}...{address[-4:]}"
