# src/taskdapp/core/errors.py

"""
Error taxonomy shared by the session manager and the task synchronizer.

Boundary exceptions (wallet provider, RPC node, contract reverts) are classified
into these types at the operation boundary; anything without a reliable signal
becomes ProviderError with the underlying message preserved for display.
"""

from __future__ import annotations


class TaskAppError(Exception):
    """Base class for all errors surfaced to the UI layer."""

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message or self.__class__.__name__


class ProviderMissing(TaskAppError):
    """No wallet provider is available."""


class WrongNetwork(TaskAppError):
    def __init__(self, expected: int, actual: int | None) -> None:
        super().__init__(f"Wrong network: expected chain {expected}, connected to {actual}.")
        self.expected = expected
        self.actual = actual


class ContractUnavailable(TaskAppError):
    def __init__(self, address: str) -> None:
        super().__init__(f"Contract not deployed at {address}.")
        self.address = address


class NotConnected(TaskAppError):
    def __init__(self, message: str = "Please connect your wallet first.") -> None:
        super().__init__(message)


class ValidationError(TaskAppError):
    """Draft rejected locally; never reaches the network."""


class SyncFailure(TaskAppError):
    """Reading the task list from the contract failed."""


class MutationRejected(TaskAppError):
    """Transaction confirmed but the expected completion event is missing."""

    def __init__(self, expected_event: str) -> None:
        super().__init__(f"{expected_event} event not found in transaction.")
        self.expected_event = expected_event


class NotOwner(TaskAppError):
    def __init__(self, message: str = "You are not the owner of this task.") -> None:
        super().__init__(message)


class Busy(TaskAppError):
    def __init__(self, message: str = "Another operation is still in progress.") -> None:
        super().__init__(message)


class ProviderError(TaskAppError):
    """Any other rejection from the wallet provider or the network."""

    def __init__(self, message: str, *, reason: str | None = None) -> None:
        super().__init__(message)
        self.reason = reason


def _reason_of(exc: BaseException) -> str:
    # web3 ContractLogicError carries .message; wallets often carry .reason.
    for attr in ("reason", "message"):
        val = getattr(exc, attr, None)
        if isinstance(val, str) and val.strip():
            return val.strip()
    return str(exc).strip() or exc.__class__.__name__


def classify_error(exc: BaseException, *, ownership_check: bool = False) -> TaskAppError:
    """
    Map a boundary exception onto the taxonomy.

    ownership_check enables the "owner" reason match used by the delete path.
    """
    if isinstance(exc, TaskAppError):
        return exc

    reason = _reason_of(exc)
    if ownership_check and "owner" in reason.lower():
        return NotOwner()
    return ProviderError(reason, reason=reason)


def friendly_error_message(err: BaseException) -> str:
    if isinstance(err, ProviderMissing):
        return "No wallet available. Configure TASKDAPP_RPC_URL (or run offline)."
    if isinstance(err, WrongNetwork):
        return "Please connect to the correct network!"
    if isinstance(err, TaskAppError):
        return err.message
    msg = str(err).strip()
    return msg or "Unexpected error."
