# src/taskdapp/tasks/task_sync.py

"""
Task synchronizer.

Keeps the local task list a read-through projection of the ledger contract:
- load(): fetch, drop soft-deleted entries, newest id first, swap the tuple in one step,
- add_task()/delete_task(): one mutation in flight per session, confirm the completion
  event on the receipt, then reload.

Overlapping loads are allowed. Each load takes a sequence number and only commits if
no newer load has committed already; loads and mutations issued under a session that
has since been replaced never touch the current state.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

from ..core.errors import (
    Busy,
    MutationRejected,
    NotConnected,
    SyncFailure,
    TaskAppError,
    classify_error,
    friendly_error_message,
)
from ..core.events import NOTICE_ERROR, NOTICE_INFO, NOTICE_SUCCESS, EventBus
from ..core.ports import LedgerContract, Receipt, Transaction
from .task_models import ADD_TASK_EVENT, DELETE_TASK_EVENT, Draft, Task, project_tasks, validate_draft

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class SessionBinding:
    """Contract handle plus the session it was issued for."""

    address: str
    contract: LedgerContract
    epoch: int


def receipt_has_event(receipt: Receipt, name: str) -> bool:
    events = getattr(receipt, "events", None) or ()
    return any(getattr(ev, "name", None) == name for ev in events)


class TaskSynchronizer:
    def __init__(self, events: EventBus | None = None) -> None:
        self.events = events or EventBus()
        self.draft = Draft()

        self._binding: SessionBinding | None = None
        self._tasks: tuple[Task, ...] = ()
        # Set when the session changed and the list has not been reloaded since.
        self._stale = False

        self._load_seq = 0
        self._committed_seq = 0
        self._inflight = 0
        self._mutating_epoch: int | None = None

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def tasks(self) -> tuple[Task, ...]:
        return self._tasks

    @property
    def loading(self) -> bool:
        return self._inflight > 0

    @property
    def busy(self) -> bool:
        b = self._binding
        return b is not None and self._mutating_epoch == b.epoch

    @property
    def is_bound(self) -> bool:
        return self._binding is not None

    @property
    def stale(self) -> bool:
        return self._stale

    # ------------------------------------------------------------------
    # Session wiring (called by the session manager only)
    # ------------------------------------------------------------------

    def bind(self, *, address: str, contract: LedgerContract, epoch: int) -> None:
        """Attach to a (new) session. The list is invalidated until the next load commits."""
        prev = self._binding
        self._binding = SessionBinding(address=address, contract=contract, epoch=epoch)
        self._stale = True
        if prev is None or prev.address.lower() != address.lower():
            # Tasks of another account must not stay visible.
            self._commit(())
        logger.debug("Synchronizer bound to %s (epoch=%d)", address, epoch)

    def reset(self) -> None:
        """Drop the session and all task state. In-flight results will be discarded."""
        self._binding = None
        self._stale = False
        self._mutating_epoch = None
        self.draft.clear()
        self._commit(())
        logger.debug("Synchronizer reset")

    # ------------------------------------------------------------------
    # Load
    # ------------------------------------------------------------------

    async def load(self) -> tuple[Task, ...]:
        """
        Reload the task list for the current session.

        No-op without a session. Raises SyncFailure on retrieval errors; the
        previous list is kept in that case.
        """
        try:
            return await self._fetch_and_commit()
        except SyncFailure as e:
            self.events.notice(NOTICE_ERROR, e.message)
            raise

    async def refresh(self) -> None:
        """load() for internal triggers: failures are already surfaced as notices."""
        try:
            await self.load()
        except SyncFailure:
            logger.debug("Refresh failed; keeping previous task list")

    async def _fetch_and_commit(self) -> tuple[Task, ...]:
        binding = self._binding
        if binding is None:
            logger.debug("Cannot load tasks: wallet not connected")
            return self._tasks

        self._load_seq += 1
        seq = self._load_seq

        self._begin()
        try:
            try:
                raw = await binding.contract.get_my_task()
                tasks = project_tasks(raw)
            except Exception as e:
                if binding is not self._binding:
                    logger.debug("Load #%d failed after session change; ignoring", seq)
                    return self._tasks
                if seq < self._committed_seq:
                    logger.debug("Load #%d failed but #%d already committed; ignoring", seq, self._committed_seq)
                    return self._tasks
                err = classify_error(e)
                logger.warning("Failed to load tasks: %s", err.message)
                raise SyncFailure(f"Error loading tasks: {err.message}") from e

            if binding is not self._binding:
                logger.debug("Discarding load #%d: session changed", seq)
                return self._tasks
            if seq < self._committed_seq:
                logger.debug("Discarding load #%d: #%d already committed", seq, self._committed_seq)
                return self._tasks

            self._committed_seq = seq
            self._stale = False
            self._commit(tasks)
            logger.info("Loaded %d task(s) for %s", len(tasks), binding.address)
            return tasks
        finally:
            self._end()

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def add_task(self, draft: Draft | None = None) -> None:
        """
        Validate and submit a draft. On a confirmed AddTask event the draft is cleared
        and the list reloaded once.
        """
        draft = self.draft if draft is None else draft
        try:
            validate_draft(draft)
            binding = self._acquire_mutation()
        except TaskAppError as e:
            self.events.notice(NOTICE_ERROR, friendly_error_message(e))
            raise

        self._begin()
        try:
            await self._ensure_fresh(binding)
            if binding is not self._binding:
                raise NotConnected()

            self.events.notice(NOTICE_INFO, "Adding task... Please wait for confirmation")
            receipt = await self._submit(
                binding,
                lambda c: c.add_task(draft.text.strip(), draft.title.strip(), False),
                ownership_check=False,
            )
            if not receipt_has_event(receipt, ADD_TASK_EVENT):
                raise MutationRejected(ADD_TASK_EVENT)

            if binding is not self._binding:
                logger.info("AddTask confirmed after session change; not applying")
                return

            self.events.notice(NOTICE_SUCCESS, "Task added successfully!")
            draft.clear()
            await self.refresh()
        except TaskAppError as e:
            self._report(binding, "add task", e)
            raise
        finally:
            self._release_mutation(binding)
            self._end()

    async def delete_task(self, task_id: int) -> None:
        """Soft-delete a task on the ledger, then reload once."""
        try:
            binding = self._acquire_mutation()
        except TaskAppError as e:
            self.events.notice(NOTICE_ERROR, friendly_error_message(e))
            raise

        self._begin()
        try:
            await self._ensure_fresh(binding)
            if binding is not self._binding:
                raise NotConnected()

            self.events.notice(NOTICE_INFO, "Deleting task... Please wait for confirmation")
            receipt = await self._submit(
                binding,
                lambda c: c.delete_task(int(task_id)),
                ownership_check=True,
            )
            if not receipt_has_event(receipt, DELETE_TASK_EVENT):
                raise MutationRejected(DELETE_TASK_EVENT)

            if binding is not self._binding:
                logger.info("DeleteTask confirmed after session change; not applying")
                return

            self.events.notice(NOTICE_SUCCESS, "Task deleted successfully!")
            await self.refresh()
        except TaskAppError as e:
            self._report(binding, f"delete task {task_id}", e)
            raise
        finally:
            self._release_mutation(binding)
            self._end()

    async def _submit(
        self,
        binding: SessionBinding,
        send: Callable[[LedgerContract], Awaitable[Transaction]],
        *,
        ownership_check: bool,
    ) -> Receipt:
        try:
            tx = await send(binding.contract)
            return await tx.wait()
        except Exception as e:
            err = classify_error(e, ownership_check=ownership_check)
            if err is e:
                raise
            raise err from e

    async def _ensure_fresh(self, binding: SessionBinding) -> None:
        # A session change must resync the list before a mutation is accepted.
        if self._stale and binding is self._binding:
            logger.debug("Task list stale; resyncing before mutation")
            await self._fetch_and_commit()

    def _acquire_mutation(self) -> SessionBinding:
        binding = self._binding
        if binding is None:
            raise NotConnected()
        if self._mutating_epoch == binding.epoch:
            raise Busy()
        self._mutating_epoch = binding.epoch
        return binding

    def _release_mutation(self, binding: SessionBinding) -> None:
        if self._mutating_epoch == binding.epoch:
            self._mutating_epoch = None

    def _report(self, binding: SessionBinding, what: str, err: TaskAppError) -> None:
        if binding is not self._binding:
            logger.info("Failed to %s after session change: %s", what, err.message)
            return
        logger.warning("Failed to %s: %s", what, err.message)
        self.events.notice(NOTICE_ERROR, friendly_error_message(err))

    # ------------------------------------------------------------------
    # State plumbing
    # ------------------------------------------------------------------

    def _commit(self, tasks: tuple[Task, ...]) -> None:
        self._tasks = tasks
        self.events.emit("tasks_changed", {"tasks": tasks})

    def _begin(self) -> None:
        self._inflight += 1
        if self._inflight == 1:
            self.events.emit("loading_changed", {"loading": True})

    def _end(self) -> None:
        self._inflight = max(0, self._inflight - 1)
        if self._inflight == 0:
            self.events.emit("loading_changed", {"loading": False})
