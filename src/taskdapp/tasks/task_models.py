# src/taskdapp/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..core.errors import ValidationError

TITLE_MAX_LEN = 100
TEXT_MAX_LEN = 500

ADD_TASK_EVENT = "AddTask"
DELETE_TASK_EVENT = "DeleteTask"


@dataclass(slots=True, frozen=True)
class Task:
    """
    One task record as returned by the ledger contract.

    The owner is implicit: getMyTask() only returns the caller's tasks.
    """

    id: int
    title: str
    text: str
    is_deleted: bool = False

    @classmethod
    def from_chain(cls, raw: Any) -> Task:
        """
        Build a Task from a contract return value.

        Accepts a Task, a mapping with contract field names, or the positional
        struct tuple (id, taskText, taskTitle, isDeleted).
        """
        if isinstance(raw, Task):
            return raw
        if isinstance(raw, dict):
            return cls(
                id=int(raw["id"]),
                title=str(raw.get("taskTitle", raw.get("title", ""))),
                text=str(raw.get("taskText", raw.get("text", ""))),
                is_deleted=bool(raw.get("isDeleted", raw.get("is_deleted", False))),
            )
        task_id, text, title, is_deleted = raw
        return cls(id=int(task_id), title=str(title), text=str(text), is_deleted=bool(is_deleted))


@dataclass(slots=True)
class Draft:
    """Unsubmitted form input. Cleared on successful submission, never persisted."""

    title: str = ""
    text: str = ""

    def clear(self) -> None:
        self.title = ""
        self.text = ""

    def is_empty(self) -> bool:
        return not self.title and not self.text


def validate_draft(draft: Draft) -> None:
    """Raise ValidationError if the draft cannot be submitted."""
    if not draft.title.strip():
        raise ValidationError("Task title cannot be empty")
    if not draft.text.strip():
        raise ValidationError("Task description cannot be empty")
    if len(draft.title) > TITLE_MAX_LEN:
        raise ValidationError(f"Task title too long (max {TITLE_MAX_LEN} characters)")
    if len(draft.text) > TEXT_MAX_LEN:
        raise ValidationError(f"Task description too long (max {TEXT_MAX_LEN} characters)")


def project_tasks(raw_tasks: Any) -> tuple[Task, ...]:
    """Active tasks only, newest id first."""
    tasks = [Task.from_chain(t) for t in raw_tasks]
    active = [t for t in tasks if not t.is_deleted]
    active.sort(key=lambda t: t.id, reverse=True)
    return tuple(active)
