# src/sakutto_task/errors.py

"""
Exception taxonomy.

- ValidationError: bad input, rejected before anything is persisted.
- TaskNotFoundError: the task does not exist or belongs to another owner.
- StoreUnavailableError: the task store could not be reached or queried.
  Fatal for the current operation.

Per-recipient delivery failures are NOT exceptions: senders return result
objects and the dispatcher aggregates them.
"""

from __future__ import annotations


class SakuttoError(Exception):
    """Base class for errors raised by this package."""


class ValidationError(SakuttoError, ValueError):
    pass


class TaskNotFoundError(SakuttoError, LookupError):
    def __init__(self, task_id: int) -> None:
        super().__init__(f"Task not found: {task_id}")
        self.task_id = task_id


class StoreUnavailableError(SakuttoError):
    pass
