# src/sakutto_task/core/ports.py

"""
Ports (interfaces) used by the core.

The core depends on Protocols instead of concrete implementations.
This keeps storage and delivery transports swappable and makes testing easier.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from typing import Awaitable, Protocol

from ..tasks.task_models import (
    ExclusionSet,
    NotificationSetting,
    PushSubscription,
    RecurrenceRule,
    Task,
)


@dataclass(slots=True, frozen=True)
class EmailResult:
    ok: bool
    error: str | None = None


@dataclass(slots=True, frozen=True)
class PushResult:
    """
    Outcome of one push delivery.

    permanent=True means the subscription is gone for good (expired / not found)
    and should be removed; any other failure is transient.
    """

    ok: bool
    permanent: bool = False
    status_code: int | None = None
    error: str | None = None


class EmailSender(Protocol):
    """Send one message to one recipient. Must not raise for delivery failures."""

    def send_email(self, *, to: str, subject: str, html: str) -> Awaitable[EmailResult]: ...


class PushSender(Protocol):
    """Deliver one payload to one subscription. Must not raise for delivery failures."""

    def send_push(self, subscription: PushSubscription, payload: str) -> Awaitable[PushResult]: ...


class TaskRepo(Protocol):
    # Expander API
    def list_tasks_for_owner(self, owner_id: str) -> list[tuple[Task, RecurrenceRule | None]]: ...
    def completions_for_date(self, task_ids: Iterable[int], d: date) -> dict[int, bool]: ...

    # Evaluator inputs
    def list_exclusions_for_tasks(self, task_ids: Iterable[int]) -> dict[int, ExclusionSet]: ...

    # Dispatch API
    def list_notification_candidates(self, time_str: str) -> list[tuple[Task, RecurrenceRule | None]]: ...
    def get_notification_setting(self, owner_id: str) -> NotificationSetting | None: ...
    def list_push_subscriptions(self, owner_id: str) -> list[PushSubscription]: ...
    def delete_push_subscription(self, endpoint: str, *, owner_id: str | None = None) -> bool: ...
