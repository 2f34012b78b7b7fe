# src/sakutto_task/tasks/task_models.py

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date
from enum import StrEnum


class RecurrenceKind(StrEnum):
    """Closed set of recurrence kinds understood by the evaluator."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"
    WEEKDAYS = "weekdays"
    CUSTOM = "custom"

    @classmethod
    def from_db(cls, raw: str | None) -> RecurrenceKind | None:
        if not raw:
            return None
        try:
            return cls(raw)
        except ValueError:
            return None


class CustomUnit(StrEnum):
    DAYS = "days"
    WEEKS = "weeks"
    MONTHS = "months"
    YEARS = "years"

    @classmethod
    def from_db(cls, raw: str | None) -> CustomUnit | None:
        """NULL (legacy rows) means "days"; callers treat None the same way."""
        if not raw:
            return None
        try:
            return cls(raw)
        except ValueError:
            return None


class ExclusionKind(StrEnum):
    SINGLE = "single"  # this occurrence only
    AFTER = "after"  # this and all future occurrences


class DeleteMode(StrEnum):
    THIS_ONLY = "this_only"
    FUTURE_ALL = "future_all"


@dataclass(slots=True)
class Task:
    id: int
    owner_id: str
    title: str
    due_date: date

    notification_enabled: bool
    notification_time: str | None  # "HH:mm"

    created_at: float
    updated_at: float


@dataclass(slots=True, frozen=True)
class RecurrenceRule:
    """
    Recurrence settings attached to a task (0 or 1 per task).

    Notes:
    - custom_count/custom_unit only matter for CUSTOM; a missing unit means days.
    - weekdays only matters for WEEKDAYS (0=Sunday .. 6=Saturday).
    - CUSTOM without a positive count and WEEKDAYS with an empty set are inert.
    """

    kind: RecurrenceKind
    custom_count: int | None = None
    custom_unit: CustomUnit | None = None
    weekdays: frozenset[int] = frozenset()


@dataclass(slots=True, frozen=True)
class Exclusion:
    task_id: int
    kind: ExclusionKind
    excluded_date: date


@dataclass(slots=True, frozen=True)
class ExclusionSet:
    """All exclusions of one task, folded into what the evaluator needs."""

    single_dates: frozenset[date] = frozenset()
    after_date: date | None = None

    def excludes(self, d: date) -> bool:
        if d in self.single_dates:
            return True
        return self.after_date is not None and self.after_date <= d

    @classmethod
    def from_rows(cls, rows: Iterable[Exclusion]) -> ExclusionSet:
        singles: set[date] = set()
        after: date | None = None
        for ex in rows:
            if ex.kind == ExclusionKind.SINGLE:
                singles.add(ex.excluded_date)
            elif ex.kind == ExclusionKind.AFTER:
                # Only one row is kept by the store; take the latest if legacy data has more.
                after = ex.excluded_date
        return cls(single_dates=frozenset(singles), after_date=after)


NO_EXCLUSIONS = ExclusionSet()


@dataclass(slots=True, frozen=True)
class Completion:
    task_id: int
    completed_date: date
    completed: bool


@dataclass(slots=True, frozen=True)
class DisplayOccurrence:
    """One task occurrence on a given date, ready for list rendering."""

    key: str
    task_id: int
    title: str
    date: date
    due_date: date
    notification_time: str | None
    completed: bool
    is_recurring: bool
    created_at: float


@dataclass(slots=True, frozen=True)
class NotificationSetting:
    owner_id: str
    email: str | None
    email_enabled: bool
    push_enabled: bool


@dataclass(slots=True, frozen=True)
class PushSubscription:
    id: int
    owner_id: str
    endpoint: str
    p256dh: str
    auth: str


@dataclass(slots=True)
class DispatchResult:
    email_count: int = 0
    push_count: int = 0
    errors: list[str] = field(default_factory=list)
