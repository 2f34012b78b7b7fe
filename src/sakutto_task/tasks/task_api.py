# src/sakutto_task/tasks/task_api.py

"""
High-level task operations used by the CLI and any outer surface.

Everything here validates input first and raises ValidationError before touching
the store. Ownership is checked on every task lookup (TaskNotFoundError).
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date
from typing import Any

from ..errors import TaskNotFoundError, ValidationError
from .recurrence import infer_legacy_custom_period, iter_occurrences, occurs_on
from .task_models import (
    CustomUnit,
    DeleteMode,
    DisplayOccurrence,
    NotificationSetting,
    RecurrenceKind,
    RecurrenceRule,
    Task,
)
from .task_store import TaskStore
from .time_hint import extract_time_hint

logger = logging.getLogger(__name__)

_HHMM = re.compile(r"^([01][0-9]|2[0-3]):[0-5][0-9]$")


@dataclass(slots=True, frozen=True)
class TaskDetail:
    """A task as presented for editing (custom period shown in its legacy-inferred unit)."""

    task: Task
    rule: RecurrenceRule | None
    custom_count: int | None
    custom_unit: CustomUnit | None


# ---- validation helpers ----


def parse_date(value: date | str | None, *, field: str = "date") -> date:
    if isinstance(value, date):
        return value
    if not value or not str(value).strip():
        raise ValidationError(f"{field} is required")
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError as exc:
        raise ValidationError(f"{field} must be YYYY-MM-DD, got {value!r}") from exc


def validate_time(value: str | None) -> str:
    if not value or not _HHMM.match(value.strip()):
        raise ValidationError(f"notification time must be HH:mm, got {value!r}")
    return value.strip()


def build_rule(
    kind: str | RecurrenceKind | None,
    *,
    custom_count: int | None = None,
    custom_unit: str | CustomUnit | None = None,
    weekdays: Iterable[int] | None = None,
) -> RecurrenceRule | None:
    """
    Turn raw recurrence parameters into a RecurrenceRule (None = no recurrence).

    A missing custom count or an empty weekday set is accepted: such rules are
    inert. Values that cannot mean anything (unknown kind/unit, count < 1,
    weekday outside 0..6) are rejected.
    """
    if kind is None or kind == "":
        return None

    rk = RecurrenceKind.from_db(str(kind))
    if rk is None:
        raise ValidationError(f"unknown recurrence kind: {kind!r}")

    if rk != RecurrenceKind.CUSTOM:
        custom_count = None
        custom_unit = None

    unit: CustomUnit | None = None
    if custom_unit:
        unit = CustomUnit.from_db(str(custom_unit))
        if unit is None:
            raise ValidationError(f"unknown custom unit: {custom_unit!r}")

    if custom_count is not None:
        try:
            custom_count = int(custom_count)
        except (TypeError, ValueError) as exc:
            raise ValidationError(f"custom count must be an integer, got {custom_count!r}") from exc
        if custom_count < 1:
            raise ValidationError("custom count must be a positive integer")

    days: frozenset[int] = frozenset()
    if rk == RecurrenceKind.WEEKDAYS and weekdays:
        try:
            days = frozenset(int(w) for w in weekdays)
        except (TypeError, ValueError) as exc:
            raise ValidationError(f"weekdays must be integers 0..6, got {weekdays!r}") from exc
        if any(w < 0 or w > 6 for w in days):
            raise ValidationError("weekdays must be in 0..6 (0=Sunday)")

    return RecurrenceRule(kind=rk, custom_count=custom_count, custom_unit=unit, weekdays=days)


def _clean_task_fields(
    title: str | None,
    due_date: date | str | None,
    notification_enabled: bool,
    notification_time: str | None,
) -> tuple[str, date, str | None]:
    clean_title = (title or "").strip()
    if not clean_title:
        raise ValidationError("title is required")
    due = parse_date(due_date, field="due date")
    time_str = validate_time(notification_time) if notification_enabled else None
    return clean_title, due, time_str


def _get_owned_task(store: TaskStore, owner_id: str, task_id: int) -> Task:
    task = store.get_task(task_id)
    if task is None or task.owner_id != owner_id:
        raise TaskNotFoundError(task_id)
    return task


# ---- task CRUD ----


def create_task(
    store: TaskStore,
    *,
    owner_id: str,
    title: str,
    due_date: date | str,
    notification_enabled: bool = False,
    notification_time: str | None = None,
    recurrence: RecurrenceRule | None = None,
) -> int:
    clean_title, due, time_str = _clean_task_fields(
        title, due_date, notification_enabled, notification_time
    )
    task_id = store.add_task(
        owner_id=owner_id,
        title=clean_title,
        due_date=due,
        notification_enabled=notification_enabled,
        notification_time=time_str,
    )
    if recurrence is not None:
        store.set_recurrence(task_id, recurrence)

    logger.info(
        "Task created id=%s owner=%s recurrence=%s",
        task_id,
        owner_id,
        recurrence.kind.value if recurrence else None,
    )
    return task_id


def update_task(
    store: TaskStore,
    *,
    owner_id: str,
    task_id: int,
    title: str,
    due_date: date | str,
    notification_enabled: bool = False,
    notification_time: str | None = None,
    recurrence: RecurrenceRule | None = None,
) -> None:
    """Replace the task's fields and recurrence. recurrence=None removes the rule."""
    clean_title, due, time_str = _clean_task_fields(
        title, due_date, notification_enabled, notification_time
    )
    _get_owned_task(store, owner_id, task_id)

    store.update_task(
        task_id,
        title=clean_title,
        due_date=due,
        notification_enabled=notification_enabled,
        notification_time=time_str,
    )

    if recurrence is not None:
        store.set_recurrence(task_id, recurrence)
    elif store.get_recurrence(task_id) is not None:
        # Rule removed: its exclusions no longer mean anything.
        store.delete_recurrence(task_id)
        store.delete_all_exclusions(task_id)

    logger.info("Task updated id=%s owner=%s", task_id, owner_id)


def get_task_detail(store: TaskStore, owner_id: str, task_id: int) -> TaskDetail:
    task = _get_owned_task(store, owner_id, task_id)
    rule = store.get_recurrence(task_id)

    count: int | None = None
    unit: CustomUnit | None = None
    if rule is not None and rule.kind == RecurrenceKind.CUSTOM and rule.custom_count:
        if rule.custom_unit is None:
            count, unit = infer_legacy_custom_period(rule.custom_count)
        else:
            count, unit = rule.custom_count, rule.custom_unit

    return TaskDetail(task=task, rule=rule, custom_count=count, custom_unit=unit)


def delete_task(
    store: TaskStore,
    *,
    owner_id: str,
    task_id: int,
    mode: DeleteMode | str | None = None,
    target_date: date | str | None = None,
) -> str:
    """
    Delete a task or hide some of its occurrences.

    - recurring + mode=this_only   -> single exclusion on target_date
    - recurring + mode=future_all  -> "after" exclusion at target_date (replaces any earlier one)
    - recurring + mode, no date    -> ValidationError, nothing is touched
    - anything else                -> the task is deleted with its rule,
                                      exclusions and completions

    Returns "excluded" or "deleted".
    """
    _get_owned_task(store, owner_id, task_id)

    delete_mode: DeleteMode | None = None
    if mode:
        try:
            delete_mode = DeleteMode(str(mode))
        except ValueError as exc:
            raise ValidationError(f"unknown delete mode: {mode!r}") from exc

    rule = store.get_recurrence(task_id)
    if rule is not None and delete_mode is not None:
        if not target_date:
            raise ValidationError(f"target date is required for mode {delete_mode.value}")
        d = parse_date(target_date, field="target date")
        if delete_mode == DeleteMode.THIS_ONLY:
            store.add_single_exclusion(task_id, d)
        else:
            store.replace_after_exclusion(task_id, d)
        logger.info("Task occurrences excluded id=%s mode=%s date=%s", task_id, delete_mode.value, d)
        return "excluded"

    store.delete_all_exclusions(task_id)
    store.delete_completions(task_id)
    store.delete_task(task_id)
    logger.info("Task deleted id=%s owner=%s", task_id, owner_id)
    return "deleted"


def toggle_completion(
    store: TaskStore,
    *,
    owner_id: str,
    task_id: int,
    on_date: date | str,
    completed: bool,
) -> None:
    if not isinstance(completed, bool):
        raise ValidationError("completed must be a boolean")
    d = parse_date(on_date)
    _get_owned_task(store, owner_id, task_id)
    store.set_completion(task_id, d, completed)


# ---- occurrence expansion ----


def occurrence_key(task: Task, target: date, *, is_recurring: bool) -> str:
    if is_recurring:
        return f"recurring-{task.id}-{target.isoformat()}"
    return f"single-{task.id}"


def _sort_key(occ: DisplayOccurrence) -> tuple[int, int, float, int]:
    hint = extract_time_hint(occ.title)
    if hint is not None:
        return 0, hint, occ.created_at, occ.task_id
    if occ.is_recurring:
        return 1, 0, occ.created_at, occ.task_id
    return 2, 0, occ.created_at, occ.task_id


def list_occurrences(store: TaskStore, owner_id: str, target: date) -> list[DisplayOccurrence]:
    """
    All occurrences of the owner's tasks on `target`, ordered for display:

    1. titles containing a time ("9:00 洗濯"), by that time
    2. recurring tasks
    3. everything else
    Ties (and groups 2 and 3) keep creation order.
    """
    rows = store.list_tasks_for_owner(owner_id)
    exclusions = store.list_exclusions_for_tasks(t.id for t, _ in rows)

    survivors = [
        (task, rule)
        for task, rule in rows
        if occurs_on(task, rule, exclusions.get(task.id), target)
    ]
    completed = store.completions_for_date((t.id for t, _ in survivors), target)

    out: list[DisplayOccurrence] = []
    for task, rule in survivors:
        is_recurring = rule is not None
        out.append(
            DisplayOccurrence(
                key=occurrence_key(task, target, is_recurring=is_recurring),
                task_id=task.id,
                title=task.title,
                date=target,
                due_date=task.due_date,
                notification_time=task.notification_time,
                completed=completed.get(task.id, False),
                is_recurring=is_recurring,
                created_at=task.created_at,
            )
        )

    out.sort(key=_sort_key)
    return out


def _add_years(d: date, years: int) -> date:
    try:
        return d.replace(year=d.year + years)
    except ValueError:
        # Feb 29 -> Feb 28
        return d.replace(year=d.year + years, day=28)


def search_dates(
    store: TaskStore,
    owner_id: str,
    query: str,
    *,
    today: date,
    years_ahead: int = 20,
) -> list[tuple[date, int]]:
    """
    Dates on which tasks whose title contains `query` occur, with a task count
    per date, newest first.

    One-off tasks contribute their due date (past or future). Recurring tasks are
    expanded from max(due date, today) up to `years_ahead` years from today.
    """
    q = (query or "").strip()
    if not q:
        return []

    rows = store.search_tasks(owner_id, q)
    exclusions = store.list_exclusions_for_tasks(t.id for t, _ in rows)
    end = _add_years(today, years_ahead)

    counts: Counter[date] = Counter()
    for task, rule in rows:
        excl = exclusions.get(task.id)
        if rule is None:
            if occurs_on(task, None, excl, task.due_date):
                counts[task.due_date] += 1
            continue
        counts.update(iter_occurrences(task, rule, excl, today, end))

    return sorted(counts.items(), key=lambda item: item[0], reverse=True)


# ---- notification settings / subscriptions ----


def save_notification_setting(
    store: TaskStore,
    *,
    owner_id: str,
    email: str | None,
    email_enabled: bool,
    push_enabled: bool,
) -> NotificationSetting:
    addr = (email or "").strip() or None
    if email_enabled and (addr is None or "@" not in addr):
        raise ValidationError("a valid email address is required when email notifications are on")

    setting = NotificationSetting(
        owner_id=owner_id,
        email=addr,
        email_enabled=bool(email_enabled),
        push_enabled=bool(push_enabled),
    )
    store.upsert_notification_setting(setting)
    return setting


def register_push_subscription(
    store: TaskStore, *, owner_id: str, subscription: Mapping[str, Any]
) -> int:
    """Store a browser PushSubscription JSON ({"endpoint": ..., "keys": {"p256dh", "auth"}})."""
    endpoint = subscription.get("endpoint") if subscription else None
    keys = subscription.get("keys") if subscription else None
    if not endpoint or not isinstance(keys, Mapping):
        raise ValidationError("invalid subscription data")
    p256dh = keys.get("p256dh")
    auth = keys.get("auth")
    if not p256dh or not auth:
        raise ValidationError("subscription keys p256dh and auth are required")

    sub_id = store.upsert_push_subscription(
        owner_id=owner_id, endpoint=str(endpoint), p256dh=str(p256dh), auth=str(auth)
    )
    logger.info("Push subscription saved id=%s owner=%s", sub_id, owner_id)
    return sub_id


def unregister_push_subscription(store: TaskStore, *, owner_id: str, endpoint: str) -> bool:
    if not endpoint:
        raise ValidationError("endpoint is required")
    return store.delete_push_subscription(endpoint, owner_id=owner_id)
