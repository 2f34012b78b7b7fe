# src/sakutto_task/tasks/recurrence.py

"""
Recurrence evaluation.

Answers "does this task have an occurrence on date D?" from the task's due
date, its recurrence rule and its exclusions. Pure functions, no I/O.

Known limitation: MONTHLY / YEARLY / CUSTOM(months, years) never clamp to the
end of the month. A task due on the 31st has no occurrence in 30-day months,
and one due on Feb 29 only recurs in leap years.
"""

from __future__ import annotations

from collections.abc import Iterator
from datetime import date, timedelta

from .task_models import (
    NO_EXCLUSIONS,
    CustomUnit,
    ExclusionSet,
    RecurrenceKind,
    RecurrenceRule,
    Task,
)


def sunday_weekday(d: date) -> int:
    """Weekday index with 0=Sunday .. 6=Saturday."""
    return d.isoweekday() % 7


def _months_between(start: date, end: date) -> int:
    return (end.year - start.year) * 12 + (end.month - start.month)


def _same_month_day(a: date, b: date) -> bool:
    return a.month == b.month and a.day == b.day


def _matches_custom(rule: RecurrenceRule, due: date, target: date) -> bool:
    count = rule.custom_count
    if not count or count <= 0:
        return False

    unit = rule.custom_unit or CustomUnit.DAYS

    if unit == CustomUnit.DAYS:
        diff = (target - due).days
        return diff >= 0 and diff % count == 0

    if unit == CustomUnit.WEEKS:
        diff = (target - due).days
        return diff >= 0 and diff % (count * 7) == 0

    if unit == CustomUnit.MONTHS:
        if target.day != due.day:
            return False
        months = _months_between(due, target)
        return months >= 0 and months % count == 0

    if unit == CustomUnit.YEARS:
        if not _same_month_day(due, target):
            return False
        years = target.year - due.year
        return years >= 0 and years % count == 0

    return False


def matches_rule(rule: RecurrenceRule, due: date, target: date) -> bool:
    """Would the rule produce an occurrence on `target` (ignoring exclusions)?"""
    kind = rule.kind

    if kind == RecurrenceKind.DAILY:
        return True
    if kind == RecurrenceKind.WEEKLY:
        return target.weekday() == due.weekday()
    if kind == RecurrenceKind.MONTHLY:
        return target.day == due.day
    if kind == RecurrenceKind.YEARLY:
        return _same_month_day(due, target)
    if kind == RecurrenceKind.WEEKDAYS:
        return sunday_weekday(target) in rule.weekdays
    if kind == RecurrenceKind.CUSTOM:
        return _matches_custom(rule, due, target)

    return False


def occurs_on(
    task: Task,
    rule: RecurrenceRule | None,
    exclusions: ExclusionSet | None,
    target: date,
) -> bool:
    """
    True if `task` has an occurrence on `target`.

    - Dates before the due date never occur.
    - The due date itself is always the first occurrence.
    - Without a rule the due date is the only occurrence.
    - Exclusions are applied last and can hide any occurrence, the due date included.
    """
    due = task.due_date
    if target < due:
        return False

    if target == due:
        would_occur = True
    elif rule is None:
        would_occur = False
    else:
        would_occur = matches_rule(rule, due, target)

    if not would_occur:
        return False

    return not (exclusions or NO_EXCLUSIONS).excludes(target)


def iter_occurrences(
    task: Task,
    rule: RecurrenceRule | None,
    exclusions: ExclusionSet | None,
    start: date,
    end: date,
) -> Iterator[date]:
    """Yield every occurrence date in the inclusive window [start, end]."""
    current = max(start, task.due_date)
    if rule is None:
        if start <= task.due_date <= end and occurs_on(task, None, exclusions, task.due_date):
            yield task.due_date
        return

    one_day = timedelta(days=1)
    while current <= end:
        if occurs_on(task, rule, exclusions, current):
            yield current
        current += one_day


def infer_legacy_custom_period(count: int) -> tuple[int, CustomUnit]:
    """
    Guess (count, unit) for a CUSTOM rule stored without a unit.

    Older rows only stored a day count. For editing we present them in the
    largest unit that divides evenly (365 -> years, 30 -> months, 7 -> weeks).
    This is ambiguous (30 days shows as 1 month) and is only used for display;
    evaluation always treats a missing unit as days.
    """
    if count > 0:
        if count % 365 == 0:
            return count // 365, CustomUnit.YEARS
        if count % 30 == 0:
            return count // 30, CustomUnit.MONTHS
        if count % 7 == 0:
            return count // 7, CustomUnit.WEEKS
    return count, CustomUnit.DAYS
