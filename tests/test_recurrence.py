# tests/test_recurrence.py

from __future__ import annotations

from datetime import date, timedelta

import pytest

from sakutto_task.tasks.recurrence import (
    infer_legacy_custom_period,
    iter_occurrences,
    occurs_on,
    sunday_weekday,
)
from sakutto_task.tasks.task_models import (
    CustomUnit,
    ExclusionSet,
    RecurrenceKind,
    RecurrenceRule,
    Task,
)


def make_task(due: date, task_id: int = 1) -> Task:
    return Task(
        id=task_id,
        owner_id="u1",
        title="task",
        due_date=due,
        notification_enabled=False,
        notification_time=None,
        created_at=0.0,
        updated_at=0.0,
    )


def days(start: date, n: int) -> list[date]:
    return [start + timedelta(days=i) for i in range(n)]


def test_one_off_task_occurs_only_on_due_date() -> None:
    due = date(2024, 3, 1)
    task = make_task(due)
    hits = [d for d in days(due - timedelta(days=10), 40) if occurs_on(task, None, None, d)]
    assert hits == [due]


def test_one_off_task_due_date_can_be_excluded() -> None:
    due = date(2024, 3, 1)
    task = make_task(due)
    excl = ExclusionSet(single_dates=frozenset({due}))
    assert occurs_on(task, None, excl, due) is False


@pytest.mark.parametrize("kind", list(RecurrenceKind))
def test_due_date_is_always_first_occurrence(kind: RecurrenceKind) -> None:
    due = date(2024, 5, 17)
    task = make_task(due)
    rule = RecurrenceRule(kind=kind)  # inert for custom / weekdays, still occurs on due date
    assert occurs_on(task, rule, None, due) is True
    assert occurs_on(task, rule, None, due - timedelta(days=1)) is False


def test_daily_occurs_every_day_from_due_date() -> None:
    due = date(2024, 1, 10)
    task = make_task(due)
    rule = RecurrenceRule(kind=RecurrenceKind.DAILY)
    assert all(occurs_on(task, rule, None, d) for d in days(due, 400))
    assert not occurs_on(task, rule, None, date(2024, 1, 9))


def test_weekly_matches_due_weekday() -> None:
    due = date(2024, 1, 3)  # Wednesday
    task = make_task(due)
    rule = RecurrenceRule(kind=RecurrenceKind.WEEKLY)
    for d in days(due, 120):
        assert occurs_on(task, rule, None, d) == (d.weekday() == due.weekday())


def test_monthly_does_not_roll_over_short_months() -> None:
    task = make_task(date(2024, 1, 31))
    rule = RecurrenceRule(kind=RecurrenceKind.MONTHLY)
    assert occurs_on(task, rule, None, date(2024, 2, 29)) is False
    assert occurs_on(task, rule, None, date(2024, 3, 31)) is True
    assert occurs_on(task, rule, None, date(2024, 4, 30)) is False
    assert occurs_on(task, rule, None, date(2024, 5, 31)) is True


def test_yearly_leap_day_only_in_leap_years() -> None:
    task = make_task(date(2024, 2, 29))
    rule = RecurrenceRule(kind=RecurrenceKind.YEARLY)
    assert occurs_on(task, rule, None, date(2025, 2, 28)) is False
    assert occurs_on(task, rule, None, date(2025, 3, 1)) is False
    assert occurs_on(task, rule, None, date(2028, 2, 29)) is True


def test_weekdays_uses_sunday_based_indices() -> None:
    due = date(2024, 1, 1)  # Monday
    task = make_task(due)
    rule = RecurrenceRule(kind=RecurrenceKind.WEEKDAYS, weekdays=frozenset({0, 3}))  # Sun, Wed
    assert occurs_on(task, rule, None, date(2024, 1, 3)) is True  # Wed
    assert occurs_on(task, rule, None, date(2024, 1, 7)) is True  # Sun
    assert occurs_on(task, rule, None, date(2024, 1, 8)) is False  # Mon (not due date)
    assert occurs_on(task, rule, None, date(2024, 1, 4)) is False  # Thu


def test_weekdays_with_empty_set_is_inert() -> None:
    due = date(2024, 1, 1)
    task = make_task(due)
    rule = RecurrenceRule(kind=RecurrenceKind.WEEKDAYS)
    hits = [d for d in days(due, 30) if occurs_on(task, rule, None, d)]
    assert hits == [due]


def test_custom_every_three_days() -> None:
    due = date(2024, 1, 1)
    task = make_task(due)
    rule = RecurrenceRule(kind=RecurrenceKind.CUSTOM, custom_count=3, custom_unit=CustomUnit.DAYS)
    for day in (1, 4, 7):
        assert occurs_on(task, rule, None, date(2024, 1, day)) is True
    for day in (2, 3, 5, 6):
        assert occurs_on(task, rule, None, date(2024, 1, day)) is False


def test_custom_without_unit_means_days() -> None:
    due = date(2024, 1, 1)
    task = make_task(due)
    rule = RecurrenceRule(kind=RecurrenceKind.CUSTOM, custom_count=30)
    assert occurs_on(task, rule, None, date(2024, 1, 31)) is True
    assert occurs_on(task, rule, None, date(2024, 2, 1)) is False


def test_custom_weeks() -> None:
    task = make_task(date(2024, 1, 1))
    rule = RecurrenceRule(kind=RecurrenceKind.CUSTOM, custom_count=2, custom_unit=CustomUnit.WEEKS)
    assert occurs_on(task, rule, None, date(2024, 1, 15)) is True
    assert occurs_on(task, rule, None, date(2024, 1, 8)) is False
    assert occurs_on(task, rule, None, date(2024, 1, 29)) is True


def test_custom_months_requires_same_day_and_period() -> None:
    task = make_task(date(2024, 1, 31))
    rule = RecurrenceRule(kind=RecurrenceKind.CUSTOM, custom_count=2, custom_unit=CustomUnit.MONTHS)
    assert occurs_on(task, rule, None, date(2024, 3, 31)) is True
    assert occurs_on(task, rule, None, date(2024, 2, 29)) is False
    assert occurs_on(task, rule, None, date(2024, 5, 31)) is True
    assert occurs_on(task, rule, None, date(2024, 7, 31)) is True
    assert occurs_on(task, rule, None, date(2024, 8, 31)) is False


def test_custom_years() -> None:
    task = make_task(date(2024, 6, 1))
    rule = RecurrenceRule(kind=RecurrenceKind.CUSTOM, custom_count=2, custom_unit=CustomUnit.YEARS)
    assert occurs_on(task, rule, None, date(2025, 6, 1)) is False
    assert occurs_on(task, rule, None, date(2026, 6, 1)) is True
    assert occurs_on(task, rule, None, date(2026, 6, 2)) is False


@pytest.mark.parametrize("count", [None, 0, -2])
def test_custom_without_positive_count_is_inert(count: int | None) -> None:
    due = date(2024, 1, 1)
    task = make_task(due)
    rule = RecurrenceRule(kind=RecurrenceKind.CUSTOM, custom_count=count)
    hits = [d for d in days(due, 20) if occurs_on(task, rule, None, d)]
    assert hits == [due]


def test_single_exclusion_hides_only_that_date() -> None:
    due = date(2024, 1, 1)
    task = make_task(due)
    rule = RecurrenceRule(kind=RecurrenceKind.DAILY)
    excl = ExclusionSet(single_dates=frozenset({date(2024, 1, 5)}))
    assert occurs_on(task, rule, excl, date(2024, 1, 5)) is False
    assert occurs_on(task, rule, excl, date(2024, 1, 4)) is True
    assert occurs_on(task, rule, excl, date(2024, 1, 6)) is True


def test_after_exclusion_hides_cutoff_and_later() -> None:
    due = date(2024, 1, 1)
    task = make_task(due)
    rule = RecurrenceRule(kind=RecurrenceKind.DAILY)
    excl = ExclusionSet(after_date=date(2024, 1, 10))
    for d in days(due, 30):
        assert occurs_on(task, rule, excl, d) == (d < date(2024, 1, 10))


def test_iter_occurrences_window() -> None:
    task = make_task(date(2024, 1, 1))
    rule = RecurrenceRule(kind=RecurrenceKind.WEEKLY)
    got = list(iter_occurrences(task, rule, None, date(2023, 12, 1), date(2024, 1, 31)))
    assert got == [date(2024, 1, 1), date(2024, 1, 8), date(2024, 1, 15), date(2024, 1, 22), date(2024, 1, 29)]

    one_off = make_task(date(2024, 2, 1))
    assert list(iter_occurrences(one_off, None, None, date(2024, 1, 1), date(2024, 1, 31))) == []
    assert list(iter_occurrences(one_off, None, None, date(2024, 1, 1), date(2024, 2, 1))) == [date(2024, 2, 1)]


def test_sunday_weekday() -> None:
    assert sunday_weekday(date(2024, 1, 7)) == 0  # Sunday
    assert sunday_weekday(date(2024, 1, 8)) == 1  # Monday
    assert sunday_weekday(date(2024, 1, 13)) == 6  # Saturday


@pytest.mark.parametrize(
    ("stored", "expected"),
    [
        (730, (2, CustomUnit.YEARS)),
        (60, (2, CustomUnit.MONTHS)),
        (30, (1, CustomUnit.MONTHS)),
        (14, (2, CustomUnit.WEEKS)),
        (10, (10, CustomUnit.DAYS)),
    ],
)
def test_infer_legacy_custom_period(stored: int, expected: tuple[int, CustomUnit]) -> None:
    assert infer_legacy_custom_period(stored) == expected
