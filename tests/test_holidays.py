# tests/test_holidays.py

from __future__ import annotations

from datetime import date

import pytest

from sakutto_task.tasks.holidays import (
    HolidayType,
    autumn_equinox,
    get_holiday,
    holiday_table,
    is_holiday,
    nth_monday,
    spring_equinox,
)


@pytest.mark.parametrize(
    ("d", "name"),
    [
        (date(2024, 1, 1), "元日"),
        (date(2024, 1, 8), "成人の日"),
        (date(2024, 2, 23), "天皇誕生日"),
        (date(2024, 3, 20), "春分の日"),
        (date(2024, 7, 15), "海の日"),
        (date(2024, 9, 16), "敬老の日"),
        (date(2024, 9, 22), "秋分の日"),
        (date(2024, 10, 14), "スポーツの日"),
        (date(2024, 11, 23), "勤労感謝の日"),
    ],
)
def test_national_holidays_2024(d: date, name: str) -> None:
    h = holiday_table(2024, 1)[d]
    assert h.name == name
    assert h.type == HolidayType.NATIONAL


def test_bank_holidays() -> None:
    table = holiday_table(2024, 1)
    assert table[date(2024, 1, 2)].type == HolidayType.BANK
    assert table[date(2024, 1, 3)].type == HolidayType.BANK


def test_table_covers_requested_range_only() -> None:
    table = holiday_table(2024, 1)
    assert date(2025, 1, 1) in table
    assert date(2026, 1, 1) not in table
    assert date(2023, 1, 1) not in table
    assert date(2024, 1, 4) not in table


def test_table_is_read_only() -> None:
    table = holiday_table(2024, 1)
    with pytest.raises(TypeError):
        table[date(2024, 6, 1)] = table[date(2024, 1, 1)]  # type: ignore[index]


def test_nth_monday() -> None:
    assert nth_monday(2024, 1, 2) == date(2024, 1, 8)
    assert nth_monday(2024, 7, 1) == date(2024, 7, 1)
    assert nth_monday(2025, 10, 2) == date(2025, 10, 13)


def test_equinoxes() -> None:
    assert spring_equinox(2025) == date(2025, 3, 20)
    assert autumn_equinox(2025) == date(2025, 9, 23)
    assert autumn_equinox(2026) == date(2026, 9, 23)


def test_lookup_uses_current_year_table() -> None:
    new_year = date(date.today().year, 1, 1)
    holiday = get_holiday(new_year)
    assert holiday is not None and holiday.name == "元日"
    assert is_holiday(new_year) is True
    assert is_holiday(date(date.today().year, 6, 10)) is False
