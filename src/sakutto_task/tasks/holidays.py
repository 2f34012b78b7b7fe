# src/sakutto_task/tasks/holidays.py

"""
Japanese holiday lookup for calendar rendering.

The table is generated once per (base_year, years_ahead) and cached for the
life of the process; lookups are plain dict reads.
"""

from __future__ import annotations

import functools
from dataclasses import dataclass
from datetime import date, timedelta
from enum import StrEnum
from types import MappingProxyType
from typing import Mapping

DEFAULT_YEARS_AHEAD = 20


class HolidayType(StrEnum):
    NATIONAL = "national"
    BANK = "bank"


@dataclass(slots=True, frozen=True)
class Holiday:
    date: date
    name: str
    type: HolidayType


def nth_monday(year: int, month: int, n: int) -> date:
    first = date(year, month, 1)
    days_until_monday = (0 - first.weekday()) % 7
    return first + timedelta(days=days_until_monday + (n - 1) * 7)


def _equinox_day(year: int, base: float) -> int:
    # Standard approximation, valid for 1980-2099.
    offset = year - 1980
    return int(base + 0.242194 * offset - offset // 4)


def spring_equinox(year: int) -> date:
    return date(year, 3, _equinox_day(year, 20.8431))


def autumn_equinox(year: int) -> date:
    return date(year, 9, _equinox_day(year, 23.2488))


def _holidays_for_year(year: int) -> list[Holiday]:
    national = HolidayType.NATIONAL
    return [
        Holiday(date(year, 1, 1), "元日", national),
        Holiday(date(year, 1, 2), "銀行休業日", HolidayType.BANK),
        Holiday(date(year, 1, 3), "銀行休業日", HolidayType.BANK),
        Holiday(nth_monday(year, 1, 2), "成人の日", national),
        Holiday(date(year, 2, 11), "建国記念の日", national),
        Holiday(date(year, 2, 23), "天皇誕生日", national),
        Holiday(spring_equinox(year), "春分の日", national),
        Holiday(date(year, 4, 29), "昭和の日", national),
        Holiday(date(year, 5, 3), "憲法記念日", national),
        Holiday(date(year, 5, 4), "みどりの日", national),
        Holiday(date(year, 5, 5), "こどもの日", national),
        Holiday(nth_monday(year, 7, 3), "海の日", national),
        Holiday(date(year, 8, 11), "山の日", national),
        Holiday(nth_monday(year, 9, 3), "敬老の日", national),
        Holiday(autumn_equinox(year), "秋分の日", national),
        Holiday(nth_monday(year, 10, 2), "スポーツの日", national),
        Holiday(date(year, 11, 3), "文化の日", national),
        Holiday(date(year, 11, 23), "勤労感謝の日", national),
    ]


@functools.cache
def holiday_table(base_year: int, years_ahead: int = DEFAULT_YEARS_AHEAD) -> Mapping[date, Holiday]:
    table: dict[date, Holiday] = {}
    for year in range(base_year, base_year + years_ahead + 1):
        for h in _holidays_for_year(year):
            table.setdefault(h.date, h)
    return MappingProxyType(table)


_BASE_YEAR = date.today().year


def get_holiday(d: date, *, years_ahead: int = DEFAULT_YEARS_AHEAD) -> Holiday | None:
    """Holiday on `d`, or None. Covers the current year through `years_ahead` years later."""
    return holiday_table(_BASE_YEAR, years_ahead).get(d)


def is_holiday(d: date, *, years_ahead: int = DEFAULT_YEARS_AHEAD) -> bool:
    return get_holiday(d, years_ahead=years_ahead) is not None
