# src/sakutto_task/tasks/time_hint.py

"""
Extract a time of day embedded in a task title.

Used only for ordering a day's task list ("9:00 洗濯" sorts before "14時 会議").
Recognized forms, tried in order (first validated match wins):

1. "9:00", "14:30"            (full-width digits are normalized first)
2. "9時30分"
3. "9時"                      (not followed by another digit; minutes = 0)
4. "十時", "十時半", "二十三時十五分", "十時30分"
5. "１４２５"                  (four contiguous full-width digits as HHMM)
6. "９時３０分"                (full-width digits with 時/分)

A candidate with hour outside 0..23 or minute outside 0..59 is rejected and the
next form is tried. Nothing found -> None.
"""

from __future__ import annotations

import re

_FULLWIDTH_DIGITS = str.maketrans("０１２３４５６７８９", "0123456789")

_KANJI_DIGITS = {
    "一": 1,
    "二": 2,
    "三": 3,
    "四": 4,
    "五": 5,
    "六": 6,
    "七": 7,
    "八": 8,
    "九": 9,
}

_KANJI = "一二三四五六七八九十"

# ASCII word boundaries: CJK characters next to the digits still count as a boundary.
_RE_COLON = re.compile(r"\b([0-9]{1,2}):([0-9]{2})\b", re.ASCII)
_RE_HOUR_MINUTE = re.compile(r"([0-9]{1,2})時([0-9]{1,2})分")
_RE_HOUR_ONLY = re.compile(r"([0-9]{1,2})時(?![0-9])")
_RE_KANJI = re.compile(rf"([{_KANJI}]+)時(?:(半)|([0-9]{{1,2}}|[{_KANJI}]+)分)?")
_RE_FULLWIDTH_HHMM = re.compile(r"[０-９]{4}")
_RE_FULLWIDTH_HOUR_MINUTE = re.compile(r"([０-９]{1,2})時([０-９]{1,2})分")


def to_half_width(text: str) -> str:
    return text.translate(_FULLWIDTH_DIGITS)


def kanji_to_int(text: str) -> int | None:
    """Convert 一..九十九 (e.g. 九, 十, 十五, 二十, 二十三) to an int."""
    if not text:
        return None
    if "十" not in text:
        return _KANJI_DIGITS.get(text) if len(text) == 1 else None

    tens_s, _, ones_s = text.partition("十")
    if len(tens_s) > 1 or len(ones_s) > 1:
        return None

    tens = _KANJI_DIGITS.get(tens_s) if tens_s else 1
    ones = _KANJI_DIGITS.get(ones_s) if ones_s else 0
    if tens is None or ones is None:
        return None
    return tens * 10 + ones


def _minutes(hour: int | None, minute: int | None) -> int | None:
    if hour is None or minute is None:
        return None
    if 0 <= hour <= 23 and 0 <= minute <= 59:
        return hour * 60 + minute
    return None


def _kanji_candidate(m: re.Match[str]) -> int | None:
    hour = kanji_to_int(m.group(1))
    if m.group(2):
        return _minutes(hour, 30)
    raw_minute = m.group(3)
    if raw_minute is None:
        return _minutes(hour, 0)
    minute = int(raw_minute) if raw_minute.isascii() else kanji_to_int(raw_minute)
    return _minutes(hour, minute)


def extract_time_hint(title: str) -> int | None:
    """Return minutes since midnight for the first time found in `title`, else None."""
    if not title:
        return None

    normalized = to_half_width(title)

    m = _RE_COLON.search(normalized)
    if m:
        found = _minutes(int(m.group(1)), int(m.group(2)))
        if found is not None:
            return found

    m = _RE_HOUR_MINUTE.search(normalized)
    if m:
        found = _minutes(int(m.group(1)), int(m.group(2)))
        if found is not None:
            return found

    m = _RE_HOUR_ONLY.search(normalized)
    if m:
        found = _minutes(int(m.group(1)), 0)
        if found is not None:
            return found

    m = _RE_KANJI.search(normalized)
    if m:
        found = _kanji_candidate(m)
        if found is not None:
            return found

    m = _RE_FULLWIDTH_HHMM.search(title)
    if m:
        digits = to_half_width(m.group(0))
        found = _minutes(int(digits[:2]), int(digits[2:]))
        if found is not None:
            return found

    m = _RE_FULLWIDTH_HOUR_MINUTE.search(title)
    if m:
        found = _minutes(int(to_half_width(m.group(1))), int(to_half_width(m.group(2))))
        if found is not None:
            return found

    return None


def has_time_hint(title: str) -> bool:
    return extract_time_hint(title) is not None
