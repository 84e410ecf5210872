"""
Per-year and per-month classification masks.

Every array is indexed by the 0-based day of the year and runs 7 days past
the end of the year so that a weekly period straddling New Year can be
classified without consulting the following year.
"""

from dataclasses import dataclass
from datetime import date
from typing import Optional

from .clock import is_leap
from .weekday import Frequency


def _month_template(leap: bool) -> tuple:
    lengths = (31, 29 if leap else 28, 31, 30, 31, 30, 31, 31, 30, 31, 30, 31)
    months, days, ndays = [], [], []
    for month, length in enumerate(lengths, start=1):
        months.extend([month] * length)
        days.extend(range(1, length + 1))
        ndays.extend(range(-length, 0))
    # the extra week belongs to January of the next year
    months.extend([1] * 7)
    days.extend(range(1, 8))
    ndays.extend(range(-31, -24))
    ranges = [0]
    for length in lengths:
        ranges.append(ranges[-1] + length)
    return tuple(months), tuple(days), tuple(ndays), tuple(ranges)


M365MASK, MDAY365MASK, NMDAY365MASK, M365RANGE = _month_template(False)
M366MASK, MDAY366MASK, NMDAY366MASK, M366RANGE = _month_template(True)
WDAYMASK = (0, 1, 2, 3, 4, 5, 6) * 55


def easter(year: int) -> date:
    """Easter Sunday of ``year`` (anonymous Gregorian algorithm)."""
    a = year % 19
    b, c = divmod(year, 100)
    d, e = divmod(b, 4)
    f = (b + 8) // 25
    g = (b - f + 1) // 3
    h = (19 * a + b - d - g + 15) % 30
    i, k = divmod(c, 4)
    l = (32 + 2 * e + 2 * i - h - k) % 7
    m = (a + 11 * h + 22 * l) // 451
    month, day = divmod(h + l - 7 * m + 114, 31)
    return date(year, month, day + 1)


@dataclass(frozen=True)
class YearInfo:
    year: int
    year_length: int
    next_year_length: int
    ordinal_of_jan1: int
    weekday_of_jan1: int
    month_ranges: tuple
    month_of_day: tuple
    day_of_month: tuple
    negative_day_of_month: tuple
    weekday_of_day: tuple
    week_number_membership: Optional[tuple] = None
    easter_membership: Optional[tuple] = None


@dataclass(frozen=True)
class MonthInfo:
    year: int
    month: int
    nth_weekday_membership: tuple


def _first_week_offset(year_weekday: int, wkst: int) -> int:
    return (7 - year_weekday + wkst) % 7


def _week_numbers(year: int, year_length: int, year_weekday: int, weekdays: tuple, spec) -> tuple:
    """
    Mark the days belonging to the weeks listed in ``spec.byweekno``.

    Week 1 is the first week, starting on ``wkst``, with at least 4 days in
    the year. Days of the year that still belong to the previous year's last
    week, and days at the end of the year that already belong to next year's
    week 1, are marked when those weeks are requested.
    """
    wkst = spec.wkst
    mask = [0] * (year_length + 7)
    first_wkst = no1_wkst = _first_week_offset(year_weekday, wkst)
    if no1_wkst >= 4:
        no1_wkst = 0
        # the year plus the days borrowed from last year
        week_year_length = year_length + (year_weekday - wkst) % 7
    else:
        week_year_length = year_length - no1_wkst
    div, mod = divmod(week_year_length, 7)
    num_weeks = div + mod // 4

    def mark_week(i):
        for _ in range(7):
            mask[i] = 1
            i += 1
            if weekdays[i] == wkst:
                break

    for n in spec.byweekno:
        if n < 0:
            n += num_weeks + 1
        if not 0 < n <= num_weeks:
            continue
        if n > 1:
            i = no1_wkst + (n - 1) * 7
            if no1_wkst != first_wkst:
                i -= 7 - first_wkst
        else:
            i = no1_wkst
        mark_week(i)

    if 1 in spec.byweekno:
        # week 1 of next year may start before this year ends
        i = no1_wkst + num_weeks * 7
        if no1_wkst != first_wkst:
            i -= 7 - first_wkst
        if i < year_length:
            mark_week(i)

    if no1_wkst and year > 1:
        # the first days of the year are in last year's last week
        if -1 in spec.byweekno:
            last_num_weeks = -1
        else:
            last_weekday = date(year - 1, 1, 1).weekday()
            last_no1_wkst = _first_week_offset(last_weekday, wkst)
            last_year_length = 365 + is_leap(year - 1)
            if last_no1_wkst >= 4:
                last_num_weeks = 52 + (last_year_length + (last_weekday - wkst) % 7) % 7 // 4
            else:
                last_num_weeks = 52 + (year_length - no1_wkst) % 7 // 4
        if last_num_weeks in spec.byweekno:
            for i in range(no1_wkst):
                mask[i] = 1
    return tuple(mask)


def _easter_days(year: int, year_length: int, ordinal: int, offsets: tuple) -> tuple:
    mask = [0] * (year_length + 7)
    day = easter(year).toordinal() - ordinal
    for offset in offsets:
        i = day + offset
        if 0 <= i < len(mask):
            mask[i] = 1
    return tuple(mask)


def build_year_info(year: int, spec) -> YearInfo:
    year_length = 365 + is_leap(year)
    jan1 = date(year, 1, 1)
    ordinal = jan1.toordinal()
    year_weekday = jan1.weekday()
    if year_length == 365:
        months, days, ndays, ranges = M365MASK, MDAY365MASK, NMDAY365MASK, M365RANGE
    else:
        months, days, ndays, ranges = M366MASK, MDAY366MASK, NMDAY366MASK, M366RANGE
    weekdays = WDAYMASK[year_weekday:]
    week_numbers = None
    if spec.byweekno:
        week_numbers = _week_numbers(year, year_length, year_weekday, weekdays, spec)
    easter_days = None
    if spec.byeaster:
        easter_days = _easter_days(year, year_length, ordinal, spec.byeaster)
    return YearInfo(
        year=year,
        year_length=year_length,
        next_year_length=365 + is_leap(year + 1),
        ordinal_of_jan1=ordinal,
        weekday_of_jan1=year_weekday,
        month_ranges=ranges,
        month_of_day=months,
        day_of_month=days,
        negative_day_of_month=ndays,
        weekday_of_day=weekdays,
        week_number_membership=week_numbers,
        easter_membership=easter_days,
    )


def build_month_info(year: int, month: int, spec, year_info: YearInfo) -> Optional[MonthInfo]:
    """
    Mark the days matching the nth-weekday rules for the ranges a period
    covers: each selected month, the whole year for a yearly rule without
    ``bymonth``, or the current month for a monthly rule.
    """
    if not spec.bynweekday:
        return None
    ranges = year_info.month_ranges
    if spec.freq == Frequency.YEARLY:
        if spec.bymonth:
            spans = [(ranges[m - 1], ranges[m]) for m in spec.bymonth]
        else:
            spans = [(0, year_info.year_length)]
    elif spec.freq == Frequency.MONTHLY:
        spans = [(ranges[month - 1], ranges[month])]
    else:
        return None
    weekdays = year_info.weekday_of_day
    mask = [0] * year_info.year_length
    for first, end in spans:
        last = end - 1
        for wday, n in spec.bynweekday:
            if n < 0:
                i = last + (n + 1) * 7
                i -= (weekdays[i] - wday) % 7
            else:
                i = first + (n - 1) * 7
                i += (7 - weekdays[i] + wday) % 7
            if first <= i <= last:
                mask[i] = 1
    return MonthInfo(year=year, month=month, nth_weekday_membership=tuple(mask))


# ── day sets: (slots, start, end) with one slot per day of the year ──


def year_dayset(info: YearInfo, year: int, month: int, day: int, wkst: int):
    return list(range(info.year_length)), 0, info.year_length


def month_dayset(info: YearInfo, year: int, month: int, day: int, wkst: int):
    slots = [None] * info.year_length
    start, end = info.month_ranges[month - 1], info.month_ranges[month]
    for i in range(start, end):
        slots[i] = i
    return slots, start, end


def week_dayset(info: YearInfo, year: int, month: int, day: int, wkst: int):
    # may run into the 7 extra days past the end of the year
    slots = [None] * (info.year_length + 7)
    i = date(year, month, day).toordinal() - info.ordinal_of_jan1
    start = i
    for _ in range(7):
        slots[i] = i
        i += 1
        if info.weekday_of_day[i] == wkst:
            break
    return slots, start, i


def day_dayset(info: YearInfo, year: int, month: int, day: int, wkst: int):
    slots = [None] * info.year_length
    i = date(year, month, day).toordinal() - info.ordinal_of_jan1
    slots[i] = i
    return slots, i, i + 1


DAYSETS = {
    Frequency.YEARLY: year_dayset,
    Frequency.MONTHLY: month_dayset,
    Frequency.WEEKLY: week_dayset,
    Frequency.DAILY: day_dayset,
    Frequency.HOURLY: day_dayset,
    Frequency.MINUTELY: day_dayset,
    Frequency.SECONDLY: day_dayset,
}


class MaskBuilder:
    """Builds and remembers the masks of the years and months a rule visits."""

    def __init__(self, spec):
        self.spec = spec
        self._years: dict[int, YearInfo] = {}
        self._months: dict[tuple, Optional[MonthInfo]] = {}

    def year_info(self, year: int) -> YearInfo:
        info = self._years.get(year)
        if info is None:
            info = self._years[year] = build_year_info(year, self.spec)
        return info

    def month_info(self, year: int, month: int) -> Optional[MonthInfo]:
        spec = self.spec
        if not spec.bynweekday or spec.freq > Frequency.MONTHLY:
            return None
        # a yearly rule covers the same ranges whatever month it sits in
        key = (year, month if spec.freq == Frequency.MONTHLY else 0)
        if key not in self._months:
            self._months[key] = build_month_info(year, month, spec, self.year_info(year))
        return self._months[key]

    def dayset(self, year: int, month: int, day: int):
        info = self.year_info(year)
        return DAYSETS[self.spec.freq](info, year, month, day, self.spec.wkst)
