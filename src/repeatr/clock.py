"""
Calendar arithmetic for the occurrence iterator.

The clock holds the calendar fields of the period being visited and moves
them forward by one period of the rule's frequency. Day overflow is never
clamped to the end of a month: the excess rolls forward into the following
months, so "every 31st" simply has no candidate in a 30-day month.
"""

from dataclasses import dataclass
from datetime import date, datetime
from math import gcd

from .weekday import Frequency

MAXYEAR = 9999
MONTH_DAYS = (31, 28, 31, 30, 31, 30, 31, 31, 30, 31, 30, 31)
SECONDS_PER_DAY = 86400
UNIT_SECONDS = {
    Frequency.HOURLY: 3600,
    Frequency.MINUTELY: 60,
    Frequency.SECONDLY: 1,
}


def is_leap(year: int) -> bool:
    return year % 4 == 0 and (year % 100 != 0 or year % 400 == 0)


def days_in_month(year: int, month: int) -> int:
    return MONTH_DAYS[month - 1] + (month == 2 and is_leap(year))


@dataclass
class CalendarClock:
    year: int
    month: int
    day: int
    hour: int = 0
    minute: int = 0
    second: int = 0
    weekday: int = 0
    max_year: int = MAXYEAR

    @classmethod
    def from_datetime(cls, dt: datetime, max_year: int = MAXYEAR) -> "CalendarClock":
        return cls(
            dt.year,
            dt.month,
            dt.day,
            dt.hour,
            dt.minute,
            dt.second,
            dt.weekday(),
            max_year,
        )

    def date(self) -> date:
        return date(self.year, self.month, self.day)

    def advance(self, spec, filtered: bool = False) -> bool:
        """
        Move to the next period of ``spec``.

        ``filtered`` tells sub-daily frequencies that the current day yielded
        nothing, so the search may skip to the day's last step. Returns False
        when iteration has to stop: the year went past ``max_year`` or no
        reachable time slot satisfies the sub-daily BY-rules.
        """
        freq = spec.freq
        interval = spec.interval
        if freq == Frequency.YEARLY:
            self.year += interval
            return self.year <= self.max_year
        if freq == Frequency.MONTHLY:
            self.month += interval
            if self.month > 12:
                div, mod = divmod(self.month - 1, 12)
                self.month = mod + 1
                self.year += div
            return self.year <= self.max_year
        if freq == Frequency.WEEKLY:
            if spec.wkst > self.weekday:
                self.day += -(self.weekday + 1 + (6 - spec.wkst)) + interval * 7
            else:
                self.day += -(self.weekday - spec.wkst) + interval * 7
            self.weekday = spec.wkst
            return self.fix_day()
        if freq == Frequency.DAILY:
            self.day += interval
            self.weekday = (self.weekday + interval) % 7
            return self.fix_day()
        if not self._next_slot(spec, filtered):
            return False
        return self.fix_day()

    def _next_slot(self, spec, filtered: bool) -> bool:
        """
        Step the time of day by ``interval`` units until the hour, minute and
        second satisfy every BY-rule at or above the frequency's unit.
        """
        freq = spec.freq
        step = spec.interval * UNIT_SECONDS[freq]
        seconds = self.hour * 3600 + self.minute * 60 + self.second
        if filtered:
            # jump to one step before the next day
            seconds += ((SECONDS_PER_DAY - 1 - seconds) // step) * step

        # the time of day repeats after this many steps
        cycle = SECONDS_PER_DAY // gcd(step, SECONDS_PER_DAY)
        for _ in range(cycle):
            seconds += step
            days, seconds = divmod(seconds, SECONDS_PER_DAY)
            self.day += days
            self.weekday = (self.weekday + days) % 7
            self.hour, rest = divmod(seconds, 3600)
            self.minute, self.second = divmod(rest, 60)
            if spec.byhour and self.hour not in spec.byhour:
                continue
            if freq >= Frequency.MINUTELY and spec.byminute and self.minute not in spec.byminute:
                continue
            if freq >= Frequency.SECONDLY and spec.bysecond and self.second not in spec.bysecond:
                continue
            return True
        return False

    def fix_day(self) -> bool:
        """
        Roll an overflowing day forward month by month. Returns False once
        the year passes ``max_year``.
        """
        if self.day <= 28:
            return True
        length = days_in_month(self.year, self.month)
        while self.day > length:
            self.day -= length
            self.month += 1
            if self.month == 13:
                self.month = 1
                self.year += 1
                if self.year > self.max_year:
                    return False
            length = days_in_month(self.year, self.month)
        return True
