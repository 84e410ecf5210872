"""
The occurrence iterator.

Walks a RecurrenceSpec period by period: builds the day set of the period,
nulls the days rejected by the BY-rules, applies bysetpos once per period
and yields the surviving day x time combinations in order.
"""

from datetime import date, datetime, time
from enum import Enum
from typing import Iterator, Optional

from .clock import MAXYEAR, CalendarClock
from .masks import MaskBuilder, MonthInfo, YearInfo
from .options import RecurrenceSpec
from .shared import log_msg
from .weekday import Frequency

MAX_ORDINAL = date.max.toordinal()


class IterState(Enum):
    SEEKING = "seeking"
    EMITTING = "emitting"
    DONE = "done"


class OccurrenceIterator:
    """
    Iterate the occurrences of ``spec``.

    The iterator stops when ``count`` occurrences were produced, when a
    candidate or a whole period passes ``until``, when the clock moves past
    ``max_year`` or when the consumer closes it. It never raises.
    """

    def __init__(
        self,
        spec: RecurrenceSpec,
        masks: Optional[MaskBuilder] = None,
        max_year: int = MAXYEAR,
    ):
        self.spec = spec
        self.masks = masks if masks is not None else MaskBuilder(spec)
        self.max_year = max_year
        self.state = IterState.SEEKING
        self.total = 0

    def __iter__(self) -> Iterator[datetime]:
        return self._generate()

    def _generate(self) -> Iterator[datetime]:
        spec = self.spec
        if spec.is_empty:
            self.state = IterState.DONE
            return
        clock = CalendarClock.from_datetime(spec.start, self.max_year)
        timeset = self._initial_timeset(clock)
        remaining = spec.count
        try:
            while True:
                self.state = IterState.SEEKING
                info = self.masks.year_info(clock.year)
                month_info = self.masks.month_info(clock.year, clock.month)
                dayset, start, end = self.masks.dayset(clock.year, clock.month, clock.day)
                if spec.until is not None and info.ordinal_of_jan1 + start > spec.until.toordinal():
                    return
                dayset, filtered = self._filter(dayset, start, end, info, month_info)

                self.state = IterState.EMITTING
                for res in self._period(dayset, start, end, timeset, info):
                    if spec.until is not None and res > spec.until:
                        return
                    if res < spec.start:
                        continue
                    self.total += 1
                    yield spec.localize(res)
                    if remaining is not None:
                        remaining -= 1
                        if not remaining:
                            return

                self.state = IterState.SEEKING
                if not clock.advance(spec, filtered):
                    log_msg(
                        f"Stopped iterating {spec.freq.name} rule at "
                        f"{clock.year:04d}-{clock.month:02d} after {self.total} occurrences."
                    )
                    return
                if spec.freq >= Frequency.HOURLY:
                    timeset = self._slot_timeset(clock)
        finally:
            self.state = IterState.DONE

    def _initial_timeset(self, clock: CalendarClock) -> tuple:
        spec = self.spec
        if spec.freq < Frequency.HOURLY:
            return spec.timeset
        if (
            (spec.byhour and clock.hour not in spec.byhour)
            or (spec.freq >= Frequency.MINUTELY and spec.byminute and clock.minute not in spec.byminute)
            or (spec.freq >= Frequency.SECONDLY and spec.bysecond and clock.second not in spec.bysecond)
        ):
            return ()
        return self._slot_timeset(clock)

    def _slot_timeset(self, clock: CalendarClock) -> tuple:
        spec = self.spec
        if spec.freq == Frequency.HOURLY:
            return tuple(
                sorted(time(clock.hour, m, s) for m in spec.byminute for s in spec.bysecond)
            )
        if spec.freq == Frequency.MINUTELY:
            return tuple(time(clock.hour, clock.minute, s) for s in spec.bysecond)
        return (time(clock.hour, clock.minute, clock.second),)

    def _filter(
        self,
        dayset: list,
        start: int,
        end: int,
        info: YearInfo,
        month_info: Optional[MonthInfo],
    ) -> tuple[list, bool]:
        """Return a copy of ``dayset`` with rejected days set to None."""
        kept = list(dayset)
        filtered = False
        for i in dayset[start:end]:
            if i is not None and not self._matches(i, info, month_info):
                kept[i] = None
                filtered = True
        return kept, filtered

    def _matches(self, i: int, info: YearInfo, month_info: Optional[MonthInfo]) -> bool:
        spec = self.spec
        if spec.bymonth and info.month_of_day[i] not in spec.bymonth:
            return False
        if spec.byweekno and not info.week_number_membership[i]:
            return False
        if spec.byweekday and info.weekday_of_day[i] not in spec.byweekday:
            return False
        if month_info is not None and not month_info.nth_weekday_membership[i]:
            return False
        if spec.byeaster and not info.easter_membership[i]:
            return False
        if (spec.bymonthday or spec.bynmonthday) and (
            info.day_of_month[i] not in spec.bymonthday
            and info.negative_day_of_month[i] not in spec.bynmonthday
        ):
            return False
        if spec.byyearday:
            length = info.year_length
            if i < length:
                forward, backward = i + 1, i - length
            else:
                # days borrowed from next year
                forward, backward = i + 1 - length, i - length - info.next_year_length
            if forward not in spec.byyearday and backward not in spec.byyearday:
                return False
        return True

    def _period(self, dayset: list, start: int, end: int, timeset: tuple, info: YearInfo):
        """Yield the candidates of one period in chronological order."""
        days = [i for i in dayset[start:end] if i is not None]
        days = [i for i in days if info.ordinal_of_jan1 + i <= MAX_ORDINAL]
        if self.spec.bysetpos and timeset:
            picked = []
            for pos in self.spec.bysetpos:
                daypos, timepos = divmod(pos if pos < 0 else pos - 1, len(timeset))
                try:
                    i = days[daypos]
                    slot = timeset[timepos]
                except IndexError:
                    continue
                res = datetime.combine(date.fromordinal(info.ordinal_of_jan1 + i), slot)
                if res not in picked:
                    picked.append(res)
            yield from sorted(picked)
            return
        for i in days:
            day = date.fromordinal(info.ordinal_of_jan1 + i)
            for slot in timeset:
                yield datetime.combine(day, slot)
