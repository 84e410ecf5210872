"""
Editing handle for the ``repeat:`` value of a task.

Every editor returns a new Repeat with ``version`` incremented; the rule a
Repeat wraps is never changed in place, so anything holding the old handle
can compare versions to see that an edit happened.
"""

from datetime import datetime
from typing import Iterable, Optional

from .errors import ValidationError
from .rule import Rule
from .weekday import Frequency, Weekday, coerce_weekday

EDITABLE_FREQUENCIES = (
    Frequency.YEARLY,
    Frequency.MONTHLY,
    Frequency.WEEKLY,
    Frequency.DAILY,
)


class Repeat:
    def __init__(self, rule: Rule, version: int = 0):
        self.rule = rule
        self.version = version

    @classmethod
    def from_string(cls, value: str, start: Optional[datetime] = None, tzid: Optional[str] = None) -> "Repeat":
        """
        Load a stored value: English ('every week on Monday') or the
        canonical form ('RRULE:FREQ=WEEKLY;BYDAY=MO').
        """
        text = value.strip()
        if text.lower().startswith("every"):
            options = {"start": start, "tzid": tzid}
            return cls(Rule.from_text(text, **{k: v for k, v in options.items() if v is not None}))
        return cls(Rule.from_string(text, start=start, tzid=tzid))

    def __repr__(self):
        return f"<Repeat v{self.version} {self.rule.to_string()!r}>"

    def _edit(self, **changes) -> "Repeat":
        return Repeat(self.rule.replace(**changes), self.version + 1)

    def _given(self, key: str) -> bool:
        return key in self.rule.spec.options

    # ── reading ──

    def is_valid(self) -> bool:
        return self.rule.to_string() != ""

    def next(self, count: int) -> list[datetime]:
        """The first ``count`` occurrences."""
        return self.rule.all(lambda dt, n: n < count)

    def to_text(self) -> str:
        if self.rule.is_fully_convertible_to_text():
            return self.rule.to_text()
        return self.rule.to_string()

    def to_string(self) -> str:
        return self.rule.to_string()

    def as_rule(self) -> Rule:
        """The rule this handle turns into once its text is stored and loaded."""
        spec = self.rule.spec
        return Repeat.from_string(self.to_text(), start=spec.start, tzid=spec.tzid).rule

    @property
    def frequency(self) -> Frequency:
        return self.rule.spec.freq

    @property
    def interval(self) -> int:
        return self.rule.spec.interval

    @property
    def days_of_week(self) -> list[int]:
        if not self._given("byweekday"):
            return []
        spec = self.rule.spec
        return sorted(set(spec.byweekday) | {d for d, _ in spec.bynweekday})

    @property
    def day_of_month(self) -> Optional[int]:
        if not self._given("bymonthday"):
            return None
        spec = self.rule.spec
        days = spec.bymonthday + spec.bynmonthday
        return days[0] if days else None

    @property
    def last_day_of_month(self) -> bool:
        return self._given("bymonthday") and -1 in self.rule.spec.bynmonthday

    @property
    def weekdays_of_month(self) -> list[Weekday]:
        return [Weekday(d, n) for d, n in self.rule.spec.bynweekday]

    @property
    def months_of_year(self) -> list[int]:
        if not self._given("bymonth"):
            return []
        return list(self.rule.spec.bymonth)

    # ── editing ──

    def with_frequency(self, frequency) -> "Repeat":
        """Change the frequency; the month and day selections are cleared."""
        freq = Frequency.coerce(frequency)
        if freq not in EDITABLE_FREQUENCIES:
            raise ValidationError(f"Invalid frequency {freq.name} requested", "freq")
        return self._edit(freq=freq, bymonth=None, bymonthday=None, byweekday=None)

    def with_interval(self, n: Optional[int]) -> "Repeat":
        # never 0 or None
        n = n or 1
        if n == self.interval:
            return self
        return self._edit(interval=n)

    def with_days_of_week(self, days: Iterable) -> "Repeat":
        weekdays = [Weekday(coerce_weekday(d).weekday) for d in days]
        return self._edit(byweekday=weekdays or None)

    def with_day_of_month(self, day: int) -> "Repeat":
        return self._edit(bymonthday=[day], byweekday=None)

    def with_last_day_of_month(self, last: bool = True) -> "Repeat":
        return self._edit(bymonthday=[-1] if last else None)

    def with_weekdays_of_month(self, selected: Iterable) -> "Repeat":
        """
        ``selected`` holds ordinal weekdays: Weekday objects such as TU(2)
        or ``(n, weekday)`` pairs such as ``(2, 1)``.
        """
        weekdays = []
        for item in selected:
            if isinstance(item, tuple):
                n, day = item
                weekdays.append(Weekday(coerce_weekday(day).weekday, int(n)))
            else:
                weekdays.append(coerce_weekday(item))
        return self._edit(byweekday=weekdays or None, bymonthday=None)

    def with_months_of_year(self, months: Iterable[int]) -> "Repeat":
        return self._edit(bymonth=list(months) or None)
