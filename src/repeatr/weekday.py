import re
from enum import IntEnum

from .errors import ValidationError


class Frequency(IntEnum):
    YEARLY = 0
    MONTHLY = 1
    WEEKLY = 2
    DAILY = 3
    HOURLY = 4
    MINUTELY = 5
    SECONDLY = 6

    @classmethod
    def coerce(cls, value) -> "Frequency":
        """
        Accept a Frequency, its integer value or its name ('weekly', 'WEEKLY').
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls[value.strip().upper()]
            except KeyError:
                raise ValidationError(f"'{value}' is not a supported frequency", "freq")
        if isinstance(value, int) and not isinstance(value, bool):
            try:
                return cls(value)
            except ValueError:
                raise ValidationError(f"{value} is not a supported frequency", "freq")
        raise ValidationError(f"{value!r} is not a supported frequency", "freq")


YEARLY = Frequency.YEARLY
MONTHLY = Frequency.MONTHLY
WEEKLY = Frequency.WEEKLY
DAILY = Frequency.DAILY
HOURLY = Frequency.HOURLY
MINUTELY = Frequency.MINUTELY
SECONDLY = Frequency.SECONDLY

WEEKDAY_CODES = ("MO", "TU", "WE", "TH", "FR", "SA", "SU")
WEEKDAY_PATTERN = re.compile(r"^([+-]?\d{1,2})?(MO|TU|WE|TH|FR|SA|SU)$")


class Weekday:
    """
    A day of the week (Monday=0) with an optional nonzero ordinal ``n``:
    ``TU(2)`` is the 2nd Tuesday of the enclosing period, ``FR(-1)`` the
    last Friday.
    """

    __slots__ = ("weekday", "n")

    def __init__(self, weekday: int, n: int | None = None):
        if not isinstance(weekday, int) or not 0 <= weekday <= 6:
            raise ValidationError(f"{weekday!r} is not a weekday index in 0 ... 6", "byweekday")
        if n == 0:
            raise ValidationError("a weekday ordinal cannot be 0", "byweekday")
        self.weekday = weekday
        self.n = n

    def __call__(self, n: int | None) -> "Weekday":
        if n == self.n:
            return self
        return self.__class__(self.weekday, n)

    def __eq__(self, other):
        if not isinstance(other, Weekday):
            return NotImplemented
        return self.weekday == other.weekday and self.n == other.n

    def __hash__(self):
        return hash((self.weekday, self.n))

    def __repr__(self):
        code = WEEKDAY_CODES[self.weekday]
        if not self.n:
            return code
        return f"{self.n:+d}{code}"

    __str__ = __repr__

    @classmethod
    def from_str(cls, value: str) -> "Weekday":
        """Parse 'MO', '+2TU', '2TU' or '-1FR'."""
        match = WEEKDAY_PATTERN.match(value.strip().upper())
        if not match:
            raise ValidationError(
                f"'{value}' is not a weekday from {', '.join(WEEKDAY_CODES)}, "
                "possibly prepended with a nonzero integer",
                "byweekday",
            )
        n = int(match.group(1)) if match.group(1) else None
        return cls(WEEKDAY_CODES.index(match.group(2)), n)


MO, TU, WE, TH, FR, SA, SU = WEEKDAYS = tuple(Weekday(i) for i in range(7))


def coerce_weekday(value) -> Weekday:
    if isinstance(value, Weekday):
        return value
    if isinstance(value, str):
        return Weekday.from_str(value)
    if isinstance(value, int) and not isinstance(value, bool):
        return Weekday(value)
    raise ValidationError(f"{value!r} is not a weekday", "byweekday")
