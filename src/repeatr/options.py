"""
Resolution of sparse rule options into a complete RecurrenceSpec.

Users give as little as a frequency; everything the iterator needs is
derived here once, so nothing has to be guessed while iterating.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time, tzinfo
from math import gcd
from typing import Any, Mapping, Optional

from dateutil import tz

from .errors import (
    InvalidDateError,
    SetPositionError,
    UnknownOptionError,
    UnsupportedZoneError,
    ValidationError,
    WeekdayOrdinalError,
)
from .shared import integer, integer_list, log_msg, parse_compact, resolve_zone, zone_name
from .weekday import Frequency, Weekday, coerce_weekday

OPTION_KEYS = (
    "freq",
    "start",
    "interval",
    "count",
    "until",
    "wkst",
    "tzid",
    "bysetpos",
    "bymonth",
    "bymonthday",
    "byyearday",
    "byweekno",
    "byweekday",
    "byhour",
    "byminute",
    "bysecond",
    "byeaster",
)
ALIASES = {"dtstart": "start", "byday": "byweekday"}

# (min, max, zero allowed) for the integer BY-rules
INT_LIMITS = {
    "bymonth": (1, 12, False),
    "bymonthday": (-31, 31, False),
    "byyearday": (-366, 366, False),
    "byweekno": (-53, 53, False),
    "byhour": (0, 23, True),
    "byminute": (0, 59, True),
    "bysecond": (0, 59, True),
    "byeaster": (-366, 366, True),
}
NTH_LIMITS = {Frequency.MONTHLY: 5, Frequency.YEARLY: 53}


@dataclass(frozen=True)
class RecurrenceSpec:
    """
    A fully resolved recurrence rule.

    ``start`` and ``until`` are naive wall-clock datetimes; when the rule
    is zoned, ``tzinfo`` is attached to every occurrence. ``options`` holds
    the sparse input it was resolved from.
    """

    freq: Frequency
    start: datetime
    interval: int = 1
    count: Optional[int] = None
    until: Optional[datetime] = None
    wkst: int = 0
    tzid: Optional[str] = None
    tzinfo: Optional[tzinfo] = field(default=None, compare=False)
    bymonth: tuple = ()
    bymonthday: tuple = ()
    bynmonthday: tuple = ()
    byyearday: tuple = ()
    byweekno: tuple = ()
    byweekday: tuple = ()
    bynweekday: tuple = ()
    byhour: tuple = ()
    byminute: tuple = ()
    bysecond: tuple = ()
    byeaster: tuple = ()
    bysetpos: tuple = ()
    timeset: tuple = ()
    options: Mapping[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def is_finite(self) -> bool:
        return self.count is not None or self.until is not None

    @property
    def is_empty(self) -> bool:
        return self.interval == 0 or self.count == 0

    def localize(self, dt: datetime) -> datetime:
        """Attach the rule's zone to a wall-clock datetime."""
        if self.tzinfo is None:
            return dt
        return dt.replace(tzinfo=self.tzinfo)

    def to_wall(self, dt: datetime) -> datetime:
        """Express ``dt`` as naive wall-clock time in the rule's zone."""
        if dt.tzinfo is None:
            return dt
        if self.tzinfo is None:
            return dt.replace(tzinfo=None)
        return dt.astimezone(self.tzinfo).replace(tzinfo=None)

    def with_options(self, **changes) -> "RecurrenceSpec":
        """
        Return a new spec with ``changes`` applied to the original options.
        A value of None removes the option.
        """
        options = dict(self.options)
        for key, value in changes.items():
            key = ALIASES.get(key, key)
            if value is None:
                options.pop(key, None)
            else:
                options[key] = value
        return resolve_options(**options)


def normalize_options(options: Mapping[str, Any]) -> dict:
    """Map aliases, reject unknown keys and drop unset (None) values."""
    normalized = {}
    for key, value in options.items():
        name = ALIASES.get(key, key)
        if name not in OPTION_KEYS:
            raise UnknownOptionError(f"Unknown option '{key}'", key)
        if value is None:
            continue
        normalized[name] = value
    return normalized


def _coerce_datetime(value, key: str) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, time())
    if isinstance(value, str):
        try:
            return parse_compact(value)
        except (ValueError, OverflowError):
            raise InvalidDateError(f"{key}: '{value}' is not a valid date", key)
    raise InvalidDateError(f"{key}: {value!r} is not a date or datetime", key)


def _int_option(options: dict, key: str, error=ValidationError) -> Optional[tuple]:
    value = options.get(key)
    if value is None:
        return None
    lo, hi, zero = INT_LIMITS[key]
    ok, res = integer_list(value, lo, hi, zero, key)
    if not ok:
        raise error(res, key)
    return tuple(res)


def _weekday_option(options: dict) -> Optional[list]:
    value = options.get("byweekday")
    if value is None:
        return None
    if isinstance(value, str):
        value = [x for x in value.split(",") if x.strip()]
    elif isinstance(value, (int, Weekday)):
        value = [value]
    try:
        items = list(value)
    except TypeError:
        raise ValidationError(f"byweekday: {value!r} is not a weekday list", "byweekday")
    return [coerce_weekday(x) for x in items]


def _wkst_option(options: dict) -> int:
    value = options.get("wkst")
    if value is None:
        return 0
    return coerce_weekday(value).weekday


def _reachable(values: tuple, start: int, interval: int, base: int, key: str) -> tuple:
    """
    Keep the values a sub-daily counter starting at ``start`` and stepping
    by ``interval`` can actually reach modulo ``base``.
    """
    if interval == 0:
        return values
    step_gcd = gcd(interval, base)
    kept = tuple(v for v in values if step_gcd == 1 or (v - start) % step_gcd == 0)
    if not kept:
        raise ValidationError(
            f"{key}: none of {list(values)} is reachable with interval {interval}", key
        )
    return kept


def _sorted(values) -> tuple:
    return tuple(sorted(set(values or ())))


def zone_or_utc(tzid: Optional[str]):
    try:
        return resolve_zone(tzid)
    except UnsupportedZoneError as e:
        log_msg(f"{e}; occurrences will be computed in UTC.")
        return tz.UTC


def resolve_options(**options) -> RecurrenceSpec:
    """
    Turn sparse rule options into a RecurrenceSpec.

    Raises a ValidationError (or one of its subclasses) for unknown keys,
    invalid dates, out-of-range values, a bysetpos of 0 or beyond 366,
    weekday ordinals the frequency cannot honor and count together with
    until.
    """
    options = normalize_options(options)
    if "freq" not in options:
        raise ValidationError("A frequency is required", "freq")
    freq = Frequency.coerce(options["freq"])
    options["freq"] = freq

    # ── start and zone ──
    tzid = options.get("tzid")
    zone = zone_or_utc(tzid) if tzid is not None else None
    start = _coerce_datetime(options.get("start"), "start")
    if start is None:
        start = datetime.now()
        options["start"] = start.replace(microsecond=0)
    start = start.replace(microsecond=0)
    if start.tzinfo is not None:
        if tzid is None:
            zone = start.tzinfo
            tzid = zone_name(zone)
        start = start.astimezone(zone).replace(tzinfo=None) if zone else start.replace(tzinfo=None)

    # ── interval, count, until, wkst ──
    ok, interval = integer(options.get("interval", 1), 0, None, True, "interval")
    if not ok:
        raise ValidationError(interval, "interval")
    count = None
    if "count" in options:
        ok, count = integer(options["count"], 0, None, True, "count")
        if not ok:
            raise ValidationError(count, "count")
    until = _coerce_datetime(options.get("until"), "until")
    if until is not None and count is not None:
        raise ValidationError("count and until cannot both be given", "until")
    if until is not None and until.tzinfo is not None:
        until = until.astimezone(zone).replace(tzinfo=None) if zone else until.replace(tzinfo=None)
    wkst = _wkst_option(options)

    # ── BY-rules ──
    bysetpos = options.get("bysetpos")
    if bysetpos is not None:
        ok, res = integer_list(bysetpos, -366, 366, False, "bysetpos")
        if not ok:
            raise SetPositionError(
                f"{res}. bysetpos must be between 1 and 366, or between -366 and -1",
                "bysetpos",
            )
        bysetpos = tuple(res)
    bymonth = _int_option(options, "bymonth")
    bymonthday = _int_option(options, "bymonthday")
    byyearday = _int_option(options, "byyearday")
    byweekno = _int_option(options, "byweekno")
    byeaster = _int_option(options, "byeaster")
    byhour = _int_option(options, "byhour")
    byminute = _int_option(options, "byminute")
    bysecond = _int_option(options, "bysecond")
    weekdays = _weekday_option(options)

    if not (byweekno or byyearday or bymonthday or weekdays is not None or byeaster is not None):
        if freq == Frequency.YEARLY:
            if not bymonth:
                bymonth = (start.month,)
            bymonthday = (start.day,)
        elif freq == Frequency.MONTHLY:
            bymonthday = (start.day,)
        elif freq == Frequency.WEEKLY:
            weekdays = [Weekday(start.weekday())]

    byweekday = set()
    bynweekday = set()
    for wd in weekdays or ():
        if not wd.n or freq > Frequency.MONTHLY:
            byweekday.add(wd.weekday)
            continue
        limit = NTH_LIMITS[freq]
        if abs(wd.n) > limit:
            raise WeekdayOrdinalError(
                f"byweekday: {wd} cannot occur in a {freq.name.lower()} period; "
                f"ordinals must be within -{limit} ... {limit}",
                "byweekday",
            )
        bynweekday.add((wd.weekday, wd.n))

    if byhour is None:
        byhour = (start.hour,) if freq < Frequency.HOURLY else ()
    elif freq == Frequency.HOURLY:
        byhour = _reachable(byhour, start.hour, interval, 24, "byhour")
    if byminute is None:
        byminute = (start.minute,) if freq < Frequency.MINUTELY else ()
    elif freq == Frequency.MINUTELY:
        byminute = _reachable(byminute, start.minute, interval, 60, "byminute")
    if bysecond is None:
        bysecond = (start.second,) if freq < Frequency.SECONDLY else ()
    elif freq == Frequency.SECONDLY:
        bysecond = _reachable(bysecond, start.second, interval, 60, "bysecond")

    byhour, byminute, bysecond = _sorted(byhour), _sorted(byminute), _sorted(bysecond)
    timeset = ()
    if freq < Frequency.HOURLY:
        timeset = tuple(
            sorted(time(h, m, s) for h in byhour for m in byminute for s in bysecond)
        )

    return RecurrenceSpec(
        freq=freq,
        start=start,
        interval=interval,
        count=count,
        until=until,
        wkst=wkst,
        tzid=tzid,
        tzinfo=zone,
        bymonth=_sorted(bymonth),
        bymonthday=_sorted(x for x in bymonthday or () if x > 0),
        bynmonthday=_sorted(x for x in bymonthday or () if x < 0),
        byyearday=_sorted(byyearday),
        byweekno=_sorted(byweekno),
        byweekday=_sorted(byweekday),
        bynweekday=tuple(sorted(bynweekday)),
        byhour=byhour,
        byminute=byminute,
        bysecond=bysecond,
        byeaster=_sorted(byeaster),
        bysetpos=_sorted(bysetpos),
        timeset=timeset,
        options=options,
    )
