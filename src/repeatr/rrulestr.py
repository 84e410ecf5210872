"""
The canonical text form of rules and rule sets.

    DTSTART;TZID=Europe/Paris:20240101T090000
    RRULE:FREQ=WEEKLY;INTERVAL=2;COUNT=4;BYDAY=MO,WE

A single bare ``FREQ=...`` line is accepted as an RRULE.
"""

from datetime import datetime, timedelta
from typing import Optional, Union

from .clock import MAXYEAR
from .errors import ParseError
from .options import RecurrenceSpec, zone_or_utc
from .rule import Rule
from .ruleset import RuleSet
from .shared import fmt_compact, integer_list, log_msg, parse_compact, zone_name
from .weekday import WEEKDAY_CODES, Frequency, Weekday

# recognized but not supported (RFC 7529)
IGNORED_KEYS = ("RSCALE", "SKIP")


def _int(value: str) -> int:
    return int(value)


def _int_list(value: str) -> list[int]:
    ok, res = integer_list(value, None, None, True)
    if not ok:
        raise ValueError(res)
    return res


def _weekdays(value: str) -> list[Weekday]:
    return [Weekday.from_str(x) for x in value.split(",") if x.strip()]


def _weekday(value: str) -> int:
    return Weekday.from_str(value).weekday


def _until(value: str) -> datetime:
    return parse_compact(value)


RRULE_KEYS = {
    "FREQ": ("freq", Frequency.coerce),
    "INTERVAL": ("interval", _int),
    "COUNT": ("count", _int),
    "UNTIL": ("until", _until),
    "WKST": ("wkst", _weekday),
    "BYSETPOS": ("bysetpos", _int_list),
    "BYMONTH": ("bymonth", _int_list),
    "BYMONTHDAY": ("bymonthday", _int_list),
    "BYYEARDAY": ("byyearday", _int_list),
    "BYWEEKNO": ("byweekno", _int_list),
    "BYDAY": ("byweekday", _weekdays),
    "BYWEEKDAY": ("byweekday", _weekdays),
    "BYHOUR": ("byhour", _int_list),
    "BYMINUTE": ("byminute", _int_list),
    "BYSECOND": ("bysecond", _int_list),
    "BYEASTER": ("byeaster", _int_list),
}


# ── formatting ──


def _join(values) -> str:
    return ",".join(str(v) for v in values)


def format_start(spec: RecurrenceSpec) -> str:
    if spec.tzinfo is None:
        return f"DTSTART:{fmt_compact(spec.start)}"
    if spec.tzid and spec.tzid.upper() not in ("UTC", "Z"):
        return f"DTSTART;TZID={spec.tzid}:{fmt_compact(spec.start)}"
    return f"DTSTART:{fmt_compact(spec.localize(spec.start), utc=True)}"


def format_rrule(spec: RecurrenceSpec) -> str:
    """The ``KEY=value;...`` body of a rule, without the DTSTART."""
    given = spec.options
    parts = [f"FREQ={spec.freq.name}"]
    if spec.interval != 1:
        parts.append(f"INTERVAL={spec.interval}")
    if "wkst" in given:
        parts.append(f"WKST={WEEKDAY_CODES[spec.wkst]}")
    if spec.count is not None:
        parts.append(f"COUNT={spec.count}")
    if spec.until is not None:
        if spec.tzinfo is not None:
            parts.append(f"UNTIL={fmt_compact(spec.localize(spec.until), utc=True)}")
        else:
            parts.append(f"UNTIL={fmt_compact(spec.until)}")
    if "bysetpos" in given:
        parts.append(f"BYSETPOS={_join(spec.bysetpos)}")
    if "bymonth" in given:
        parts.append(f"BYMONTH={_join(spec.bymonth)}")
    if "bymonthday" in given:
        parts.append(f"BYMONTHDAY={_join(spec.bymonthday + spec.bynmonthday)}")
    if "byyearday" in given:
        parts.append(f"BYYEARDAY={_join(spec.byyearday)}")
    if "byweekno" in given:
        parts.append(f"BYWEEKNO={_join(spec.byweekno)}")
    if "byweekday" in given:
        days = [Weekday(d) for d in spec.byweekday]
        days.extend(Weekday(d, n) for d, n in spec.bynweekday)
        days.sort(key=lambda wd: (wd.weekday, wd.n or 0))
        parts.append(f"BYDAY={_join(days)}")
    for key in ("byhour", "byminute", "bysecond", "byeaster"):
        if key in given:
            parts.append(f"{key.upper()}={_join(getattr(spec, key))}")
    return ";".join(parts)


def format_rule(spec: RecurrenceSpec, name: str = "RRULE") -> str:
    return f"{format_start(spec)}\n{name}:{format_rrule(spec)}"


def format_dates(name: str, dates: list[datetime]) -> str:
    """An RDATE or EXDATE line; a TZID parameter when every value shares a named zone."""
    zones = {zone_name(dt.tzinfo) for dt in dates}
    if len(zones) == 1 and None not in zones and "UTC" not in zones:
        tzid = zones.pop()
        return f"{name};TZID={tzid}:" + ",".join(fmt_compact(dt) for dt in dates)
    return f"{name}:" + ",".join(fmt_compact(dt, utc=dt.tzinfo is not None) for dt in dates)


# ── parsing ──


def parse_rrule(value: str) -> dict:
    """Parse a ``KEY=value;...`` body into rule options."""
    options = {}
    for pair in value.split(";"):
        pair = pair.strip()
        if not pair:
            continue
        if "=" not in pair:
            raise ParseError(f"Expected KEY=value, got '{pair}'", pair)
        key, raw = pair.split("=", 1)
        key, raw = key.strip().upper(), raw.strip()
        if key in IGNORED_KEYS or key.startswith("X-"):
            log_msg(f"Ignoring unsupported rule property {key}={raw}")
            continue
        if key not in RRULE_KEYS:
            raise ParseError(f"Unknown rule property '{key}'", key)
        name, convert = RRULE_KEYS[key]
        try:
            options[name] = convert(raw)
        except (ValueError, OverflowError) as e:
            raise ParseError(f"Invalid value for {key}: '{raw}'", f"{key}={raw}") from e
    if "freq" not in options:
        raise ParseError("A rule needs a FREQ property", value)
    return options


def _split_line(line: str) -> tuple[str, dict, str]:
    if ":" not in line:
        if "=" in line:
            return "RRULE", {}, line
        raise ParseError(f"Cannot parse line '{line}'", line)
    head, value = line.split(":", 1)
    name, *rest = head.split(";")
    params = {}
    for param in rest:
        if "=" not in param:
            raise ParseError(f"Invalid parameter '{param}' in {name}", param)
        key, val = param.split("=", 1)
        params[key.strip().upper()] = val.strip()
    return name.strip().upper(), params, value.strip()


def _unfold(text: str) -> list[str]:
    lines = []
    for line in text.splitlines():
        if line[:1] in (" ", "\t") and lines:
            lines[-1] += line[1:]
        elif line.strip():
            lines.append(line.strip())
    return lines


def _parse_dates(name: str, params: dict, value: str, default_tzid: Optional[str]) -> list[datetime]:
    tzid = params.get("TZID", default_tzid)
    zone = zone_or_utc(tzid) if tzid else None
    dates = []
    for item in value.split(","):
        if not item.strip():
            continue
        try:
            dates.append(parse_compact(item, zone))
        except (ValueError, OverflowError) as e:
            raise ParseError(f"Invalid date in {name}: '{item}'", item) from e
    return dates


def parse_string(
    text: str,
    *,
    start: Optional[datetime] = None,
    tzid: Optional[str] = None,
    wkst=None,
    forceset: bool = False,
    cache: bool = True,
    max_year: int = MAXYEAR,
    exclusion_window: timedelta = timedelta(milliseconds=1),
) -> Union[Rule, RuleSet]:
    """
    Parse the canonical form. Returns a Rule for a single RRULE and a
    RuleSet when there are several rules, any EXRULE/RDATE/EXDATE line or
    when ``forceset`` is True.

    ``start``, ``tzid`` and ``wkst`` apply to rules that do not give their
    own. Unknown properties raise ParseError; ``X-`` properties, RSCALE and
    SKIP are ignored.
    """
    lines = _unfold(text or "")
    if not lines:
        raise ParseError("Nothing to parse", text)

    current_start, current_tzid = start, tzid
    set_tzid = tzid
    rrules, exrules, rdates, exdates = [], [], [], []

    def build(options: dict) -> Rule:
        options.setdefault("start", current_start)
        if current_tzid is not None:
            options.setdefault("tzid", current_tzid)
        if wkst is not None:
            options.setdefault("wkst", wkst)
        return Rule(cache=cache, max_year=max_year, **options)

    for line in lines:
        name, params, value = _split_line(line)
        if name == "DTSTART":
            line_tzid = params.get("TZID")
            zone = zone_or_utc(line_tzid) if line_tzid else None
            try:
                current_start = parse_compact(value, zone)
            except (ValueError, OverflowError) as e:
                raise ParseError(f"Invalid DTSTART: '{value}'", value) from e
            if line_tzid:
                # keep the name as written; the value is wall time there
                current_start = current_start.replace(tzinfo=None)
                current_tzid = line_tzid
                if set_tzid is None:
                    set_tzid = line_tzid
            elif current_start.tzinfo is None:
                current_tzid = tzid
            else:
                current_tzid = None
        elif name == "RRULE":
            rrules.append(build(parse_rrule(value)))
        elif name == "EXRULE":
            exrules.append(build(parse_rrule(value)))
        elif name == "RDATE":
            rdates.extend(_parse_dates(name, params, value, current_tzid))
        elif name == "EXDATE":
            exdates.extend(_parse_dates(name, params, value, current_tzid))
        elif name.startswith("X-"):
            log_msg(f"Ignoring property {name}")
        else:
            raise ParseError(f"Unsupported property '{name}'", name)

    if not (rrules or rdates):
        raise ParseError("No RRULE or RDATE found", text)
    if not forceset and len(rrules) == 1 and not (exrules or rdates or exdates):
        return rrules[0]

    ruleset = RuleSet(tzid=set_tzid, cache=cache, exclusion_window=exclusion_window)
    for rule in rrules:
        ruleset.rrule(rule)
    for rule in exrules:
        ruleset.exrule(rule)
    for dt in rdates:
        ruleset.rdate(dt)
    for dt in exdates:
        ruleset.exdate(dt)
    return ruleset

