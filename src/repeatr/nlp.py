"""
Natural-language rules.

    every 2 weeks on Monday and Wednesday for 4 times
    every month on the 2nd last Friday until March 1, 2025
    every year in January, July on the 1st at 9

Parsing is a small recursive descent over a longest-match tokenizer:

    S      := "every" [n | "other"] UNIT {ON | IN | AT} [FOR | UNTIL]
    ON     := "on" ITEM {"," ITEM}
    ITEM   := ["the"] (DAY | "weekday" | MONTH | ORD ["last"] [DAY | "day"])
    IN     := "in" MONTH {"," MONTH}
    AT     := "at" n {"," n}
    FOR    := "for" n ["times"]
    UNTIL  := "until" <any date dateutil can parse>
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, time
from typing import Optional

from dateutil.parser import parse as dateutil_parse

from .errors import ParseError
from .shared import ordinal
from .weekday import Frequency, Weekday

DAY_SYMBOLS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
MONTH_SYMBOLS = (
    "january",
    "february",
    "march",
    "april",
    "may",
    "june",
    "july",
    "august",
    "september",
    "october",
    "november",
    "december",
)
UNIT_SYMBOLS = {
    "year": Frequency.YEARLY,
    "month": Frequency.MONTHLY,
    "week": Frequency.WEEKLY,
    "weekday": Frequency.WEEKLY,
    "day": Frequency.DAILY,
    "hour": Frequency.HOURLY,
    "minute": Frequency.MINUTELY,
    "seconds": Frequency.SECONDLY,
}
UNIT_NAMES = {
    Frequency.YEARLY: "year",
    Frequency.MONTHLY: "month",
    Frequency.WEEKLY: "week",
    Frequency.DAILY: "day",
    Frequency.HOURLY: "hour",
    Frequency.MINUTELY: "minute",
    Frequency.SECONDLY: "second",
}
WORKDAYS = (0, 1, 2, 3, 4)

# option keys the formatter can express, per frequency
COMMON = frozenset({"count", "until", "interval", "byweekday", "bymonthday", "bymonth"})
IMPLEMENTED = {
    Frequency.YEARLY: COMMON | {"byhour"},
    Frequency.MONTHLY: COMMON | {"byhour"},
    Frequency.WEEKLY: COMMON | {"byhour"},
    Frequency.DAILY: COMMON | {"byhour"},
    Frequency.HOURLY: COMMON,
    Frequency.MINUTELY: COMMON,
    Frequency.SECONDLY: COMMON,
}
IGNORED = frozenset({"freq", "start", "tzid"})


@dataclass(frozen=True)
class Language:
    name: str
    tokens: dict
    day_names: tuple
    month_names: tuple
    numbers: dict = field(default_factory=dict)
    ordinals: dict = field(default_factory=dict)


ENGLISH = Language(
    name="en",
    tokens={
        "every": r"every\b",
        "number": r"(0|[1-9][0-9]*)\b",
        "number_text": r"(one|two|three|four|five|six|seven|eight|nine|ten)\b",
        "other": r"other\b",
        "on": r"on\b",
        "in": r"in\b",
        "at": r"at\b",
        "the": r"the\b",
        "first": r"first\b",
        "second": r"second\b",
        "third": r"third\b",
        "fourth": r"fourth\b",
        "fifth": r"fifth\b",
        "nth": r"[1-9][0-9]*(st|nd|rd|th)\b",
        "last": r"last\b",
        "for": r"for\b",
        "times": r"times?\b",
        "until": r"(until|till|til)\b",
        "year": r"years?\b",
        "month": r"months?\b",
        "week": r"weeks?\b",
        "weekday": r"weekdays?\b",
        "day": r"days?\b",
        "hour": r"hours?\b",
        "minute": r"minutes?\b",
        "seconds": r"seconds\b",
        "monday": r"mon(days?)?\b",
        "tuesday": r"tue(s(days?)?)?\b",
        "wednesday": r"wed(nesdays?)?\b",
        "thursday": r"thu(r(s(days?)?)?)?\b",
        "friday": r"fri(days?)?\b",
        "saturday": r"sat(urdays?)?\b",
        "sunday": r"sun(days?)?\b",
        "january": r"jan(uary)?\b",
        "february": r"feb(ruary)?\b",
        "march": r"mar(ch)?\b",
        "april": r"apr(il)?\b",
        "may": r"may\b",
        "june": r"june?\b",
        "july": r"july?\b",
        "august": r"aug(ust)?\b",
        "september": r"sep(t(ember)?)?\b",
        "october": r"oct(ober)?\b",
        "november": r"nov(ember)?\b",
        "december": r"dec(ember)?\b",
        "comma": r"(,\s*|(and|or)\b\s*)+",
    },
    day_names=("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"),
    month_names=(
        "January",
        "February",
        "March",
        "April",
        "May",
        "June",
        "July",
        "August",
        "September",
        "October",
        "November",
        "December",
    ),
    numbers={
        "one": 1,
        "two": 2,
        "three": 3,
        "four": 4,
        "five": 5,
        "six": 6,
        "seven": 7,
        "eight": 8,
        "nine": 9,
        "ten": 10,
    },
    ordinals={"first": 1, "second": 2, "third": 3, "fourth": 4, "fifth": 5},
)

SKIP = re.compile(r"\s+|\.\s*$")


class _Parser:
    """Lazy tokenizer with one token of lookahead."""

    def __init__(self, text: str, patterns: list):
        self.text = text
        self.pos = 0
        self.patterns = patterns
        self._token: Optional[tuple] = None

    def _skip(self, pos: int) -> int:
        while pos < len(self.text):
            match = SKIP.match(self.text, pos)
            if not match or match.end() == pos:
                break
            pos = match.end()
        return pos

    def _read(self, pos: int) -> tuple:
        pos = self._skip(pos)
        if pos >= len(self.text):
            return None, "", pos
        best = None
        for symbol, pattern in self.patterns:
            match = pattern.match(self.text, pos)
            if match and (best is None or match.end() > best[1].end()):
                best = (symbol, match)
        if best is None:
            word = self.text[pos:].split()[0]
            raise ParseError(f"Unexpected text '{word}'", word)
        symbol, match = best
        return symbol, match.group(0).strip(), match.end()

    @property
    def symbol(self) -> Optional[str]:
        if self._token is None:
            self._token = self._read(self.pos)
        return self._token[0]

    @property
    def value(self) -> str:
        self.symbol
        return self._token[1]

    def lookahead(self) -> Optional[str]:
        self.symbol
        return self._read(self._token[2])[0]

    def consume(self) -> str:
        value = self.value
        self.pos = self._token[2]
        self._token = None
        return value

    def accept(self, *symbols) -> Optional[str]:
        if self.symbol in symbols:
            return self.consume()
        return None

    def expect(self, *symbols) -> str:
        if self.symbol not in symbols:
            found = self.value or "end of text"
            raise ParseError(f"Expected {' or '.join(symbols)} but found '{found}'", self.value)
        return self.consume()

    def rest(self) -> str:
        text = self.text[self.pos :].strip()
        self.pos = len(self.text)
        self._token = None
        return text

    def at_end(self) -> bool:
        return self.symbol is None


class TextCodec:
    """
    Converts between rules and English text. The formatted-date cache is
    owned by the instance; ``reset()`` empties it.
    """

    def __init__(self, language: Language = ENGLISH, approximate_marker: str = "(approximate)"):
        self.language = language
        self.approximate_marker = approximate_marker
        self._patterns = [
            (symbol, re.compile(pattern, re.IGNORECASE))
            for symbol, pattern in language.tokens.items()
        ]
        self._date_cache: dict[datetime, str] = {}

    def reset(self) -> None:
        self._date_cache.clear()

    # ── parsing ──

    def tokenize(self, text: str) -> list[tuple[str, str]]:
        """(symbol, text) pairs; raises ParseError at the first unknown word."""
        parser = _Parser(text, self._patterns)
        tokens = []
        while not parser.at_end():
            symbol = parser.symbol
            tokens.append((symbol, parser.consume()))
        return tokens

    def parse_text(self, text: str) -> dict:
        """Rule options for ``text``; raises ParseError naming the offending word."""
        p = _Parser(text, self._patterns)
        options: dict = {}
        p.expect("every")
        self._parse_every(p, options)
        while True:
            if p.accept("on"):
                self._parse_on(p, options)
            elif p.accept("in"):
                options.setdefault("bymonth", []).extend(self._parse_months(p))
            elif p.accept("at"):
                options.setdefault("byhour", []).extend(self._parse_numbers(p))
            else:
                break
        if p.accept("for"):
            options["count"] = self._parse_number(p)
            p.accept("times")
        elif p.accept("until"):
            rest = p.rest()
            try:
                options["until"] = dateutil_parse(rest)
            except (ValueError, OverflowError) as e:
                raise ParseError(f"Cannot read the date '{rest}'", rest) from e
        if not p.at_end():
            raise ParseError(f"Unexpected '{p.value}'", p.value)
        return options

    def _parse_number(self, p: _Parser) -> int:
        if p.symbol == "number":
            return int(p.consume())
        if p.symbol == "number_text":
            return self.language.numbers[p.consume().lower()]
        found = p.value or "end of text"
        raise ParseError(f"Expected a number but found '{found}'", p.value)

    def _parse_numbers(self, p: _Parser) -> list[int]:
        numbers = [self._parse_number(p)]
        while p.accept("comma"):
            numbers.append(self._parse_number(p))
        return numbers

    def _parse_months(self, p: _Parser) -> list[int]:
        months = []
        while True:
            p.accept("the")
            if p.symbol not in MONTH_SYMBOLS:
                found = p.value or "end of text"
                raise ParseError(f"Expected a month but found '{found}'", p.value)
            months.append(MONTH_SYMBOLS.index(p.symbol) + 1)
            p.consume()
            if not p.accept("comma"):
                return months

    def _parse_every(self, p: _Parser, options: dict):
        interval = None
        if p.accept("other"):
            interval = 2
        elif p.symbol == "second" and p.lookahead() in UNIT_SYMBOLS:
            p.consume()
            interval = 2
        elif p.symbol in ("number", "number_text"):
            interval = self._parse_number(p)

        symbol = p.symbol
        if symbol in UNIT_SYMBOLS:
            p.consume()
            options["freq"] = UNIT_SYMBOLS[symbol]
            if symbol == "weekday":
                options["byweekday"] = [Weekday(d) for d in WORKDAYS]
        elif symbol == "second":
            p.consume()
            options["freq"] = Frequency.SECONDLY
        elif symbol in DAY_SYMBOLS:
            options["freq"] = Frequency.WEEKLY
            self._parse_on(p, options)
        elif symbol in MONTH_SYMBOLS:
            options["freq"] = Frequency.YEARLY
            options["bymonth"] = self._parse_months(p)
        else:
            found = p.value or "end of text"
            raise ParseError(f"Expected a unit of time but found '{found}'", p.value)
        if interval is not None:
            options["interval"] = interval

    def _parse_on(self, p: _Parser, options: dict):
        while True:
            p.accept("the")
            self._parse_on_item(p, options)
            if not p.accept("comma"):
                return

    def _parse_on_item(self, p: _Parser, options: dict):
        symbol = p.symbol
        if symbol in DAY_SYMBOLS:
            p.consume()
            options.setdefault("byweekday", []).append(Weekday(DAY_SYMBOLS.index(symbol)))
            return
        if symbol == "weekday":
            p.consume()
            options.setdefault("byweekday", []).extend(Weekday(d) for d in WORKDAYS)
            return
        if symbol in MONTH_SYMBOLS:
            options.setdefault("bymonth", []).extend(self._parse_months(p))
            return
        if symbol == "last":
            p.consume()
            n = -1
        elif symbol in self.language.ordinals:
            p.consume()
            n = self.language.ordinals[symbol]
        elif symbol == "nth":
            n = int(re.match(r"\d+", p.consume()).group(0))
        else:
            found = p.value or "end of text"
            raise ParseError(f"Expected a day but found '{found}'", p.value)
        if n > 0 and p.accept("last"):
            n = -n
        if p.symbol in DAY_SYMBOLS:
            options.setdefault("byweekday", []).append(Weekday(DAY_SYMBOLS.index(p.symbol), n))
            p.consume()
            return
        p.accept("day")
        options.setdefault("bymonthday", []).append(n)

    # ── formatting ──

    def is_fully_convertible(self, spec) -> bool:
        implemented = IMPLEMENTED[spec.freq]
        for key in spec.options:
            if key in IGNORED or (key == "wkst" and spec.wkst == 0):
                continue
            if key not in implemented:
                return False
        return True

    def to_text(self, spec) -> str:
        """
        English for ``spec``. Options the text cannot express are left out
        and the approximate marker is appended.
        """
        given = spec.options
        names = self.language.day_names
        show_days = "byweekday" in given
        if (
            spec.freq == Frequency.WEEKLY
            and spec.interval == 1
            and show_days
            and spec.byweekday == WORKDAYS
            and not spec.bynweekday
        ):
            parts = ["every weekday"]
            show_days = False
        else:
            unit = UNIT_NAMES[spec.freq]
            if spec.interval == 1:
                parts = [f"every {unit}"]
            else:
                parts = [f"every {spec.interval} {unit}s"]

        if "bymonth" in given and spec.bymonth:
            parts.append("in " + _and(self.language.month_names[m - 1] for m in spec.bymonth))

        items = []
        if show_days:
            items.extend(names[d] for d in spec.byweekday)
            items.extend(f"the {_nth(n)} {names[d]}" for d, n in spec.bynweekday)
        if "bymonthday" in given:
            items.extend(f"the {ordinal(n)}" for n in spec.bymonthday)
            items.extend(f"the {_nth(n)} day" for n in spec.bynmonthday)
        if items:
            parts.append("on " + _and(items))

        if "byhour" in given and spec.byhour and "byhour" in IMPLEMENTED[spec.freq]:
            parts.append("at " + _and(str(h) for h in spec.byhour))

        if spec.count is not None:
            parts.append(f"for {spec.count} time{'' if spec.count == 1 else 's'}")
        elif spec.until is not None:
            parts.append(f"until {self._format_date(spec.until)}")

        if not self.is_fully_convertible(spec):
            parts.append(self.approximate_marker)
        return " ".join(parts)

    def _format_date(self, dt: datetime) -> str:
        text = self._date_cache.get(dt)
        if text is None:
            text = f"{self.language.month_names[dt.month - 1]} {dt.day}, {dt.year}"
            if dt.time() != time():
                text += f" {dt:%H:%M:%S}"
            self._date_cache[dt] = text
        return text


def _nth(n: int) -> str:
    """2 -> '2nd', -1 -> 'last', -2 -> '2nd last'."""
    if n == -1:
        return "last"
    if n < 0:
        return f"{ordinal(n)} last"
    return ordinal(n)


def _and(items) -> str:
    items = list(items)
    if len(items) == 1:
        return items[0]
    return ", ".join(items[:-1]) + " and " + items[-1]
