# src/repeatr/__init__.py
from repeatr.versioning import get_version

from .errors import (
    InvalidDateError,
    ParseError,
    RepeatrError,
    SetPositionError,
    UnknownOptionError,
    UnsupportedZoneError,
    ValidationError,
    WeekdayOrdinalError,
)
from .weekday import (
    DAILY,
    FR,
    HOURLY,
    MINUTELY,
    MO,
    MONTHLY,
    SA,
    SECONDLY,
    SU,
    TH,
    TU,
    WE,
    WEEKLY,
    YEARLY,
    Frequency,
    Weekday,
)
from .options import RecurrenceSpec, resolve_options
from .rule import Rule
from .ruleset import RuleSet
from .rrulestr import parse_string
from .nlp import ENGLISH, Language, TextCodec
from .repeat import Repeat

__version__ = get_version()
