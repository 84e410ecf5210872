from datetime import date, datetime, time, tzinfo
from typing import Iterator, Optional

from .clock import MAXYEAR
from .errors import InvalidDateError, ParseError
from .iterator import OccurrenceIterator
from .masks import MaskBuilder
from .nlp import ENGLISH, Language, TextCodec
from .options import RecurrenceSpec, resolve_options
from .query import (
    MISS,
    AcceptPolicy,
    CollectAfter,
    CollectAll,
    CollectBefore,
    CollectBetween,
    Predicate,
    QueryCache,
    run_policy,
)


class RuleBase:
    """
    The query API shared by single rules and rule sets.

    Subclasses provide ``tzinfo`` and ``_iterate()``; bounded queries stop
    iterating as soon as their answer is known, and their results are
    cached per instance when ``cache`` is True.
    """

    def __init__(self, cache: bool = True):
        self._cache: Optional[QueryCache] = QueryCache() if cache else None

    @property
    def tzinfo(self) -> Optional[tzinfo]:
        return None

    def _iterate(self) -> Iterator[datetime]:
        raise NotImplementedError

    def _run(self, policy: AcceptPolicy):
        return run_policy(self._iterate(), policy)

    def _query(self, policy: AcceptPolicy):
        args = policy.args() if policy.mode != "all" else ()
        if self._cache is not None:
            cached = self._cache.get(policy.mode, args)
            if cached is not MISS:
                return cached
        value = self._run(policy)
        if self._cache is not None:
            self._cache.put(policy.mode, args, value)
        return value

    def coerce_bound(self, dt) -> datetime:
        """Give a query bound the same awareness as the occurrences."""
        if not isinstance(dt, datetime):
            if not isinstance(dt, date):
                raise InvalidDateError(f"{dt!r} is not a date or datetime")
            dt = datetime.combine(dt, time())
        zone = self.tzinfo
        if zone is not None and dt.tzinfo is None:
            return dt.replace(tzinfo=zone)
        if zone is None and dt.tzinfo is not None:
            return dt.replace(tzinfo=None)
        return dt

    def all(self, predicate: Optional[Predicate] = None) -> list[datetime]:
        """
        Every occurrence. ``predicate(dt, index)`` returning False stops the
        iteration; predicate queries are never cached.
        """
        if predicate is not None:
            return self._run(CollectAll(predicate))
        return self._query(CollectAll())

    def before(self, dt, inc: bool = False) -> Optional[datetime]:
        return self._query(CollectBefore(self.coerce_bound(dt), inc))

    def after(self, dt, inc: bool = False) -> Optional[datetime]:
        return self._query(CollectAfter(self.coerce_bound(dt), inc))

    def between(self, after, before, inc: bool = False) -> list[datetime]:
        return self._query(CollectBetween(self.coerce_bound(after), self.coerce_bound(before), inc))

    def __iter__(self) -> Iterator[datetime]:
        return self._iterate()

    def __contains__(self, dt) -> bool:
        dt = self.coerce_bound(dt)
        return self.after(dt, inc=True) == dt

    def count(self) -> int:
        return len(self.all())

    def first(self) -> Optional[datetime]:
        it = self._iterate()
        try:
            return next(it, None)
        finally:
            it.close()


class Rule(RuleBase):
    """
    A single recurrence rule.

    >>> rule = Rule("WEEKLY", start=datetime(2024, 1, 1), interval=2,
    ...             byweekday=["MO", "WE"], count=4)
    >>> [dt.day for dt in rule]
    [1, 3, 15, 17]
    """

    def __init__(self, freq=None, *, cache: bool = True, max_year: int = MAXYEAR, **options):
        super().__init__(cache)
        if freq is not None:
            options["freq"] = freq
        self._setup(resolve_options(**options), max_year)

    def _setup(self, spec: RecurrenceSpec, max_year: int):
        self._spec = spec
        self._max_year = max_year
        self._masks = MaskBuilder(spec)
        self._codec: Optional[TextCodec] = None

    @classmethod
    def from_spec(cls, spec: RecurrenceSpec, *, cache: bool = True, max_year: int = MAXYEAR) -> "Rule":
        rule = cls.__new__(cls)
        RuleBase.__init__(rule, cache)
        rule._setup(spec, max_year)
        return rule

    @property
    def spec(self) -> RecurrenceSpec:
        return self._spec

    @property
    def options(self) -> dict:
        return dict(self._spec.options)

    @property
    def tzinfo(self):
        return self._spec.tzinfo

    def _iterate(self):
        return iter(OccurrenceIterator(self._spec, self._masks, self._max_year))

    def replace(self, **changes) -> "Rule":
        """A new rule with ``changes`` applied; None removes an option."""
        return Rule.from_spec(
            self._spec.with_options(**changes),
            cache=self._cache is not None,
            max_year=self._max_year,
        )

    def __eq__(self, other):
        if not isinstance(other, Rule):
            return NotImplemented
        return self._spec == other._spec

    __hash__ = None

    # ── text ──

    def to_string(self) -> str:
        from .rrulestr import format_rule

        return format_rule(self._spec)

    __str__ = to_string

    def __repr__(self):
        return f"<Rule {self.to_string()!r}>"

    @property
    def text_codec(self) -> TextCodec:
        if self._codec is None:
            self._codec = TextCodec()
        return self._codec

    def to_text(self) -> str:
        return self.text_codec.to_text(self._spec)

    def is_fully_convertible_to_text(self) -> bool:
        return self.text_codec.is_fully_convertible(self._spec)

    @classmethod
    def from_string(cls, text: str, **kwargs) -> "Rule":
        from .rrulestr import parse_string

        rule = parse_string(text, **kwargs)
        if not isinstance(rule, Rule):
            raise ParseError("The text describes a rule set, not a single rule", text)
        return rule

    @classmethod
    def from_text(cls, text: str, language: Language = ENGLISH, **options) -> "Rule":
        """
        Build a rule from English such as 'every 2 weeks on Monday for 4
        times'; ``options`` (start, tzid, ...) are added to what the text
        gives.
        """
        parsed = TextCodec(language).parse_text(text)
        parsed.update(options)
        return cls(**parsed)
