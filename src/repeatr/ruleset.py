"""
Composition of several rules and explicit dates into one series.

Explicit exclusions are hashed up front; exclusion rules are only asked
about a narrow window around each candidate, so an unbounded exclusion rule
is never enumerated.
"""

import heapq
from datetime import datetime, timedelta
from typing import Iterator, Optional

from dateutil import tz

from .errors import InvalidDateError, ValidationError
from .options import zone_or_utc
from .query import AcceptPolicy, CollectAll, CollectBetween, run_policy
from .rule import Rule, RuleBase


class RuleSet(RuleBase):
    def __init__(
        self,
        tzid: Optional[str] = None,
        cache: bool = True,
        exclusion_window: timedelta = timedelta(milliseconds=1),
    ):
        super().__init__(cache)
        self.tzid = tzid
        self._tzinfo = zone_or_utc(tzid) if tzid is not None else None
        self.exclusion_window = exclusion_window
        self._rrules: list[Rule] = []
        self._exrules: list[Rule] = []
        self._rdates: list[datetime] = []
        self._exdates: list[datetime] = []
        self._exdate_keys: set = set()

    @property
    def tzinfo(self):
        """
        The set's zone: the one it was created with, else the zone of its
        first zoned rule or date. None when every member is floating.
        """
        if self._tzinfo is not None:
            return self._tzinfo
        for rule in self._rrules + self._exrules:
            if rule.tzinfo is not None:
                return rule.tzinfo
        for dt in self._rdates:
            if dt.tzinfo is not None:
                return dt.tzinfo
        return None

    def _has_members(self) -> bool:
        return bool(self._rrules or self._exrules or self._rdates)

    # ── building ──

    def _changed(self):
        if self._cache is not None:
            self._cache.clear()

    def _localize(self, dt) -> datetime:
        """Naive dates are wall time in the set's zone; aware dates added to
        a floating set keep their wall-clock value."""
        if not isinstance(dt, datetime):
            raise InvalidDateError(f"{dt!r} is not a datetime")
        dt = dt.replace(microsecond=0)
        zone = self.tzinfo
        if dt.tzinfo is None and zone is not None:
            return dt.replace(tzinfo=zone)
        if dt.tzinfo is not None and zone is None and self._has_members():
            return dt.replace(tzinfo=None)
        return dt

    def _adopt(self, rule: Rule) -> Rule:
        if rule.tzinfo is None and self._tzinfo is not None:
            return rule.replace(tzid=self.tzid)
        if self._has_members() and (rule.tzinfo is None) != (self.tzinfo is None):
            kind = "floating" if rule.tzinfo is None else "zoned"
            raise ValidationError(f"Cannot add a {kind} rule to this rule set: {rule}")
        return rule

    def rrule(self, rule: Rule) -> "RuleSet":
        """Add an inclusion rule. A floating rule added to a set created with
        a zone is moved into that zone."""
        self._rrules.append(self._adopt(rule))
        self._changed()
        return self

    def exrule(self, rule: Rule) -> "RuleSet":
        self._exrules.append(self._adopt(rule))
        self._changed()
        return self

    def rdate(self, dt: datetime) -> "RuleSet":
        self._rdates.append(self._localize(dt))
        self._changed()
        return self

    def exdate(self, dt: datetime) -> "RuleSet":
        dt = self._localize(dt)
        self._exdates.append(dt)
        self._exdate_keys.add(_instant(dt))
        self._changed()
        return self

    @property
    def rrules(self) -> list[Rule]:
        return list(self._rrules)

    @property
    def exrules(self) -> list[Rule]:
        return list(self._exrules)

    @property
    def rdates(self) -> list[datetime]:
        return list(self._rdates)

    @property
    def exdates(self) -> list[datetime]:
        return list(self._exdates)

    # ── evaluation ──

    def _is_excluded(self, dt: datetime) -> bool:
        if _instant(dt) in self._exdate_keys:
            return True
        window = self.exclusion_window
        for rule in self._exrules:
            if run_policy(rule._iterate(), CollectBetween(dt - window, dt + window, True)):
                self._exdate_keys.add(_instant(dt))
                return True
        return False

    def _iterate(self) -> Iterator[datetime]:
        streams = [iter(sorted(self._rdates))] + [rule._iterate() for rule in self._rrules]
        last = None
        for dt in heapq.merge(*streams):
            if last is not None and dt == last:
                continue
            last = dt
            if not self._is_excluded(dt):
                yield dt

    def _run(self, policy: AcceptPolicy):
        """
        Seed the explicit dates, run every rule under its own copy of
        ``policy``, then merge and let ``policy`` pick from the result.
        """
        if isinstance(policy, CollectAll) and policy.predicate is not None:
            return run_policy(self._iterate(), policy)
        merged = [dt for dt in self._rdates if not self._is_excluded(dt)]
        for rule in self._rrules:
            found = run_policy(
                (dt for dt in rule._iterate() if not self._is_excluded(dt)),
                policy.fresh(),
            )
            if isinstance(found, list):
                merged.extend(found)
            elif found is not None:
                merged.append(found)
        return run_policy(_unique(sorted(merged)), policy)

    def to_string(self) -> str:
        from .rrulestr import format_dates, format_rule

        lines = [format_rule(rule.spec) for rule in self._rrules]
        lines.extend(format_rule(rule.spec, name="EXRULE") for rule in self._exrules)
        if self._rdates:
            lines.append(format_dates("RDATE", self._rdates))
        if self._exdates:
            lines.append(format_dates("EXDATE", self._exdates))
        return "\n".join(lines)

    __str__ = to_string

    def __repr__(self):
        return (
            f"<RuleSet {len(self._rrules)} rules, {len(self._exrules)} exclusion rules, "
            f"{len(self._rdates)} dates, {len(self._exdates)} excluded dates>"
        )


def _instant(dt: datetime):
    """Exclusion key: aware values by UTC instant, naive ones as is."""
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(tz.UTC)


def _unique(occurrences: list[datetime]) -> list[datetime]:
    out = []
    for dt in occurrences:
        if not out or out[-1] != dt:
            out.append(dt)
    return out

