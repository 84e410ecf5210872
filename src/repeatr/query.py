"""
Query modes as accept policies, and the per-rule query cache.

A policy is offered occurrences one at a time; ``accept`` returns False
when the query has seen enough, and ``value`` gives the query's result.
"""

from datetime import datetime
from typing import Callable, Iterable, Optional

Predicate = Callable[[datetime, int], bool]


class AcceptPolicy:
    mode = ""

    def accept(self, dt: datetime) -> bool:
        raise NotImplementedError

    def value(self):
        raise NotImplementedError

    def args(self) -> tuple:
        return ()

    def fresh(self) -> "AcceptPolicy":
        """An empty policy with the same bounds."""
        return type(self)(*self.args())


class CollectAll(AcceptPolicy):
    """
    Keep everything. With a predicate, each occurrence is first passed to
    ``predicate(dt, len(results))``; a False return stops the query without
    keeping that occurrence.
    """

    mode = "all"

    def __init__(self, predicate: Optional[Predicate] = None):
        self.predicate = predicate
        self.results: list[datetime] = []

    def accept(self, dt):
        if self.predicate is not None and not self.predicate(dt, len(self.results)):
            return False
        self.results.append(dt)
        return True

    def value(self):
        return list(self.results)

    def args(self):
        return (self.predicate,)


class CollectBefore(AcceptPolicy):
    """The last occurrence before ``dt`` (or at ``dt`` when ``inc``)."""

    mode = "before"

    def __init__(self, dt: datetime, inc: bool = False):
        self.dt = dt
        self.inc = inc
        self.last: Optional[datetime] = None

    def accept(self, dt):
        too_late = dt > self.dt if self.inc else dt >= self.dt
        if too_late:
            return False
        self.last = dt
        return True

    def value(self):
        return self.last

    def args(self):
        return (self.dt, self.inc)


class CollectAfter(AcceptPolicy):
    """The first occurrence after ``dt`` (or at ``dt`` when ``inc``)."""

    mode = "after"

    def __init__(self, dt: datetime, inc: bool = False):
        self.dt = dt
        self.inc = inc
        self.found: Optional[datetime] = None

    def accept(self, dt):
        reached = dt >= self.dt if self.inc else dt > self.dt
        if reached:
            self.found = dt
            return False
        return True

    def value(self):
        return self.found

    def args(self):
        return (self.dt, self.inc)


class CollectBetween(AcceptPolicy):
    mode = "between"

    def __init__(self, after: datetime, before: datetime, inc: bool = False):
        self.after = after
        self.before = before
        self.inc = inc
        self.results: list[datetime] = []

    def accept(self, dt):
        too_early = dt < self.after if self.inc else dt <= self.after
        too_late = dt > self.before if self.inc else dt >= self.before
        if too_late:
            return False
        if not too_early:
            self.results.append(dt)
        return True

    def value(self):
        return list(self.results)

    def args(self):
        return (self.after, self.before, self.inc)


POLICIES = {
    "all": CollectAll,
    "before": CollectBefore,
    "after": CollectAfter,
    "between": CollectBetween,
}


def make_policy(mode: str, args: tuple) -> AcceptPolicy:
    return POLICIES[mode](*args)


def run_policy(occurrences: Iterable[datetime], policy: AcceptPolicy):
    """Feed ``occurrences`` to ``policy`` until it stops and return its value."""
    it = iter(occurrences)
    try:
        for dt in it:
            if not policy.accept(dt):
                break
    finally:
        close = getattr(it, "close", None)
        if close is not None:
            close()
    return policy.value()


MISS = object()


class QueryCache:
    """
    Results of earlier queries keyed by ``(mode, args)``.

    Once a complete ``all`` result is stored the series is known to be
    finite, and every bounded query is answered from that list.
    """

    def __init__(self):
        self._entries: dict[tuple, object] = {}
        self._all: Optional[list[datetime]] = None

    def get(self, mode: str, args: tuple):
        if mode != "all" and self._all is not None:
            return run_policy(self._all, make_policy(mode, args))
        key = (mode, args)
        if key not in self._entries:
            return MISS
        value = self._entries[key]
        return list(value) if isinstance(value, list) else value

    def put(self, mode: str, args: tuple, value) -> None:
        if mode == "all":
            self._all = list(value)
        self._entries[(mode, args)] = list(value) if isinstance(value, list) else value

    def clear(self) -> None:
        self._entries.clear()
        self._all = None

    def __len__(self):
        return len(self._entries)
