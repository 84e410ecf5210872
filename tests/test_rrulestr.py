from datetime import datetime

import pytest
from dateutil import tz

from repeatr.errors import ParseError
from repeatr.rrulestr import parse_rrule, parse_string
from repeatr.rule import Rule
from repeatr.ruleset import RuleSet
from repeatr.weekday import DAILY, FR, MO, MONTHLY, WE, WEEKLY, YEARLY, Frequency


@pytest.mark.unit
class TestFormat:
    def test_floating_rule(self, rule_factory):
        rule = rule_factory(WEEKLY, interval=2, byweekday=[WE, MO], count=4)
        assert rule.to_string() == (
            "DTSTART:20240101T000000\nRRULE:FREQ=WEEKLY;INTERVAL=2;COUNT=4;BYDAY=MO,WE"
        )
        assert str(rule) == rule.to_string()

    def test_zoned_rule(self):
        rule = Rule(
            DAILY,
            start=datetime(2024, 1, 1, 9),
            tzid="Europe/Paris",
            until=datetime(2024, 1, 3, 9),
        )
        assert rule.to_string() == (
            "DTSTART;TZID=Europe/Paris:20240101T090000\nRRULE:FREQ=DAILY;UNTIL=20240103T080000Z"
        )

    def test_utc_rule(self):
        rule = Rule(DAILY, start=datetime(2024, 1, 1, 9), tzid="UTC", count=1)
        assert rule.to_string() == "DTSTART:20240101T090000Z\nRRULE:FREQ=DAILY;COUNT=1"

    def test_derived_defaults_are_not_written(self, rule_factory):
        rule = rule_factory(YEARLY, count=2)
        assert rule.to_string().endswith("RRULE:FREQ=YEARLY;COUNT=2")

    def test_nth_weekday(self, rule_factory):
        rule = rule_factory(MONTHLY, byweekday=[FR(-1)], bymonthday=[1, -1])
        assert rule.to_string().endswith("RRULE:FREQ=MONTHLY;BYMONTHDAY=1,-1;BYDAY=-1FR")


@pytest.mark.unit
class TestParse:
    def test_rule(self):
        rule = parse_string(
            "DTSTART:20240101T000000\nRRULE:FREQ=WEEKLY;INTERVAL=2;COUNT=4;BYDAY=MO,WE"
        )
        assert isinstance(rule, Rule)
        assert [dt.day for dt in rule] == [1, 3, 15, 17]

    def test_bare_rule_with_start(self):
        rule = parse_string("FREQ=DAILY;COUNT=3", start=datetime(2024, 1, 1))
        assert rule.all() == [datetime(2024, 1, d) for d in (1, 2, 3)]

    def test_keys_are_case_insensitive(self):
        rule = parse_string("freq=daily;count=2", start=datetime(2024, 1, 1))
        assert rule.spec.freq is Frequency.DAILY
        assert rule.spec.count == 2

    def test_ordinal_weekday(self):
        rule = parse_string("FREQ=MONTHLY;BYDAY=-1FR;COUNT=2", start=datetime(2024, 1, 1))
        assert rule.all() == [datetime(2024, 1, 26), datetime(2024, 2, 23)]

    @pytest.mark.parametrize("extra", ["X-NAME=standup", "RSCALE=GREGORIAN", "SKIP=OMIT"])
    def test_ignored_properties(self, extra):
        options = parse_rrule(f"FREQ=DAILY;COUNT=2;{extra}")
        assert options == {"freq": Frequency.DAILY, "count": 2}

    def test_utc_start(self):
        rule = parse_string("DTSTART:20240101T090000Z\nRRULE:FREQ=DAILY;COUNT=1")
        assert rule.spec.tzid == "UTC"
        assert rule.first() == datetime(2024, 1, 1, 9, tzinfo=tz.UTC)

    def test_zoned_start(self):
        rule = parse_string("DTSTART;TZID=Europe/Paris:20240101T090000\nRRULE:FREQ=DAILY;COUNT=1")
        assert rule.spec.tzid == "Europe/Paris"
        assert rule.first().utcoffset().total_seconds() == 3600

    def test_set(self):
        rs = parse_string(
            "DTSTART:20240101T000000\nRRULE:FREQ=DAILY;COUNT=3\nEXDATE:20240102T000000"
        )
        assert isinstance(rs, RuleSet)
        assert [dt.day for dt in rs] == [1, 3]

    def test_forceset(self):
        rs = parse_string("FREQ=DAILY;COUNT=3", start=datetime(2024, 1, 1), forceset=True)
        assert isinstance(rs, RuleSet)
        assert rs.count() == 3

    def test_rdate_only(self):
        rs = parse_string("RDATE:20240105T100000,20240101T100000")
        assert rs.all() == [datetime(2024, 1, 1, 10), datetime(2024, 1, 5, 10)]

    def test_folded_lines(self):
        rule = parse_string("DTSTART:20240101T000000\nRRULE:FREQ=DAILY;\n COUNT=2")
        assert rule.count() == 2

    def test_from_string_rejects_sets(self):
        with pytest.raises(ParseError):
            Rule.from_string("FREQ=DAILY;COUNT=1\nRDATE:20240105T100000", start=datetime(2024, 1, 1))


@pytest.mark.unit
class TestParseErrors:
    def test_unknown_property(self):
        with pytest.raises(ParseError) as exc:
            parse_string("FREQ=DAILY;FOO=1", start=datetime(2024, 1, 1))
        assert exc.value.token == "FOO"

    def test_bad_value(self):
        with pytest.raises(ParseError) as exc:
            parse_string("FREQ=DAILY;COUNT=abc", start=datetime(2024, 1, 1))
        assert exc.value.token == "COUNT=abc"

    def test_bad_frequency(self):
        with pytest.raises(ParseError) as exc:
            parse_string("FREQ=SOMETIMES", start=datetime(2024, 1, 1))
        assert exc.value.token == "FREQ=SOMETIMES"

    @pytest.mark.parametrize("text", ["", "   ", "DTSTART:20240101T000000"])
    def test_nothing_to_expand(self, text):
        with pytest.raises(ParseError):
            parse_string(text)

    def test_unsupported_line(self):
        with pytest.raises(ParseError) as exc:
            parse_string("BEGIN:VEVENT\nRRULE:FREQ=DAILY")
        assert exc.value.token == "BEGIN"

    def test_missing_frequency(self):
        with pytest.raises(ParseError):
            parse_string("COUNT=3", start=datetime(2024, 1, 1))


ROUND_TRIPS = [
    dict(freq=WEEKLY, interval=2, byweekday=[MO, WE], count=4),
    dict(freq=MONTHLY, byweekday=[FR(-1)], count=3),
    dict(freq=MONTHLY, bymonthday=[1, 15, -1], until=datetime(2024, 6, 30)),
    dict(freq=YEARLY, byweekno=[1, 20], byweekday=[MO], wkst="SU", count=4),
    dict(freq=YEARLY, byeaster=[0, 1], count=4),
    dict(freq=DAILY, byhour=[9, 17], byminute=[30], bysetpos=[1], count=3),
    dict(freq=DAILY, tzid="Europe/Paris", until=datetime(2024, 1, 10, 9)),
]


@pytest.mark.parametrize("options", ROUND_TRIPS, ids=lambda o: str(sorted(o)))
def test_round_trip(options):
    rule = Rule(start=datetime(2024, 1, 1, 9), **options)
    parsed = Rule.from_string(rule.to_string())
    assert parsed == rule
    assert parsed.all() == rule.all()
