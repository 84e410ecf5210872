"""
Tests for natural-language rules.

These tests verify the tokenizer, the parser and the English formatter.
"""

from datetime import datetime

import pytest

from repeatr.errors import ParseError
from repeatr.nlp import TextCodec
from repeatr.options import resolve_options
from repeatr.rule import Rule
from repeatr.weekday import (
    DAILY,
    FR,
    MO,
    MONTHLY,
    SECONDLY,
    TU,
    WE,
    TH,
    WEEKLY,
    YEARLY,
    Frequency,
)

START = datetime(2024, 1, 1)


@pytest.fixture
def codec():
    return TextCodec()


def _spec(freq, **options):
    return resolve_options(freq=freq, start=START, **options)


@pytest.mark.unit
class TestTokenize:
    def test_tokens(self, codec):
        assert codec.tokenize("every 2 weeks on Monday") == [
            ("every", "every"),
            ("number", "2"),
            ("week", "weeks"),
            ("on", "on"),
            ("monday", "Monday"),
        ]

    def test_longest_match_wins(self, codec):
        assert codec.tokenize("every month") == [("every", "every"), ("month", "month")]

    def test_unknown_word(self, codec):
        with pytest.raises(ParseError) as exc:
            codec.tokenize("every fortnight")
        assert exc.value.token == "fortnight"


@pytest.mark.unit
class TestParse:
    def test_weekly(self, codec):
        options = codec.parse_text("every 2 weeks on Monday and Wednesday for 4 times")
        assert options == {
            "freq": Frequency.WEEKLY,
            "interval": 2,
            "byweekday": [MO, WE],
            "count": 4,
        }

    def test_weekday(self, codec):
        options = codec.parse_text("every weekday")
        assert options["freq"] is Frequency.WEEKLY
        assert options["byweekday"] == [MO, TU, WE, TH, FR]

    def test_last_friday(self, codec):
        options = codec.parse_text("every month on the last Friday")
        assert options == {"freq": Frequency.MONTHLY, "byweekday": [FR(-1)]}

    def test_second_last_day(self, codec):
        options = codec.parse_text("every month on the 2nd last day")
        assert options["bymonthday"] == [-2]

    def test_month_days(self, codec):
        options = codec.parse_text("every month on the 1st and 15th")
        assert options["bymonthday"] == [1, 15]

    def test_months_and_hours(self, codec):
        options = codec.parse_text("every year in January, July on the 1st at 9")
        assert options == {
            "freq": Frequency.YEARLY,
            "bymonth": [1, 7],
            "bymonthday": [1],
            "byhour": [9],
        }

    def test_zero_is_a_number(self, codec):
        options = codec.parse_text("every day at 0 and 12 for 0 times")
        assert options == {"freq": Frequency.DAILY, "byhour": [0, 12], "count": 0}

    def test_day_name_after_every(self, codec):
        options = codec.parse_text("every Tuesday and Thursday")
        assert options == {"freq": Frequency.WEEKLY, "byweekday": [TU, TH]}

    def test_month_name_after_every(self, codec):
        options = codec.parse_text("every March on the 3rd")
        assert options == {"freq": Frequency.YEARLY, "bymonth": [3], "bymonthday": [3]}

    @pytest.mark.parametrize(
        "text, freq, interval",
        [
            ("every other day", DAILY, 2),
            ("every second week", WEEKLY, 2),
            ("every three days", DAILY, 3),
            ("every second", SECONDLY, None),
        ],
    )
    def test_intervals(self, codec, text, freq, interval):
        options = codec.parse_text(text)
        assert options["freq"] == freq
        assert options.get("interval") == interval

    def test_until(self, codec):
        options = codec.parse_text("every day until January 5, 2025")
        assert options["until"] == datetime(2025, 1, 5)

    @pytest.mark.parametrize(
        "text, token",
        [
            ("each day", "each"),
            ("every day on", ""),
            ("every day for many times", "many"),
            ("every day until someday", "someday"),
        ],
    )
    def test_errors(self, codec, text, token):
        with pytest.raises(ParseError) as exc:
            codec.parse_text(text)
        assert exc.value.token == token


@pytest.mark.unit
class TestFormat:
    @pytest.mark.parametrize(
        "freq, options, text",
        [
            (
                WEEKLY,
                dict(interval=2, byweekday=[MO, WE], count=4),
                "every 2 weeks on Monday and Wednesday for 4 times",
            ),
            (WEEKLY, dict(byweekday=[MO, TU, WE, TH, FR]), "every weekday"),
            (MONTHLY, dict(byweekday=[FR(-1)]), "every month on the last Friday"),
            (MONTHLY, dict(bymonthday=[-1]), "every month on the last day"),
            (MONTHLY, dict(bymonthday=[1, 15]), "every month on the 1st and the 15th"),
            (
                YEARLY,
                dict(bymonth=[1, 7], bymonthday=[1], byhour=[9]),
                "every year in January and July on the 1st at 9",
            ),
            (DAILY, dict(until=datetime(2025, 1, 5)), "every day until January 5, 2025"),
            (DAILY, dict(count=1), "every day for 1 time"),
        ],
    )
    def test_to_text(self, codec, freq, options, text):
        spec = _spec(freq, **options)
        assert codec.to_text(spec) == text
        assert codec.is_fully_convertible(spec)

    def test_approximate(self, codec):
        spec = _spec(YEARLY, byweekno=[20])
        assert not codec.is_fully_convertible(spec)
        assert codec.to_text(spec) == "every year (approximate)"

    def test_week_start(self, codec):
        assert codec.is_fully_convertible(_spec(WEEKLY, wkst="MO"))
        assert not codec.is_fully_convertible(_spec(WEEKLY, wkst="SU"))

    def test_custom_marker(self):
        codec = TextCodec(approximate_marker="~")
        assert codec.to_text(_spec(DAILY, bysetpos=[1])) == "every day ~"

    def test_date_cache(self, codec):
        codec.to_text(_spec(DAILY, until=datetime(2025, 1, 5, 10, 30)))
        assert codec._date_cache == {datetime(2025, 1, 5, 10, 30): "January 5, 2025 10:30:00"}
        codec.reset()
        assert codec._date_cache == {}


@pytest.mark.parametrize(
    "text",
    [
        "every 2 weeks on Monday and Wednesday for 4 times",
        "every month on the last Friday",
        "every month on the 2nd last Tuesday until March 1, 2025",
        "every year in January and July on the 1st at 9",
        "every 3 days for 10 times",
        "every day at 0 and 9 for 3 times",
    ],
)
def test_text_round_trip(text):
    rule = Rule.from_text(text, start=START)
    assert rule.to_text() == text
    assert rule.is_fully_convertible_to_text()
    assert Rule.from_text(rule.to_text(), start=START) == rule
