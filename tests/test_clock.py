from datetime import datetime
from types import SimpleNamespace

import pytest

from repeatr.clock import CalendarClock, days_in_month, is_leap
from repeatr.weekday import DAILY, HOURLY, MONTHLY, WEEKLY, YEARLY


def _spec(freq, interval=1, wkst=0, byhour=(), byminute=(), bysecond=()):
    return SimpleNamespace(
        freq=freq,
        interval=interval,
        wkst=wkst,
        byhour=byhour,
        byminute=byminute,
        bysecond=bysecond,
    )


def _fields(clock):
    return (clock.year, clock.month, clock.day, clock.hour, clock.minute, clock.second)


@pytest.mark.parametrize(
    "year, leap",
    [(2023, False), (2024, True), (1900, False), (2000, True)],
)
def test_is_leap(year, leap):
    assert is_leap(year) is leap


def test_days_in_month():
    assert days_in_month(2023, 2) == 28
    assert days_in_month(2024, 2) == 29
    assert days_in_month(2024, 4) == 30
    assert days_in_month(2024, 12) == 31


def test_fix_day_rolls_forward_instead_of_clamping():
    clock = CalendarClock(2023, 1, 60)
    assert clock.fix_day()
    assert (clock.year, clock.month, clock.day) == (2023, 3, 1)


def test_fix_day_crosses_year_end():
    clock = CalendarClock(2024, 12, 40)
    assert clock.fix_day()
    assert (clock.year, clock.month, clock.day) == (2025, 1, 9)


def test_fix_day_stops_past_max_year():
    clock = CalendarClock(2024, 12, 40, max_year=2024)
    assert not clock.fix_day()


def test_monthly_advance_keeps_the_day():
    clock = CalendarClock(2024, 10, 31)
    assert clock.advance(_spec(MONTHLY, interval=5))
    assert (clock.year, clock.month, clock.day) == (2025, 3, 31)


def test_yearly_advance_stops_past_max_year():
    clock = CalendarClock(2024, 2, 29, max_year=2025)
    assert clock.advance(_spec(YEARLY))
    assert not clock.advance(_spec(YEARLY))


@pytest.mark.parametrize(
    "wkst, expected_day",
    [
        (0, 8),  # next Monday
        (6, 7),  # next Sunday
    ],
)
def test_weekly_advance_moves_to_week_start(wkst, expected_day):
    clock = CalendarClock.from_datetime(datetime(2024, 1, 3))  # a Wednesday
    assert clock.advance(_spec(WEEKLY, wkst=wkst))
    assert (clock.month, clock.day) == (1, expected_day)
    assert clock.weekday == wkst
    assert clock.date().weekday() == wkst


def test_daily_advance_updates_weekday():
    clock = CalendarClock.from_datetime(datetime(2024, 1, 31))
    assert clock.advance(_spec(DAILY))
    assert (clock.month, clock.day) == (2, 1)
    assert clock.weekday == clock.date().weekday()


def test_hourly_advance_crosses_midnight():
    clock = CalendarClock.from_datetime(datetime(2024, 1, 1, 22))
    assert clock.advance(_spec(HOURLY, interval=3))
    assert _fields(clock) == (2024, 1, 2, 1, 0, 0)
    assert clock.weekday == 1


def test_hourly_advance_skips_to_allowed_hour():
    clock = CalendarClock.from_datetime(datetime(2024, 1, 1, 10))
    assert clock.advance(_spec(HOURLY, byhour=(9, 17)))
    assert _fields(clock) == (2024, 1, 1, 17, 0, 0)


def test_filtered_day_jumps_to_the_next_day():
    clock = CalendarClock.from_datetime(datetime(2024, 1, 1, 5, 30))
    assert clock.advance(_spec(HOURLY), filtered=True)
    assert _fields(clock) == (2024, 1, 2, 0, 30, 0)


def test_unreachable_slot_stops():
    clock = CalendarClock.from_datetime(datetime(2024, 1, 1, 10))
    assert not clock.advance(_spec(HOURLY, interval=24, byhour=(9,)))
