"""
Shared pytest fixtures for repeatr tests.

This module provides common fixtures used across all test files, including:
- Time freezing utilities
- An isolated home directory per test
- Rule factories
"""

import pytest
from datetime import datetime
from freezegun import freeze_time

from repeatr.repeatr_env import RepeatrEnvironment
from repeatr.rule import Rule


@pytest.fixture(autouse=True)
def repeatr_home(tmp_path, monkeypatch):
    """
    Points REPEATR_HOME at a fresh directory so that log files and
    config.toml never land in the user's real home.
    """
    home = tmp_path / "repeatr-home"
    monkeypatch.setenv("REPEATR_HOME", str(home))
    return home


@pytest.fixture
def frozen_time():
    """
    Provides a freezegun context that freezes time to a default datetime.

    Time is automatically frozen to 2025-01-01 12:00:00 for the duration of the test.
    You can move time forward using the methods on the frozen context.
    """
    with freeze_time("2025-01-01 12:00:00") as frozen:
        yield frozen


@pytest.fixture
def freeze_at():
    """
    Returns a function that freezes time to a specific datetime.

    Usage:
        def test_something(freeze_at):
            with freeze_at("2025-01-15 10:00:00"):
                now = datetime.now()
    """
    return freeze_time


@pytest.fixture
def test_env(repeatr_home):
    """
    Provides a RepeatrEnvironment rooted in the per-test home.
    """
    env = RepeatrEnvironment()
    env.ensure(init_config=True)
    return env


@pytest.fixture
def rule_factory():
    """
    Provides a factory for rules starting 2024-01-01 00:00 (a Monday)
    unless another start is given.

    Usage:
        def test_something(rule_factory):
            rule = rule_factory("DAILY", count=3)
    """

    def _create(freq, start=datetime(2024, 1, 1), **options) -> Rule:
        return Rule(freq, start=start, **options)

    return _create
