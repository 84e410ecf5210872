from datetime import date, datetime

import pytest
from dateutil import tz

from repeatr.errors import UnsupportedZoneError
from repeatr.repeatr_env import RepeatrConfig, RepeatrEnvironment
from repeatr.shared import (
    fmt_compact,
    integer,
    integer_list,
    log_msg,
    ordinal,
    parse_compact,
    resolve_zone,
    zone_name,
)


@pytest.mark.unit
class TestEnvironment:
    def test_home_from_environment(self, repeatr_home):
        assert RepeatrEnvironment().home == repeatr_home

    def test_xdg_home(self, monkeypatch, tmp_path):
        monkeypatch.delenv("REPEATR_HOME")
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
        assert RepeatrEnvironment().home == tmp_path / "xdg" / "repeatr"

    def test_ensure_writes_commented_config(self, test_env):
        text = test_env.config_path.read_text()
        assert "# max_year: int = 1 ... 9999" in text
        assert "max_year = 9999" in text
        assert 'timezone = "local"' in text

    def test_defaults(self, test_env):
        config = test_env.load_config()
        assert config == RepeatrConfig()
        assert config.output.count == 10
        assert config.engine.week_start == "MO"

    def test_partial_config_is_completed(self, repeatr_home):
        repeatr_home.mkdir(parents=True)
        path = repeatr_home / "config.toml"
        path.write_text("[output]\ncount = 3\n")
        config = RepeatrEnvironment().load_config()
        assert config.output.count == 3
        assert config.engine.max_year == 9999
        assert "max_year = 9999" in path.read_text()

    def test_invalid_config_falls_back_to_defaults(self, repeatr_home, capsys):
        repeatr_home.mkdir(parents=True)
        (repeatr_home / "config.toml").write_text("[engine]\nmax_year = 0\n")
        config = RepeatrEnvironment().load_config()
        assert config.engine.max_year == 9999
        assert "Config error" in capsys.readouterr().out

    def test_config_property_loads_once(self, test_env):
        assert test_env.config is test_env.config


@pytest.mark.unit
class TestLogging:
    def test_log_msg_writes_dated_file(self, repeatr_home, frozen_time):
        log_msg("rule loaded")
        path = repeatr_home / "logs" / "log_250101.md"
        text = path.read_text()
        assert "rule loaded" in text
        assert "test_log_msg_writes_dated_file" in text


@pytest.mark.unit
class TestZones:
    def test_resolve_zone(self):
        assert resolve_zone(None) is None
        assert resolve_zone("none") is None
        assert resolve_zone("UTC") is tz.UTC
        assert resolve_zone("Z") is tz.UTC
        assert resolve_zone("Europe/Paris") is tz.gettz("Europe/Paris")

    def test_unknown_zone(self):
        with pytest.raises(UnsupportedZoneError) as exc:
            resolve_zone("Mars/Olympus")
        assert exc.value.tzid == "Mars/Olympus"

    def test_zone_name(self):
        assert zone_name(None) is None
        assert zone_name(tz.UTC) == "UTC"
        assert zone_name(tz.gettz("America/New_York")) == "America/New_York"


@pytest.mark.unit
class TestCompact:
    def test_format(self):
        assert fmt_compact(date(2024, 1, 2)) == "20240102"
        assert fmt_compact(datetime(2024, 1, 2, 9, 5)) == "20240102T090500"
        paris = tz.gettz("Europe/Paris")
        assert fmt_compact(datetime(2024, 1, 2, 9, tzinfo=paris), utc=True) == "20240102T080000Z"

    @pytest.mark.parametrize(
        "text, expected",
        [
            ("20240102", datetime(2024, 1, 2)),
            ("20240102T0930", datetime(2024, 1, 2, 9, 30)),
            ("20240102T093015", datetime(2024, 1, 2, 9, 30, 15)),
            ("2024-01-02 09:30", datetime(2024, 1, 2, 9, 30)),
        ],
    )
    def test_parse(self, text, expected):
        assert parse_compact(text) == expected

    def test_parse_utc(self):
        assert parse_compact("20240102T093000Z") == datetime(2024, 1, 2, 9, 30, tzinfo=tz.UTC)

    def test_parse_in_zone(self):
        paris = tz.gettz("Europe/Paris")
        assert parse_compact("20240102T0930", paris).tzinfo is paris

    def test_parse_rejects_garbage(self):
        with pytest.raises(ValueError):
            parse_compact("not a date")


@pytest.mark.parametrize(
    "n, text",
    [(1, "1st"), (2, "2nd"), (3, "3rd"), (4, "4th"), (11, "11th"), (12, "12th"), (22, "22nd"), (-3, "3rd")],
)
def test_ordinal(n, text):
    assert ordinal(n) == text


def test_integer_helpers():
    assert integer("3", 0, None, True) == (True, 3)
    assert integer(0, None, None, False, "count") == (False, "count: 0 is not allowed")
    assert integer_list("1, 2,3", 1, 12, False) == (True, [1, 2, 3])
    ok, msg = integer_list([0, 13], 1, 12, False, "bymonth")
    assert not ok
    assert msg.startswith("bymonth: ")
