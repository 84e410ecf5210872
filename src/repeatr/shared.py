import inspect
import textwrap
import shutil
import re
import os
from datetime import date, datetime, timezone, tzinfo
from pathlib import Path
from dateutil import tz
from dateutil.parser import parse as dateutil_parse

from repeatr.repeatr_env import RepeatrEnvironment
from .errors import UnsupportedZoneError

env = RepeatrEnvironment()

COMPACT_PATTERN = re.compile(
    r"^(?P<date>\d{8})(?:T(?P<time>\d{4}(?:\d{2})?)(?P<utc>Z)?)?$", re.IGNORECASE
)


def resolve_zone(tzid: str | None) -> tzinfo | None:
    """
    Return the tzinfo named by ``tzid``.

    'local' is the machine zone (via tzlocal), 'UTC' and 'Z' are UTC, None
    and 'none' mean floating (naive) time. Raises UnsupportedZoneError when
    the name is unknown.
    """
    if tzid is None or tzid.strip().lower() == "none":
        return None
    name = tzid.strip()
    if name.upper() in ("UTC", "Z"):
        return tz.UTC
    if name.lower() == "local":
        from tzlocal import get_localzone_name

        name = get_localzone_name()
    zone = tz.gettz(name)
    if zone is None:
        raise UnsupportedZoneError(tzid)
    return zone


def zone_name(zone: tzinfo | None) -> str | None:
    """Best effort IANA name for ``zone``; None when it has no usable name."""
    if zone is None:
        return None
    if zone in (tz.UTC, timezone.utc):
        return "UTC"
    key = getattr(zone, "key", None)  # zoneinfo.ZoneInfo
    if key:
        return key
    filename = getattr(zone, "_filename", None)  # dateutil tzfile
    if filename and "/" in filename and not filename.startswith("/"):
        return filename
    if filename and "zoneinfo/" in filename:
        return filename.split("zoneinfo/")[-1]
    return None


def fmt_compact(dt: date | datetime, utc: bool = False) -> str:
    """
    date -> 'YYYYMMDD'; datetime -> 'YYYYMMDDTHHMMSS', with a trailing 'Z'
    after conversion to UTC when ``utc`` is True.
    """
    if not isinstance(dt, datetime):
        return dt.strftime("%Y%m%d")
    if utc:
        if dt.tzinfo is not None:
            dt = dt.astimezone(tz.UTC)
        return dt.strftime("%Y%m%dT%H%M%SZ")
    return dt.strftime("%Y%m%dT%H%M%S")


def parse_compact(s: str, zone: tzinfo | None = None) -> datetime:
    """
    'YYYYMMDD', 'YYYYMMDDTHHMM[SS]' or the same with a trailing 'Z' -> datetime.

    Values ending in 'Z' are aware UTC, others are attached to ``zone``
    (naive when ``zone`` is None). Anything else is handed to dateutil's
    parser. Raises ValueError when the text is not a date.
    """
    text = s.strip()
    match = COMPACT_PATTERN.match(text)
    if match is None:
        dt = dateutil_parse(text)
    else:
        digits = match.group("date") + (match.group("time") or "0000")
        fmt = "%Y%m%d%H%M%S" if len(digits) == 14 else "%Y%m%d%H%M"
        dt = datetime.strptime(digits, fmt)
        if match.group("utc"):
            return dt.replace(tzinfo=tz.UTC)
    if dt.tzinfo is None and zone is not None:
        dt = dt.replace(tzinfo=zone)
    return dt


def ordinal(n: int) -> str:
    """1 -> '1st', 2 -> '2nd', 11 -> '11th', 23 -> '23rd'."""
    n = abs(int(n))
    if 10 <= n % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"


def integer(arg, min, max, zero, typ=None):
    """
    :param arg: integer
    :param min: minimum allowed or None
    :param max: maximum allowed or None
    :param zero: zero not allowed if False
    :param typ: label for message
    :return: (True, integer) or (False, message)
    >>> integer(-2, -10, 8, False, 'integer_test')
    (True, -2)
    >>> integer(-2, 0, 8, False, 'integer_test')
    (False, 'integer_test: -2 is less than the allowed minimum')
    """
    msg = ""
    if isinstance(arg, bool):
        return False, f"{typ}: {arg}" if typ else str(arg)
    try:
        arg = int(arg)
    except (TypeError, ValueError):
        if typ:
            return False, "{}: {}".format(typ, arg)
        else:
            return False, str(arg)
    if min is not None and arg < min:
        msg = "{} is less than the allowed minimum".format(arg)
    elif max is not None and arg > max:
        msg = "{} is greater than the allowed maximum".format(arg)
    elif not zero and arg == 0:
        msg = "0 is not allowed"
    if msg:
        if typ:
            return False, "{}: {}".format(typ, msg)
        else:
            return False, msg
    else:
        return True, arg


def integer_list(arg, min, max, zero, typ=None):
    """
    :param arg: comma separated string, int or iterable of integers
    :param min: minimum allowed or None
    :param max: maximum allowed or None
    :param zero: zero not allowed if False
    :param typ: label for message
    :return: (True, list of integers) or (False, messages)
    >>> integer_list([-13, -10, 0, "2", 27], -12, +20, True, 'integer_list test')
    (False, 'integer_list test: -13 is less than the allowed minimum; 27 is greater than the allowed maximum')
    >>> integer_list([1, "2", 3], None, None, True, "integer_list test")
    (True, [1, 2, 3])
    """
    if isinstance(arg, str):
        args = [x.strip() for x in arg.split(",") if x.strip()]
    elif isinstance(arg, int):
        args = [arg]
    else:
        try:
            args = list(arg)
        except TypeError:
            if typ:
                return False, "{}: {}".format(typ, arg)
            else:
                return False, str(arg)
    msg = []
    ret = []
    for arg in args:
        ok, res = integer(arg, min, max, zero, None)
        if ok:
            ret.append(res)
        else:
            msg.append(res)
    if msg:
        if typ:
            return False, "{}: {}".format(typ, "; ".join(msg))
        else:
            return False, "; ".join(msg)
    else:
        return True, ret


def _get_runtime_home() -> Path:
    override = os.environ.get("REPEATR_HOME")
    if override:
        return Path(override).expanduser()
    return env.home


def _resolve_log_file_path(file_path: str | Path) -> Path:
    path = Path(file_path)
    if path.is_absolute():
        return path
    return _get_runtime_home() / path


def _default_log_relative_path(kind: str) -> Path:
    """Return logs/log_<YYMMDD>.md style paths under the runtime home."""
    suffix = datetime.now().strftime("%y%m%d")
    return Path("logs") / f"{kind}_{suffix}.md"


def log_msg(
    msg: str,
    file_path: str | Path | None = None,
    print_output: bool = False,
):
    """
    Log a message and save it directly to a file.

    Args:
        msg (str): The message to log.
        file_path (str | Path | None, optional): Overrides the default path when
            provided. Defaults to ``None`` which writes to ``logs/log_<YYMMDD>.md``.
        print_output (bool, optional): If True, also print to console.
    """
    frame = inspect.stack()[1].frame
    func_name = frame.f_code.co_name

    # Default: just function name
    caller_name = func_name

    # Detect instance/class/static context
    if "self" in frame.f_locals:  # instance method
        cls_name = frame.f_locals["self"].__class__.__name__
        caller_name = f"{cls_name}.{func_name}"
    elif "cls" in frame.f_locals:  # classmethod
        cls_name = frame.f_locals["cls"].__name__
        caller_name = f"{cls_name}.{func_name}"
    del frame

    # Format the line header
    lines = [
        f"- {datetime.now().strftime('%H:%M:%S')} log_msg ({caller_name}):  ",
    ]
    # Wrap the message text
    lines.extend(
        [
            f"\n{x}"
            for x in textwrap.wrap(
                msg.strip(),
                width=max(shutil.get_terminal_size()[0] - 6, 20),
                initial_indent="   ",
                subsequent_indent="   ",
            )
        ]
    )
    lines.append("\n\n")

    # Best-effort file logging; fall back to console when the file is unwritable.
    if file_path is None:
        file_path = _default_log_relative_path("log")
    log_path = _resolve_log_file_path(file_path)

    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        with open(log_path, "a", encoding="utf-8") as f:
            f.writelines(lines)
    except OSError:
        print_output = True

    if print_output:
        print("".join(lines))
