import os
from datetime import date, datetime, time, timedelta
from itertools import islice, takewhile
from typing import Optional

import click
from rich import print
from rich.console import Console
from rich.table import Table

from repeatr.errors import RepeatrError
from repeatr.nlp import TextCodec
from repeatr.repeatr_env import RepeatrConfig, RepeatrEnvironment
from repeatr.rrulestr import parse_string
from repeatr.rule import Rule
from repeatr.ruleset import RuleSet
from repeatr.shared import parse_compact, zone_name
from repeatr.versioning import get_version


class _DateParam(click.ParamType):
    name = "datetime"

    def convert(self, value, param, ctx):
        if value is None:
            return None
        if isinstance(value, datetime):
            return value
        if isinstance(value, date):
            return datetime.combine(value, time())
        s = str(value).strip()
        if s.lower() == "today":
            return datetime.combine(date.today(), time())
        if s.lower() == "now":
            return datetime.now().replace(microsecond=0)
        try:
            return parse_compact(s)
        except (ValueError, OverflowError):
            self.fail("Expected YYYYMMDD[THHMMSS], YYYY-MM-DD [HH:MM], 'today' or 'now'", param, ctx)


_DATE = _DateParam()

VERSION = get_version()


def _rule_tzid(tz: Optional[str], config: RepeatrConfig) -> Optional[str]:
    tzid = tz or config.output.timezone
    if tzid.strip().lower() == "none":
        return None
    return tzid


def load_rule(text: str, start: Optional[datetime], tz: Optional[str], config: RepeatrConfig):
    """
    A Rule or RuleSet from English ('every week on Monday') or the
    canonical form, with the engine settings from ``config``.
    """
    tzid = _rule_tzid(tz, config)
    engine = config.engine
    wkst = engine.week_start if engine.week_start != "MO" else None
    text = text.strip()
    if text.lower().startswith("every"):
        options = {
            "start": start,
            "tzid": tzid,
            "wkst": wkst,
            "cache": engine.cache,
            "max_year": engine.max_year,
        }
        return Rule.from_text(text, **{k: v for k, v in options.items() if v is not None})
    return parse_string(
        text.replace("\\n", "\n"),
        start=start,
        tzid=tzid,
        wkst=wkst,
        cache=engine.cache,
        max_year=engine.max_year,
        exclusion_window=timedelta(milliseconds=engine.exclusion_window_ms),
    )


def format_occurrence(dt: datetime) -> str:
    text = dt.strftime("%Y-%m-%d %H:%M:%S")
    if dt.tzinfo is not None:
        text += f" {zone_name(dt.tzinfo) or dt.strftime('%z')}"
    return text


@click.group()
@click.version_option(VERSION, prog_name="repeatr", message="%(prog)s version %(version)s")
@click.option(
    "--home",
    help="Override the repeatr home directory (equivalent to setting $REPEATR_HOME).",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.pass_context
def cli(ctx, home, verbose):
    """repeatr – expand and describe recurrence rules from the command line."""
    if home:
        os.environ["REPEATR_HOME"] = home  # Must be set before RepeatrEnvironment is instantiated

    env = RepeatrEnvironment()
    env.ensure(init_config=True)
    config = env.load_config()

    ctx.ensure_object(dict)
    ctx.obj["ENV"] = env
    ctx.obj["CONFIG"] = config
    ctx.obj["VERBOSE"] = verbose


@cli.command()
@click.argument("rule")
@click.option("--start", type=_DATE, help="Start of the rule when it does not give a DTSTART.")
@click.option("--count", "-n", type=click.IntRange(1), help="Number of occurrences to list.")
@click.option("--after", type=_DATE, help="List occurrences after this moment.")
@click.option("--before", type=_DATE, help="List occurrences before this moment.")
@click.option("--inc", is_flag=True, help="Include occurrences equal to --after/--before.")
@click.option("--tz", help="Zone of the rule: a name such as 'Europe/Paris', 'UTC', 'local' or 'none'.")
@click.pass_context
def expand(ctx, rule, start, count, after, before, inc, tz):
    """
    List the occurrences of RULE.

    Examples:
      repeatr expand "every 2 weeks on Monday and Wednesday" --start 20240101 --count 4
      repeatr expand "RRULE:FREQ=MONTHLY;BYMONTHDAY=31" --start 2024-01-31 --tz none
      repeatr expand "FREQ=DAILY" --after 2024-03-01 --before 2024-03-08
    """
    env = ctx.obj["ENV"]
    config = ctx.obj["CONFIG"]
    if ctx.obj["VERBOSE"]:
        print(f"repeatr version: {VERSION}")
        print(f"using home directory: {env.home}")

    count = count or config.output.count
    try:
        recurrence = load_rule(rule, start, tz, config)
        if after is not None and before is not None:
            occurrences = recurrence.between(after, before, inc=inc)
        else:
            stream = iter(recurrence)
            if after is not None:
                lower = recurrence.coerce_bound(after)
                stream = (dt for dt in stream if (dt >= lower if inc else dt > lower))
            if before is not None:
                upper = recurrence.coerce_bound(before)
                stream = takewhile(lambda dt: dt <= upper if inc else dt < upper, stream)
            occurrences = list(islice(stream, count))
    except RepeatrError as e:
        raise click.ClickException(str(e))

    console = Console(highlight=False)
    if not occurrences:
        console.print("[yellow]No occurrences[/yellow]")
        return
    table = Table(show_header=True, header_style="bold")
    table.add_column("#", justify="right")
    table.add_column("occurrence")
    table.add_column("day")
    for i, dt in enumerate(occurrences, start=1):
        table.add_row(str(i), format_occurrence(dt), dt.strftime("%a"))
    console.print(table)


@cli.command()
@click.argument("rule")
@click.option("--start", type=_DATE, help="Start of the rule when it does not give a DTSTART.")
@click.option("--tz", help="Zone of the rule.")
@click.pass_context
def describe(ctx, rule, start, tz):
    """Print RULE as English."""
    config = ctx.obj["CONFIG"]
    codec = TextCodec(approximate_marker=config.text.approximate_marker)
    try:
        recurrence = load_rule(rule, start, tz, config)
    except RepeatrError as e:
        raise click.ClickException(str(e))
    rules = recurrence.rrules if isinstance(recurrence, RuleSet) else [recurrence]
    for item in rules:
        click.echo(codec.to_text(item.spec))


@cli.command()
@click.argument("text")
@click.option("--start", type=_DATE, help="Start of the rule.")
@click.option("--tz", help="Zone of the rule.")
@click.pass_context
def encode(ctx, text, start, tz):
    """Print the canonical form of TEXT, e.g. 'every month on the last Friday'."""
    config = ctx.obj["CONFIG"]
    try:
        recurrence = load_rule(text, start, tz, config)
    except RepeatrError as e:
        raise click.ClickException(str(e))
    click.echo(recurrence.to_string())
